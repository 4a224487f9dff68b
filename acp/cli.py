from __future__ import annotations

import argparse
import json
import sys

import requests

from .settings import settings


def _print(obj) -> None:
    print(json.dumps(obj, indent=2, ensure_ascii=False))


def main(argv: list[str] | None = None) -> int:
    p = argparse.ArgumentParser(description="Autoscale Control Plane CLI")
    p.add_argument("--api", default=settings.api_url, help="API base URL")
    sub = p.add_subparsers(dest="cmd", required=True)

    sub.add_parser("health", help="Run collaborator health checks")
    sub.add_parser("services", help="List monitored services")
    sub.add_parser("leader", help="Show leadership and lifecycle state")

    s_ev = sub.add_parser("events", help="Show events")
    s_ev.add_argument("--limit", type=int, default=20)
    s_ev.add_argument("--service")

    s_at = sub.add_parser("attempts", help="Show scale attempts")
    s_at.add_argument("--limit", type=int, default=20)
    s_at.add_argument("--service")

    args = p.parse_args(argv)

    base = args.api.rstrip("/")

    if args.cmd == "health":
        r = requests.get(f"{base}/healthcheck", timeout=10)
        _print(r.json())
        return 0 if r.ok else 1

    if args.cmd == "services":
        _print(requests.get(f"{base}/services", timeout=10).json())
        return 0

    if args.cmd == "leader":
        _print(requests.get(f"{base}/leader", timeout=10).json())
        return 0

    if args.cmd in {"events", "attempts"}:
        path = "events" if args.cmd == "events" else "scale-attempts"
        params = {"limit": args.limit}
        if args.service:
            params["service_id"] = args.service
        _print(requests.get(f"{base}/{path}", params=params, timeout=10).json())
        return 0

    return 2


if __name__ == "__main__":
    raise SystemExit(main(sys.argv[1:]))
