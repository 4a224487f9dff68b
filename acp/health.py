from __future__ import annotations

import time
from dataclasses import dataclass
from typing import Callable, Mapping


@dataclass(frozen=True)
class HealthResult:
    name: str
    healthy: bool
    message: str
    latency_ms: float | None = None


def check_health(name: str, check: Callable[[], bool]) -> HealthResult:
    """Run one collaborator health predicate.

    A predicate that raises counts as unhealthy.
    """
    start = time.time()
    try:
        ok = bool(check())
        latency_ms = round((time.time() - start) * 1000.0, 2)
        return HealthResult(name, ok, "Healthy" if ok else "Unhealthy", latency_ms)
    except Exception as e:
        latency_ms = round((time.time() - start) * 1000.0, 2)
        return HealthResult(name, False, f"Error: {type(e).__name__}: {e}", latency_ms)


def run_health_checks(checks: Mapping[str, Callable[[], bool]]) -> list[HealthResult]:
    return [check_health(name, fn) for name, fn in sorted(checks.items())]
