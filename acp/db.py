from __future__ import annotations

import os
import sqlite3
from datetime import datetime, timezone
from typing import Any

from .settings import settings


def utc_now() -> str:
    return datetime.now(timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ")


def _resolve_db_path() -> str:
    """Return a file path usable by sqlite.

    A bind-mounted path that did not exist on the host shows up as a
    directory inside the container; in that case the DB file goes inside it.
    """

    p = os.path.abspath(settings.db_path)

    if os.path.isdir(p):
        p = os.path.join(p, "acp.db")

    parent = os.path.dirname(p)
    if parent and not os.path.exists(parent):
        os.makedirs(parent, exist_ok=True)

    return p


def connect() -> sqlite3.Connection:
    conn = sqlite3.connect(_resolve_db_path(), check_same_thread=False, timeout=10)
    conn.row_factory = sqlite3.Row
    return conn


def init_db() -> None:
    """Create tables if they do not exist."""
    with connect() as conn:
        conn.executescript(
            """
            CREATE TABLE IF NOT EXISTS events (
              id INTEGER PRIMARY KEY AUTOINCREMENT,
              ts TEXT NOT NULL,
              level TEXT NOT NULL,
              service_id TEXT,
              message TEXT NOT NULL
            );

            CREATE TABLE IF NOT EXISTS scale_attempts (
              id INTEGER PRIMARY KEY AUTOINCREMENT,
              ts TEXT NOT NULL,
              service_id TEXT NOT NULL,
              target INTEGER NOT NULL,
              forwarded INTEGER NOT NULL, -- 1 when this instance was leader
              outcome TEXT NOT NULL, -- ok|failed|suppressed
              detail TEXT
            );

            CREATE INDEX IF NOT EXISTS idx_events_ts ON events(ts);
            CREATE INDEX IF NOT EXISTS idx_scale_attempts_service ON scale_attempts(service_id);
            """
        )


def log_event(level: str, message: str, service_id: str | None = None) -> None:
    with connect() as conn:
        conn.execute(
            "INSERT INTO events (ts, level, service_id, message) VALUES (?, ?, ?, ?)",
            (utc_now(), level.upper(), service_id, message),
        )


def record_scale_attempt(
    service_id: str,
    target: int,
    forwarded: bool,
    outcome: str,
    detail: str | None = None,
) -> None:
    with connect() as conn:
        conn.execute(
            """
            INSERT INTO scale_attempts (ts, service_id, target, forwarded, outcome, detail)
            VALUES (?, ?, ?, ?, ?, ?)
            """,
            (utc_now(), service_id, int(target), 1 if forwarded else 0, outcome, detail),
        )


def latest_events(limit: int = 100, service_id: str | None = None) -> list[dict[str, Any]]:
    with connect() as conn:
        if service_id:
            rows = conn.execute(
                "SELECT * FROM events WHERE service_id=? ORDER BY id DESC LIMIT ?",
                (service_id, limit),
            ).fetchall()
        else:
            rows = conn.execute("SELECT * FROM events ORDER BY id DESC LIMIT ?", (limit,)).fetchall()
        return [dict(r) for r in rows]


def latest_scale_attempts(limit: int = 100, service_id: str | None = None) -> list[dict[str, Any]]:
    with connect() as conn:
        if service_id:
            rows = conn.execute(
                "SELECT * FROM scale_attempts WHERE service_id=? ORDER BY id DESC LIMIT ?",
                (service_id, limit),
            ).fetchall()
        else:
            rows = conn.execute("SELECT * FROM scale_attempts ORDER BY id DESC LIMIT ?", (limit,)).fetchall()
        out = []
        for r in rows:
            d = dict(r)
            d["forwarded"] = bool(d["forwarded"])
            out.append(d)
        return out
