from __future__ import annotations

import time
from dataclasses import dataclass
from threading import Event, Lock


class LeadershipFlag:
    """Process-wide "am I the leader" flag.

    Written by election callbacks, read on every gated scale call. Reads never
    take a lock, so a tick cannot be blocked by a leadership change.
    """

    def __init__(self, initial: bool = False) -> None:
        self._event = Event()
        if initial:
            self._event.set()

    def set(self, leader: bool) -> None:
        if leader:
            self._event.set()
        else:
            self._event.clear()

    def get(self) -> bool:
        return self._event.is_set()


@dataclass
class RefreshStatus:
    last_success: float | None = None
    last_failure: float | None = None
    last_error: str | None = None
    consecutive_failures: int = 0


class RuntimeState:
    """In-memory state of the refresh loop, shared with health checks."""

    def __init__(self) -> None:
        self.lock = Lock()
        self.refresh = RefreshStatus()

    def mark_refresh(self, ok: bool, error: str | None = None) -> None:
        now = time.time()
        with self.lock:
            if ok:
                self.refresh.last_success = now
                self.refresh.consecutive_failures = 0
                self.refresh.last_error = None
            else:
                self.refresh.last_failure = now
                self.refresh.consecutive_failures += 1
                self.refresh.last_error = error

    def refresh_status(self) -> RefreshStatus:
        with self.lock:
            r = self.refresh
            return RefreshStatus(r.last_success, r.last_failure, r.last_error, r.consecutive_failures)
