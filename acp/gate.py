from __future__ import annotations

import sqlite3

from . import db
from .errors import ScalingError
from .interfaces import ServiceScaler
from .runtime import LeadershipFlag
from .settings import settings


class ScalerGate:
    """Forwards scale commands to the real scaler only while this instance leads.

    Followers keep analysing so a failover starts warm; their scale calls are
    recorded and dropped.
    """

    def __init__(self, scaler: ServiceScaler, leader: bool = False):
        self.scaler = scaler
        self._leader = LeadershipFlag(leader)

    @property
    def is_leader(self) -> bool:
        return self._leader.get()

    def set_leader(self, leader: bool) -> None:
        self._leader.set(bool(leader))

    def scale(self, service_id: str, target: int) -> None:
        if not self._leader.get():
            self._record(service_id, target, forwarded=False, outcome="suppressed", detail="not leader")
            return
        try:
            self.scaler.scale(service_id, target)
        except ScalingError as e:
            self._record(service_id, target, forwarded=True, outcome="failed", detail=str(e))
            raise
        except Exception as e:
            self._record(service_id, target, forwarded=True, outcome="failed", detail=f"{type(e).__name__}: {e}")
            raise ScalingError(f"Scaling {service_id} to {target} failed: {type(e).__name__}: {e}") from e
        self._record(service_id, target, forwarded=True, outcome="ok")

    def health_check(self) -> bool:
        return self.scaler.health_check()

    def _record(self, service_id: str, target: int, forwarded: bool, outcome: str, detail: str | None = None) -> None:
        if not settings.record_scale_attempts:
            return
        try:
            db.record_scale_attempt(service_id, target, forwarded=forwarded, outcome=outcome, detail=detail)
        except sqlite3.Error:
            pass  # the scale outcome stands even if it cannot be recorded
