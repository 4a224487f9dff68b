"""Control-plane lifecycle.

Every instance of the control plane monitors all services of its group, but
only the elected leader actually triggers scaling. Followers keep their
analysers running so that a failover has warm history to work with.
"""
from __future__ import annotations

import sqlite3
import time
from enum import Enum
from typing import Callable

from . import db
from .analysers import AnalyserRegistry
from .errors import DiscoveryError, PartialUpdateError
from .gate import ScalerGate
from .interfaces import ElectionCallback, ElectionFactory, ServiceScaler, ServiceSource
from .reconciler import ServiceReconciler
from .runtime import RuntimeState
from .scheduler import ScheduledTask, Scheduler
from .validator import ServiceValidator

AUTOSCALE_SERVICE_NAME = "autoscale"
# A refresh older than this many intervals marks the service list as stale.
STALE_REFRESH_INTERVALS = 3


def _log_quietly(level: str, message: str) -> None:
    try:
        db.log_event(level, message)
    except sqlite3.Error:
        pass  # event log unavailable during shutdown


class LifecycleState(str, Enum):
    STOPPED = "stopped"
    STARTING = "starting"
    RUNNING = "running"
    SHUTTING_DOWN = "shutting_down"


class ControlPlane(ElectionCallback):
    def __init__(
        self,
        source: ServiceSource,
        scaler: ServiceScaler,
        registry: AnalyserRegistry,
        election_factory: ElectionFactory,
        scheduler: Scheduler,
        group: str,
    ):
        self.source = source
        self.registry = registry
        self.scheduler = scheduler
        self.group = group
        self.runtime = RuntimeState()
        self.gate = ScalerGate(scaler)
        self.validator = ServiceValidator(list(registry))
        self.reconciler = ServiceReconciler(registry, self.gate, scheduler, self.validator)
        self.election = election_factory.get_election(f"{group}-{AUTOSCALE_SERVICE_NAME}", self)
        self.state = LifecycleState.STOPPED
        self.refresh_interval_s: int | None = None
        self._started_at: float | None = None
        self._refresh_handle: ScheduledTask | None = None

    def start(self, refresh_interval_s: int) -> None:
        """Enter the election, load services once, then refresh periodically.

        Failing to enter the election aborts startup (ElectionError propagates).
        Failing to load services does not: the periodic refresh will retry.
        Any other error after entering resigns and returns to STOPPED.
        """
        if self.state != LifecycleState.STOPPED:
            raise RuntimeError(f"Cannot start control plane in state '{self.state.value}'")
        refresh_interval_s = max(1, int(refresh_interval_s))
        self.state = LifecycleState.STARTING
        db.log_event("INFO", f"Starting control plane for group '{self.group}'")
        try:
            self.election.enter()
        except Exception as e:
            self.state = LifecycleState.STOPPED
            db.log_event("ERROR", f"Could not enter election: {type(e).__name__}: {e}")
            raise
        self.refresh_interval_s = refresh_interval_s
        self._started_at = time.time()
        try:
            self.reconciler.open()
            self.refresh()
            self._refresh_handle = self.scheduler.schedule_with_fixed_delay(
                self.refresh, refresh_interval_s, refresh_interval_s, name="service-refresh"
            )
        except Exception as e:
            db.log_event("ERROR", f"Startup aborted: {type(e).__name__}: {e}")
            self._abort_start()
            raise
        self.state = LifecycleState.RUNNING

    def refresh(self) -> None:
        try:
            services = self.source.get_services()
        except DiscoveryError as e:
            self.runtime.mark_refresh(False, str(e))
            db.log_event("WARN", f"Failed to retrieve services this run, keeping previous set: {e}")
            return
        except Exception as e:
            self.runtime.mark_refresh(False, f"{type(e).__name__}: {e}")
            db.log_event("ERROR", f"Service discovery crashed, keeping previous set: {type(e).__name__}: {e}")
            return
        self.runtime.mark_refresh(True)
        try:
            self.reconciler.update_services(services)
        except PartialUpdateError as e:
            db.log_event("WARN", f"Service update partially applied: {e}")

    def shutdown(self) -> None:
        """Resign, stop refreshing and cancel all monitors. Never raises."""
        _log_quietly("INFO", "Shutting down")
        self.state = LifecycleState.SHUTTING_DOWN
        steps: list[tuple[str, Callable[[], None]]] = [
            ("resign election", self.election.resign),
            ("cancel service refresh", self._cancel_refresh),
            ("cancel monitor tasks", self.reconciler.shutdown),
        ]
        for label, step in steps:
            try:
                step()
            except Exception as e:
                _log_quietly("ERROR", f"Shutdown step '{label}' failed: {type(e).__name__}: {e}")
        self.gate.set_leader(False)
        self.state = LifecycleState.STOPPED

    def elected(self) -> None:
        db.log_event("INFO", "This instance has now been elected leader")
        self.gate.set_leader(True)

    def rejected(self) -> None:
        db.log_event("INFO", "This instance is no longer the leader")
        self.gate.set_leader(False)

    @property
    def is_leader(self) -> bool:
        return self.gate.is_leader

    def health_checks(self) -> dict[str, Callable[[], bool]]:
        checks: dict[str, Callable[[], bool]] = {
            "source": self.source.health_check,
            "scaler": self.gate.health_check,
            "refresh": self._refresh_is_fresh,
        }
        for name, factory in self.registry.items():
            checks[f"workload.{name}"] = factory.health_check
        return checks

    def _refresh_is_fresh(self) -> bool:
        if self.refresh_interval_s is None or self._started_at is None:
            return True
        last = self.runtime.refresh_status().last_success or self._started_at
        return time.time() - last <= self.refresh_interval_s * STALE_REFRESH_INTERVALS

    def _abort_start(self) -> None:
        for step in (self.election.resign, self._cancel_refresh, self.reconciler.shutdown):
            try:
                step()
            except Exception as e:
                _log_quietly("ERROR", f"Cleanup after failed start: {type(e).__name__}: {e}")
        self.gate.set_leader(False)
        self.state = LifecycleState.STOPPED

    def _cancel_refresh(self) -> None:
        if self._refresh_handle is not None:
            self._refresh_handle.cancel()
            self._refresh_handle = None
