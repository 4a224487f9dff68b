from __future__ import annotations

from dataclasses import dataclass
from threading import Lock
from typing import Mapping

from . import db
from .errors import PartialUpdateError
from .gate import ScalerGate
from .interfaces import WorkloadAnalyserFactory
from .models import ServiceRecord, ServiceSet
from .monitor import MonitorTask
from .scheduler import ScheduledTask, Scheduler
from .validator import ServiceValidator


@dataclass(frozen=True)
class TrackedService:
    service_id: str
    record: ServiceRecord
    task: MonitorTask
    handle: ScheduledTask


class ServiceReconciler:
    """Keeps exactly one scheduled MonitorTask per discovered service.

    Each ``update_services`` call diffs the new service set against the
    tracked one: removed services are cancelled, new ones scheduled, and a
    service whose record changed in any field is cancelled and rescheduled
    from scratch (analyser state is not carried over). Unchanged services are
    left alone, so repeating the same set is a no-op.
    """

    def __init__(
        self,
        factories: Mapping[str, WorkloadAnalyserFactory],
        gate: ScalerGate,
        scheduler: Scheduler,
        validator: ServiceValidator,
    ):
        self.factories = factories
        self.gate = gate
        self.scheduler = scheduler
        self.validator = validator
        self._lock = Lock()
        self._tracked: dict[str, TrackedService] = {}
        self._closed = False

    def open(self) -> None:
        with self._lock:
            self._closed = False

    def update_services(self, services: ServiceSet) -> None:
        invalid: dict[str, str] = {}
        with self._lock:
            if self._closed:
                db.log_event("INFO", "Reconciler is shut down, ignoring service update")
                return
            for service_id in [sid for sid in self._tracked if sid not in services]:
                self._cancel(service_id)
                db.log_event("INFO", "Service removed, monitoring cancelled", service_id=service_id)

            for service_id, record in services.items():
                current = self._tracked.get(service_id)
                if current is not None:
                    if current.record == record:
                        continue
                    # Cancel before creating so there is never a second live task.
                    self._cancel(service_id)
                    db.log_event("INFO", "Service configuration changed, rescheduling", service_id=service_id)
                if record.service_id != service_id:
                    reason = f"listed as '{service_id}' but record id is '{record.service_id}'"
                    db.log_event("WARN", f"Ignoring invalid service: {reason}", service_id=service_id)
                    invalid[service_id] = reason
                    continue
                reason = self._schedule(record)
                if reason is not None:
                    invalid[service_id] = reason
        if invalid:
            raise PartialUpdateError(invalid)

    def tracked(self) -> dict[str, ServiceRecord]:
        with self._lock:
            return {sid: t.record for sid, t in self._tracked.items()}

    def task(self, service_id: str) -> MonitorTask | None:
        with self._lock:
            t = self._tracked.get(service_id)
            return t.task if t else None

    def shutdown(self) -> None:
        with self._lock:
            self._closed = True
            for service_id in list(self._tracked):
                self._cancel(service_id)
        db.log_event("INFO", "All monitor tasks cancelled")

    def _schedule(self, record: ServiceRecord) -> str | None:
        reason = self.validator.validate(record)
        if reason is not None:
            return reason
        try:
            analyser = self.factories[record.analyser].create_analyser(record)
        except Exception as e:
            reason = f"analyser '{record.analyser}' rejected configuration: {e}"
            db.log_event("WARN", f"Ignoring invalid service: {reason}", service_id=record.service_id)
            return reason
        task = MonitorTask(record, analyser, self.gate)
        self._cancel(record.service_id)
        handle = self.scheduler.schedule_with_fixed_delay(
            task.tick, record.interval_s, record.interval_s, name=f"monitor:{record.service_id}"
        )
        self._tracked[record.service_id] = TrackedService(record.service_id, record, task, handle)
        db.log_event(
            "INFO",
            f"Monitoring with analyser '{record.analyser}' every {record.interval_s}s "
            f"(bounds {record.min_instances}..{record.max_instances})",
            service_id=record.service_id,
        )
        return None

    def _cancel(self, service_id: str) -> None:
        t = self._tracked.pop(service_id, None)
        if t is not None:
            t.handle.cancel()
