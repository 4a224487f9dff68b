from __future__ import annotations

from threading import Lock

from . import db
from .errors import AnalysisError, ScalingError
from .gate import ScalerGate
from .interfaces import WorkloadAnalyser
from .models import ServiceRecord


class MonitorTask:
    """One service's periodic analyse-and-maybe-scale cycle.

    A failing tick is logged and counted; it never unschedules the task.
    """

    def __init__(self, record: ServiceRecord, analyser: WorkloadAnalyser, gate: ScalerGate):
        self.record = record
        self.analyser = analyser
        self.gate = gate
        self.ticks = 0
        self.failures = 0
        self.last_target: int | None = None
        self._backoff_left = 0
        self._lock = Lock()  # guards the counters read by the API thread

    @property
    def service_id(self) -> str:
        return self.record.service_id

    def tick(self) -> None:
        with self._lock:
            self.ticks += 1
            if self._backoff_left > 0:
                self._backoff_left -= 1
                return
        try:
            self._run()
        except AnalysisError as e:
            self._fail(f"Analysis failed: {e}")
        except ScalingError as e:
            self._fail(f"Scaling failed: {e}")
        except Exception as e:
            self._fail(f"Monitor tick failed: {type(e).__name__}: {e}")

    def _run(self) -> None:
        recommended = self.analyser.analyse(self.record)
        if recommended is None:
            return
        target = self.record.clamp(recommended)
        if target != recommended:
            db.log_event(
                "DEBUG",
                f"Clamped recommendation {recommended} to {target} "
                f"(bounds {self.record.min_instances}..{self.record.max_instances})",
                service_id=self.service_id,
            )
        self.gate.scale(self.service_id, target)
        with self._lock:
            self.last_target = target
            self._backoff_left = self.record.backoff

    def _fail(self, message: str) -> None:
        with self._lock:
            self.failures += 1
        db.log_event("ERROR", message, service_id=self.service_id)

    def stats(self) -> dict:
        with self._lock:
            return {"ticks": self.ticks, "failures": self.failures, "last_target": self.last_target}
