from __future__ import annotations

import dataclasses
import os
import sys
import threading

import pytest

# Ensure project root is importable (so `import acp` / `import main` work without installing)
_project_root = os.path.dirname(os.path.dirname(__file__))
if _project_root not in sys.path:
    sys.path.insert(0, _project_root)

from acp import db  # noqa: E402
from acp.errors import AnalysisError, DiscoveryError, ElectionError, ScalingError  # noqa: E402
from acp.interfaces import (  # noqa: E402
    Election,
    ElectionCallback,
    ElectionFactory,
    ServiceScaler,
    ServiceSource,
    WorkloadAnalyser,
    WorkloadAnalyserFactory,
)
from acp.models import ServiceRecord  # noqa: E402


@pytest.fixture(autouse=True)
def isolated_db(tmp_path, monkeypatch):
    """Point the event log at a fresh sqlite file for every test."""
    monkeypatch.setattr(db, "settings", dataclasses.replace(db.settings, db_path=str(tmp_path / "acp.db")))
    db.init_db()
    yield


def make_record(service_id: str = "a", **kw) -> ServiceRecord:
    fields = dict(group="default", min_instances=1, max_instances=5, analyser="queue", interval_s=10)
    fields.update(kw)
    return ServiceRecord(service_id=service_id, **fields)


class FakeSource(ServiceSource):
    def __init__(self, services=None):
        self.services = dict(services or {})
        self.fail = False
        self.calls = 0
        self.healthy = True

    def get_services(self):
        self.calls += 1
        if self.fail:
            raise DiscoveryError("source down")
        return dict(self.services)

    def health_check(self) -> bool:
        return self.healthy


class FakeScaler(ServiceScaler):
    def __init__(self):
        self.calls: list[tuple[str, int]] = []
        self.fail = False
        self._lock = threading.Lock()

    def scale(self, service_id: str, target: int) -> None:
        if self.fail:
            raise ScalingError("scaler refused")
        with self._lock:
            self.calls.append((service_id, target))


class FakeAnalyser(WorkloadAnalyser):
    def __init__(self, recommendation=None, fail=False):
        self.recommendation = recommendation
        self.fail = fail
        self.calls = 0

    def analyse(self, record):
        self.calls += 1
        if self.fail:
            raise AnalysisError("no metrics")
        return self.recommendation


class FakeAnalyserFactory(WorkloadAnalyserFactory):
    def __init__(self, recommendation=None):
        self.recommendation = recommendation
        self.created: list[FakeAnalyser] = []
        self.reject = False

    def create_analyser(self, record):
        if self.reject:
            raise ValueError("bad params")
        a = FakeAnalyser(self.recommendation)
        self.created.append(a)
        return a


class FakeElection(Election):
    def __init__(self, callback: ElectionCallback, fail_enter=False, fail_resign=False, elect=True):
        self.callback = callback
        self.fail_enter = fail_enter
        self.fail_resign = fail_resign
        self.elect = elect
        self.entered = False
        self.resigned = False

    def enter(self) -> None:
        if self.fail_enter:
            raise ElectionError("cannot reach election backend")
        self.entered = True
        if self.elect:
            self.callback.elected()

    def resign(self) -> None:
        self.resigned = True
        if self.fail_resign:
            raise ElectionError("resign failed")
        self.callback.rejected()


class FakeElectionFactory(ElectionFactory):
    def __init__(self, **kw):
        self.kw = kw
        self.names: list[str] = []
        self.election: FakeElection | None = None

    def get_election(self, name, callback):
        self.names.append(name)
        self.election = FakeElection(callback, **self.kw)
        return self.election


class FakeHandle:
    def __init__(self, fn, delay_s, name):
        self.fn = fn
        self.delay_s = delay_s
        self.name = name
        self.cancelled = False

    def cancel(self) -> None:
        self.cancelled = True

    def run_once(self) -> None:
        if not self.cancelled:
            self.fn()


class ManualScheduler:
    """Records scheduled callables; tests fire them by hand."""

    def __init__(self):
        self.handles: list[FakeHandle] = []
        self.shut_down = False

    def schedule_with_fixed_delay(self, fn, initial_delay_s, delay_s, name=""):
        h = FakeHandle(fn, delay_s, name)
        self.handles.append(h)
        return h

    def live(self, prefix: str = "") -> list[FakeHandle]:
        return [h for h in self.handles if not h.cancelled and h.name.startswith(prefix)]

    def shutdown(self, wait: bool = False) -> None:
        self.shut_down = True
