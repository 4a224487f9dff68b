import sqlite3
import threading

import pytest

from acp import db
from acp.errors import ScalingError
from acp.gate import ScalerGate
from acp.monitor import MonitorTask
from acp.runtime import LeadershipFlag

from conftest import FakeAnalyser, FakeScaler, make_record


@pytest.mark.parametrize(
    "recommended,expected",
    [(0, 2), (1, 2), (3, 3), (4, 4), (9, 4), (-5, 2)],
)
def test_recommendation_is_clamped_to_bounds(recommended, expected):
    scaler = FakeScaler()
    task = MonitorTask(make_record("b", min_instances=2, max_instances=4), FakeAnalyser(recommended), ScalerGate(scaler, leader=True))
    task.tick()
    assert scaler.calls == [("b", expected)]
    assert task.last_target == expected


def test_no_action_means_no_scale_call():
    scaler = FakeScaler()
    analyser = FakeAnalyser(None)
    task = MonitorTask(make_record("a"), analyser, ScalerGate(scaler, leader=True))
    task.tick()
    assert analyser.calls == 1
    assert scaler.calls == []


def test_analysis_failure_is_logged_and_next_tick_still_runs():
    scaler = FakeScaler()
    analyser = FakeAnalyser(3, fail=True)
    task = MonitorTask(make_record("a"), analyser, ScalerGate(scaler, leader=True))

    task.tick()
    assert task.failures == 1
    assert any("Analysis failed" in e["message"] for e in db.latest_events(service_id="a"))

    analyser.fail = False
    task.tick()
    assert scaler.calls == [("a", 3)]
    assert task.ticks == 2


def test_scaling_failure_does_not_escape_the_tick():
    scaler = FakeScaler()
    scaler.fail = True
    task = MonitorTask(make_record("a"), FakeAnalyser(3), ScalerGate(scaler, leader=True))
    task.tick()
    assert task.failures == 1
    assert any("Scaling failed" in e["message"] for e in db.latest_events(service_id="a"))


def test_unexpected_error_counts_as_failed_tick():
    class Broken(FakeAnalyser):
        def analyse(self, record):
            raise KeyError("boom")

    task = MonitorTask(make_record("a"), Broken(), ScalerGate(FakeScaler(), leader=True))
    task.tick()
    assert task.failures == 1


def test_backoff_skips_ticks_after_scaling():
    scaler = FakeScaler()
    analyser = FakeAnalyser(3)
    task = MonitorTask(make_record("a", backoff=2), analyser, ScalerGate(scaler, leader=True))
    for _ in range(4):
        task.tick()
    # tick 1 scales, ticks 2-3 back off, tick 4 analyses again
    assert analyser.calls == 2
    assert len(scaler.calls) == 2


def test_follower_analyses_but_never_scales():
    scaler = FakeScaler()
    gate = ScalerGate(scaler)
    analysers = [FakeAnalyser(3) for _ in range(3)]
    tasks = [MonitorTask(make_record(f"s{i}"), a, gate) for i, a in enumerate(analysers)]

    for _ in range(4):
        for t in tasks:
            t.tick()

    assert sum(a.calls for a in analysers) == 12
    assert scaler.calls == []
    attempts = db.latest_scale_attempts(limit=100)
    assert len(attempts) == 12
    assert all(a["outcome"] == "suppressed" and not a["forwarded"] for a in attempts)

    gate.set_leader(True)
    tasks[0].tick()
    assert scaler.calls == [("s0", 3)]


def test_gate_propagates_scaler_errors_when_leader():
    scaler = FakeScaler()
    scaler.fail = True
    gate = ScalerGate(scaler, leader=True)
    with pytest.raises(ScalingError):
        gate.scale("a", 2)
    assert db.latest_scale_attempts()[0]["outcome"] == "failed"


def test_gate_wraps_unexpected_scaler_errors():
    class Exploding(FakeScaler):
        def scale(self, service_id, target):
            raise ConnectionError("reset")

    gate = ScalerGate(Exploding(), leader=True)
    with pytest.raises(ScalingError, match="ConnectionError"):
        gate.scale("a", 2)


def test_gate_records_successful_forward():
    gate = ScalerGate(FakeScaler(), leader=True)
    gate.scale("a", 4)
    row = db.latest_scale_attempts()[0]
    assert row["service_id"] == "a" and row["target"] == 4
    assert row["forwarded"] is True and row["outcome"] == "ok"


def test_scale_stands_when_attempt_cannot_be_recorded(monkeypatch):
    def locked(*args, **kwargs):
        raise sqlite3.OperationalError("database is locked")

    monkeypatch.setattr(db, "record_scale_attempt", locked)
    scaler = FakeScaler()
    analyser = FakeAnalyser(3)
    task = MonitorTask(make_record("a", backoff=1), analyser, ScalerGate(scaler, leader=True))
    task.tick()
    task.tick()

    assert task.failures == 0
    assert task.last_target == 3
    # second tick backs off instead of scaling again
    assert scaler.calls == [("a", 3)]
    assert analyser.calls == 1


def test_leadership_flag_flips_under_concurrent_readers():
    flag = LeadershipFlag()
    assert flag.get() is False
    seen = set()
    stop = threading.Event()

    def reader():
        while not stop.is_set():
            seen.add(flag.get())

    threads = [threading.Thread(target=reader) for _ in range(4)]
    for t in threads:
        t.start()
    for _ in range(200):
        flag.set(True)
        flag.set(False)
    flag.set(True)
    stop.set()
    for t in threads:
        t.join(timeout=5)

    assert flag.get() is True
    assert seen <= {True, False}
