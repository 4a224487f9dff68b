from fastapi.testclient import TestClient

from acp.analysers import AnalyserRegistry
from acp.api import create_app
from acp.core import ControlPlane

from conftest import FakeAnalyserFactory, FakeElectionFactory, FakeScaler, FakeSource, ManualScheduler, make_record


def _client():
    source = FakeSource({"a": make_record("a", params={"q": "jobs"})})
    cp = ControlPlane(
        source,
        FakeScaler(),
        AnalyserRegistry({"queue": FakeAnalyserFactory(recommendation=2)}),
        FakeElectionFactory(),
        ManualScheduler(),
        group="default",
    )
    cp.start(10)
    return TestClient(create_app(cp)), cp, source


def test_healthcheck_ok_and_failing():
    client, _, source = _client()
    r = client.get("/healthcheck")
    assert r.status_code == 200
    body = r.json()
    assert body["healthy"] is True
    assert set(body["checks"]) == {"source", "scaler", "refresh", "workload.queue"}

    source.healthy = False
    r = client.get("/healthcheck")
    assert r.status_code == 503
    assert r.json()["checks"]["source"]["healthy"] is False


def test_services_and_leader():
    client, cp, _ = _client()
    cp.reconciler.task("a").tick()

    r = client.get("/services")
    assert r.status_code == 200
    [svc] = r.json()
    assert svc["service_id"] == "a"
    assert svc["params"] == {"q": "jobs"}
    assert svc["ticks"] == 1 and svc["last_target"] == 2

    r = client.get("/leader")
    assert r.json() == {"leader": True, "state": "running", "group": "default"}


def test_events_and_scale_attempts():
    client, cp, _ = _client()
    cp.rejected()
    cp.reconciler.task("a").tick()

    events = client.get("/events", params={"limit": 5}).json()
    assert 0 < len(events) <= 5
    attempts = client.get("/scale-attempts", params={"service_id": "a"}).json()
    assert attempts[0]["outcome"] == "suppressed"
    assert client.get("/events", params={"limit": 0}).status_code == 422
