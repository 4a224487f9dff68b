from __future__ import annotations

from fastapi import FastAPI, Query
from fastapi.responses import JSONResponse

from . import db
from .api_models import HealthCheckResult, HealthResponse, LeaderResponse, TrackedServiceResponse
from .core import ControlPlane
from .health import run_health_checks


def create_app(control_plane: ControlPlane) -> FastAPI:
    app = FastAPI(title="Autoscale Control Plane")
    app.state.control_plane = control_plane

    @app.get("/healthcheck", response_model=HealthResponse)
    def healthcheck():
        results = run_health_checks(control_plane.health_checks())
        body = HealthResponse(
            healthy=all(r.healthy for r in results),
            checks={
                r.name: HealthCheckResult(healthy=r.healthy, message=r.message, latency_ms=r.latency_ms)
                for r in results
            },
        )
        return JSONResponse(status_code=200 if body.healthy else 503, content=body.model_dump())

    @app.get("/services", response_model=list[TrackedServiceResponse])
    def services():
        out: list[TrackedServiceResponse] = []
        for service_id, record in sorted(control_plane.reconciler.tracked().items()):
            task = control_plane.reconciler.task(service_id)
            stats = task.stats() if task else {"ticks": 0, "failures": 0, "last_target": None}
            out.append(
                TrackedServiceResponse(
                    service_id=service_id,
                    group=record.group,
                    analyser=record.analyser,
                    min_instances=record.min_instances,
                    max_instances=record.max_instances,
                    interval_s=record.interval_s,
                    backoff=record.backoff,
                    params=dict(record.params),
                    **stats,
                )
            )
        return out

    @app.get("/leader", response_model=LeaderResponse)
    def leader():
        return LeaderResponse(
            leader=control_plane.is_leader,
            state=control_plane.state.value,
            group=control_plane.group,
        )

    @app.get("/events")
    def events(limit: int = Query(100, ge=1, le=1000), service_id: str | None = None):
        return db.latest_events(limit=limit, service_id=service_id)

    @app.get("/scale-attempts")
    def scale_attempts(limit: int = Query(100, ge=1, le=1000), service_id: str | None = None):
        return db.latest_scale_attempts(limit=limit, service_id=service_id)

    return app
