"""HTTP entry point: ``uvicorn main:app``.

Configuration comes from ACP_* environment variables (see acp/settings.py).
"""
from __future__ import annotations

from acp.api import create_app
from acp.bootstrap import build_control_plane
from acp.settings import settings

control_plane = build_control_plane(settings)
app = create_app(control_plane)


@app.on_event("startup")
def startup() -> None:
    control_plane.start(settings.refresh_interval_s)


@app.on_event("shutdown")
def shutdown() -> None:
    control_plane.shutdown()
    control_plane.scheduler.shutdown()
