from __future__ import annotations

from . import db
from .analysers import AnalyserRegistry, select_providers
from .core import ControlPlane
from .docker_ops import DockerServiceScaler, DockerServiceSource
from .election import NullElectionFactory
from .interfaces import ElectionFactory, ServiceScaler, ServiceSource
from .scheduler import Scheduler
from .settings import Settings
from .sources import FileServiceSource


def build_source(settings: Settings) -> ServiceSource:
    if settings.source == "docker":
        return DockerServiceSource(settings.group, default_interval_s=settings.default_interval_s)
    if settings.source == "file":
        return FileServiceSource(settings.source_file, settings.group)
    raise ValueError(f"Unknown service source '{settings.source}' (expected docker|file)")


def build_scaler(settings: Settings) -> ServiceScaler:
    if settings.scaler == "docker":
        return DockerServiceScaler()
    raise ValueError(f"Unknown service scaler '{settings.scaler}' (expected docker)")


def build_control_plane(
    settings: Settings,
    election_factory: ElectionFactory | None = None,
    scheduler: Scheduler | None = None,
) -> ControlPlane:
    """Wire a control plane from settings. Nothing is started."""
    db.init_db()
    registry = AnalyserRegistry.from_providers(select_providers(settings.analyser_names()), settings)
    return ControlPlane(
        source=build_source(settings),
        scaler=build_scaler(settings),
        registry=registry,
        election_factory=election_factory or NullElectionFactory(),
        scheduler=scheduler or Scheduler(workers=settings.executor_threads),
        group=settings.group,
    )
