"""Docker Swarm collaborators: label-driven service discovery and replica scaling.

A swarm service opts into autoscaling with labels on its service spec::

    autoscale.metric=http          analyser type (required)
    autoscale.group=default        control-plane group (default: "default")
    autoscale.mininstances=1
    autoscale.maxinstances=10      (required)
    autoscale.interval=30          seconds between analyses
    autoscale.backoff=0            analyses to skip after scaling
    autoscale.param.<key>=<value>  analyser parameters
"""
from __future__ import annotations

from typing import Any

import docker
from docker.errors import APIError, DockerException, NotFound

from . import db
from .errors import DiscoveryError, ScalingError
from .interfaces import ServiceScaler, ServiceSource
from .models import ServiceRecord, ServiceSet

LABEL_PREFIX = "autoscale."
PARAM_PREFIX = "autoscale.param."


def _client() -> docker.DockerClient:
    return docker.from_env()


def docker_available(client: docker.DockerClient | None = None) -> bool:
    try:
        c = client or _client()
        c.ping()
        return True
    except DockerException:
        return False


def _label_int(labels: dict[str, str], key: str, default: int | None = None) -> int:
    raw = labels.get(LABEL_PREFIX + key)
    if raw is None:
        if default is None:
            raise ValueError(f"missing label '{LABEL_PREFIX + key}'")
        return default
    try:
        return int(raw)
    except ValueError:
        raise ValueError(f"label '{LABEL_PREFIX + key}' is not an integer: {raw!r}") from None


def record_from_labels(service_id: str, labels: dict[str, str], default_interval_s: int = 30) -> ServiceRecord:
    """Build a ServiceRecord from swarm service labels. ValueError if they are malformed."""
    analyser = labels.get(LABEL_PREFIX + "metric", "").strip()
    if not analyser:
        raise ValueError(f"missing label '{LABEL_PREFIX}metric'")
    params = {k[len(PARAM_PREFIX):]: v for k, v in labels.items() if k.startswith(PARAM_PREFIX)}
    return ServiceRecord(
        service_id=service_id,
        group=labels.get(LABEL_PREFIX + "group", "default"),
        min_instances=_label_int(labels, "mininstances", 0),
        max_instances=_label_int(labels, "maxinstances"),
        analyser=analyser,
        params=params,
        interval_s=_label_int(labels, "interval", default_interval_s),
        backoff=_label_int(labels, "backoff", 0),
    )


class DockerServiceSource(ServiceSource):
    def __init__(self, group: str, default_interval_s: int = 30, client: docker.DockerClient | None = None):
        self.group = group
        self.default_interval_s = default_interval_s
        self._docker = client

    def _c(self) -> docker.DockerClient:
        return self._docker or _client()

    def get_services(self) -> ServiceSet:
        try:
            services = self._c().services.list(filters={"label": f"{LABEL_PREFIX}metric"})
        except DockerException as e:
            raise DiscoveryError(f"Cannot list swarm services: {type(e).__name__}: {e}") from e

        out: ServiceSet = {}
        for svc in services:
            labels: dict[str, Any] = svc.attrs.get("Spec", {}).get("Labels") or {}
            if labels.get(LABEL_PREFIX + "group", "default") != self.group:
                continue
            try:
                record = record_from_labels(svc.name, labels, self.default_interval_s)
            except ValueError as e:
                db.log_event("WARN", f"Skipping swarm service with bad autoscale labels: {e}", service_id=svc.name)
                continue
            out[record.service_id] = record
        return out

    def health_check(self) -> bool:
        return docker_available(self._docker)


class DockerServiceScaler(ServiceScaler):
    """Sets the replica count of a replicated swarm service."""

    def __init__(self, client: docker.DockerClient | None = None):
        self._docker = client

    def _c(self) -> docker.DockerClient:
        return self._docker or _client()

    def scale(self, service_id: str, target: int) -> None:
        try:
            svc = self._c().services.get(service_id)
            svc.scale(int(target))
        except NotFound as e:
            raise ScalingError(f"Swarm service '{service_id}' not found") from e
        except (APIError, DockerException) as e:
            raise ScalingError(f"Cannot scale '{service_id}' to {target}: {type(e).__name__}: {e}") from e
        db.log_event("INFO", f"Scaled to {target} replicas", service_id=service_id)

    def health_check(self) -> bool:
        return docker_available(self._docker)
