"""Workload analysers shipped with the control plane and the registry that holds them.

``http``  polls a JSON endpoint for a numeric metric and recommends
          ceil(metric / per_instance) instances.
``fixed`` always recommends ``params["target"]``.
"""
from __future__ import annotations

import math
from types import MappingProxyType
from typing import Iterable, Iterator, Mapping

import httpx

from . import db
from .errors import AnalysisError, ScalerError
from .interfaces import WorkloadAnalyser, WorkloadAnalyserFactory, WorkloadAnalyserProvider
from .models import ServiceRecord
from .settings import Settings


class HttpMetricAnalyser(WorkloadAnalyser):
    def __init__(self, url: str, metric: str, per_instance: float, timeout_s: float):
        self.url = url
        self.metric = metric
        self.per_instance = per_instance
        self.timeout_s = timeout_s

    def analyse(self, record: ServiceRecord) -> int | None:
        try:
            with httpx.Client(timeout=self.timeout_s, follow_redirects=False) as client:
                resp = client.get(self.url)
        except httpx.HTTPError as e:
            raise AnalysisError(f"GET {self.url} failed: {type(e).__name__}: {e}") from e
        if resp.status_code != 200:
            raise AnalysisError(f"GET {self.url} returned HTTP {resp.status_code}")
        try:
            data = resp.json()
        except ValueError as e:
            raise AnalysisError(f"GET {self.url} returned invalid JSON") from e
        if not isinstance(data, dict) or self.metric not in data:
            raise AnalysisError(f"Metric '{self.metric}' missing from {self.url}")
        try:
            value = float(data[self.metric])
        except (TypeError, ValueError) as e:
            raise AnalysisError(f"Metric '{self.metric}' is not numeric: {data[self.metric]!r}") from e
        if value < 0:
            return None
        return math.ceil(value / self.per_instance)


class HttpMetricAnalyserFactory(WorkloadAnalyserFactory):
    def __init__(self, timeout_s: float = 5.0):
        self.timeout_s = timeout_s

    def create_analyser(self, record: ServiceRecord) -> WorkloadAnalyser:
        url = record.params.get("url")
        if not url or not url.startswith(("http://", "https://")):
            raise ValueError("params.url must be an http(s) URL")
        try:
            per_instance = float(record.params.get("per_instance", "1"))
        except ValueError:
            raise ValueError("params.per_instance must be a number") from None
        if per_instance <= 0:
            raise ValueError("params.per_instance must be > 0")
        return HttpMetricAnalyser(url, record.params.get("metric", "value"), per_instance, self.timeout_s)


class HttpMetricProvider(WorkloadAnalyserProvider):
    name = "http"

    def build_factory(self, settings: Settings) -> WorkloadAnalyserFactory:
        return HttpMetricAnalyserFactory(timeout_s=settings.http_timeout_s)


class FixedAnalyser(WorkloadAnalyser):
    def __init__(self, target: int):
        self.target = target

    def analyse(self, record: ServiceRecord) -> int | None:
        return self.target


class FixedAnalyserFactory(WorkloadAnalyserFactory):
    def create_analyser(self, record: ServiceRecord) -> WorkloadAnalyser:
        try:
            return FixedAnalyser(int(record.params["target"]))
        except KeyError:
            raise ValueError("params.target is required") from None
        except ValueError:
            raise ValueError("params.target must be an integer") from None


class FixedProvider(WorkloadAnalyserProvider):
    name = "fixed"

    def build_factory(self, settings: Settings) -> WorkloadAnalyserFactory:
        return FixedAnalyserFactory()


BUILTIN_PROVIDERS: dict[str, WorkloadAnalyserProvider] = {
    p.name: p for p in (HttpMetricProvider(), FixedProvider())
}


class AnalyserRegistry(Mapping[str, WorkloadAnalyserFactory]):
    """Read-only analyser-type name -> factory map, built once at startup."""

    def __init__(self, factories: Mapping[str, WorkloadAnalyserFactory]):
        if not factories:
            raise ScalerError("No workload analyser factories registered")
        self._factories = MappingProxyType(dict(factories))

    @classmethod
    def from_providers(cls, providers: Iterable[WorkloadAnalyserProvider], settings: Settings) -> AnalyserRegistry:
        factories: dict[str, WorkloadAnalyserFactory] = {}
        for provider in providers:
            if provider.name in factories:
                raise ScalerError(f"Duplicate workload analyser name '{provider.name}'")
            factories[provider.name] = provider.build_factory(settings)
            db.log_event("DEBUG", f"Registered workload analyser '{provider.name}'")
        return cls(factories)

    def __getitem__(self, name: str) -> WorkloadAnalyserFactory:
        return self._factories[name]

    def __iter__(self) -> Iterator[str]:
        return iter(self._factories)

    def __len__(self) -> int:
        return len(self._factories)


def select_providers(names: Iterable[str]) -> list[WorkloadAnalyserProvider]:
    out: list[WorkloadAnalyserProvider] = []
    for name in names:
        provider = BUILTIN_PROVIDERS.get(name)
        if provider is None:
            raise ValueError(f"Unknown workload analyser '{name}'. Available: {', '.join(sorted(BUILTIN_PROVIDERS))}")
        out.append(provider)
    return out
