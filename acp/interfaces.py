"""Collaborator contracts consumed by the control plane.

Concrete implementations live in ``docker_ops``, ``sources``, ``analysers``
and ``election``; tests provide their own fakes.
"""
from __future__ import annotations

from abc import ABC, abstractmethod
from typing import TYPE_CHECKING

from .models import ServiceRecord, ServiceSet

if TYPE_CHECKING:
    from .settings import Settings


class ServiceSource(ABC):
    @abstractmethod
    def get_services(self) -> ServiceSet:
        """Return the services this group is responsible for.

        Raises DiscoveryError when the list cannot be retrieved.
        """

    def health_check(self) -> bool:
        return True


class ServiceScaler(ABC):
    @abstractmethod
    def scale(self, service_id: str, target: int) -> None:
        """Set the instance count of a service. Raises ScalingError."""

    def health_check(self) -> bool:
        return True


class WorkloadAnalyser(ABC):
    @abstractmethod
    def analyse(self, record: ServiceRecord) -> int | None:
        """Recommend an instance count, or None for no action.

        Raises AnalysisError. The result is clamped by the caller.
        """


class WorkloadAnalyserFactory(ABC):
    @abstractmethod
    def create_analyser(self, record: ServiceRecord) -> WorkloadAnalyser:
        """Bind a fresh analyser to one service. ValueError if the params are unusable."""

    def health_check(self) -> bool:
        return True


class WorkloadAnalyserProvider(ABC):
    name: str

    @abstractmethod
    def build_factory(self, settings: Settings) -> WorkloadAnalyserFactory:
        ...


class ElectionCallback(ABC):
    @abstractmethod
    def elected(self) -> None:
        ...

    @abstractmethod
    def rejected(self) -> None:
        ...


class Election(ABC):
    @abstractmethod
    def enter(self) -> None:
        """Join the election. Raises ElectionError."""

    @abstractmethod
    def resign(self) -> None:
        ...


class ElectionFactory(ABC):
    @abstractmethod
    def get_election(self, name: str, callback: ElectionCallback) -> Election:
        ...
