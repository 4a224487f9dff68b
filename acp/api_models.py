from __future__ import annotations

from typing import Any

from pydantic import BaseModel, Field, field_validator, model_validator

from .models import ServiceRecord


class ServiceDefinition(BaseModel):
    """One entry of a file-based service list."""

    id: str = Field(..., min_length=1, description="Service id understood by the scaler")
    group: str = Field("default", description="Control-plane group responsible for the service")
    analyser: str = Field(..., min_length=1, description="Registered workload analyser name")
    min_instances: int = Field(0, ge=0)
    max_instances: int = Field(..., ge=0)
    interval_s: int = Field(30, ge=1, le=86400, description="Seconds between analyses")
    backoff: int = Field(0, ge=0, description="Analyses to skip after a scale command")
    params: dict[str, str] = Field(default_factory=dict, description="Analyser-specific settings")

    @field_validator("params", mode="before")
    @classmethod
    def _stringify_params(cls, v: Any) -> Any:
        if not isinstance(v, dict):
            return v
        out = {}
        for key, value in v.items():
            if isinstance(value, (dict, list)) or value is None:
                raise ValueError(f"param '{key}' must be a scalar value")
            # JSON booleans keep their JSON spelling
            out[str(key)] = str(value).lower() if isinstance(value, bool) else str(value)
        return out

    @model_validator(mode="after")
    def _check_bounds(self) -> ServiceDefinition:
        if self.max_instances < self.min_instances:
            raise ValueError("max_instances must be >= min_instances")
        return self

    def to_record(self) -> ServiceRecord:
        return ServiceRecord(
            service_id=self.id,
            group=self.group,
            min_instances=self.min_instances,
            max_instances=self.max_instances,
            analyser=self.analyser,
            params=self.params,
            interval_s=self.interval_s,
            backoff=self.backoff,
        )


class HealthCheckResult(BaseModel):
    healthy: bool
    message: str
    latency_ms: float | None = None


class HealthResponse(BaseModel):
    healthy: bool
    checks: dict[str, HealthCheckResult]


class TrackedServiceResponse(BaseModel):
    service_id: str
    group: str
    analyser: str
    min_instances: int
    max_instances: int
    interval_s: int
    backoff: int
    params: dict[str, str]
    ticks: int
    failures: int
    last_target: int | None = None


class LeaderResponse(BaseModel):
    leader: bool
    state: str
    group: str
