from __future__ import annotations

from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Mapping


@dataclass(frozen=True)
class ServiceRecord:
    """Scaling configuration of one service as seen by one discovery cycle.

    Two records compare equal only if every field (params included) is equal;
    the reconciler relies on this to tell changed services from unchanged ones.
    """

    service_id: str
    group: str
    min_instances: int
    max_instances: int
    analyser: str
    params: Mapping[str, str] = field(default_factory=dict)
    interval_s: int = 30
    backoff: int = 0

    def __post_init__(self) -> None:
        if self.min_instances < 0:
            raise ValueError(f"min_instances must be >= 0 (got {self.min_instances})")
        if self.max_instances < self.min_instances:
            raise ValueError(
                f"max_instances ({self.max_instances}) must be >= min_instances ({self.min_instances})"
            )
        if self.interval_s <= 0:
            raise ValueError(f"interval_s must be > 0 (got {self.interval_s})")
        if self.backoff < 0:
            raise ValueError(f"backoff must be >= 0 (got {self.backoff})")
        # read-only copy: records are snapshots
        object.__setattr__(self, "params", MappingProxyType(dict(self.params)))

    def clamp(self, count: int) -> int:
        return max(self.min_instances, min(self.max_instances, int(count)))


ServiceSet = dict[str, ServiceRecord]
