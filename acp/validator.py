from __future__ import annotations

from typing import Collection

from . import db
from .models import ServiceRecord


class ServiceValidator:
    """Keeps only services whose analyser type is registered."""

    def __init__(self, analyser_names: Collection[str]):
        self.analyser_names = frozenset(analyser_names)

    def validate(self, record: ServiceRecord) -> str | None:
        """Return None when the record can be scheduled, else the reason it cannot.

        Rejections are logged against the service id.
        """
        if record.analyser in self.analyser_names:
            return None
        known = ", ".join(sorted(self.analyser_names)) or "none"
        reason = f"unknown analyser '{record.analyser}' (registered: {known})"
        db.log_event("WARN", f"Ignoring invalid service: {reason}", service_id=record.service_id)
        return reason
