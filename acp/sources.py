from __future__ import annotations

import json
import os

from pydantic import ValidationError

from . import db
from .api_models import ServiceDefinition
from .errors import DiscoveryError
from .interfaces import ServiceSource
from .models import ServiceSet


class FileServiceSource(ServiceSource):
    """Reads services from a JSON file: ``{"services": [ {...}, ... ]}``.

    The file is re-read on every refresh. Entries belonging to another group
    are ignored; malformed entries are skipped with a warning.
    """

    def __init__(self, path: str, group: str):
        self.path = path
        self.group = group

    def get_services(self) -> ServiceSet:
        try:
            with open(self.path, encoding="utf-8") as fh:
                data = json.load(fh)
        except (OSError, ValueError) as e:
            raise DiscoveryError(f"Cannot read service file {self.path}: {type(e).__name__}: {e}") from e

        entries = data.get("services") if isinstance(data, dict) else None
        if not isinstance(entries, list):
            raise DiscoveryError(f"Service file {self.path} must contain a 'services' list")

        out: ServiceSet = {}
        for i, raw in enumerate(entries):
            try:
                definition = ServiceDefinition.model_validate(raw)
            except ValidationError as e:
                db.log_event("WARN", f"Skipping service entry #{i} in {self.path}: {e.error_count()} error(s): {e}")
                continue
            if definition.group != self.group:
                continue
            out[definition.id] = definition.to_record()
        return out

    def health_check(self) -> bool:
        return os.path.isfile(self.path)
