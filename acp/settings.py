from __future__ import annotations

import os
from dataclasses import dataclass


def _env_bool(name: str, default: bool = False) -> bool:
    raw = os.getenv(name)
    if raw is None:
        return default
    return raw.strip().lower() in {"1", "true", "yes", "y", "on"}


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None:
        return default
    try:
        return int(raw)
    except ValueError:
        return default


@dataclass(frozen=True)
class Settings:
    # Core
    db_path: str = os.getenv("ACP_DB_PATH", "acp.db")
    group: str = os.getenv("ACP_GROUP", "default")
    refresh_interval_s: int = _env_int("ACP_REFRESH_INTERVAL_S", 30)
    executor_threads: int = _env_int("ACP_EXECUTOR_THREADS", 4)

    # Collaborators
    source: str = os.getenv("ACP_SOURCE", "docker")  # docker|file
    source_file: str = os.getenv("ACP_SOURCE_FILE", "services.json")
    scaler: str = os.getenv("ACP_SCALER", "docker")
    analysers: str = os.getenv("ACP_ANALYSERS", "http,fixed")
    http_timeout_s: int = _env_int("ACP_HTTP_TIMEOUT_S", 5)
    default_interval_s: int = _env_int("ACP_DEFAULT_INTERVAL_S", 30)

    # Observability
    record_scale_attempts: bool = _env_bool("ACP_RECORD_SCALE_ATTEMPTS", True)
    api_url: str = os.getenv("ACP_API_URL", "http://localhost:8000")

    def analyser_names(self) -> list[str]:
        return [n.strip() for n in self.analysers.split(",") if n.strip()]


settings = Settings()
