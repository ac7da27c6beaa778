"""
Shared Netention configuration utilities.

Centralises reading of ~/.netention/configuration.json so the CLI, the
HTTP server and tests share one implementation. The directory can be
moved with the NETENTION_HOME environment variable.
"""

import json
import os
from dataclasses import dataclass, field, fields
from pathlib import Path
from typing import Any

from netention.graph.retry import BASE_DELAY, MAX_RETRIES
from netention.runner.builtin_tools import DEFAULT_CONTROL_ID
from netention.runtime.scheduler import DEFAULT_MAX_CONCURRENT
from netention.schemas.note import ROOT_ID

# ---------------------------------------------------------------------------
# Low-level config file access
# ---------------------------------------------------------------------------


def get_netention_home() -> Path:
    return Path(os.environ.get("NETENTION_HOME", Path.home() / ".netention"))


def get_config_file() -> Path:
    return get_netention_home() / "configuration.json"


def get_netention_config() -> dict[str, Any]:
    """Load configuration.json; missing or unreadable files mean no overrides."""
    config_file = get_config_file()
    if not config_file.exists():
        return {}
    try:
        with open(config_file, encoding="utf-8-sig") as f:
            data = json.load(f)
    except (json.JSONDecodeError, OSError):
        return {}
    return data if isinstance(data, dict) else {}


# ---------------------------------------------------------------------------
# EngineConfig
# ---------------------------------------------------------------------------


@dataclass
class EngineConfig:
    """Engine tuning knobs, storage choice and server/logging settings."""

    max_concurrent: int = DEFAULT_MAX_CONCURRENT
    max_retries: int = MAX_RETRIES
    retry_base_delay: float = BASE_DELAY
    root_id: str = ROOT_ID
    control_note_id: str = DEFAULT_CONTROL_ID

    store: str = "memory"  # "memory" | "sqlite" | "file"
    store_path: str | None = None

    api_host: str = "127.0.0.1"
    api_port: int = 8000

    log_level: str = "INFO"
    log_format: str = "auto"

    extra: dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "EngineConfig":
        """Known keys become fields; unknown keys are kept in ``extra``."""
        known = {f.name for f in fields(cls)} - {"extra"}
        kwargs = {key: value for key, value in data.items() if key in known}
        extra = {key: value for key, value in data.items() if key not in known}
        return cls(**kwargs, extra=extra)

    @classmethod
    def load(cls, **overrides: Any) -> "EngineConfig":
        """Defaults, then configuration.json, then explicit non-None overrides."""
        data = get_netention_config().get("engine", {})
        data = dict(data) if isinstance(data, dict) else {}
        data.update({key: value for key, value in overrides.items() if value is not None})
        return cls.from_dict(data)
