"""Chat relay application configuration.

Loads settings from a single YAML file:
  * chatrelay.settings.yaml  (path overridable via CHATRELAY_SETTINGS)

A missing file is not an error: every section falls back to its defaults.
"""
from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Any, Dict, List, Optional

import yaml
from pydantic import BaseModel, Field, field_validator

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

SETTINGS_FILE = Path("chatrelay.settings.yaml")
SETTINGS_ENV_VAR = "CHATRELAY_SETTINGS"

_LOG_LEVELS = ("critical", "error", "warning", "info", "debug")


def _settings_path() -> Path:
    override = os.environ.get(SETTINGS_ENV_VAR)
    return Path(override) if override else SETTINGS_FILE


def _load_yaml(path: Path) -> Dict[str, Any]:
    if not path.exists():
        logger.warning("Config file not found: %s", path)
        return {}
    with path.open(encoding="utf-8") as fh:
        return yaml.safe_load(fh) or {}


# ---------------------------------------------------------------------------
# Settings models
# ---------------------------------------------------------------------------


class ServerSettings(BaseModel):
    host:            str       = "0.0.0.0"
    port:            int       = 5000
    allowed_origins: List[str] = Field(default_factory=lambda: ["*"])


class ChatSettings(BaseModel):
    """Room defaults and in-memory history bounds."""
    default_room:      str = "global"
    history_capacity:  int = Field(default=1000, ge=1)
    history_page_size: int = Field(default=50, ge=1)
    max_page_size:     int = Field(default=1000, ge=1)


class LoggingSettings(BaseModel):
    level: str = "info"

    @field_validator("level")
    @classmethod
    def _known_level(cls, value: str) -> str:
        lowered = value.lower().strip()
        if lowered not in _LOG_LEVELS:
            raise ValueError(f"Unknown log level: {value!r}")
        return lowered


class AppSettings(BaseModel):
    server:  ServerSettings  = Field(default_factory=ServerSettings)
    chat:    ChatSettings    = Field(default_factory=ChatSettings)
    logging: LoggingSettings = Field(default_factory=LoggingSettings)


# ---------------------------------------------------------------------------
# Public loader
# ---------------------------------------------------------------------------


def load_settings(path: Optional[Path] = None) -> AppSettings:
    """Load the YAML settings file into an *AppSettings* object."""
    settings_path = path or _settings_path()
    app_settings = AppSettings(**_load_yaml(settings_path))
    logger.info(
        "Settings loaded (server=%s:%s, default_room=%s, history_capacity=%s)",
        app_settings.server.host,
        app_settings.server.port,
        app_settings.chat.default_room,
        app_settings.chat.history_capacity,
    )
    return app_settings


_config: Optional[AppSettings] = None


def get_config() -> AppSettings:
    """Return the process-wide settings, loading them on first use."""
    global _config
    if _config is None:
        _config = load_settings()
    return _config


def reset_config() -> None:
    """Forget cached settings so the next get_config() reloads from disk."""
    global _config
    _config = None
