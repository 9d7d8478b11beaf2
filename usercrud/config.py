"""Configuration management for the user management service."""
from __future__ import annotations

import os
from dataclasses import dataclass, replace
from pathlib import Path
from typing import Dict, Mapping, Optional, Tuple

import yaml

from .database import resolve_database_path

DEFAULT_HOST = "0.0.0.0"
DEFAULT_PORT = 5000
DEFAULT_MESSAGE_TIMEOUT = 3.0
DEFAULT_CONSOLE_API_URL = "http://localhost:5000/api"

_ENV_KEYS: Dict[str, str] = {
    "database_path": "USERCRUD_DB_PATH",
    "host": "USERCRUD_HOST",
    "port": "USERCRUD_PORT",
    "cors_origins": "USERCRUD_CORS_ORIGINS",
    "message_timeout": "USERCRUD_MESSAGE_TIMEOUT",
    "api_url": "USERCRUD_API_URL",
    "session_secure": "USERCRUD_SESSION_SECURE",
}


def _parse_flag(value: object) -> bool:
    if isinstance(value, bool):
        return value
    return str(value).strip().lower() in {"1", "true", "yes", "on"}


def _parse_origins(value: object) -> Tuple[str, ...]:
    if isinstance(value, (list, tuple)):
        items = [str(item).strip() for item in value]
    else:
        items = [item.strip() for item in str(value).split(",")]
    origins = tuple(item for item in items if item)
    return origins or ("*",)


def _parse_port(value: object) -> int:
    try:
        port = int(str(value).strip())
    except ValueError as exc:
        raise ValueError(f"Invalid port '{value}'") from exc
    if not 0 < port < 65536:
        raise ValueError(f"Port must be between 1 and 65535, got {port}")
    return port


def _parse_timeout(value: object) -> float:
    try:
        timeout = float(str(value).strip())
    except ValueError as exc:
        raise ValueError(f"Invalid message timeout '{value}'") from exc
    if timeout <= 0:
        raise ValueError("Message timeout must be greater than zero")
    return timeout


@dataclass(frozen=True)
class Settings:
    """Runtime settings for the API, the web UI and the admin console."""

    database_path: Path
    host: str = DEFAULT_HOST
    port: int = DEFAULT_PORT
    cors_origins: Tuple[str, ...] = ("*",)
    message_timeout: float = DEFAULT_MESSAGE_TIMEOUT
    api_url: Optional[str] = None
    session_secure: bool = False

    @staticmethod
    def from_mapping(data: Mapping[str, object], base: "Settings | None" = None) -> "Settings":
        """Overlay raw configuration values on ``base`` (or the defaults)."""

        settings = base or Settings(database_path=resolve_database_path(None))
        changes: Dict[str, object] = {}

        if data.get("database_path"):
            changes["database_path"] = resolve_database_path(str(data["database_path"]))
        if data.get("host"):
            changes["host"] = str(data["host"]).strip()
        if data.get("port") not in (None, ""):
            changes["port"] = _parse_port(data["port"])
        if data.get("cors_origins") not in (None, ""):
            changes["cors_origins"] = _parse_origins(data["cors_origins"])
        if data.get("message_timeout") not in (None, ""):
            changes["message_timeout"] = _parse_timeout(data["message_timeout"])
        if data.get("api_url"):
            changes["api_url"] = str(data["api_url"]).strip().rstrip("/") or None
        if data.get("session_secure") not in (None, ""):
            changes["session_secure"] = _parse_flag(data["session_secure"])

        return replace(settings, **changes)

    @property
    def console_api_url(self) -> str:
        return self.api_url or DEFAULT_CONSOLE_API_URL


def load_config_file(config_path: Path) -> Dict[str, object]:
    """Load raw settings from a YAML file."""
    with config_path.open("r", encoding="utf-8") as handle:
        raw = yaml.safe_load(handle) or {}

    if not isinstance(raw, dict):
        raise ValueError("Configuration file must contain a mapping of settings")

    section = raw.get("usercrud", raw)
    if not isinstance(section, dict):
        raise ValueError("The 'usercrud' section must be a mapping of settings")

    unknown = set(section) - set(_ENV_KEYS)
    if unknown:
        raise ValueError(f"Unknown configuration keys: {', '.join(sorted(unknown))}")

    if section.get("database_path"):
        raw_path = Path(str(section["database_path"])).expanduser()
        if not raw_path.is_absolute():
            section = dict(section)
            section["database_path"] = str((config_path.parent / raw_path).resolve(strict=False))
    return dict(section)


def resolve_config_path(env_value: Optional[str]) -> Optional[Path]:
    """Resolve the path to the optional YAML configuration file."""
    if env_value:
        return Path(env_value).expanduser().resolve(strict=False)
    candidate = (Path(__file__).resolve().parent.parent / "config" / "usercrud.yaml").resolve(strict=False)
    return candidate if candidate.exists() else None


def load_settings(
    config_path: Optional[Path] = None,
    environ: Optional[Mapping[str, str]] = None,
) -> Settings:
    """Build settings from the YAML file (if any) overlaid with environment variables."""

    env = os.environ if environ is None else environ
    path = config_path or resolve_config_path(env.get("USERCRUD_CONFIG"))

    settings = Settings(database_path=resolve_database_path(None))
    if path is not None:
        settings = Settings.from_mapping(load_config_file(path), settings)

    env_values = {key: env.get(name) for key, name in _ENV_KEYS.items()}
    return Settings.from_mapping(env_values, settings)


__all__ = ["Settings", "load_config_file", "load_settings", "resolve_config_path"]
