"""Configuration management for the registration service."""
from __future__ import annotations

import os
from dataclasses import dataclass, replace
from pathlib import Path
from typing import Dict, Mapping, Optional

import yaml

from .database import resolve_database_path

DEFAULT_HOST = "0.0.0.0"
DEFAULT_PORT = 3000
DEFAULT_LOG_LEVEL = "INFO"


@dataclass(frozen=True)
class Settings:
    """Runtime settings for the HTTP service."""

    host: str
    port: int
    database_path: Path
    log_level: str = DEFAULT_LOG_LEVEL

    @staticmethod
    def from_dict(data: Mapping[str, object], base_path: Path | None = None) -> "Settings":
        """Create :class:`Settings` from raw mapping data, filling in defaults."""

        raw_db_path = data.get("database_path")
        if raw_db_path:
            expanded = Path(str(raw_db_path)).expanduser()
            if not expanded.is_absolute() and base_path is not None:
                expanded = base_path / expanded
            database_path = expanded.resolve(strict=False)
        else:
            database_path = resolve_database_path(None)

        return Settings(
            host=str(data.get("host") or DEFAULT_HOST),
            port=_parse_port(data.get("port", DEFAULT_PORT)),
            database_path=database_path,
            log_level=str(data.get("log_level") or DEFAULT_LOG_LEVEL).upper(),
        )


def _parse_port(value: object) -> int:
    try:
        port = int(str(value).strip())
    except ValueError as exc:
        raise ValueError(f"Invalid port: {value!r}") from exc
    if not 1 <= port <= 65535:
        raise ValueError(f"Port must be between 1 and 65535, got {port}")
    return port


def resolve_config_path(env_value: Optional[str]) -> Path:
    """Resolve the path to the optional YAML configuration file."""
    if env_value:
        candidate = Path(env_value).expanduser().resolve(strict=False)
    else:
        candidate = (Path(__file__).resolve().parent.parent / "config" / "registration.yaml").resolve(strict=False)
    return candidate


def _load_config_file(config_path: Path) -> Dict[str, object]:
    with config_path.open("r", encoding="utf-8") as handle:
        raw = yaml.safe_load(handle) or {}
    if not isinstance(raw, dict):
        raise ValueError(f"Configuration file {config_path} must contain a mapping")
    return raw


def load_settings(environ: Mapping[str, str] | None = None) -> Settings:
    """Build settings from defaults, the YAML file and environment overrides."""

    env = os.environ if environ is None else environ
    config_path = resolve_config_path(env.get("REGISTRATION_CONFIG"))

    if config_path.exists():
        settings = Settings.from_dict(_load_config_file(config_path), base_path=config_path.parent)
    elif env.get("REGISTRATION_CONFIG"):
        raise ValueError(f"Configuration file {config_path} does not exist")
    else:
        settings = Settings.from_dict({})

    overrides: Dict[str, object] = {}
    if env.get("REGISTRATION_HOST"):
        overrides["host"] = env["REGISTRATION_HOST"].strip()
    if env.get("REGISTRATION_PORT"):
        overrides["port"] = _parse_port(env["REGISTRATION_PORT"])
    if env.get("REGISTRATION_DB_PATH"):
        overrides["database_path"] = resolve_database_path(env["REGISTRATION_DB_PATH"])
    if env.get("REGISTRATION_LOG_LEVEL"):
        overrides["log_level"] = env["REGISTRATION_LOG_LEVEL"].strip().upper()

    return replace(settings, **overrides)


__all__ = ["Settings", "load_settings", "resolve_config_path"]
