"""daylog configuration."""
import os
from pathlib import Path
from typing import Optional

import yaml

from daylog.errors import ConfigError
from daylog.models import ParserSettings


def _env_bool(name: str, default: bool = False) -> bool:
    value = os.getenv(name)
    if value is None:
        return default
    return value.strip().lower() in {"1", "true", "yes", "on"}


def _env_int(name: str, default: int) -> int:
    value = os.getenv(name)
    if value is None:
        return default
    try:
        return int(value)
    except ValueError:
        return default

# Logging
LOG_LEVEL = os.getenv("DAYLOG_LOG_LEVEL", "INFO").strip().upper() or "INFO"

# Parser heuristics
LARGE_GAP_HOURS = _env_int("DAYLOG_LARGE_GAP_HOURS", 8)
SETTINGS_PATH = os.getenv("DAYLOG_SETTINGS_PATH", "")

# Observability
OTEL_ENABLED = _env_bool("DAYLOG_OTEL_ENABLED", False)
OTEL_ENDPOINT = os.getenv("DAYLOG_OTEL_ENDPOINT", "http://localhost:4318")
OTEL_SERVICE_NAME = os.getenv("DAYLOG_OTEL_SERVICE_NAME", "daylog")
PROM_PORT = _env_int("DAYLOG_PROM_PORT", 0)

# Server settings
HOST = os.getenv("DAYLOG_HOST", "127.0.0.1")
PORT = _env_int("DAYLOG_PORT", 8000)

# CORS
FRONTEND_ORIGIN = os.getenv("DAYLOG_FRONTEND_ORIGIN", "http://localhost:3000")


def default_parser_settings() -> ParserSettings:
    return ParserSettings(largeGapHours=LARGE_GAP_HOURS)


def load_parser_settings(path: Optional[Path] = None) -> ParserSettings:
    """Load parser settings from a YAML mapping, layered over env defaults.

    A missing file (or no configured path) yields the defaults. A file that
    exists but is not a YAML mapping raises ConfigError.
    """
    settings_path = path or (Path(SETTINGS_PATH).expanduser() if SETTINGS_PATH else None)
    defaults = default_parser_settings()
    if settings_path is None or not settings_path.exists():
        return defaults

    try:
        raw = yaml.safe_load(settings_path.read_text(encoding="utf-8")) or {}
    except yaml.YAMLError as exc:
        raise ConfigError(f"Invalid YAML settings in {settings_path}") from exc
    if not isinstance(raw, dict):
        raise ConfigError(f"Expected mapping settings in {settings_path}")

    merged = {**defaults.model_dump(), **raw}
    try:
        return ParserSettings(**merged)
    except ValueError as exc:
        raise ConfigError(f"Invalid parser settings in {settings_path}: {exc}") from exc
