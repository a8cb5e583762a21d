"""Configuration loading and validation."""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Any, Mapping

import yaml

from aaisp_exporter.common.constants import (
    DEFAULT_CHAOS_ENDPOINT,
    DEFAULT_LISTEN,
    DEFAULT_LOG_LEVEL,
    LOG_OUTPUTS,
)
from aaisp_exporter.common.errors import ConfigError

CONFIG_KEYS = {"listen", "log_level", "log_output", "chaos_endpoint"}
DEFAULTS = {
    "listen": DEFAULT_LISTEN,
    "log_level": DEFAULT_LOG_LEVEL,
    "log_output": "json",
    "chaos_endpoint": DEFAULT_CHAOS_ENDPOINT,
}


@dataclass(frozen=True)
class ExporterConfig:
    listen: str
    log_level: str
    log_output: str
    chaos_endpoint: str


def _assert_no_unknown_keys(obj: dict, known: set[str], ctx: str) -> None:
    unknown = set(obj) - known
    if unknown:
        unknown_str = ", ".join(sorted(unknown))
        raise ConfigError(f"Unknown keys in {ctx}: {unknown_str}")


def read_yaml(path: Path):
    with path.open("r", encoding="utf-8") as f:
        return yaml.safe_load(f)


def load_config_file(path: Path) -> dict[str, Any]:
    try:
        cfg = read_yaml(path)
    except OSError as exc:
        raise ConfigError(f"Cannot read config file {path}: {exc}") from exc
    except yaml.YAMLError as exc:
        raise ConfigError(f"Invalid YAML in {path}: {exc}") from exc

    if cfg is None:
        return {}
    if not isinstance(cfg, dict):
        raise ConfigError(f"Config file {path} must contain a mapping")
    _assert_no_unknown_keys(cfg, CONFIG_KEYS, str(path))
    for key, value in cfg.items():
        if not isinstance(value, str):
            raise ConfigError(f"{path}: {key} must be a string")
    return cfg


def resolve_config(overrides: Mapping[str, str | None], file_values: Mapping[str, Any] | None = None) -> ExporterConfig:
    """Merge defaults, file values and explicit flags, in rising precedence."""
    merged = dict(DEFAULTS)
    merged.update(file_values or {})
    merged.update({key: value for key, value in overrides.items() if value is not None})

    if merged["log_output"] not in LOG_OUTPUTS:
        raise ConfigError(f"log_output must be one of: {', '.join(LOG_OUTPUTS)}")
    if not merged["chaos_endpoint"].startswith(("http://", "https://")):
        raise ConfigError(f"chaos_endpoint must be an http(s) URL: {merged['chaos_endpoint']}")
    return ExporterConfig(**{key: merged[key] for key in CONFIG_KEYS})

