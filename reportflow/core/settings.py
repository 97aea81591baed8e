from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Mapping

import yaml
from dotenv import load_dotenv

from .errors import ConfigError


load_dotenv(override=False)

ROOT_ENV = "REPORTFLOW_ROOT"
CONFIG_ENV = "REPORTFLOW_CONFIG"
TEMPLATES_BUCKET_ENV = "REPORTFLOW_TEMPLATES_BUCKET"
LOG_LEVEL_ENV = "REPORTFLOW_LOG_LEVEL"
RETENTION_DAYS_ENV = "REPORTFLOW_RETENTION_DAYS"
ORPHAN_MIN_AGE_ENV = "REPORTFLOW_ORPHAN_MIN_AGE_HOURS"

DEFAULT_TEMPLATES_BUCKET = "excel-templates"
DEFAULT_RETENTION_DAYS = 90
DEFAULT_ORPHAN_MIN_AGE_HOURS = 24


@dataclass(slots=True)
class Settings:
    """Resolved runtime settings.

    Attributes:
        root: Base directory holding ``store``, ``blobs``, ``out`` and ``logs``.
        templates_bucket: Blob-store bucket where template workbooks live.
        log_level: Logging level name applied by the CLI.
        inactive_retention_days: Age after which inactive templates are purged.
        orphan_min_age_hours: Minimum age of an unregistered blob before cleanup removes it.
    """

    root: Path
    templates_bucket: str = DEFAULT_TEMPLATES_BUCKET
    log_level: str = "INFO"
    inactive_retention_days: int = DEFAULT_RETENTION_DAYS
    orphan_min_age_hours: int = DEFAULT_ORPHAN_MIN_AGE_HOURS


def default_root() -> Path:
    env = os.getenv(ROOT_ENV)
    if env:
        return Path(env).expanduser()
    return Path.home() / "ReportFlow"


def _load_yaml(path: Path) -> dict[str, Any]:
    if not path.exists():
        raise ConfigError(f"Settings file not found: {path}")
    try:
        with path.open("r", encoding="utf-8") as handle:
            data = yaml.safe_load(handle) or {}
    except yaml.YAMLError as exc:
        raise ConfigError(f"Settings file is not valid YAML: {exc}") from exc
    if not isinstance(data, dict):
        raise ConfigError("Settings file must contain a mapping")
    return data


def _as_int(name: str, value: object) -> int:
    try:
        return int(value)  # type: ignore[arg-type]
    except (TypeError, ValueError) as exc:
        raise ConfigError(f"{name} must be an integer, got {value!r}") from exc


def load_settings(
    path: str | Path | None = None,
    *,
    overrides: Mapping[str, Any] | None = None,
) -> Settings:
    """Resolve settings from overrides, environment, an optional YAML file and defaults."""

    file_values: dict[str, Any] = {}
    cfg_path = path or os.getenv(CONFIG_ENV)
    if cfg_path:
        file_values = _load_yaml(Path(cfg_path).expanduser())

    def pick(key: str, env_name: str, default: Any) -> Any:
        if overrides and overrides.get(key) is not None:
            return overrides[key]
        env = os.getenv(env_name)
        if env:
            return env
        if file_values.get(key) is not None:
            return file_values[key]
        return default

    root = Path(pick("root", ROOT_ENV, default_root())).expanduser()
    return Settings(
        root=root,
        templates_bucket=str(pick("templates_bucket", TEMPLATES_BUCKET_ENV, DEFAULT_TEMPLATES_BUCKET)),
        log_level=str(pick("log_level", LOG_LEVEL_ENV, "INFO")).upper(),
        inactive_retention_days=_as_int(
            "inactive_retention_days",
            pick("inactive_retention_days", RETENTION_DAYS_ENV, DEFAULT_RETENTION_DAYS),
        ),
        orphan_min_age_hours=_as_int(
            "orphan_min_age_hours",
            pick("orphan_min_age_hours", ORPHAN_MIN_AGE_ENV, DEFAULT_ORPHAN_MIN_AGE_HOURS),
        ),
    )
