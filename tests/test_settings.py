from __future__ import annotations

from pathlib import Path

import pytest

from reportflow.config import (
    get_category_source,
    get_field_label,
    get_required_fields,
    is_field_required,
    list_categories,
    load_category_registry,
)
from reportflow.core.errors import ConfigError
from reportflow.core.settings import load_settings


@pytest.fixture(autouse=True)
def _clear_env(monkeypatch: pytest.MonkeyPatch) -> None:
    for name in (
        "REPORTFLOW_CONFIG",
        "REPORTFLOW_TEMPLATES_BUCKET",
        "REPORTFLOW_LOG_LEVEL",
        "REPORTFLOW_RETENTION_DAYS",
        "REPORTFLOW_ORPHAN_MIN_AGE_HOURS",
    ):
        monkeypatch.delenv(name, raising=False)


def test_defaults_follow_root_env(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("REPORTFLOW_ROOT", str(tmp_path))
    settings = load_settings()

    assert settings.root == tmp_path
    assert settings.templates_bucket == "excel-templates"
    assert settings.log_level == "INFO"
    assert settings.inactive_retention_days == 90
    assert settings.orphan_min_age_hours == 24


def test_precedence_overrides_env_file(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    config = tmp_path / "settings.yaml"
    config.write_text(
        "templates_bucket: from-file\ninactive_retention_days: 30\nlog_level: debug\n",
        encoding="utf-8",
    )
    monkeypatch.setenv("REPORTFLOW_TEMPLATES_BUCKET", "from-env")

    settings = load_settings(config, overrides={"log_level": "warning", "root": tmp_path / "data"})

    assert settings.templates_bucket == "from-env"
    assert settings.inactive_retention_days == 30
    assert settings.log_level == "WARNING"
    assert settings.root == tmp_path / "data"


def test_invalid_settings_raise_config_error(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    with pytest.raises(ConfigError):
        load_settings(tmp_path / "absent.yaml")

    listing = tmp_path / "list.yaml"
    listing.write_text("- a\n- b\n", encoding="utf-8")
    with pytest.raises(ConfigError):
        load_settings(listing)

    malformed = tmp_path / "malformed.yaml"
    malformed.write_text("root: [unclosed\n", encoding="utf-8")
    with pytest.raises(ConfigError, match="not valid YAML"):
        load_settings(malformed)

    monkeypatch.setenv("REPORTFLOW_RETENTION_DAYS", "ninety")
    with pytest.raises(ConfigError):
        load_settings()


def test_category_registry_lookups() -> None:
    assert {"users", "grades", "enrollments", "access"} <= set(list_categories())
    assert get_required_fields("users") == ["full_name", "email"]
    assert is_field_required("grades", "grade")
    assert not is_field_required("users", "phone")
    assert get_field_label("users", "email") == "Email"
    assert get_field_label("users", "unknown") == "unknown"
    assert get_category_source("access") == "accessLogs"
    assert get_category_source("unregistered") == "unregistered"
    assert get_required_fields("unregistered") == []


def test_category_registry_rejects_unknown_keys(tmp_path: Path) -> None:
    broken = tmp_path / "categories.yaml"
    broken.write_text("categories:\n  users:\n    fields:\n      - {key: a, label: A, colour: red}\n", encoding="utf-8")

    with pytest.raises(ConfigError):
        load_category_registry(broken)
    with pytest.raises(ConfigError):
        load_category_registry(tmp_path / "missing.yaml")
