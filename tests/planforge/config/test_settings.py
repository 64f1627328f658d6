"""Tests for environment-driven settings."""

from pathlib import Path

import pytest

from planforge.config import settings as settings_module
from planforge.config.settings import Settings, get_settings, reset_settings


@pytest.fixture(autouse=True)
def fresh_settings():
    reset_settings()
    yield
    reset_settings()


def test_role_keys_and_default_models():
    settings = Settings.from_env({"BUILDER_KEY_PRIMARY": "p", "BUILDER_KEY_BACKUP": "b"})
    builder = settings.roles["builder"]
    assert (builder.primary_key, builder.backup_key) == ("p", "b")
    assert builder.preferred_model == "claude-sonnet-4-5-20250929"
    assert not settings.roles["architect"].has_any_key()


def test_empty_values_count_as_unset():
    settings = Settings.from_env({"ARCHITECT_KEY_PRIMARY": ""})
    assert settings.roles["architect"].primary_key is None


def test_model_overrides():
    settings = Settings.from_env({"ARCHITECT_MODEL_EMERGENCY": "small-model"})
    assert settings.roles["architect"].emergency_model == "small-model"


def test_remediation_borrows_architect_keys():
    settings = Settings.from_env({"ARCHITECT_KEY_PRIMARY": "a1", "ARCHITECT_KEY_BACKUP": "a2"})
    remediation = settings.roles["remediation"]
    assert (remediation.primary_key, remediation.backup_key) == ("a1", "a2")


def test_remediation_own_keys_win():
    settings = Settings.from_env({"ARCHITECT_KEY_PRIMARY": "a1", "REMEDIATION_KEY_BACKUP": "r2"})
    remediation = settings.roles["remediation"]
    assert (remediation.primary_key, remediation.backup_key) == (None, "r2")


def test_path_overrides(tmp_path):
    settings = Settings.from_env({
        "PLANFORGE_SANDBOX_ROOT": str(tmp_path / "box"),
        "PLANFORGE_CONFIG_ROOT": str(tmp_path / "cfg"),
        "PLANFORGE_DB_PATH": str(tmp_path / "db.sqlite"),
    })
    assert settings.sandbox_root == tmp_path / "box"
    assert settings.config_root == tmp_path / "cfg"
    assert settings.db_path == Path(tmp_path / "db.sqlite")


def test_get_settings_is_cached(monkeypatch, tmp_path):
    monkeypatch.chdir(tmp_path)
    monkeypatch.setenv("BUILDER_KEY_PRIMARY", "from-env")

    first = get_settings()
    monkeypatch.setenv("BUILDER_KEY_PRIMARY", "changed")

    assert get_settings() is first
    assert first.roles["builder"].primary_key == "from-env"
    reset_settings()
    assert settings_module._settings is None
    assert get_settings().roles["builder"].primary_key == "changed"
