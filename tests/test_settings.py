"""Tests for backend.settings and backend.settings_store."""

from __future__ import annotations

import os
from pathlib import Path

import pytest


@pytest.fixture
def cfg_env(tmp_path: Path):
    """Point PROJECTHUB_CONFIG_DIR at a temp dir, restoring it afterwards."""
    previous = os.environ.get("PROJECTHUB_CONFIG_DIR")
    cfg_dir = tmp_path / "cfg"
    cfg_dir.mkdir()
    os.environ["PROJECTHUB_CONFIG_DIR"] = str(cfg_dir)
    yield cfg_dir
    if previous is None:
        os.environ.pop("PROJECTHUB_CONFIG_DIR", None)
    else:
        os.environ["PROJECTHUB_CONFIG_DIR"] = previous


def test_settings_dataclass_defaults():
    """Settings dataclass should have sensible defaults."""
    from backend.settings import Settings

    s = Settings()
    assert s.session_timeout_hours == 720
    assert s.invitation_expiry_days == 7
    assert s.password_min_length == 8
    assert s.log_level == "INFO"
    assert s.cookie_secure is False


def test_settings_dataclass_custom_values():
    from backend.settings import Settings

    s = Settings(invitation_expiry_days=14, log_level="DEBUG")
    assert s.invitation_expiry_days == 14
    assert s.log_level == "DEBUG"


def test_app_metadata():
    from backend.settings import APP_NAME, APP_VERSION

    assert APP_NAME == "ProjectHub"
    assert APP_VERSION


def test_save_and_load_settings(cfg_env: Path):
    """Settings should roundtrip through save/load."""
    from backend.settings import Settings
    from backend.settings_store import load_settings, save_settings

    save_settings(Settings(invitation_expiry_days=3, session_timeout_hours=24))
    assert (cfg_env / "settings.json").exists()

    loaded = load_settings()
    assert loaded.invitation_expiry_days == 3
    assert loaded.session_timeout_hours == 24


def test_load_settings_missing_file(cfg_env: Path):
    """load_settings should return defaults when no config file exists."""
    from backend.settings_store import load_settings

    s = load_settings()
    assert s.invitation_expiry_days == 7


def test_load_settings_corrupt_file(cfg_env: Path):
    """load_settings should handle corrupt JSON gracefully."""
    (cfg_env / "settings.json").write_text("{corrupt json!", encoding="utf-8")
    from backend.settings_store import load_settings

    s = load_settings()
    assert s.invitation_expiry_days == 7


def test_load_settings_ignores_unknown_keys(cfg_env: Path):
    (cfg_env / "settings.json").write_text(
        '{"whisper_model": "large", "password_min_length": 12}', encoding="utf-8"
    )
    from backend.settings_store import load_settings

    s = load_settings()
    assert s.password_min_length == 12
    assert not hasattr(s, "whisper_model")


def test_db_path_follows_data_dir(tmp_path: Path, monkeypatch):
    from backend.settings_store import get_db_path

    monkeypatch.setenv("PROJECTHUB_DATA_DIR", str(tmp_path / "data"))
    assert get_db_path() == (tmp_path / "data" / "projecthub.db").resolve()
