from __future__ import annotations

import json
import os
import sys
from dataclasses import asdict
from pathlib import Path

from .settings import Settings


APP_DIRNAME = "projecthub"
FILENAME = "settings.json"
DB_FILENAME = "projecthub.db"

ROOT = Path(__file__).resolve().parents[1]


def _local_config_dir() -> Path:
    """Config location: PROJECTHUB_CONFIG_DIR, else backend/.projecthub/.

    When bundled (PyInstaller, etc.) the directory sits next to the executable.
    """
    env_dir = (os.environ.get("PROJECTHUB_CONFIG_DIR") or "").strip()
    if env_dir:
        return Path(env_dir).expanduser().resolve()

    if getattr(sys, "frozen", False):
        exe_dir = Path(sys.executable).resolve().parent
        return exe_dir / f".{APP_DIRNAME}"

    backend_dir = Path(__file__).resolve().parent
    return backend_dir / f".{APP_DIRNAME}"


def _config_path() -> Path:
    cfg_dir = _local_config_dir()
    cfg_dir.mkdir(parents=True, exist_ok=True)
    return cfg_dir / FILENAME


def data_dir() -> Path:
    env_dir = (os.environ.get("PROJECTHUB_DATA_DIR") or "").strip()
    if env_dir:
        return Path(env_dir).expanduser().resolve()
    return ROOT / "data"


def get_db_path() -> Path:
    """Database file inside the data directory."""
    return data_dir() / DB_FILENAME


def _read_settings_file(path: Path) -> dict:
    try:
        return json.loads(path.read_text(encoding="utf-8"))
    except FileNotFoundError:
        return {}
    except (OSError, ValueError):
        # Corrupt file: fall back to defaults, the user can delete it.
        return {}


def load_settings() -> Settings:
    """Load settings from settings.json, falling back to defaults per field."""
    data = _read_settings_file(_config_path())
    s = Settings()
    if not isinstance(data, dict):
        return s
    for k, v in data.items():
        if hasattr(s, k):
            setattr(s, k, v)
    return s


def save_settings(settings: Settings) -> None:
    path = _config_path()
    tmp = path.with_suffix(".tmp")

    data = asdict(settings)
    # Write atomically (reduce risk of partial writes)
    tmp.write_text(json.dumps(data, indent=2, ensure_ascii=False), encoding="utf-8")
    tmp.replace(path)
