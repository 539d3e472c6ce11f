"""Runtime settings read from the environment (and ``.env`` at the repo root)."""

from __future__ import annotations

import os
from pathlib import Path

from dotenv import load_dotenv
from pydantic import BaseModel

from charsheet.autosave import DEFAULT_DELAY, DEFAULT_SNAPSHOT_INTERVAL
from charsheet.session import DEFAULT_KEY_PREFIX

ROOT = Path(__file__).parent.parent
STORAGE_FILENAME = "storage.json"


class Settings(BaseModel):
    data_dir: Path = ROOT / "data"
    key_prefix: str = DEFAULT_KEY_PREFIX
    storage_quota_bytes: int | None = None
    autosave_delay: float = DEFAULT_DELAY
    snapshot_interval: float = DEFAULT_SNAPSHOT_INTERVAL
    remote_api_url: str = ""
    remote_api_token: str = ""
    log_level: str = "INFO"

    @property
    def storage_path(self) -> Path:
        return self.data_dir / STORAGE_FILENAME


def load_settings(env_file: Path | None = None) -> Settings:
    """Build Settings from environment variables; unset ones keep their defaults."""
    load_dotenv(env_file or ROOT / ".env")
    env = {
        "data_dir": os.getenv("DATA_DIR"),
        "key_prefix": os.getenv("KEY_PREFIX"),
        "storage_quota_bytes": os.getenv("STORAGE_QUOTA_BYTES") or None,
        "autosave_delay": os.getenv("AUTOSAVE_DELAY"),
        "snapshot_interval": os.getenv("SNAPSHOT_INTERVAL"),
        "remote_api_url": os.getenv("REMOTE_API_URL"),
        "remote_api_token": os.getenv("REMOTE_API_TOKEN"),
        "log_level": os.getenv("LOG_LEVEL"),
    }
    return Settings(**{k: v for k, v in env.items() if v is not None})
