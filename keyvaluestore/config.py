"""
keyvaluestore configuration.
Single source of truth for environment settings of the default store.
"""

import os
from pathlib import Path
from typing import Literal

from dotenv import load_dotenv

load_dotenv()

_TRUTHY = ("1", "true", "yes", "on")


def get_settings():
    """Return store settings (re-read from the environment on every call)."""
    return Settings()


class Settings:
    """Default store settings loaded from environment."""

    # Storage
    KVSTORE_DATA_DIR: Path
    KVSTORE_NAME: str = "store"

    # Backing file format: "json" | "plist"
    KVSTORE_FORMAT: Literal["json", "plist"] = "json"

    # Diagnostics
    KVSTORE_LOG_OUTPUT: bool = False

    def __init__(self):
        self.KVSTORE_DATA_DIR = Path(os.environ.get("KVSTORE_DATA_DIR", "data"))
        self.KVSTORE_NAME = (os.environ.get("KVSTORE_NAME") or "store").strip()
        self.KVSTORE_FORMAT = (os.environ.get("KVSTORE_FORMAT") or "json").strip().lower()
        if self.KVSTORE_FORMAT not in ("json", "plist"):
            self.KVSTORE_FORMAT = "json"
        log_output = (os.environ.get("KVSTORE_LOG_OUTPUT") or "").strip().lower()
        self.KVSTORE_LOG_OUTPUT = log_output in _TRUTHY
