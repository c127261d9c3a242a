from __future__ import annotations

import os
from collections.abc import Mapping
from datetime import datetime
from pathlib import Path
from typing import Callable

APP_NAME = "tidyfs"

Clock = Callable[[], datetime]


def system_clock() -> datetime:
    return datetime.now().astimezone()


class Environment:
    """Read-only view of the process environment.

    Every lookup of ``HOME``, ``USER``, ``SUDO_USER`` and the XDG base
    directories goes through here so tests can pass a plain dict instead of
    patching ``os.environ``.
    """

    def __init__(self, values: Mapping[str, str] | None = None) -> None:
        self._values: Mapping[str, str] = os.environ if values is None else values

    def get(self, key: str, default: str = "") -> str:
        return self._values.get(key, default) or default

    @property
    def home(self) -> str:
        return self.get("HOME") or str(Path.home())

    def real_user_home(self) -> str:
        """Home of the invoking user, even when running under sudo."""
        sudo_user = self.get("SUDO_USER")
        if sudo_user and hasattr(os, "geteuid") and os.geteuid() == 0:
            candidate = f"/home/{sudo_user}"
            if os.path.isdir(candidate):
                return candidate
        return self.home

    def user(self, configured: str = "") -> str:
        return configured or self.get("USER") or self.get("SUDO_USER") or "unknown"

    @property
    def data_home(self) -> str:
        return self.get("XDG_DATA_HOME") or os.path.join(self.home, ".local", "share")

    @property
    def cache_home(self) -> str:
        return self.get("XDG_CACHE_HOME") or os.path.join(self.home, ".cache")

    def app_data_dir(self, *parts: str) -> str:
        return os.path.join(self.data_home, APP_NAME, *parts)

    def app_cache_dir(self, *parts: str) -> str:
        return os.path.join(self.cache_home, APP_NAME, *parts)

    def app_config_dir(self, *parts: str) -> str:
        return os.path.join(self.home, ".config", APP_NAME, *parts)

    def audit_log_path(self) -> str:
        return os.path.join(self.home, ".local", "share", APP_NAME, "logs", "audit.log")


DEFAULT_ENV = Environment()
