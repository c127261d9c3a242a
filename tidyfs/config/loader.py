from __future__ import annotations

import logging
import os
import tomllib

import tomli_w
from result import Err, Ok, Result

from tidyfs.config.defaults import default_config
from tidyfs.config.schema import AppConfig
from tidyfs.models.errors import TidyError
from tidyfs.services.env import DEFAULT_ENV, Environment
from tidyfs.services.fs import DEFAULT_FS, FileSystem

logger = logging.getLogger(__name__)


def default_config_path(env: Environment = DEFAULT_ENV) -> str:
    return env.app_config_dir("config.toml")


def load_config(
    path: str | None = None,
    fs: FileSystem = DEFAULT_FS,
    env: Environment = DEFAULT_ENV,
) -> Result[AppConfig, str]:
    resolved = fs.expanduser(path) if path else default_config_path(env)
    defaults = default_config(env)
    if not fs.exists(resolved):
        saved = save_config(defaults, resolved, fs=fs)
        if isinstance(saved, Err):
            logger.warning("Could not write default config: %s", saved.unwrap_err())
        return Ok(defaults)

    try:
        payload = tomllib.loads(fs.read_text(resolved))
        config = AppConfig.from_dict(payload, defaults)
        config.validate()
        return Ok(config)
    except TidyError as exc:
        return Err(f"Config at {resolved} is invalid: {exc}.")
    except Exception as exc:  # noqa: BLE001
        return Err(f"Failed reading config at {resolved}: {exc}.")


def save_config(config: AppConfig, path: str, fs: FileSystem = DEFAULT_FS) -> Result[str, str]:
    resolved = fs.expanduser(path)
    try:
        parent = os.path.dirname(resolved)
        if parent:
            fs.makedirs(parent, 0o755)
        fs.write_text(resolved, tomli_w.dumps(config.to_dict()))
    except OSError as exc:
        return Err(f"Failed writing config at {resolved}: {exc}.")
    logger.debug("Wrote config to %s", resolved)
    return Ok(resolved)


def sample_config_toml(env: Environment = DEFAULT_ENV) -> str:
    return tomli_w.dumps(default_config(env).to_dict())
