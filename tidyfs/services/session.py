from __future__ import annotations

import contextlib
import json
import logging
import os
import tempfile
from pathlib import Path, PurePosixPath

from result import Err, Ok, Result

from tidyfs.config.schema import AppConfig
from tidyfs.models.enums import RiskLevel, ScanMode
from tidyfs.models.errors import ErrorCode, TidyError
from tidyfs.models.session import SessionCache
from tidyfs.services.env import DEFAULT_ENV, Environment
from tidyfs.services.fs import DEFAULT_FS, FileSystem
from tidyfs.services.walker import expand_pattern

logger = logging.getLogger(__name__)

SESSION_FILE = "scan_results.json"


class SessionStore:
    """The persisted handoff between a scan and the clean that follows it.

    One JSON file under the user's cache directory.  Writes go through a
    private temp file and ``os.replace`` so readers never see a partial file.
    Concurrent invocations are not supported.
    """

    def __init__(self, env: Environment = DEFAULT_ENV) -> None:
        self._env = env

    def path(self) -> str:
        return self._env.app_cache_dir(SESSION_FILE)

    def exists(self) -> bool:
        return os.path.isfile(self.path())

    def save(self, cache: SessionCache | None) -> Result[str, TidyError]:
        target = self.path()
        if cache is None:
            return Err(TidyError.session_corrupt(target, ValueError("refusing to save an empty session")))

        directory = os.path.dirname(target)
        try:
            os.makedirs(directory, mode=0o700, exist_ok=True)
            fd, tmp_path = tempfile.mkstemp(prefix=".scan_results.", suffix=".tmp", dir=directory)
            try:
                with os.fdopen(fd, "w", encoding="utf-8") as handle:
                    json.dump(cache.to_dict(), handle, indent=2)
                    handle.flush()
                    os.fsync(handle.fileno())
                os.chmod(tmp_path, 0o600)
                os.replace(tmp_path, target)
            except BaseException:
                with contextlib.suppress(OSError):
                    os.unlink(tmp_path)
                raise
        except OSError as exc:
            return Err(TidyError.from_os_error(exc, target, ErrorCode.INVALID_PATH))

        logger.debug("Session saved to %s", target)
        return Ok(target)

    def load(self) -> Result[SessionCache, TidyError]:
        target = self.path()
        try:
            raw = Path(target).read_text(encoding="utf-8")
        except FileNotFoundError:
            return Err(TidyError.session_not_found(target))
        except OSError as exc:
            return Err(TidyError.from_os_error(exc, target, ErrorCode.INVALID_PATH))

        try:
            payload = json.loads(raw)
            return Ok(SessionCache.from_dict(payload))
        except (ValueError, KeyError, TypeError, TidyError) as exc:
            return Err(TidyError.session_corrupt(target, exc))

    def clear(self) -> Result[None, TidyError]:
        target = self.path()
        try:
            os.remove(target)
        except FileNotFoundError:
            pass
        except OSError as exc:
            return Err(TidyError.from_os_error(exc, target, ErrorCode.INVALID_PATH))
        return Ok(None)


def _roots_for(config: AppConfig, risk: RiskLevel, fs: FileSystem) -> list[PurePosixPath]:
    roots: list[PurePosixPath] = []
    for category in config.categories:
        if category.risk is not risk:
            continue
        for pattern in category.paths:
            roots.extend(PurePosixPath(root) for root in expand_pattern(pattern, fs))
    return roots


def filter_by_mode(
    cache: SessionCache,
    config: AppConfig,
    mode: ScanMode,
    fs: FileSystem = DEFAULT_FS,
) -> SessionCache:
    """Narrow *cache* to what a clean in *mode* may touch.

    Deep mode keeps everything.  Quick mode keeps only files under the roots
    of Low-risk categories.
    """
    if mode is ScanMode.DEEP:
        return cache

    roots = _roots_for(config, RiskLevel.LOW, fs)
    narrowed = cache.scan_results.fresh()
    narrowed.risk = RiskLevel.LOW
    for record in cache.scan_results.files:
        candidate = PurePosixPath(record.path)
        if any(candidate.is_relative_to(root) for root in roots):
            narrowed.admit(record)

    dropped = cache.total_files - narrowed.file_count
    if dropped:
        logger.info("Quick mode left out %d files from higher-risk categories", dropped)

    return SessionCache(
        scan_results=narrowed,
        total_size=narrowed.size,
        total_files=narrowed.file_count,
        scanned_at=cache.scanned_at,
    )
