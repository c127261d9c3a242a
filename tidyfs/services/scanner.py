from __future__ import annotations

import logging
import os
import time
from collections.abc import Iterator
from typing import Callable

from result import Err, Ok, Result

from tidyfs.config.schema import AppConfig, ScanSettings
from tidyfs.models.category import Category
from tidyfs.models.enums import ScanMode
from tidyfs.models.errors import ErrorCode, TidyError
from tidyfs.models.events import CancelCheck, ErrorEvent, ScanComplete, ScanEvent, ScanProgress
from tidyfs.models.session import TOTAL_CATEGORY_NAME, SessionCache
from tidyfs.services.env import Clock, system_clock
from tidyfs.services.fs import DEFAULT_FS, FileSystem
from tidyfs.services.session import SessionStore
from tidyfs.services.walker import WalkStats, combine_ignore, expand_pattern, walk

logger = logging.getLogger(__name__)

PROGRESS_EVERY = 100

_CANCEL_CODES = (ErrorCode.SCAN_CANCELLED, ErrorCode.SCAN_TIMEOUT)

ScanEventCallback = Callable[[ScanEvent], None]


class CategoryScanner:
    """Scans one category at a time and streams its progress as events."""

    def __init__(
        self,
        settings: ScanSettings,
        fs: FileSystem = DEFAULT_FS,
        clock: Clock = system_clock,
        progress_every: int = PROGRESS_EVERY,
    ) -> None:
        self._settings = settings
        self._fs = fs
        self._clock = clock
        self._progress_every = max(1, progress_every)
        self._ignore = combine_ignore(settings.ignore_patterns)

    @property
    def fs(self) -> FileSystem:
        return self._fs

    def scan_category(self, category: Category, cancel_check: CancelCheck | None = None) -> Iterator[ScanEvent]:
        """Walk every root of *category* into a fresh copy of it.

        The stream ends with exactly one ``ScanComplete`` on success or one
        ``ErrorEvent`` on failure or cancellation.  Roots that cannot be
        listed for lack of permission are skipped.  The passed category is
        not modified.
        """
        started = time.monotonic()
        working = category.fresh()
        stats = WalkStats()

        try:
            filters = working.compiled_filters()
        except TidyError as exc:
            yield ErrorEvent(exc)
            return

        for pattern in working.paths:
            for root in expand_pattern(pattern, self._fs):
                try:
                    for record in walk(
                        root,
                        max_depth=self._settings.max_depth,
                        ignore=self._ignore,
                        filters=filters,
                        min_age_days=working.min_age_days,
                        fs=self._fs,
                        clock=self._clock,
                        cancel_check=cancel_check,
                        stats=stats,
                    ):
                        if not working.admit(record):
                            continue
                        if working.file_count % self._progress_every == 0:
                            yield ScanProgress(
                                path=record.path,
                                bytes=working.size,
                                files_scanned=working.file_count,
                                dirs_scanned=stats.directories,
                                current_dir=os.path.dirname(record.path),
                            )
                except TidyError as exc:
                    if exc.code is ErrorCode.PERMISSION_DENIED:
                        logger.warning("Skipping %s for %s: permission denied", root, working.name)
                        continue
                    if exc.code not in _CANCEL_CODES:
                        logger.error("Scan of %s failed at %s: %s", working.name, root, exc)
                    yield ErrorEvent(exc)
                    return

        duration = time.monotonic() - started
        logger.debug(
            "Scanned %s: %d files, %d bytes in %.2fs", working.name, working.file_count, working.size, duration
        )
        yield ScanComplete(category=working.name, stats=working, duration=duration)


def enabled_categories(config: AppConfig, mode: ScanMode) -> list[Category]:
    if mode is ScanMode.QUICK:
        return [c for c in config.categories if c.selected]
    return [c for c in config.categories if c.selected or config.scan.enable_all]


def category_exists(category: Category, fs: FileSystem = DEFAULT_FS) -> bool:
    return any(fs.exists(root) for pattern in category.paths for root in expand_pattern(pattern, fs))


def merge_into(total: Category, stats: Category) -> None:
    for record in stats.files:
        total.admit(record)
    for path in stats.paths:
        if path not in total.paths:
            total.paths.append(path)
    if stats.file_count:
        if stats.risk.rank > total.risk.rank:
            total.risk = stats.risk
        total.shred_enabled = total.shred_enabled or stats.shred_enabled


def aggregate_scan(
    config: AppConfig,
    scanner: CategoryScanner,
    *,
    mode: ScanMode | None = None,
    cancel_check: CancelCheck | None = None,
    on_event: ScanEventCallback | None = None,
    clock: Clock = system_clock,
) -> Result[SessionCache, TidyError]:
    """Scan every enabled category with an existing root into one session.

    Failed categories are logged and left out.  Cancellation aborts the whole
    scan with ``Err``.
    """
    mode = mode or config.scan.mode
    total = Category(name=TOTAL_CATEGORY_NAME, paths=[])

    for category in enabled_categories(config, mode):
        if not category_exists(category, scanner.fs):
            logger.debug("Skipping %s: no path exists", category.name)
            continue
        for event in scanner.scan_category(category, cancel_check):
            if on_event is not None:
                on_event(event)
            if isinstance(event, ScanComplete):
                merge_into(total, event.stats)
            elif isinstance(event, ErrorEvent):
                if event.error.code in _CANCEL_CODES:
                    return Err(event.error)
                logger.warning("Leaving %s out of the results: %s", category.name, event.error)

    return Ok(
        SessionCache(
            scan_results=total,
            total_size=total.size,
            total_files=total.file_count,
            scanned_at=clock(),
        )
    )


def scan_and_save(
    config: AppConfig,
    scanner: CategoryScanner,
    store: SessionStore,
    *,
    mode: ScanMode | None = None,
    cancel_check: CancelCheck | None = None,
    on_event: ScanEventCallback | None = None,
    clock: Clock = system_clock,
) -> Result[SessionCache, TidyError]:
    result = aggregate_scan(
        config, scanner, mode=mode, cancel_check=cancel_check, on_event=on_event, clock=clock
    )
    if isinstance(result, Err):
        return result
    cache = result.unwrap()
    saved = store.save(cache)
    if isinstance(saved, Err):
        return saved
    logger.info("Saved %d files (%d bytes) to %s", cache.total_files, cache.total_size, saved.unwrap())
    return Ok(cache)
