from __future__ import annotations

import logging

import pytest
from result import Err, Ok

from tidyfs.config.schema import AppConfig, ScanSettings
from tidyfs.models.category import Category
from tidyfs.models.enums import RiskLevel, ScanMode
from tidyfs.models.errors import ErrorCode
from tidyfs.models.events import ErrorEvent, ScanComplete, ScanProgress
from tidyfs.models.session import TOTAL_CATEGORY_NAME
from tidyfs.services.cancel import CancelToken
from tidyfs.services.scanner import CategoryScanner, aggregate_scan, enabled_categories
from tests.fs_mock import MemoryFileSystem


def _scanner(fs: MemoryFileSystem, **kwargs: object) -> CategoryScanner:
    settings = ScanSettings(max_depth=5, ignore_patterns=[r"\.git"])
    return CategoryScanner(settings, fs=fs, **kwargs)  # type: ignore[arg-type]


def test_scan_category_accumulates_and_completes() -> None:
    fs = (
        MemoryFileSystem()
        .add_file("/cache/a.bin", size=10)
        .add_file("/cache/sub/b.bin", size=20)
        .add_file("/cache/.git/objects/x", size=99)
    )
    category = Category("Cache", ["/cache"])

    events = list(_scanner(fs).scan_category(category))

    assert len(events) == 1
    [complete] = events
    assert isinstance(complete, ScanComplete)
    assert complete.category == "Cache"
    assert complete.stats.file_count == 2
    assert complete.stats.size == 30
    assert complete.stats.size == sum(f.size for f in complete.stats.files)
    assert category.file_count == 0


def test_scan_category_merges_every_expanded_root() -> None:
    fs = (
        MemoryFileSystem()
        .add_file("/home/u/.var/app/a/cache/1", size=1)
        .add_file("/home/u/.var/app/b/cache/2", size=2)
        .add_file("/home/u/.cache/thumbnails/3", size=4)
    )
    category = Category("Mixed", ["/home/u/.var/app/*/cache", "/home/u/.cache/thumbnails", "/missing"])

    [complete] = list(_scanner(fs).scan_category(category))

    assert isinstance(complete, ScanComplete)
    assert [f.path for f in complete.stats.files] == [
        "/home/u/.var/app/a/cache/1",
        "/home/u/.var/app/b/cache/2",
        "/home/u/.cache/thumbnails/3",
    ]
    assert complete.stats.size == 7


def test_overlapping_roots_admit_each_file_once() -> None:
    fs = MemoryFileSystem().add_file("/c/pip/a.whl", size=10).add_file("/c/b.tar", size=4)
    category = Category("Dev", ["/c", "/c/pip", "/c/*"])

    [complete] = list(_scanner(fs).scan_category(category))

    assert isinstance(complete, ScanComplete)
    assert [f.path for f in complete.stats.files] == ["/c/b.tar", "/c/pip/a.whl"]
    assert complete.stats.size == 14
    assert complete.stats.file_count == 2


def test_progress_every_n_admissions() -> None:
    fs = MemoryFileSystem()
    for i in range(7):
        fs.add_file(f"/cache/f{i}", size=1)

    events = list(_scanner(fs, progress_every=3).scan_category(Category("Cache", ["/cache"])))

    progress = [e for e in events if isinstance(e, ScanProgress)]
    assert [p.files_scanned for p in progress] == [3, 6]
    assert [p.bytes for p in progress] == [3, 6]
    assert progress[0].current_dir == "/cache"
    assert isinstance(events[-1], ScanComplete)


def test_permission_denied_root_is_skipped_with_warning(caplog: pytest.LogCaptureFixture) -> None:
    fs = (
        MemoryFileSystem()
        .add_dir("/locked", deny_list=True)
        .add_file("/open/a", size=5)
    )

    with caplog.at_level(logging.WARNING, logger="tidyfs.services.scanner"):
        events = list(_scanner(fs).scan_category(Category("Both", ["/locked", "/open"])))

    [complete] = events
    assert isinstance(complete, ScanComplete)
    assert complete.stats.file_count == 1
    assert "permission denied" in caplog.text


def test_invalid_filter_emits_error_without_completion() -> None:
    fs = MemoryFileSystem().add_file("/cache/a", size=1)

    events = list(_scanner(fs).scan_category(Category("Bad", ["/cache"], filters=["("])))

    [error] = events
    assert isinstance(error, ErrorEvent)
    assert error.error.code is ErrorCode.INVALID_PATTERN


def test_cancellation_emits_at_most_one_more_event() -> None:
    fs = MemoryFileSystem()
    for i in range(50):
        fs.add_file(f"/cache/f{i:02d}", size=1)
    token = CancelToken()

    stream = _scanner(fs, progress_every=5).scan_category(Category("Cache", ["/cache"]), token)
    first = next(stream)
    assert isinstance(first, ScanProgress)
    token.cancel()
    rest = list(stream)

    assert len(rest) == 1
    assert isinstance(rest[0], ErrorEvent)
    assert rest[0].code == "SCAN_CANCELLED"


def _config(categories: list[Category], enable_all: bool = True) -> AppConfig:
    return AppConfig(scan=ScanSettings(enable_all=enable_all, ignore_patterns=[]), categories=categories)


def test_enabled_categories_by_mode() -> None:
    picked = Category("Picked", ["/a"], selected=True)
    other = Category("Other", ["/b"])

    assert enabled_categories(_config([picked, other]), ScanMode.DEEP) == [picked, other]
    assert enabled_categories(_config([picked, other], enable_all=False), ScanMode.DEEP) == [picked]
    assert enabled_categories(_config([picked, other]), ScanMode.QUICK) == [picked]


def test_aggregate_scan_builds_total_category() -> None:
    fs = (
        MemoryFileSystem()
        .add_file("/logs/a.log", size=10)
        .add_file("/tmp/x.bak", size=5)
    )
    config = _config(
        [
            Category("Logs", ["/logs"], selected=True),
            Category("Backups", ["/tmp"], risk=RiskLevel.MEDIUM, shred_enabled=True),
            Category("Absent", ["/nowhere"], risk=RiskLevel.HIGH),
        ]
    )
    seen: list[object] = []

    result = aggregate_scan(config, CategoryScanner(config.scan, fs=fs), on_event=seen.append)

    assert isinstance(result, Ok)
    cache = result.unwrap()
    total = cache.scan_results
    assert total.name == TOTAL_CATEGORY_NAME
    assert cache.total_files == 2
    assert cache.total_size == 15
    assert total.risk is RiskLevel.MEDIUM
    assert total.shred_enabled is True
    assert total.paths == ["/logs", "/tmp"]
    assert len([e for e in seen if isinstance(e, ScanComplete)]) == 2


def test_aggregate_scan_counts_shared_files_once() -> None:
    fs = MemoryFileSystem().add_file("/c/pip/a.whl", size=10)
    config = _config([Category("Dev", ["/c"]), Category("Pip", ["/c/pip"])])

    result = aggregate_scan(config, CategoryScanner(config.scan, fs=fs))

    assert isinstance(result, Ok)
    cache = result.unwrap()
    assert cache.total_files == 1
    assert cache.total_size == 10
    assert [f.path for f in cache.scan_results.files] == ["/c/pip/a.whl"]


def test_aggregate_scan_skips_failed_categories() -> None:
    fs = MemoryFileSystem().add_file("/good/a", size=3).add_file("/bad/b", size=4)
    config = _config(
        [
            Category("Bad", ["/bad"], filters=["("]),
            Category("Good", ["/good"]),
        ]
    )

    result = aggregate_scan(config, CategoryScanner(config.scan, fs=fs))

    assert isinstance(result, Ok)
    assert result.unwrap().total_files == 1


def test_aggregate_scan_cancelled_returns_err() -> None:
    fs = MemoryFileSystem().add_file("/good/a", size=3)
    config = _config([Category("Good", ["/good"])])
    token = CancelToken()
    token.cancel()

    result = aggregate_scan(config, CategoryScanner(config.scan, fs=fs), cancel_check=token)

    assert isinstance(result, Err)
    assert result.unwrap_err().code is ErrorCode.SCAN_CANCELLED
