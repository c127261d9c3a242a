from __future__ import annotations

from result import Err, Ok

from tidyfs.models.duplicates import DuplicateOptions, DuplicateProgress, DuplicateResult
from tidyfs.models.errors import ErrorCode
from tidyfs.services.cancel import CancelToken
from tidyfs.services.duplicates import (
    PHASE_BUILDING,
    PHASE_COLLECTING,
    DuplicateFinder,
    keep_oldest,
    remove_duplicates,
)
from tests.fs_mock import DEFAULT_MTIME, MemoryFileSystem

PAYLOAD = "duplicate content that will be hashed the same"


def _scan(fs: MemoryFileSystem, **kwargs: object) -> DuplicateResult:
    kwargs.setdefault("paths", ["/data"])
    options = DuplicateOptions(**kwargs)  # type: ignore[arg-type]
    result = DuplicateFinder(fs, workers=2).scan(options)
    assert isinstance(result, Ok)
    return result.unwrap()


def _fixture() -> MemoryFileSystem:
    return (
        MemoryFileSystem()
        .add_file("/data/file1.txt", content=PAYLOAD, mtime=DEFAULT_MTIME + 30)
        .add_file("/data/file2.txt", content=PAYLOAD, mtime=DEFAULT_MTIME + 10)
        .add_file("/data/sub/file3.txt", content=PAYLOAD, mtime=DEFAULT_MTIME + 20)
        .add_file("/data/unique.txt", content="unique")
    )


def test_finds_one_group_of_identical_files() -> None:
    result = _scan(_fixture(), min_size=1)

    [group] = result.groups
    assert len(PAYLOAD) == 46
    assert group.size == 46
    assert len(group.files) == 3
    assert group.wasted == 92
    assert result.total_dupes == 2
    assert result.wasted_space == 92
    assert result.files_scanned == 4
    assert result.directories_scanned == 1


def test_group_files_are_oldest_first() -> None:
    [group] = _scan(_fixture(), min_size=1).groups

    assert [f.path for f in group.files] == ["/data/file2.txt", "/data/sub/file3.txt", "/data/file1.txt"]


def test_same_size_different_content_is_not_duplicate() -> None:
    fs = MemoryFileSystem().add_file("/data/a", content="aaaa").add_file("/data/b", content="bbbb")

    assert _scan(fs, min_size=1).groups == []


def test_groups_sorted_by_wasted_space() -> None:
    fs = (
        MemoryFileSystem()
        .add_file("/data/s1", content="small")
        .add_file("/data/s2", content="small")
        .add_file("/data/b1", size=100, content="big")
        .add_file("/data/b2", size=100, content="big")
    )

    result = _scan(fs, min_size=1)

    assert [g.size for g in result.groups] == [100, 5]


def test_size_bounds_and_ignore_globs() -> None:
    fs = _fixture()

    assert _scan(fs).groups == []
    assert _scan(fs, min_size=1, max_size=40).groups == []
    [group] = _scan(fs, min_size=1, ignore_patterns=["file1.*"]).groups
    assert [f.path for f in group.files] == ["/data/file2.txt", "/data/sub/file3.txt"]


def test_max_depth_limits_collection() -> None:
    result = _scan(_fixture(), min_size=1, max_depth=0)

    [group] = result.groups
    assert len(group.files) == 2


def test_progress_phases_reported() -> None:
    seen: list[DuplicateProgress] = []
    DuplicateFinder(_fixture(), workers=2).scan(DuplicateOptions(paths=["/data"], min_size=1), seen.append)

    phases = [p.phase for p in seen]
    assert phases[0] == PHASE_COLLECTING
    assert phases[-1] == PHASE_BUILDING
    assert "Hashing (2 groups)" in phases


def test_cancellation_returns_err() -> None:
    token = CancelToken()

    def cancel_on_first(progress: DuplicateProgress) -> None:
        token.cancel()

    result = DuplicateFinder(_fixture()).scan(DuplicateOptions(paths=["/data"], min_size=1), cancel_on_first, token)

    assert isinstance(result, Err)
    assert result.unwrap_err().code is ErrorCode.SCAN_CANCELLED


def test_keep_oldest_then_remove() -> None:
    fs = _fixture()
    result = _scan(fs, min_size=1)

    doomed = keep_oldest(result)
    removed, freed, errors = remove_duplicates(doomed + ["/data/missing.txt"], fs)

    assert doomed == ["/data/sub/file3.txt", "/data/file1.txt"]
    assert removed == 2
    assert freed == 92
    assert len(errors) == 1
    assert errors[0].startswith("/data/missing.txt: ")
    assert fs.exists("/data/file2.txt")


def test_overlapping_roots_never_pair_a_file_with_itself() -> None:
    fs = MemoryFileSystem().add_file("/data/sub/only.bin", content=PAYLOAD)

    result = _scan(fs, min_size=1, paths=["/data", "/data/sub", "/data/sub/"])

    assert result.groups == []
    assert keep_oldest(result) == []
    assert fs.exists("/data/sub/only.bin")


def test_overlapping_roots_still_find_real_copies() -> None:
    [group] = _scan(_fixture(), min_size=1, paths=["/data", "/data/sub"]).groups

    assert len(group.files) == 3
    assert len({f.path for f in group.files}) == 3
