from __future__ import annotations

import fnmatch
import hashlib
import logging
import queue
import threading
from collections import defaultdict
from dataclasses import dataclass

from result import Err, Ok, Result

from tidyfs.models.category import FileRecord
from tidyfs.models.duplicates import (
    DuplicateGroup,
    DuplicateOptions,
    DuplicateProgress,
    DuplicateProgressCallback,
    DuplicateResult,
    DuplicateScanResult,
)
from tidyfs.models.errors import ErrorCode, TidyError
from tidyfs.models.events import CancelCheck
from tidyfs.services.cancel import cancellation_error
from tidyfs.services.fs import DEFAULT_FS, FileSystem
from tidyfs.services.walker import WalkStats, expand_pattern, format_mtime, iter_files

logger = logging.getLogger(__name__)

HASH_WORKERS = 4
HASH_CHUNK = 1024 * 1024
PROGRESS_EVERY = 100

PHASE_COLLECTING = "Collecting"
PHASE_BUILDING = "Building results"

_CANCEL_CODES = (ErrorCode.SCAN_CANCELLED, ErrorCode.SCAN_TIMEOUT)


@dataclass(slots=True, frozen=True)
class _Candidate:
    path: str
    size: int
    mtime: float


def _hashing_phase(groups: int) -> str:
    return f"Hashing ({groups} groups)"


class DuplicateFinder:
    """Finds files with identical content.

    Files are bucketed by size first; only buckets with two or more entries
    are hashed (SHA-256) by a fixed pool of worker threads.  Each worker keeps
    a local ``hash -> files`` map and posts it to a results queue that the
    calling thread merges.
    """

    def __init__(self, fs: FileSystem = DEFAULT_FS, workers: int = HASH_WORKERS) -> None:
        self._fs = fs
        self._workers = max(1, workers)

    def scan(
        self,
        options: DuplicateOptions,
        progress_callback: DuplicateProgressCallback | None = None,
        cancel_check: CancelCheck | None = None,
    ) -> DuplicateScanResult:
        def emit(progress: DuplicateProgress) -> None:
            if progress_callback is not None:
                progress_callback(progress)

        collected = self._collect(options, emit, cancel_check)
        if isinstance(collected, Err):
            return collected
        buckets, stats, bytes_scanned = collected.unwrap()

        hashed = self._hash_buckets(buckets, stats.files, bytes_scanned, emit, cancel_check)
        if isinstance(hashed, Err):
            return hashed

        emit(DuplicateProgress(stats.files, bytes_scanned, "", PHASE_BUILDING))
        result = build_result(hashed.unwrap())
        result.files_scanned = stats.files
        result.directories_scanned = stats.directories
        return Ok(result)

    def _collect(
        self,
        options: DuplicateOptions,
        emit: DuplicateProgressCallback,
        cancel_check: CancelCheck | None,
    ) -> Result[tuple[dict[int, list[_Candidate]], WalkStats, int], TidyError]:
        buckets: dict[int, list[_Candidate]] = defaultdict(list)
        stats = WalkStats()
        seen: set[str] = set()
        bytes_scanned = 0
        collected = 0

        emit(DuplicateProgress(0, 0, "", PHASE_COLLECTING))
        for pattern in options.paths:
            for root in expand_pattern(pattern, self._fs):
                try:
                    for entry, st in iter_files(
                        root,
                        max_depth=options.max_depth,
                        fs=self._fs,
                        cancel_check=cancel_check,
                        stats=stats,
                    ):
                        if st.size < options.min_size:
                            continue
                        if options.max_size > 0 and st.size > options.max_size:
                            continue
                        if any(fnmatch.fnmatchcase(entry.name, p) for p in options.ignore_patterns):
                            continue
                        real = self._fs.realpath(entry.path)
                        if real in seen:
                            continue
                        seen.add(real)
                        buckets[st.size].append(_Candidate(entry.path, st.size, st.mtime))
                        bytes_scanned += st.size
                        collected += 1
                        if collected % PROGRESS_EVERY == 0:
                            emit(DuplicateProgress(stats.files, bytes_scanned, entry.path, PHASE_COLLECTING))
                except TidyError as exc:
                    if exc.code in _CANCEL_CODES:
                        return Err(exc)
                    logger.warning("Skipping %s: %s", root, exc)

        return Ok((buckets, stats, bytes_scanned))

    def _hash_buckets(
        self,
        buckets: dict[int, list[_Candidate]],
        files_scanned: int,
        bytes_scanned: int,
        emit: DuplicateProgressCallback,
        cancel_check: CancelCheck | None,
    ) -> Result[dict[str, list[_Candidate]], TidyError]:
        jobs: queue.Queue[list[_Candidate] | None] = queue.Queue()
        results: queue.Queue[dict[str, list[_Candidate]]] = queue.Queue()
        cancelled = threading.Event()

        def _is_cancelled() -> bool:
            if cancelled.is_set():
                return True
            if cancel_check is not None and cancel_check():
                cancelled.set()
                return True
            return False

        def run_worker() -> None:
            local: dict[str, list[_Candidate]] = defaultdict(list)
            while True:
                job = jobs.get()
                if job is None:
                    break
                for candidate in job:
                    if _is_cancelled():
                        break
                    digest = self._hash_file(candidate.path)
                    if digest is not None:
                        local[digest].append(candidate)
            results.put(dict(local))

        for size in sorted(buckets):
            if len(buckets[size]) >= 2:
                jobs.put(buckets[size])
        for _ in range(self._workers):
            jobs.put(None)

        threads = [threading.Thread(target=run_worker, daemon=True) for _ in range(self._workers)]
        for thread in threads:
            thread.start()

        merged: dict[str, list[_Candidate]] = defaultdict(list)
        for done in range(1, self._workers + 1):
            for digest, candidates in results.get().items():
                merged[digest].extend(candidates)
            emit(DuplicateProgress(files_scanned, bytes_scanned, "", _hashing_phase(done)))
        for thread in threads:
            thread.join()

        if cancelled.is_set():
            return Err(cancellation_error(cancel_check, files_scanned, bytes_scanned))
        return Ok(merged)

    def _hash_file(self, path: str) -> str | None:
        digest = hashlib.sha256()
        try:
            with self._fs.open_binary(path, "rb") as handle:
                while chunk := handle.read(HASH_CHUNK):
                    digest.update(chunk)
        except OSError as exc:
            logger.debug("Cannot hash %s: %s", path, exc)
            return None
        return digest.hexdigest()


def build_result(hashed: dict[str, list[_Candidate]]) -> DuplicateResult:
    """Group hashed files, oldest first within a group, most wasteful group first."""
    groups: list[DuplicateGroup] = []
    for digest, candidates in hashed.items():
        if len(candidates) < 2:
            continue
        ordered = sorted(candidates, key=lambda c: (c.mtime, c.path))
        groups.append(
            DuplicateGroup(
                hash=digest,
                size=ordered[0].size,
                files=[FileRecord(c.path, c.size, format_mtime(c.mtime)) for c in ordered],
            )
        )
    groups.sort(key=lambda g: (-g.wasted, g.hash))
    return DuplicateResult(
        groups=groups,
        total_dupes=sum(len(g.files) - 1 for g in groups),
        wasted_space=sum(g.wasted for g in groups),
    )


def remove_duplicates(paths: list[str], fs: FileSystem = DEFAULT_FS) -> tuple[int, int, list[str]]:
    """Delete *paths*; returns ``(removed, freed_bytes, errors)``.

    Deciding which copy to keep is up to the caller.
    """
    removed = 0
    freed = 0
    errors: list[str] = []
    for path in paths:
        try:
            size = fs.stat(path).size
            fs.remove(path)
        except OSError as exc:
            errors.append(f"{path}: {TidyError.from_os_error(exc, path)}")
            continue
        removed += 1
        freed += size
    return removed, freed, errors


def keep_oldest(result: DuplicateResult) -> list[str]:
    """Every file of every group except the oldest copy."""
    return [record.path for group in result.groups for record in group.files[1:]]
