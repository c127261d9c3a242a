from __future__ import annotations

import re
from collections.abc import Iterator, Sequence
from dataclasses import dataclass
from datetime import datetime

from tidyfs.models.category import FileRecord, compile_pattern
from tidyfs.models.errors import ErrorCode, TidyError
from tidyfs.models.events import CancelCheck
from tidyfs.services.cancel import cancellation_error
from tidyfs.services.env import Clock, system_clock
from tidyfs.services.fs import DEFAULT_FS, DirEntry, FileSystem, StatResult

SECONDS_PER_DAY = 86_400

# Entries that vanish or deny access mid-walk are routine in cache and temp
# directories; they are skipped without aborting the walk.
_SKIPPABLE = (PermissionError, FileNotFoundError)


@dataclass(slots=True)
class WalkStats:
    directories: int = 0
    files: int = 0


def combine_ignore(patterns: Sequence[str]) -> re.Pattern[str] | None:
    """Join ignore fragments into one alternation; ``None`` when there are none."""
    if not patterns:
        return None
    combined = "|".join(f"(?:{p})" for p in patterns)
    try:
        return re.compile(combined)
    except re.error as exc:
        raise TidyError.invalid_pattern(combined, exc) from exc


def expand_pattern(pattern: str, fs: FileSystem = DEFAULT_FS) -> list[str]:
    """Glob-expand *pattern*; an unmatched pattern is returned unchanged."""
    expanded = fs.expanduser(pattern)
    matches = fs.glob(expanded)
    return matches or [expanded]


def format_mtime(mtime: float) -> str:
    return datetime.fromtimestamp(mtime).astimezone().isoformat(timespec="seconds")


def _list_dir(path: str, fs: FileSystem) -> list[DirEntry]:
    return sorted(fs.scandir(path), key=lambda e: e.name)


def _walk_error(exc: OSError, path: str) -> TidyError:
    return TidyError.from_os_error(exc, path, ErrorCode.INVALID_PATH)


def iter_files(
    root: str,
    *,
    max_depth: int,
    ignore: re.Pattern[str] | None = None,
    fs: FileSystem = DEFAULT_FS,
    cancel_check: CancelCheck | None = None,
    stats: WalkStats | None = None,
) -> Iterator[tuple[DirEntry, StatResult]]:
    """Yield ``(entry, stat)`` for every regular file under *root*.

    Traversal is depth-first with entries in name order.  A missing or
    non-directory root yields nothing.  Symbolic links are neither followed
    nor yielded, and entries whose absolute path matches *ignore* are skipped
    (directories are not descended into).  ``max_depth`` counts directory
    levels below *root* whose contents are read.

    Raises ``TidyError`` on cancellation, when the root itself cannot be
    listed, or on filesystem errors other than permission or vanished entries.
    """
    counters = stats if stats is not None else WalkStats()

    def _check_cancel() -> None:
        if cancel_check is not None and cancel_check():
            raise cancellation_error(cancel_check, counters.files)

    _check_cancel()
    try:
        root_stat = fs.stat(root)
    except FileNotFoundError:
        return
    except OSError as exc:
        raise _walk_error(exc, root) from exc
    if not root_stat.is_dir:
        return

    try:
        root_entries = _list_dir(root, fs)
    except FileNotFoundError:
        return
    except OSError as exc:
        raise _walk_error(exc, root) from exc

    stack: list[tuple[Iterator[DirEntry], int]] = [(iter(root_entries), 0)]
    while stack:
        entries, depth = stack[-1]
        entry = next(entries, None)
        if entry is None:
            stack.pop()
            continue

        _check_cancel()

        st = entry.stat
        if st is None:
            if isinstance(entry.error, _SKIPPABLE):
                continue
            exc = entry.error or OSError(f"cannot stat {entry.path}")
            raise _walk_error(exc, entry.path) from exc

        if ignore is not None and ignore.search(entry.path):
            continue
        if st.is_symlink:
            continue

        if st.is_dir:
            counters.directories += 1
            if depth < max_depth:
                try:
                    children = _list_dir(entry.path, fs)
                except _SKIPPABLE:
                    continue
                except OSError as exc:
                    raise _walk_error(exc, entry.path) from exc
                stack.append((iter(children), depth + 1))
            continue
        if not st.is_regular:
            continue

        counters.files += 1
        yield entry, st


def walk(
    root: str,
    *,
    max_depth: int,
    ignore: re.Pattern[str] | None = None,
    filters: Sequence[re.Pattern[str] | str] = (),
    min_age_days: int | None = None,
    fs: FileSystem = DEFAULT_FS,
    clock: Clock = system_clock,
    cancel_check: CancelCheck | None = None,
    stats: WalkStats | None = None,
) -> Iterator[FileRecord]:
    """Yield the files under *root* admitted by *filters* and the age gate.

    A file is admitted when every filter matches its basename and, with a
    positive ``min_age_days``, its mtime is at least that many days old.
    """
    compiled = [compile_pattern(f) if isinstance(f, str) else f for f in filters]
    min_age = (min_age_days or 0) * SECONDS_PER_DAY
    now = clock().timestamp()

    for entry, st in iter_files(
        root,
        max_depth=max_depth,
        ignore=ignore,
        fs=fs,
        cancel_check=cancel_check,
        stats=stats,
    ):
        if not all(f.search(entry.name) for f in compiled):
            continue
        if min_age and now - st.mtime < min_age:
            continue
        yield FileRecord(path=entry.path, size=st.size, modified=format_mtime(st.mtime))
