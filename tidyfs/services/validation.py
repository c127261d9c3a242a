from __future__ import annotations

from collections.abc import Sequence
from pathlib import PurePosixPath

from tidyfs.models.enums import ScanMode
from tidyfs.models.errors import TidyError
from tidyfs.services.fs import DEFAULT_FS, FileSystem

# System directories no user-supplied path may point into, independent of
# the configured protected paths.
SYSTEM_PATHS: tuple[str, ...] = ("/bin", "/sbin", "/usr/bin", "/usr/sbin", "/boot", "/sys", "/proc", "/dev")


def validate_file_path(
    path: str,
    protected: Sequence[str] = SYSTEM_PATHS,
    fs: FileSystem = DEFAULT_FS,
) -> str:
    """Return the absolute form of *path* or raise ``TidyError``.

    Rejects empty paths, ``..`` components and anything under *protected*.
    """
    if not path:
        raise TidyError.invalid_path(path, "path is empty")
    if "\x00" in path:
        raise TidyError.invalid_path(path, "path contains a NUL byte")
    if ".." in PurePosixPath(path).parts:
        raise TidyError.invalid_path(path, "path contains traversal")

    absolute = fs.absolute(path)
    pure = PurePosixPath(absolute)
    for prefix in protected:
        if pure.is_relative_to(prefix):
            raise TidyError.path_protected(absolute, list(protected))
    return absolute


def validate_size(size: int, max_size: int) -> None:
    if size > max_size:
        raise TidyError.size_limit_exceeded(size, max_size)


def validate_mode(mode: str | None) -> ScanMode | None:
    """Parse a scan mode; an empty value means "use the configured default"."""
    if not mode:
        return None
    try:
        return ScanMode(mode.lower())
    except ValueError as exc:
        raise TidyError.config_invalid(f"invalid mode: {mode} (must be 'quick' or 'deep')", exc) from exc


def validate_dir_exists(path: str, fs: FileSystem = DEFAULT_FS) -> None:
    try:
        st = fs.stat(fs.realpath(path))
    except FileNotFoundError as exc:
        raise TidyError.file_not_found(path, exc) from exc
    except OSError as exc:
        raise TidyError.from_os_error(exc, path) from exc
    if not st.is_dir:
        raise TidyError.invalid_path(path, "not a directory")


def validate_file_exists(path: str, fs: FileSystem = DEFAULT_FS) -> None:
    try:
        st = fs.stat(fs.realpath(path))
    except FileNotFoundError as exc:
        raise TidyError.file_not_found(path, exc) from exc
    except OSError as exc:
        raise TidyError.from_os_error(exc, path) from exc
    if st.is_dir:
        raise TidyError.invalid_path(path, "is a directory, not a file")
