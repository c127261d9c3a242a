from __future__ import annotations

import glob as globmod
import os
import stat as statmod
from dataclasses import dataclass
from pathlib import Path
from typing import BinaryIO, Iterable, Protocol


@dataclass(slots=True, frozen=True)
class StatResult:
    size: int
    mtime: float
    is_dir: bool
    is_symlink: bool = False
    is_regular: bool = True


@dataclass(slots=True, frozen=True)
class DirEntry:
    path: str
    name: str
    stat: StatResult | None = None
    error: OSError | None = None


class FileSystem(Protocol):
    def expanduser(self, path: str) -> str: ...

    def exists(self, path: str) -> bool: ...

    def absolute(self, path: str) -> str: ...

    def realpath(self, path: str) -> str: ...

    def stat(self, path: str) -> StatResult: ...

    def scandir(self, path: str) -> Iterable[DirEntry]: ...

    def glob(self, pattern: str) -> list[str]: ...

    def read_text(self, path: str, encoding: str = "utf-8", errors: str = "strict") -> str: ...

    def write_text(self, path: str, text: str, encoding: str = "utf-8", errors: str = "strict") -> None: ...

    def makedirs(self, path: str, mode: int = 0o755) -> None: ...

    def open_binary(self, path: str, mode: str = "rb") -> BinaryIO: ...

    def sync(self, handle: BinaryIO) -> None: ...

    def remove(self, path: str) -> None: ...


def _to_stat_result(st: os.stat_result) -> StatResult:
    return StatResult(
        size=st.st_size,
        mtime=st.st_mtime,
        is_dir=statmod.S_ISDIR(st.st_mode),
        is_symlink=statmod.S_ISLNK(st.st_mode),
        is_regular=statmod.S_ISREG(st.st_mode),
    )


class OsFileSystem:
    def expanduser(self, path: str) -> str:
        return str(Path(path).expanduser())

    def exists(self, path: str) -> bool:
        return os.path.lexists(path)

    def absolute(self, path: str) -> str:
        return os.path.abspath(path)

    def realpath(self, path: str) -> str:
        return os.path.realpath(path)

    def stat(self, path: str) -> StatResult:
        return _to_stat_result(os.stat(path, follow_symlinks=False))

    def scandir(self, path: str) -> Iterable[DirEntry]:
        with os.scandir(path) as entries:
            for e in entries:
                try:
                    sr = _to_stat_result(e.stat(follow_symlinks=False))
                except OSError as exc:
                    yield DirEntry(path=e.path, name=e.name, stat=None, error=exc)
                    continue
                yield DirEntry(path=e.path, name=e.name, stat=sr)

    def glob(self, pattern: str) -> list[str]:
        return sorted(globmod.glob(pattern))

    def read_text(self, path: str, encoding: str = "utf-8", errors: str = "strict") -> str:
        return Path(path).read_text(encoding=encoding, errors=errors)

    def write_text(self, path: str, text: str, encoding: str = "utf-8", errors: str = "strict") -> None:
        Path(path).write_text(text, encoding=encoding, errors=errors)

    def makedirs(self, path: str, mode: int = 0o755) -> None:
        os.makedirs(path, mode=mode, exist_ok=True)

    def open_binary(self, path: str, mode: str = "rb") -> BinaryIO:
        return open(path, mode)  # noqa: SIM115

    def sync(self, handle: BinaryIO) -> None:
        handle.flush()
        os.fsync(handle.fileno())

    def remove(self, path: str) -> None:
        os.remove(path)


DEFAULT_FS: FileSystem = OsFileSystem()
