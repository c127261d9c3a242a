from __future__ import annotations

from dataclasses import dataclass, field
from typing import Callable

from result import Result

from tidyfs.models.category import FileRecord
from tidyfs.models.errors import TidyError

DEFAULT_MIN_SIZE = 1024
DEFAULT_MAX_DEPTH = 10


@dataclass(slots=True, frozen=True)
class DuplicateProgress:
    files_scanned: int
    bytes_scanned: int
    current_file: str
    phase: str


DuplicateProgressCallback = Callable[[DuplicateProgress], None]


@dataclass(slots=True)
class DuplicateOptions:
    paths: list[str]
    min_size: int = DEFAULT_MIN_SIZE
    max_size: int = 0
    ignore_patterns: list[str] = field(default_factory=list)
    max_depth: int = DEFAULT_MAX_DEPTH


@dataclass(slots=True)
class DuplicateGroup:
    hash: str
    size: int
    files: list[FileRecord]

    @property
    def wasted(self) -> int:
        return self.size * (len(self.files) - 1)


@dataclass(slots=True)
class DuplicateResult:
    groups: list[DuplicateGroup] = field(default_factory=list)
    total_dupes: int = 0
    wasted_space: int = 0
    files_scanned: int = 0
    directories_scanned: int = 0


type DuplicateScanResult = Result[DuplicateResult, TidyError]
