from __future__ import annotations

from dataclasses import dataclass, field
from typing import Callable

from tidyfs.models.category import Category
from tidyfs.models.errors import TidyError

CancelCheck = Callable[[], bool]


@dataclass(slots=True, frozen=True)
class ScanProgress:
    path: str
    bytes: int
    files_scanned: int
    dirs_scanned: int
    current_dir: str


@dataclass(slots=True, frozen=True)
class ScanComplete:
    category: str
    stats: Category
    duration: float


@dataclass(slots=True, frozen=True)
class CleanProgress:
    files_processed: int
    bytes_freed: int
    current_file: str
    total_files: int
    total_bytes: int


@dataclass(slots=True, frozen=True)
class CleanComplete:
    category: str
    files_deleted: int
    bytes_freed: int
    duration: float
    backup_created: bool = False
    backup_path: str = ""
    errors: list[str] = field(default_factory=list)


@dataclass(slots=True, frozen=True)
class ErrorEvent:
    error: TidyError

    @property
    def code(self) -> str:
        return self.error.code.value


type ScanEvent = ScanProgress | ScanComplete | ErrorEvent
type CleanEvent = CleanProgress | CleanComplete | ErrorEvent
