from __future__ import annotations

import os
import re
from dataclasses import dataclass, field, replace
from functools import lru_cache
from typing import Any

from tidyfs.models.enums import RiskLevel
from tidyfs.models.errors import TidyError


@dataclass(slots=True, frozen=True)
class FileRecord:
    path: str
    size: int
    modified: str

    def to_dict(self) -> dict[str, Any]:
        return {"path": self.path, "size": self.size, "mod_time": self.modified}

    @classmethod
    def from_dict(cls, payload: dict[str, Any]) -> FileRecord:
        return cls(
            path=str(payload["path"]),
            size=int(payload["size"]),
            modified=str(payload.get("mod_time", "")),
        )


@lru_cache(maxsize=256)
def compile_pattern(pattern: str) -> re.Pattern[str]:
    try:
        return re.compile(pattern)
    except re.error as exc:
        raise TidyError.invalid_pattern(pattern, exc) from exc


@dataclass(slots=True)
class Category:
    """A named cleaning target: where to look, what to admit, how risky.

    ``size``, ``file_count`` and ``files`` are accumulators filled by the
    scanner through :meth:`admit`; everything else comes from configuration.
    """

    name: str
    paths: list[str]
    filters: list[str] = field(default_factory=list)
    risk: RiskLevel = RiskLevel.LOW
    shred_enabled: bool = False
    min_age_days: int | None = None
    selected: bool = False
    size: int = 0
    file_count: int = 0
    files: list[FileRecord] = field(default_factory=list)
    _admitted: set[str] = field(init=False, default_factory=set, repr=False, compare=False)

    def __post_init__(self) -> None:
        self._admitted = {os.path.normpath(f.path) for f in self.files}

    def fresh(self) -> Category:
        """Copy with empty accumulators, ready for a new scan."""
        return replace(
            self,
            paths=list(self.paths),
            filters=list(self.filters),
            size=0,
            file_count=0,
            files=[],
        )

    def admit(self, record: FileRecord) -> bool:
        """Add *record* unless its path is already here; returns whether it was added."""
        key = os.path.normpath(record.path)
        if key in self._admitted:
            return False
        self._admitted.add(key)
        self.files.append(record)
        self.size += record.size
        self.file_count += 1
        return True

    def compiled_filters(self) -> list[re.Pattern[str]]:
        return [compile_pattern(f) for f in self.filters]

    def validate(self) -> None:
        if not self.name:
            raise TidyError.config_invalid("category has empty name")
        if not self.paths:
            raise TidyError.config_invalid(f"category {self.name} has no paths")
        for pattern in self.filters:
            try:
                compile_pattern(pattern)
            except TidyError as exc:
                raise TidyError.config_invalid(f"category {self.name} has invalid filter {pattern!r}", exc) from exc
        if self.min_age_days is not None and self.min_age_days < 0:
            raise TidyError.config_invalid(f"category {self.name} has negative min_age_days")
        if self.size != sum(f.size for f in self.files) or self.file_count != len(self.files):
            raise TidyError.config_invalid(f"category {self.name} has inconsistent totals")

    def to_dict(self, *, include_files: bool = True) -> dict[str, Any]:
        payload: dict[str, Any] = {
            "name": self.name,
            "paths": list(self.paths),
            "filters": list(self.filters),
            "risk": self.risk.value,
            "shred": self.shred_enabled,
            "selected": self.selected,
        }
        if self.min_age_days is not None:
            payload["min_age_days"] = self.min_age_days
        if include_files:
            payload["size"] = self.size
            payload["file_count"] = self.file_count
            payload["files"] = [f.to_dict() for f in self.files]
        return payload

    @classmethod
    def from_dict(cls, payload: dict[str, Any]) -> Category:
        min_age_raw = payload.get("min_age_days")
        files = [FileRecord.from_dict(x) for x in payload.get("files", [])]
        return cls(
            name=str(payload["name"]),
            paths=[str(x) for x in payload.get("paths", [])],
            filters=[str(x) for x in payload.get("filters", [])],
            risk=RiskLevel.parse(payload.get("risk", RiskLevel.LOW.value)),
            shred_enabled=bool(payload.get("shred", False)),
            min_age_days=int(min_age_raw) if min_age_raw is not None else None,
            selected=bool(payload.get("selected", False)),
            size=int(payload.get("size", sum(f.size for f in files))),
            file_count=int(payload.get("file_count", len(files))),
            files=files,
        )
