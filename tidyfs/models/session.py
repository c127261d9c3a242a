from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

from tidyfs.models.category import Category

TOTAL_CATEGORY_NAME = "Total Cleanable"


@dataclass(slots=True)
class SessionCache:
    scan_results: Category = field(default_factory=lambda: Category(name=TOTAL_CATEGORY_NAME, paths=[]))
    total_size: int = 0
    total_files: int = 0
    scanned_at: datetime = field(default_factory=lambda: datetime.now().astimezone())

    def to_dict(self) -> dict[str, Any]:
        return {
            "scan_results": self.scan_results.to_dict(),
            "total_size": self.total_size,
            "total_files": self.total_files,
            "scanned_at": self.scanned_at.isoformat(),
        }

    @classmethod
    def from_dict(cls, payload: dict[str, Any]) -> SessionCache:
        return cls(
            scan_results=Category.from_dict(payload["scan_results"]),
            total_size=int(payload["total_size"]),
            total_files=int(payload["total_files"]),
            scanned_at=datetime.fromisoformat(str(payload["scanned_at"])),
        )
