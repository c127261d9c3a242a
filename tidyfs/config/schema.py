from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

from tidyfs.models.category import Category, compile_pattern
from tidyfs.models.enums import ScanMode
from tidyfs.models.errors import TidyError

MIN_DEPTH = 1
MAX_DEPTH = 10

DEFAULT_PROTECTED_PATHS: tuple[str, ...] = (
    "/bin",
    "/usr/bin",
    "/usr/sbin",
    "/sbin",
    "/etc",
    "/var/lib",
    "/boot",
    "/sys",
    "/proc",
    "/dev",
)


@dataclass(slots=True)
class ScanSettings:
    max_depth: int = 5
    ignore_patterns: list[str] = field(default_factory=lambda: ["node_modules", r"\.git", r"\.svn", r"\.hg"])
    enable_all: bool = True
    dry_run_default: bool = True
    mode: ScanMode = ScanMode.DEEP


@dataclass(slots=True)
class SafetyPolicy:
    require_confirmation: bool = True
    max_deletion_size_mb: int = 512_000
    protected_paths: list[str] = field(default_factory=lambda: list(DEFAULT_PROTECTED_PATHS))
    safe_mode: bool = True
    shred_passes: int = 1
    create_manifest: bool = True

    @property
    def max_deletion_bytes(self) -> int:
        return self.max_deletion_size_mb * 1024 * 1024


@dataclass(slots=True)
class AppConfig:
    scan: ScanSettings = field(default_factory=ScanSettings)
    safety: SafetyPolicy = field(default_factory=SafetyPolicy)
    categories: list[Category] = field(default_factory=list)

    def validate(self) -> None:
        if not MIN_DEPTH <= self.scan.max_depth <= MAX_DEPTH:
            raise TidyError.config_invalid(
                f"max_depth must be between {MIN_DEPTH} and {MAX_DEPTH}, got {self.scan.max_depth}"
            )
        for pattern in self.scan.ignore_patterns:
            try:
                compile_pattern(pattern)
            except TidyError as exc:
                raise TidyError.config_invalid(f"invalid ignore pattern {pattern!r}", exc) from exc
        if self.safety.shred_passes < 1:
            raise TidyError.config_invalid("shred_passes must be at least 1")
        if self.safety.max_deletion_size_mb < 0:
            raise TidyError.config_invalid("max_deletion_size_mb must not be negative")

        seen: set[str] = set()
        for idx, category in enumerate(self.categories):
            if not category.name:
                raise TidyError.config_invalid(f"category {idx} has empty name")
            if category.name in seen:
                raise TidyError.config_invalid(f"duplicate category name: {category.name}")
            seen.add(category.name)
            category.validate()

    def category(self, name: str) -> Category:
        for category in self.categories:
            if category.name == name:
                return category
        raise TidyError.category_not_found(name)

    def to_dict(self) -> dict[str, Any]:
        return {
            "scan": {
                "max_depth": self.scan.max_depth,
                "ignore_patterns": list(self.scan.ignore_patterns),
                "enable_all": self.scan.enable_all,
                "dry_run_default": self.scan.dry_run_default,
                "mode": self.scan.mode.value,
            },
            "safety": {
                "require_confirmation": self.safety.require_confirmation,
                "max_deletion_size_mb": self.safety.max_deletion_size_mb,
                "protected_paths": list(self.safety.protected_paths),
                "safe_mode": self.safety.safe_mode,
                "shred_passes": self.safety.shred_passes,
                "create_manifest": self.safety.create_manifest,
            },
            "categories": [c.to_dict(include_files=False) for c in self.categories],
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any], defaults: AppConfig) -> AppConfig:
        scan = data.get("scan", {})
        safety = data.get("safety", {})
        d_scan = defaults.scan
        d_safety = defaults.safety

        try:
            mode = ScanMode(str(scan.get("mode", d_scan.mode.value)))
        except ValueError as exc:
            raise TidyError.config_invalid(f"invalid scan mode: {scan.get('mode')}", exc) from exc

        return cls(
            scan=ScanSettings(
                max_depth=int(scan.get("max_depth", d_scan.max_depth)),
                ignore_patterns=[str(x) for x in scan.get("ignore_patterns", d_scan.ignore_patterns)],
                enable_all=bool(scan.get("enable_all", d_scan.enable_all)),
                dry_run_default=bool(scan.get("dry_run_default", d_scan.dry_run_default)),
                mode=mode,
            ),
            safety=SafetyPolicy(
                require_confirmation=bool(safety.get("require_confirmation", d_safety.require_confirmation)),
                max_deletion_size_mb=int(safety.get("max_deletion_size_mb", d_safety.max_deletion_size_mb)),
                protected_paths=[str(x) for x in safety.get("protected_paths", d_safety.protected_paths)],
                safe_mode=bool(safety.get("safe_mode", d_safety.safe_mode)),
                shred_passes=int(safety.get("shred_passes", d_safety.shred_passes)),
                create_manifest=bool(safety.get("create_manifest", d_safety.create_manifest)),
            ),
            categories=[Category.from_dict(x) for x in data["categories"]]
            if "categories" in data
            else [c.fresh() for c in defaults.categories],
        )
