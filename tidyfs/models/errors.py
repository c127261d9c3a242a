from __future__ import annotations

import errno
from enum import Enum
from typing import Any


class ErrorCode(str, Enum):
    # File operations
    PERMISSION_DENIED = "PERMISSION_DENIED"
    FILE_NOT_FOUND = "FILE_NOT_FOUND"
    PATH_PROTECTED = "PATH_PROTECTED"
    DISK_FULL = "DISK_FULL"
    INVALID_PATH = "INVALID_PATH"

    # Manifests
    BACKUP_FAILED = "BACKUP_FAILED"
    BACKUP_CORRUPTED = "BACKUP_CORRUPTED"
    RESTORE_FAILED = "RESTORE_FAILED"

    # Scanning
    SCAN_CANCELLED = "SCAN_CANCELLED"
    SCAN_TIMEOUT = "SCAN_TIMEOUT"
    INVALID_PATTERN = "INVALID_PATTERN"

    # Cleaning
    CLEAN_FAILED = "CLEAN_FAILED"
    SAFETY_CHECK_FAILED = "SAFETY_CHECK_FAILED"
    SIZE_LIMIT_EXCEEDED = "SIZE_LIMIT_EXCEEDED"

    # Configuration
    CONFIG_INVALID = "CONFIG_INVALID"
    CATEGORY_NOT_FOUND = "CATEGORY_NOT_FOUND"

    # Session cache
    SESSION_NOT_FOUND = "SESSION_NOT_FOUND"
    SESSION_CORRUPT = "SESSION_CORRUPT"


class TidyError(Exception):
    """Structured error with a machine code, context and user-facing suggestions.

    Every failure that leaves the core is a ``TidyError``.  Standard exceptions
    are wrapped with :meth:`wrap` or :meth:`from_os_error`, which keep the
    original exception as ``cause`` (and as ``__cause__`` when raised with
    ``raise ... from``).
    """

    def __init__(
        self,
        code: ErrorCode,
        message: str,
        *,
        cause: BaseException | None = None,
        context: dict[str, Any] | None = None,
        suggestions: list[str] | None = None,
    ) -> None:
        super().__init__(message)
        self.code = code
        self.message = message
        self.cause = cause
        self.context: dict[str, Any] = dict(context or {})
        self.suggestions: list[str] = list(suggestions or [])

    def __str__(self) -> str:
        text = self.message
        if self.cause is not None:
            text += f": {self.cause}"
        if self.context:
            text += " (" + ", ".join(f"{k}: {v}" for k, v in self.context.items()) + ")"
        return text

    def __repr__(self) -> str:
        return f"TidyError(code={self.code.value}, message={self.message!r})"

    def user_message(self) -> str:
        lines = [self.message]
        if self.suggestions:
            lines.append("")
            lines.append("Suggestions:")
            lines.extend(f"  • {s}" for s in self.suggestions)
        return "\n".join(lines)

    # ------------------------------------------------------------------
    # Wrapping
    # ------------------------------------------------------------------

    @classmethod
    def wrap(cls, exc: BaseException, code: ErrorCode, message: str) -> TidyError:
        if isinstance(exc, TidyError):
            return exc
        return cls(code, message, cause=exc)

    @classmethod
    def from_os_error(cls, exc: OSError, path: str, default: ErrorCode = ErrorCode.CLEAN_FAILED) -> TidyError:
        if exc.errno in (errno.EACCES, errno.EPERM):
            return cls.permission_denied(path, exc)
        if exc.errno == errno.ENOENT:
            return cls.file_not_found(path, exc)
        if exc.errno == errno.ENOSPC:
            return cls.disk_full(path, exc)
        return cls(default, f"Filesystem operation failed on {path}", cause=exc, context={"path": path})

    # ------------------------------------------------------------------
    # File operations
    # ------------------------------------------------------------------

    @classmethod
    def permission_denied(cls, path: str, cause: BaseException | None = None) -> TidyError:
        return cls(
            ErrorCode.PERMISSION_DENIED,
            f"Permission denied accessing {path}",
            cause=cause,
            context={"path": path},
            suggestions=[
                "Run with sudo if you have administrative privileges",
                "Check file/directory permissions with 'ls -l'",
                "Ensure your user has read/write access to this location",
            ],
        )

    @classmethod
    def file_not_found(cls, path: str, cause: BaseException | None = None) -> TidyError:
        return cls(
            ErrorCode.FILE_NOT_FOUND,
            f"File or directory not found: {path}",
            cause=cause,
            context={"path": path},
            suggestions=[
                "The file may have been removed since the last scan",
                "Run 'tidyfs scan' again to refresh the results",
            ],
        )

    @classmethod
    def path_protected(cls, path: str, protected_paths: list[str]) -> TidyError:
        return cls(
            ErrorCode.PATH_PROTECTED,
            f"Cannot delete protected system path: {path}",
            context={"path": path, "protected_paths": ", ".join(protected_paths)},
            suggestions=[
                "Protected paths prevent accidental deletion of critical system files",
                "Do not point categories at system directories like /bin, /usr/bin or /etc",
                "If a system path really needs cleaning, do it manually with extreme caution",
            ],
        )

    @classmethod
    def invalid_path(cls, path: str, reason: str) -> TidyError:
        return cls(
            ErrorCode.INVALID_PATH,
            f"Invalid path: {path} ({reason})",
            context={"path": path, "reason": reason},
            suggestions=[
                "Ensure the path does not contain traversal components (..)",
                "Use absolute paths when possible",
            ],
        )

    @classmethod
    def disk_full(cls, path: str, cause: BaseException | None = None) -> TidyError:
        return cls(
            ErrorCode.DISK_FULL,
            f"No space left on device while writing {path}",
            cause=cause,
            context={"path": path},
            suggestions=["Free some space on the target filesystem and retry"],
        )

    # ------------------------------------------------------------------
    # Manifests
    # ------------------------------------------------------------------

    @classmethod
    def backup_failed(cls, category: str, cause: BaseException | None = None) -> TidyError:
        return cls(
            ErrorCode.BACKUP_FAILED,
            f"Failed to write deletion manifest for category '{category}'",
            cause=cause,
            context={"category": category},
            suggestions=[
                "Check free space and write permissions under ~/.local/share/tidyfs/backups",
                "Disable safe_mode to clean without a manifest",
            ],
        )

    @classmethod
    def backup_corrupted(cls, path: str, cause: BaseException | None = None) -> TidyError:
        return cls(
            ErrorCode.BACKUP_CORRUPTED,
            f"Manifest is unreadable: {path}",
            cause=cause,
            context={"path": path},
        )

    @classmethod
    def restore_failed(cls, path: str) -> TidyError:
        return cls(
            ErrorCode.RESTORE_FAILED,
            f"Cannot restore from {path}",
            context={"path": path},
            suggestions=["Manifests only record what was deleted; file contents are not kept"],
        )

    # ------------------------------------------------------------------
    # Scanning
    # ------------------------------------------------------------------

    @classmethod
    def scan_cancelled(cls, files_scanned: int = 0, bytes_scanned: int = 0) -> TidyError:
        return cls(
            ErrorCode.SCAN_CANCELLED,
            "Operation was cancelled",
            context={"files_scanned": files_scanned, "bytes_scanned": bytes_scanned},
            suggestions=["Partial results are not saved when an operation is cancelled"],
        )

    @classmethod
    def scan_timeout(cls, timeout: float, files_scanned: int = 0) -> TidyError:
        return cls(
            ErrorCode.SCAN_TIMEOUT,
            f"Operation did not finish within {timeout:g}s",
            context={"timeout_seconds": timeout, "files_scanned": files_scanned},
            suggestions=["Use quick mode or narrow the selected categories"],
        )

    @classmethod
    def invalid_pattern(cls, pattern: str, cause: BaseException | None = None) -> TidyError:
        return cls(
            ErrorCode.INVALID_PATTERN,
            f"Invalid pattern: {pattern}",
            cause=cause,
            context={"pattern": pattern},
            suggestions=["Patterns are Python regular expressions; escape literal dots as '\\.'"],
        )

    # ------------------------------------------------------------------
    # Cleaning
    # ------------------------------------------------------------------

    @classmethod
    def clean_failed(
        cls, category: str, total_files: int, files_deleted: int, files_failed: int
    ) -> TidyError:
        return cls(
            ErrorCode.CLEAN_FAILED,
            f"Failed to clean {files_failed} out of {total_files} files in category '{category}'",
            context={
                "category": category,
                "total_files": total_files,
                "files_deleted": files_deleted,
                "files_failed": files_failed,
            },
            suggestions=[
                "Some files may be in use or locked by other processes",
                "Review the audit log at ~/.local/share/tidyfs/logs/audit.log",
            ],
        )

    @classmethod
    def safety_check_failed(cls, reason: str, category: str, size: int = 0, max_size: int = 0) -> TidyError:
        return cls(
            ErrorCode.SAFETY_CHECK_FAILED,
            f"Safety check failed: {reason}",
            context={"category": category, "size_bytes": size, "max_size_bytes": max_size},
            suggestions=[
                "Review what would be deleted with a dry run first",
                "Increase max_deletion_size_mb in the [safety] config section if this is expected",
                "Clean categories individually for better control",
            ],
        )

    @classmethod
    def size_limit_exceeded(cls, size: int, max_size: int) -> TidyError:
        return cls(
            ErrorCode.SIZE_LIMIT_EXCEEDED,
            f"Size {size} exceeds maximum allowed: {max_size}",
            context={"size_bytes": size, "max_size_bytes": max_size},
        )

    # ------------------------------------------------------------------
    # Configuration and session
    # ------------------------------------------------------------------

    @classmethod
    def config_invalid(cls, reason: str, cause: BaseException | None = None) -> TidyError:
        return cls(
            ErrorCode.CONFIG_INVALID,
            f"Invalid configuration: {reason}",
            cause=cause,
            suggestions=["Run 'tidyfs sample-config' to see a valid configuration"],
        )

    @classmethod
    def category_not_found(cls, name: str) -> TidyError:
        return cls(
            ErrorCode.CATEGORY_NOT_FOUND,
            f"Category not found: {name}",
            context={"category": name},
        )

    @classmethod
    def session_not_found(cls, path: str) -> TidyError:
        return cls(
            ErrorCode.SESSION_NOT_FOUND,
            "No scan results found",
            context={"path": path},
            suggestions=["Run 'tidyfs scan' first"],
        )

    @classmethod
    def session_corrupt(cls, path: str, cause: BaseException | None = None) -> TidyError:
        return cls(
            ErrorCode.SESSION_CORRUPT,
            "Scan results are unreadable",
            cause=cause,
            context={"path": path},
            suggestions=["Run 'tidyfs scan' again to regenerate them"],
        )
