from __future__ import annotations

import logging
import os
import threading
from abc import ABC, abstractmethod
from dataclasses import dataclass, field, replace
from datetime import datetime
from typing import IO, override

from tidyfs.models.errors import ErrorCode, TidyError
from tidyfs.services.env import DEFAULT_ENV, Clock, Environment, system_clock

logger = logging.getLogger(__name__)


@dataclass(slots=True, frozen=True)
class AuditEntry:
    operation: str
    args: list[str] = field(default_factory=list)
    result: str = "success"
    error: str = ""
    user: str = ""
    timestamp: datetime | None = None

    def format_line(self) -> str:
        stamp = self.timestamp.isoformat(timespec="seconds") if self.timestamp else ""
        line = f"[{stamp}] user={self.user} operation={self.operation} args=[{' '.join(self.args)}] result={self.result}"
        if self.error:
            line += f" error={self.error}"
        return line + "\n"


def _error_text(error: BaseException | str | None) -> str:
    if error is None:
        return ""
    return str(error)


def _result_for(error: BaseException | str | None) -> str:
    return "failed" if error else "success"


class AuditSink(ABC):
    """Append-only record of actions that change the system.

    Subclasses implement :meth:`log` and :meth:`close`; the ``log_*_operation``
    helpers only fix the operation naming.
    """

    @abstractmethod
    def log(self, entry: AuditEntry) -> None: ...

    @abstractmethod
    def close(self) -> None: ...

    def log_package_operation(
        self, operation: str, packages: list[str], error: BaseException | str | None = None
    ) -> None:
        self.log(
            AuditEntry(
                operation=f"package_{operation}",
                args=list(packages),
                result=_result_for(error),
                error=_error_text(error),
            )
        )

    def log_service_operation(self, operation: str, unit: str, error: BaseException | str | None = None) -> None:
        self.log(
            AuditEntry(
                operation=f"service_{operation}",
                args=[unit],
                result=_result_for(error),
                error=_error_text(error),
            )
        )

    def log_container_operation(
        self, operation: str, args: list[str], error: BaseException | str | None = None
    ) -> None:
        self.log(
            AuditEntry(
                operation=f"container_{operation}",
                args=list(args),
                result=_result_for(error),
                error=_error_text(error),
            )
        )

    def log_clean_operation(
        self,
        category: str,
        files_deleted: int,
        bytes_freed: int,
        error: BaseException | str | None = None,
    ) -> None:
        self.log(
            AuditEntry(
                operation="clean",
                args=[category],
                result=f"deleted={files_deleted} bytes={bytes_freed}",
                error=_error_text(error),
            )
        )

    def __enter__(self) -> AuditSink:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()


class NullAuditSink(AuditSink):
    @override
    def log(self, entry: AuditEntry) -> None:
        return None

    @override
    def close(self) -> None:
        return None


class AuditLogger(AuditSink):
    """Line-per-entry audit file, serialised by a lock and synced per write."""

    def __init__(
        self,
        path: str,
        *,
        user: str = "",
        env: Environment = DEFAULT_ENV,
        clock: Clock = system_clock,
    ) -> None:
        self._path = path
        self._user = user
        self._env = env
        self._clock = clock
        self._lock = threading.Lock()
        self._handle: IO[str] | None = None

        directory = os.path.dirname(path)
        try:
            if directory:
                os.makedirs(directory, mode=0o700, exist_ok=True)
            fd = os.open(path, os.O_WRONLY | os.O_APPEND | os.O_CREAT, 0o600)
        except OSError as exc:
            raise TidyError.from_os_error(exc, path, ErrorCode.INVALID_PATH) from exc
        self._handle = os.fdopen(fd, "a", encoding="utf-8", errors="surrogateescape")

    @property
    def path(self) -> str:
        return self._path

    def complete(self, entry: AuditEntry) -> AuditEntry:
        """Fill in the timestamp and user when the caller left them empty."""
        return replace(
            entry,
            timestamp=entry.timestamp or self._clock(),
            user=self._env.user(entry.user or self._user),
        )

    @override
    def log(self, entry: AuditEntry) -> None:
        line = self.complete(entry).format_line()
        with self._lock:
            if self._handle is None:
                raise TidyError(ErrorCode.INVALID_PATH, f"Audit log {self._path} is closed")
            try:
                self._handle.write(line)
                self._handle.flush()
                os.fsync(self._handle.fileno())
            except OSError as exc:
                raise TidyError.from_os_error(exc, self._path, ErrorCode.INVALID_PATH) from exc
            except UnicodeError as exc:
                raise TidyError(ErrorCode.INVALID_PATH, f"Cannot encode audit entry for {self._path}", cause=exc) from exc

    @override
    def close(self) -> None:
        with self._lock:
            if self._handle is not None:
                self._handle.close()
                self._handle = None


def open_audit_logger(env: Environment = DEFAULT_ENV, clock: Clock = system_clock) -> AuditLogger:
    return AuditLogger(env.audit_log_path(), env=env, clock=clock)


def open_audit_sink(env: Environment = DEFAULT_ENV, clock: Clock = system_clock) -> AuditSink:
    """Audit logger for *env*, or a null sink when the log cannot be opened."""
    try:
        return open_audit_logger(env, clock)
    except TidyError as exc:
        logger.warning("Audit log unavailable, continuing without it: %s", exc)
        return NullAuditSink()
