from __future__ import annotations

import threading
import time

from tidyfs.models.errors import TidyError


class CancelToken:
    """Cancellation signal shared between a caller and a long-running operation.

    Calling the token returns ``True`` once :meth:`cancel` was called or the
    optional deadline has passed, so it can be handed anywhere a
    ``CancelCheck`` is expected.
    """

    __slots__ = ("_event", "_deadline", "_timeout")

    def __init__(self, timeout: float | None = None) -> None:
        self._event = threading.Event()
        self._timeout = timeout
        self._deadline = time.monotonic() + timeout if timeout is not None else None

    def cancel(self) -> None:
        self._event.set()

    @property
    def expired(self) -> bool:
        return self._deadline is not None and time.monotonic() >= self._deadline

    @property
    def cancelled(self) -> bool:
        return self._event.is_set() or self.expired

    def __call__(self) -> bool:
        return self.cancelled

    def error(self, files_scanned: int = 0, bytes_scanned: int = 0) -> TidyError:
        if not self._event.is_set() and self.expired and self._timeout is not None:
            return TidyError.scan_timeout(self._timeout, files_scanned)
        return TidyError.scan_cancelled(files_scanned, bytes_scanned)


def cancellation_error(cancel_check: object, files_scanned: int = 0, bytes_scanned: int = 0) -> TidyError:
    if isinstance(cancel_check, CancelToken):
        return cancel_check.error(files_scanned, bytes_scanned)
    return TidyError.scan_cancelled(files_scanned, bytes_scanned)
