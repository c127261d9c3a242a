from __future__ import annotations

from tidyfs.models.errors import ErrorCode
from tidyfs.services.cancel import CancelToken, cancellation_error


def test_token_starts_clear_and_cancels() -> None:
    token = CancelToken()
    assert token() is False

    token.cancel()

    assert token() is True
    assert token.error(3, 30).code is ErrorCode.SCAN_CANCELLED


def test_deadline_reports_timeout() -> None:
    assert CancelToken(timeout=3600)() is False

    token = CancelToken(timeout=0)

    assert token.expired
    err = token.error(files_scanned=7)
    assert err.code is ErrorCode.SCAN_TIMEOUT


def test_explicit_cancel_wins_over_deadline() -> None:
    token = CancelToken(timeout=0)
    token.cancel()

    assert token.error().code is ErrorCode.SCAN_CANCELLED


def test_cancellation_error_for_plain_callables() -> None:
    assert cancellation_error(lambda: True, 1, 2).code is ErrorCode.SCAN_CANCELLED
    assert cancellation_error(CancelToken(timeout=0)).code is ErrorCode.SCAN_TIMEOUT
