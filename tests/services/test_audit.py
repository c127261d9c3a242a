from __future__ import annotations

import os
import re
import stat
from datetime import datetime, timezone
from pathlib import Path

import pytest

from tidyfs.models.errors import TidyError
from tidyfs.services.audit import AuditEntry, AuditLogger, NullAuditSink, open_audit_sink
from tidyfs.services.env import Environment

LINE_RE = re.compile(
    r"^\[(?P<ts>[^\]]+)\] user=(?P<user>\S+) operation=(?P<op>\S+) args=\[(?P<args>[^\]]*)\] "
    r"result=(?P<result>.+?)(?: error=(?P<error>.*))?$"
)


def _clock() -> datetime:
    return datetime(2024, 4, 2, 10, 11, 12, tzinfo=timezone.utc)


def _logger(tmp_path: Path, **env: str) -> AuditLogger:
    values = {"HOME": str(tmp_path), **env}
    return AuditLogger(str(tmp_path / "logs" / "audit.log"), env=Environment(values), clock=_clock)


def _lines(logger: AuditLogger) -> list[str]:
    return Path(logger.path).read_text(encoding="utf-8").splitlines()


def test_entries_follow_line_format(tmp_path: Path) -> None:
    with _logger(tmp_path, USER="alice") as logger:
        logger.log_clean_operation("Logs", 3, 4096)
        logger.log_package_operation("remove", ["vim", "nano"], error="exit status 1")
        logger.log_service_operation("restart", "cron.service")
        logger.log_container_operation("prune", ["images"])

    lines = _lines(logger)
    parsed = [LINE_RE.match(line) for line in lines]
    assert all(parsed)
    first, second, third, fourth = (m.groupdict() for m in parsed if m)

    assert first == {
        "ts": "2024-04-02T10:11:12+00:00",
        "user": "alice",
        "op": "clean",
        "args": "Logs",
        "result": "deleted=3 bytes=4096",
        "error": None,
    }
    assert second["op"] == "package_remove"
    assert second["args"] == "vim nano"
    assert second["result"] == "failed"
    assert second["error"] == "exit status 1"
    assert third["op"] == "service_restart"
    assert third["result"] == "success"
    assert fourth["op"] == "container_prune"


def test_user_falls_back_to_sudo_user_then_unknown(tmp_path: Path) -> None:
    with _logger(tmp_path, SUDO_USER="bob") as logger:
        logger.log(AuditEntry(operation="clean"))
    with _logger(tmp_path) as logger:
        logger.log(AuditEntry(operation="clean"))
        logger.log(AuditEntry(operation="clean", user="carol"))

    users = [LINE_RE.match(line)["user"] for line in _lines(logger)]  # type: ignore[index]
    assert users == ["bob", "unknown", "carol"]


def test_log_file_is_private_and_appended(tmp_path: Path) -> None:
    with _logger(tmp_path) as logger:
        logger.log(AuditEntry(operation="one"))
    with _logger(tmp_path) as logger:
        logger.log(AuditEntry(operation="two"))

    assert stat.S_IMODE(os.stat(logger.path).st_mode) == 0o600
    assert len(_lines(logger)) == 2


def test_undecodable_names_are_written_raw(tmp_path: Path) -> None:
    with _logger(tmp_path, USER="alice") as logger:
        logger.log_clean_operation(os.fsdecode(b"caf\xe9"), 1, 4)

    assert b"args=[caf\xe9]" in Path(logger.path).read_bytes()


def test_logging_after_close_raises(tmp_path: Path) -> None:
    logger = _logger(tmp_path)
    logger.close()
    logger.close()

    with pytest.raises(TidyError):
        logger.log(AuditEntry(operation="late"))


def test_null_sink_accepts_everything() -> None:
    with NullAuditSink() as sink:
        sink.log_clean_operation("Logs", 1, 1)


def test_open_audit_sink_falls_back_when_unwritable(tmp_path: Path) -> None:
    blocker = tmp_path / ".local"
    blocker.write_text("file in the way", encoding="utf-8")

    sink = open_audit_sink(Environment({"HOME": str(tmp_path)}), clock=_clock)

    assert isinstance(sink, NullAuditSink)
