from __future__ import annotations

from datetime import datetime, timezone

import pytest

from tidyfs.models.category import Category, FileRecord
from tidyfs.models.enums import RiskLevel
from tidyfs.models.errors import ErrorCode, TidyError
from tidyfs.models.session import TOTAL_CATEGORY_NAME, SessionCache


def _record(path: str, size: int) -> FileRecord:
    return FileRecord(path=path, size=size, modified="2024-01-01T00:00:00+00:00")


def test_risk_level_parses_and_prints() -> None:
    assert RiskLevel.parse("Medium") is RiskLevel.MEDIUM
    assert str(RiskLevel.HIGH) == "High"
    assert RiskLevel.LOW.rank < RiskLevel.MEDIUM.rank < RiskLevel.HIGH.rank


def test_risk_level_rejects_unknown() -> None:
    with pytest.raises(TidyError) as exc_info:
        RiskLevel.parse("Extreme")
    assert exc_info.value.code is ErrorCode.CONFIG_INVALID


def test_admit_keeps_totals_consistent() -> None:
    category = Category("Cache", ["/tmp/cache"])
    category.admit(_record("/tmp/cache/a", 10))
    category.admit(_record("/tmp/cache/b", 5))

    assert category.size == 15
    assert category.file_count == 2
    category.validate()


def test_admit_skips_paths_already_admitted() -> None:
    category = Category("Cache", ["/tmp/cache"])

    assert category.admit(_record("/tmp/cache/a", 10)) is True
    assert category.admit(_record("/tmp/cache//a", 10)) is False
    assert category.admit(_record("/tmp/cache/./a", 10)) is False

    assert category.file_count == 1
    assert category.size == 10
    restored = Category.from_dict(category.to_dict())
    assert restored.admit(_record("/tmp/cache/a", 10)) is False


def test_fresh_copy_has_empty_accumulators() -> None:
    category = Category("Cache", ["/tmp/cache"], filters=[r"\.log$"])
    category.admit(_record("/tmp/cache/a.log", 10))

    copy = category.fresh()

    assert copy.files == []
    assert copy.size == 0
    assert copy.filters == [r"\.log$"]
    assert copy.filters is not category.filters
    assert category.file_count == 1


@pytest.mark.parametrize(
    ("category", "fragment"),
    [
        (Category("", ["/x"]), "empty name"),
        (Category("NoPaths", []), "no paths"),
        (Category("BadFilter", ["/x"], filters=["("]), "invalid filter"),
        (Category("Negative", ["/x"], min_age_days=-1), "negative"),
        (Category("Totals", ["/x"], size=10), "inconsistent totals"),
    ],
)
def test_validate_rejects_bad_categories(category: Category, fragment: str) -> None:
    with pytest.raises(TidyError) as exc_info:
        category.validate()
    assert fragment in exc_info.value.message


def test_category_dict_round_trip() -> None:
    category = Category(
        "Logs",
        ["/var/log"],
        filters=[r"\.log$"],
        risk=RiskLevel.MEDIUM,
        shred_enabled=True,
        min_age_days=7,
        selected=True,
    )
    category.admit(_record("/var/log/a.log", 42))

    payload = category.to_dict()
    assert payload["files"] == [{"path": "/var/log/a.log", "size": 42, "mod_time": "2024-01-01T00:00:00+00:00"}]
    assert Category.from_dict(payload) == category


def test_config_form_omits_accumulators() -> None:
    payload = Category("Trash", ["~/.local/share/Trash"]).to_dict(include_files=False)

    assert "files" not in payload
    assert "size" not in payload
    assert "min_age_days" not in payload


def test_session_cache_dict_round_trip() -> None:
    total = Category(TOTAL_CATEGORY_NAME, ["/tmp/a"])
    total.admit(_record("/tmp/a/x", 1))
    cache = SessionCache(
        scan_results=total,
        total_size=1,
        total_files=1,
        scanned_at=datetime(2024, 5, 1, 12, 30, 15, 123456, tzinfo=timezone.utc),
    )

    payload = cache.to_dict()

    assert payload["scanned_at"] == "2024-05-01T12:30:15.123456+00:00"
    assert SessionCache.from_dict(payload) == cache
