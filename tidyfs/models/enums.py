from __future__ import annotations

from enum import Enum

from tidyfs.models.errors import TidyError


class RiskLevel(str, Enum):
    LOW = "Low"
    MEDIUM = "Medium"
    HIGH = "High"

    @classmethod
    def parse(cls, value: object) -> RiskLevel:
        level = _RISK_FROM_STR.get(str(value))
        if level is None:
            raise TidyError.config_invalid(f"invalid risk level: {value}")
        return level

    @property
    def rank(self) -> int:
        return _RISK_RANK[self]

    def __str__(self) -> str:
        return self.value


_RISK_FROM_STR: dict[str, RiskLevel] = {level.value: level for level in RiskLevel}
_RISK_RANK: dict[RiskLevel, int] = {RiskLevel.LOW: 0, RiskLevel.MEDIUM: 1, RiskLevel.HIGH: 2}


class ScanMode(str, Enum):
    """Which categories a scan visits.

    ``QUICK`` limits the scan to selected categories and the clean to Low-risk
    files; ``DEEP`` visits every category.
    """

    QUICK = "quick"
    DEEP = "deep"

    @property
    def label(self) -> str:
        return self.value.title()
