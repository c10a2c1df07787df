# npm_reports/models.py
from enum import Enum


class Severity(Enum):
    """Severity of an advisory, ordered from NONE (lowest) to CRITICAL."""

    NONE = "none"
    INFO = "info"
    LOW = "low"
    MODERATE = "moderate"
    HIGH = "high"
    CRITICAL = "critical"

    @property
    def rank(self) -> int:
        return _SEVERITY_RANK[self]

    def __lt__(self, other):
        if not isinstance(other, Severity):
            return NotImplemented
        return self.rank < other.rank

    def __le__(self, other):
        if not isinstance(other, Severity):
            return NotImplemented
        return self.rank <= other.rank

    def __gt__(self, other):
        if not isinstance(other, Severity):
            return NotImplemented
        return self.rank > other.rank

    def __ge__(self, other):
        if not isinstance(other, Severity):
            return NotImplemented
        return self.rank >= other.rank


# Declaration order is the severity order
_SEVERITY_RANK = {severity: index for index, severity in enumerate(Severity)}


class ReportSchema(Enum):
    """Which whole-document shape an npm audit report is decoded against."""

    V1 = 1  # npm 6 and below
    V2 = 2  # npm 7 and above

    def __str__(self) -> str:
        return f"report format {self.value}"


class IndicatedUpdateRequirement(Enum):
    """What the exit status of npm said about required updates."""

    UP_TO_DATE = "up-to-date"
    UPDATE_REQUIRED = "update-required"

    @classmethod
    def from_exit_status(cls, exit_status: int) -> "IndicatedUpdateRequirement":
        # npm audit and npm outdated both exit non-zero when they found something
        if exit_status == 0:
            return cls.UP_TO_DATE
        return cls.UPDATE_REQUIRED

    def __str__(self) -> str:
        return self.value
