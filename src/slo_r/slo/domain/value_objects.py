"""
SLO Value Objects
==================

Immutable value objects for the SLO domain.

Value objects are defined by their attributes rather than an identity.
They are immutable and can be freely shared.
"""

from datetime import timedelta
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from slo_r.config import SloScope

_MS_PER_MINUTE = 60_000

# Fixed windows; the current scope follows the selected time range.
SCOPE_WINDOWS = {
    SloScope.SEVEN_DAY: timedelta(days=7),
    SloScope.THIRTY_DAY: timedelta(days=30),
}


class TimeRange(BaseModel):
    """
    Time range selected in the dashboard.

    Either a rolling ``duration`` (milliseconds, ending now) or an absolute
    ``begin_time``/``end_time`` pair (epoch milliseconds).
    """

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    begin_time: Optional[int] = Field(default=None, alias="beginTime", ge=0)
    end_time: Optional[int] = Field(default=None, alias="endTime", ge=0)
    duration: Optional[int] = Field(default=None, gt=0)

    @model_validator(mode="after")
    def check_bounds(self) -> "TimeRange":
        if self.duration is None:
            if self.begin_time is None or self.end_time is None:
                raise ValueError("time range needs a duration or both begin_time and end_time")
            if self.end_time <= self.begin_time:
                raise ValueError("end_time must be after begin_time")
        return self

    @classmethod
    def last_minutes(cls, minutes: int) -> "TimeRange":
        return cls(duration=minutes * _MS_PER_MINUTE)

    @property
    def window_ms(self) -> int:
        if self.duration is not None:
            return self.duration
        return self.end_time - self.begin_time

    def to_nrql(self) -> str:
        """NRQL SINCE/UNTIL clause for this range."""
        if self.duration is not None:
            minutes = max(1, self.duration // _MS_PER_MINUTE)
            return f"SINCE {minutes} MINUTES AGO"
        return f"SINCE {self.begin_time} UNTIL {self.end_time}"


class ScopeWindow:
    """Maps a compliance scope onto a concrete query window."""

    @staticmethod
    def since_clause(scope: SloScope, time_range: TimeRange) -> str:
        if scope == SloScope.CURRENT:
            return time_range.to_nrql()
        return f"SINCE {SCOPE_WINDOWS[scope].days} DAYS AGO"

    @staticmethod
    def window_ms(scope: SloScope, time_range: TimeRange) -> int:
        if scope == SloScope.CURRENT:
            return time_range.window_ms
        return int(SCOPE_WINDOWS[scope].total_seconds() * 1000)


class ComplianceCalculator:
    """
    Pure functions for SLO attainment.

    Attainment is a percentage in [0, 100], rounded to three decimals.
    A window without traffic counts as fully compliant.
    """

    @staticmethod
    def error_budget_attainment(total: float, defects: float) -> float:
        """Share of transactions that were not defects."""
        if total <= 0:
            return 100.0
        defects = min(max(defects, 0), total)
        return round(100 - (defects / total * 100), 3)

    @staticmethod
    def alert_driven_attainment(window_ms: float, downtime_ms: float) -> float:
        """Share of the window during which no SLO alert was open."""
        if window_ms <= 0:
            return 100.0
        downtime_ms = min(max(downtime_ms, 0), window_ms)
        return round(100 - (downtime_ms / window_ms * 100), 3)

    @staticmethod
    def meets_target(attainment: float, target: Optional[float]) -> Optional[bool]:
        if target is None:
            return None
        return attainment >= float(target)


class RegistryConfig(BaseModel):
    """
    Entities whose SLO documents are tracked, loaded from YAML.

    This is a value object - immutable and defined by its attributes.
    """

    model_config = ConfigDict(frozen=True)

    entities: List[str] = Field(
        default_factory=list,
        description="Entity GUIDs owning SLO documents"
    )

    @field_validator("entities")
    @classmethod
    def dedupe_entities(cls, v: List[str]) -> List[str]:
        """Drop blanks and duplicates, keeping the first occurrence."""
        seen = []
        for guid in v:
            guid = str(guid).strip()
            if guid and guid not in seen:
                seen.append(guid)
        return seen
