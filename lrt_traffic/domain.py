"""Domain vocabulary for gate-exit traffic: range classes, records and summaries.

Raw backend rows become immutable `TransactionRecord` dataclasses. Everything the
engine produces (and caches) is a Pydantic model so it can be dumped to JSON and
validated back, with `date` fields round-tripping through ISO-8601 strings.
"""

from __future__ import annotations

import datetime as dt
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, List, Optional
from zoneinfo import ZoneInfo

from pydantic import BaseModel, ConfigDict, Field

from utils.logging_utils import get_tagged_logger

logger = get_tagged_logger(__name__, tag="domain")

UNKNOWN_CARD = "UNKNOWN"

# Short codes used by the backend -> labels shown on the line map.
STATION_NAMES: Dict[str, str] = {
    "PEG": "PGD",
    "BOU": "BU",
    "BOS": "BS",
    "PUL": "PLA",
    "EQS": "EQS",
    "VEL": "VLD",
}


def station_display_name(code: str) -> str:
    """Return the display label for a station code, or the code itself."""
    return STATION_NAMES.get(code, code)


def local_now(tz_name: str) -> dt.datetime:
    """Current wall-clock time in the backend's zone, without tzinfo.

    Backend timestamps carry no offset, so comparisons happen on naive values.
    """
    return dt.datetime.now(ZoneInfo(tz_name)).replace(tzinfo=None)


class RangeClass(str, Enum):
    """The four fixed query modes, each with its own cache policy."""
    TODAY = "today"
    WEEK = "week"
    MONTH = "month"
    PREVIOUS_MONTH = "previous-month"

    @property
    def compares_with_yesterday(self) -> bool:
        """True for the classes that fetch yesterday alongside the main window."""
        return self in (RangeClass.TODAY, RangeClass.WEEK)


@dataclass(frozen=True)
class TransactionRecord:
    """One gate-exit event as returned by the ticketing backend."""
    station_code: str
    card_category: str
    exit_at: Optional[dt.datetime]  # source-local wall clock, no tz conversion

    @classmethod
    def from_row(cls, row: Dict[str, Any]) -> "TransactionRecord":
        """Build a record from a raw backend row dict."""
        raw_ts = row.get("gate_out_on_dtm")
        exit_at = None
        if raw_ts:
            try:
                exit_at = dt.datetime.fromisoformat(str(raw_ts).strip())
            except ValueError:
                logger.debug("Unparseable gate_out_on_dtm %r; keeping row without timestamp", raw_ts)
        if exit_at is not None and exit_at.tzinfo is not None:
            exit_at = exit_at.replace(tzinfo=None)
        return cls(
            station_code=str(row.get("station_code_var") or ""),
            card_category=str(row.get("card_type_var") or UNKNOWN_CARD),
            exit_at=exit_at,
        )

    def to_row(self) -> Dict[str, Any]:
        """Back to the backend's wire shape."""
        return {
            "station_code_var": self.station_code,
            "card_type_var": self.card_category,
            "gate_out_on_dtm": self.exit_at.strftime("%Y-%m-%d %H:%M:%S") if self.exit_at else None,
        }


@dataclass
class RangeQuery:
    """Inclusive calendar window plus the range class that governs caching."""
    start: dt.date
    end: dt.date
    range_class: RangeClass


def default_range_query(range_class: RangeClass, today: dt.date) -> RangeQuery:
    """Derive the default window for a range class relative to `today`."""
    if range_class is RangeClass.TODAY:
        return RangeQuery(start=today, end=today, range_class=range_class)
    if range_class is RangeClass.WEEK:
        return RangeQuery(start=today - dt.timedelta(days=6), end=today, range_class=range_class)
    if range_class is RangeClass.MONTH:
        return RangeQuery(start=today.replace(day=1), end=today, range_class=range_class)
    if range_class is RangeClass.PREVIOUS_MONTH:
        last_of_previous = today.replace(day=1) - dt.timedelta(days=1)
        return RangeQuery(start=last_of_previous.replace(day=1), end=last_of_previous, range_class=range_class)
    raise ValueError(f"Unknown range class '{range_class}'")


class _StrictBaseModel(BaseModel):
    """Base model with strict extra handling."""

    model_config = ConfigDict(extra="forbid")


class StationStats(_StrictBaseModel):
    """Per-station totals for one aggregation window."""
    display_name: str = ""
    total: int = Field(default=0, ge=0)
    breakdown: Dict[str, int] = Field(default_factory=dict)
    change_vs_yesterday: Optional[float] = None


StationSummary = Dict[str, StationStats]


class DailyPoint(_StrictBaseModel):
    """One day of the passenger series."""
    label: str
    date: dt.date
    passengers: int = Field(default=0, ge=0)


class PeakHours(_StrictBaseModel):
    """Busiest and quietest (non-empty) hour of a day."""
    busiest_hour: Optional[int] = Field(default=None, ge=0, le=23)
    quietest_hour: Optional[int] = Field(default=None, ge=0, le=23)


class TrafficSnapshot(_StrictBaseModel):
    """Everything one range controller exposes, and what it caches per key."""
    range_class: RangeClass
    start: dt.date
    end: dt.date
    station_summary: Dict[str, StationStats] = Field(default_factory=dict)
    total_transactions: int = Field(default=0, ge=0)
    percentage_change: Optional[float] = None
    peak_hours: Optional[PeakHours] = None
    yesterday_total: int = Field(default=0, ge=0)
    daily_series: List[DailyPoint] = Field(default_factory=list)

    def covers(self, query: RangeQuery) -> bool:
        """True if this snapshot was computed for exactly the query's window."""
        return self.start == query.start and self.end == query.end
