"""Turn raw gate-out rows into station, daily and hourly summaries.

All functions are pure: no I/O, no clock reads. Station summaries are rebuilt
from scratch on every call; nothing is merged incrementally.
"""
from __future__ import annotations

import datetime as dt
from collections import defaultdict
from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Optional, Sequence

from lrt_traffic.domain import DailyPoint, PeakHours, StationStats, TransactionRecord, station_display_name

HOURS_PER_DAY = 24

# Short weekday names as the dashboard shows them (id-ID), Monday first.
WEEKDAY_LABELS = ("Sen", "Sel", "Rab", "Kam", "Jum", "Sab", "Min")


@dataclass
class Aggregate:
    """Result of one aggregation pass over a window."""
    station_summary: Dict[str, StationStats] = field(default_factory=dict)
    daily_series: List[DailyPoint] = field(default_factory=list)
    peak_hours: Optional[PeakHours] = None


def day_label(day: dt.date) -> str:
    """Short weekday plus two-digit day of month, e.g. 'Sen 06'."""
    return f"{WEEKDAY_LABELS[day.weekday()]} {day.day:02d}"


def station_totals(rows: Iterable[TransactionRecord]) -> Dict[str, StationStats]:
    """Group rows by station, then by card category within the station."""
    totals: Dict[str, int] = defaultdict(int)
    breakdowns: Dict[str, Dict[str, int]] = defaultdict(lambda: defaultdict(int))
    for row in rows:
        totals[row.station_code] += 1
        breakdowns[row.station_code][row.card_category] += 1
    return {
        station: StationStats(
            display_name=station_display_name(station),
            total=total,
            breakdown=dict(breakdowns[station]),
        )
        for station, total in totals.items()
    }


def daily_series(rows: Iterable[TransactionRecord], start: dt.date, end: dt.date) -> List[DailyPoint]:
    """One point per calendar day in `[start, end]`; days without rows are zero."""
    if end < start:
        raise ValueError(f"Window end {end} is before start {start}")
    per_day: Dict[dt.date, int] = defaultdict(int)
    for row in rows:
        if row.exit_at is not None:
            per_day[row.exit_at.date()] += 1

    points = []
    for offset in range((end - start).days + 1):
        day = start + dt.timedelta(days=offset)
        points.append(DailyPoint(label=day_label(day), date=day, passengers=per_day.get(day, 0)))
    return points


def hourly_histogram(rows: Iterable[TransactionRecord]) -> List[int]:
    """Transaction count per local hour of day (0-23)."""
    counts = [0] * HOURS_PER_DAY
    for row in rows:
        if row.exit_at is not None:
            counts[row.exit_at.hour] += 1
    return counts


def peak_hours(rows: Iterable[TransactionRecord]) -> PeakHours:
    """Busiest hour and quietest hour that still saw traffic.

    Ties go to the earliest hour. Hours with zero exits count as closed, not
    quiet, so they never win the quietest slot. Both are None without rows.
    """
    counts = hourly_histogram(rows)
    active = [(count, hour) for hour, count in enumerate(counts) if count > 0]
    if not active:
        return PeakHours()
    busiest = max(active, key=lambda item: (item[0], -item[1]))[1]
    quietest = min(active)[1]
    return PeakHours(busiest_hour=busiest, quietest_hour=quietest)


def percentage_change(current: int, previous: int) -> float:
    """Day-over-day change in percent.

    With no previous traffic the change is 100 if there is any traffic now and
    0 otherwise; this is a display convention, not a limit.
    """
    if previous > 0:
        return (current - previous) / previous * 100
    return 100.0 if current > 0 else 0.0


def rows_until(rows: Iterable[TransactionRecord], cutoff: dt.datetime) -> List[TransactionRecord]:
    """Rows whose exit time is at or before `cutoff`; rows without a time are dropped."""
    return [row for row in rows if row.exit_at is not None and row.exit_at <= cutoff]


def apply_day_over_day(
    summary: Dict[str, StationStats],
    comparison_rows: Sequence[TransactionRecord],
) -> Dict[str, StationStats]:
    """Return a copy of `summary` with each station's change vs. the comparison rows."""
    previous: Dict[str, int] = defaultdict(int)
    for row in comparison_rows:
        previous[row.station_code] += 1
    return {
        station: stats.model_copy(
            update={"change_vs_yesterday": percentage_change(stats.total, previous.get(station, 0))}
        )
        for station, stats in summary.items()
    }


def aggregate(
    rows: Sequence[TransactionRecord],
    start: dt.date,
    end: dt.date,
    *,
    include_peak_hours: bool = False,
) -> Aggregate:
    """Station summary, daily series and (optionally) peak hours for one window."""
    return Aggregate(
        station_summary=station_totals(rows),
        daily_series=daily_series(rows, start, end),
        peak_hours=peak_hours(rows) if include_peak_hours else None,
    )
