"""Staleness policy per range class and cache-key derivation.

The table below is plain data; stores know nothing about it. A controller asks
`cache_key()` where to look and `is_fresh()` whether what it found may be used.
"""
from __future__ import annotations

import datetime as dt
import math
from dataclasses import dataclass
from enum import Enum
from typing import Dict

from lrt_traffic.domain import RangeClass, RangeQuery

CACHE_KEY_PREFIX = "traffic"
FOREVER = math.inf


class Granularity(str, Enum):
    """Calendar period a cache key is derived from."""
    DAY = "day"
    ISO_WEEK = "iso_week"
    MONTH = "month"


@dataclass(frozen=True)
class CachePolicy:
    """Key granularity and maximum ages (seconds) for current and past periods."""
    granularity: Granularity
    current_max_age: float
    past_max_age: float


CACHE_POLICIES: Dict[RangeClass, CachePolicy] = {
    RangeClass.TODAY: CachePolicy(Granularity.DAY, current_max_age=2 * 60, past_max_age=2 * 60),
    RangeClass.WEEK: CachePolicy(Granularity.ISO_WEEK, current_max_age=60 * 60, past_max_age=FOREVER),
    RangeClass.MONTH: CachePolicy(Granularity.MONTH, current_max_age=60 * 60, past_max_age=FOREVER),
    RangeClass.PREVIOUS_MONTH: CachePolicy(Granularity.MONTH, current_max_age=60 * 60, past_max_age=FOREVER),
}


def _anchor_date(query: RangeQuery, granularity: Granularity) -> dt.date:
    """The date a window is filed under: its end for days/weeks, its start for months."""
    if granularity is Granularity.MONTH:
        return query.start
    return query.end


def period_key(day: dt.date, granularity: Granularity) -> str:
    """Calendar period label: `2025-10-07`, `2025-W41` or `2025-10`."""
    if granularity is Granularity.DAY:
        return day.isoformat()
    if granularity is Granularity.ISO_WEEK:
        iso_year, iso_week, _ = day.isocalendar()
        return f"{iso_year}-W{iso_week:02d}"
    return f"{day.year:04d}-{day.month:02d}"


def cache_key(query: RangeQuery) -> str:
    """Key of the form `traffic-<rangeClass>-<periodKey>`."""
    policy = CACHE_POLICIES[query.range_class]
    return f"{CACHE_KEY_PREFIX}-{query.range_class.value}-{period_key(_anchor_date(query, policy.granularity), policy.granularity)}"


def period_start(day: dt.date, granularity: Granularity) -> dt.date:
    """First day of the calendar period containing `day`."""
    if granularity is Granularity.DAY:
        return day
    if granularity is Granularity.ISO_WEEK:
        return day - dt.timedelta(days=day.weekday())
    return day.replace(day=1)


def is_current_period(query: RangeQuery, today: dt.date) -> bool:
    """True unless the whole window lies in periods that ended before `today`'s.

    A window reaching into the current period counts as current even when its
    key is filed under an earlier one.
    """
    policy = CACHE_POLICIES[query.range_class]
    return query.end >= period_start(today, policy.granularity)


def max_age_seconds(query: RangeQuery, today: dt.date) -> float:
    """Staleness window for the query; `math.inf` for completed periods."""
    policy = CACHE_POLICIES[query.range_class]
    return policy.current_max_age if is_current_period(query, today) else policy.past_max_age


def is_fresh(written_at: float, query: RangeQuery, *, today: dt.date, now: float) -> bool:
    """True if an entry written at `written_at` (epoch s) is still usable at `now`."""
    age = now - written_at
    if age < 0:
        # Clock went backwards; don't trust the entry.
        return False
    return age < max_age_seconds(query, today)
