"""Overlay the live today total onto a (possibly cached) weekly series."""
from __future__ import annotations

import datetime as dt
from typing import List, Optional, Sequence

from lrt_traffic.config import settings
from lrt_traffic.domain import DailyPoint, local_now


def reconcile(series: Sequence[DailyPoint], today_total: int, today: Optional[dt.date] = None) -> List[DailyPoint]:
    """Replace today's passengers with the fresher `today_total`.

    `today` defaults to the current date in the configured backend timezone.
    Returns a new list; other entries are untouched. If no entry is dated
    `today` (including an empty, not-yet-loaded series) the series comes back
    unchanged.
    """
    if today is None:
        today = local_now(settings.timezone).date()
    return [
        point.model_copy(update={"passengers": today_total}) if point.date == today else point
        for point in series
    ]
