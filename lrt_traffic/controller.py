"""Per-range-class refresh controller.

One `RangeController` exists per range class. Each owns its own session, timer
task and state; controllers share nothing but the cache store object, whose
keys are namespaced by range class.

State machine::

    idle -> authenticating -> fetching -> aggregating -> ready -> fetching ...
                  \\-> error        \\-> error

A fresh cache entry short-circuits a tick straight to ``ready``.
"""
from __future__ import annotations

import asyncio
import contextlib
import datetime as dt
import time
from enum import Enum
from typing import Callable, Optional, Tuple

from pydantic import BaseModel

from lrt_traffic import cache_policy
from lrt_traffic.aggregator import aggregate, apply_day_over_day, percentage_change, rows_until
from lrt_traffic.cache_store import CacheEntry, CacheStore
from lrt_traffic.config import Settings, settings as default_settings
from lrt_traffic.domain import RangeClass, RangeQuery, TrafficSnapshot, default_range_query, local_now
from lrt_traffic.errors import AuthenticationFailed, FetchFailed
from lrt_traffic.fetcher import FetchResult, TrafficFetcher
from lrt_traffic.session import SessionManager
from utils.logging_utils import get_tagged_logger

logger = get_tagged_logger(__name__, tag="controller")


class ControllerState(str, Enum):
    """Lifecycle of one refresh cycle."""
    IDLE = "idle"
    AUTHENTICATING = "authenticating"
    FETCHING = "fetching"
    AGGREGATING = "aggregating"
    READY = "ready"
    ERROR = "error"


class ControllerView(BaseModel):
    """What a controller exposes to the presentation layer."""
    range_class: RangeClass
    state: ControllerState
    is_loading: bool
    error: Optional[str] = None
    last_updated: Optional[float] = None
    snapshot: TrafficSnapshot


class RangeController:
    """Cache-first, fixed-interval refresher for one range class."""

    def __init__(
        self,
        range_class: RangeClass | str,
        *,
        store: CacheStore,
        session: SessionManager | None = None,
        fetcher: TrafficFetcher | None = None,
        config: Settings | None = None,
        clock: Callable[[], dt.datetime] | None = None,
        interval_seconds: float | None = None,
    ) -> None:
        self.range_class = RangeClass(range_class)
        self.config = config or default_settings
        self.store = store
        self.session = session or SessionManager(self.config, name=self.range_class.value)
        self.fetcher = fetcher or TrafficFetcher(self.config)
        self._clock = clock or (lambda: local_now(self.config.timezone))
        self.interval_seconds = self.config.refresh_interval_seconds if interval_seconds is None else interval_seconds
        self.logger = get_tagged_logger(__name__, tag=f"controller/{self.range_class.value}")

        self._pinned: Optional[RangeQuery] = None
        self._alive = True
        self._task: Optional[asyncio.Task] = None

        self.query = default_range_query(self.range_class, self._clock().date())
        self.state = ControllerState.IDLE
        self.is_loading = True
        self.error: Optional[str] = None
        self.last_updated: Optional[float] = None
        self.snapshot = TrafficSnapshot(range_class=self.range_class, start=self.query.start, end=self.query.end)
        self._resolve_initial_state()

    # ------------------------------------------------------------------
    # Cache access
    # ------------------------------------------------------------------

    def _read_cache(self, query: RangeQuery) -> Optional[CacheEntry]:
        """Read the entry for `query`, treating store errors as a miss."""
        key = cache_policy.cache_key(query)
        try:
            return self.store.get(key)
        except Exception as exc:  # pragma: no cover - defensive
            self.logger.error("Cache read failed for %s: %s", key, exc)
            return None

    def _write_cache(self, query: RangeQuery, snapshot: TrafficSnapshot) -> None:
        """Write-through; a failing store never fails the tick."""
        key = cache_policy.cache_key(query)
        try:
            self.store.put(key, snapshot)
        except Exception as exc:  # pragma: no cover - defensive
            self.logger.error("Cache write failed for %s: %s", key, exc)

    def _is_usable(self, entry: CacheEntry, query: RangeQuery, today: dt.date) -> bool:
        """Fresh per the policy table and computed for this exact window."""
        return entry.payload.covers(query) and cache_policy.is_fresh(
            entry.written_at, query, today=today, now=time.time()
        )

    def _resolve_initial_state(self) -> None:
        """Seed state from cache before any network activity."""
        entry = self._read_cache(self.query)
        if entry is None or not entry.payload.covers(self.query):
            return
        self.snapshot = entry.payload
        self.last_updated = entry.written_at
        if self._is_usable(entry, self.query, self._clock().date()):
            self.state = ControllerState.READY
            self.is_loading = False
            self.logger.info("Initialized from fresh cache entry %s", cache_policy.cache_key(self.query))
        else:
            # Stale values are shown while the first tick refreshes them.
            self.logger.info("Seeded from stale cache entry %s", cache_policy.cache_key(self.query))

    # ------------------------------------------------------------------
    # State mutation (every write checks liveness)
    # ------------------------------------------------------------------

    def _transition(self, state: ControllerState) -> bool:
        """Move to `state`; returns False if the controller was torn down."""
        if not self._alive:
            return False
        self.logger.debug("%s -> %s", self.state.value, state.value)
        self.state = state
        return True

    def _apply(self, snapshot: TrafficSnapshot, written_at: float) -> None:
        """Expose a snapshot and settle in ready."""
        if not self._alive:
            return
        self.snapshot = snapshot
        self.last_updated = written_at
        self.error = None
        self.is_loading = False
        self.state = ControllerState.READY

    def _fail(self, message: str) -> None:
        """Surface one error for this tick, keeping the values already shown."""
        if not self._alive:
            return
        self.error = message
        self.is_loading = False
        self.state = ControllerState.ERROR

    # ------------------------------------------------------------------
    # Range handling
    # ------------------------------------------------------------------

    def set_range(self, start: dt.date, end: dt.date) -> RangeQuery:
        """Pin the window (user date filter); ticks stop following the clock."""
        if end < start:
            raise ValueError(f"Window end {end} is before start {start}")
        self._pinned = RangeQuery(start=start, end=end, range_class=self.range_class)
        self.query = self._pinned
        return self.query

    def reset_range(self) -> RangeQuery:
        """Go back to the default window derived from the clock."""
        self._pinned = None
        self.query = default_range_query(self.range_class, self._clock().date())
        return self.query

    def _current_query(self, today: dt.date) -> RangeQuery:
        """Pinned window, or the default one recomputed for `today`."""
        if self._pinned is not None:
            return self._pinned
        return default_range_query(self.range_class, today)

    # ------------------------------------------------------------------
    # Refresh cycle
    # ------------------------------------------------------------------

    async def _fetch_windows(
        self, query: RangeQuery, token: str, now: dt.datetime
    ) -> Tuple[FetchResult, Optional[FetchResult]]:
        """Fetch the window and, for today/week, yesterday alongside it."""
        if not self.range_class.compares_with_yesterday:
            return await self.fetcher.fetch(query.start, query.end, token), None
        yesterday = now.date() - dt.timedelta(days=1)
        current, comparison = await asyncio.gather(
            self.fetcher.fetch(query.start, query.end, token),
            self.fetcher.fetch(yesterday, yesterday, token),
        )
        return current, comparison

    def build_snapshot(
        self,
        query: RangeQuery,
        current: FetchResult,
        comparison: Optional[FetchResult],
        now: dt.datetime,
    ) -> TrafficSnapshot:
        """Aggregate fetched rows into the snapshot this controller exposes."""
        is_today = self.range_class is RangeClass.TODAY
        result = aggregate(current.rows, query.start, query.end, include_peak_hours=is_today)

        summary = result.station_summary
        change = None
        yesterday_total = 0
        if comparison is not None:
            yesterday_total = comparison.total
            # Partial today is compared with yesterday up to the same wall-clock time.
            comparison_rows = rows_until(comparison.rows, now - dt.timedelta(days=1)) if is_today else comparison.rows
            summary = apply_day_over_day(summary, comparison_rows)
            if is_today:
                change = percentage_change(current.total, len(comparison_rows))

        return TrafficSnapshot(
            range_class=self.range_class,
            start=query.start,
            end=query.end,
            station_summary=summary,
            total_transactions=current.total,
            percentage_change=change,
            peak_hours=result.peak_hours,
            yesterday_total=yesterday_total,
            daily_series=result.daily_series,
        )

    async def tick(self) -> TrafficSnapshot:
        """Run one refresh cycle; never raises for fetch/auth failures."""
        if not self._alive:
            return self.snapshot

        now = self._clock()
        if self.range_class is RangeClass.TODAY:
            # A stale comparison is worse than a brief gap.
            self.snapshot = self.snapshot.model_copy(update={"percentage_change": None})

        query = self._current_query(now.date())
        self.query = query

        entry = self._read_cache(query)
        if entry is not None and self._is_usable(entry, query, now.date()):
            self.logger.debug("Cache hit for %s", cache_policy.cache_key(query))
            self._apply(entry.payload, entry.written_at)
            return self.snapshot

        try:
            if self.session.token is None:
                if not self._transition(ControllerState.AUTHENTICATING):
                    return self.snapshot
            token = await self.session.get_token()

            if not self._transition(ControllerState.FETCHING):
                return self.snapshot
            current, comparison = await self._fetch_windows(query, token, now)

            if not self._transition(ControllerState.AGGREGATING):
                return self.snapshot
            snapshot = self.build_snapshot(query, current, comparison, now)
            written_at = time.time()
            self._write_cache(query, snapshot)
            self._apply(snapshot, written_at)
            self.logger.info(
                "Refreshed %s..%s: %d transactions across %d stations",
                query.start, query.end, snapshot.total_transactions, len(snapshot.station_summary),
            )
        except AuthenticationFailed as exc:
            self.logger.warning("Authentication failed: %s", exc)
            self._fail(str(exc))
        except FetchFailed as exc:
            if exc.auth_expired:
                self.session.invalidate()
            self._fail(exc.message)
        except Exception as exc:
            self.logger.exception("Unexpected error during refresh")
            self._fail(f"Unexpected error: {exc}")
        return self.snapshot

    # ------------------------------------------------------------------
    # Scheduling
    # ------------------------------------------------------------------

    async def _run(self) -> None:
        """Tick immediately, then every interval until stopped."""
        while self._alive:
            await self.tick()
            await asyncio.sleep(self.interval_seconds)

    def start(self) -> asyncio.Task:
        """Create the owned timer task on the running loop."""
        if self._task is not None and not self._task.done():
            return self._task
        self._alive = True
        self._task = asyncio.get_running_loop().create_task(
            self._run(), name=f"traffic-{self.range_class.value}"
        )
        self.logger.info("Started refresh every %.0fs", self.interval_seconds)
        return self._task

    async def stop(self) -> None:
        """Tear down: later results are dropped, the timer task is cancelled."""
        self._alive = False
        task, self._task = self._task, None
        if task is not None:
            task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await task
        self.logger.info("Stopped")

    @property
    def alive(self) -> bool:
        """False once the controller has been torn down."""
        return self._alive

    def view(self) -> ControllerView:
        """Current state for the presentation layer."""
        return ControllerView(
            range_class=self.range_class,
            state=self.state,
            is_loading=self.is_loading,
            error=self.error,
            last_updated=self.last_updated,
            snapshot=self.snapshot,
        )
