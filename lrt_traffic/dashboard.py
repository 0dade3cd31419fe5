"""The four range controllers the operations dashboard runs side by side."""
from __future__ import annotations

import asyncio
import datetime as dt
from typing import Callable, Dict, List, Optional

from pydantic import BaseModel

from lrt_traffic.cache_store import CacheStore, build_cache_store
from lrt_traffic.config import Settings, settings as default_settings
from lrt_traffic.controller import ControllerView, RangeController
from lrt_traffic.domain import DailyPoint, RangeClass, local_now
from lrt_traffic.reconciler import reconcile
from utils.logging_utils import get_tagged_logger

logger = get_tagged_logger(__name__, tag="dashboard")


class DashboardSnapshot(BaseModel):
    """Every controller's view plus the weekly series patched with today's total."""
    controllers: Dict[RangeClass, ControllerView]
    weekly_series: List[DailyPoint]


class TrafficDashboard:
    """Owns one independent controller per range class."""

    def __init__(
        self,
        store: CacheStore,
        *,
        config: Settings | None = None,
        clock: Callable[[], dt.datetime] | None = None,
        controllers: Optional[Dict[RangeClass, RangeController]] = None,
    ) -> None:
        self.config = config or default_settings
        self.store = store
        self._clock = clock or (lambda: local_now(self.config.timezone))
        # Each controller builds its own SessionManager: tokens are not shared.
        self.controllers: Dict[RangeClass, RangeController] = controllers or {
            range_class: RangeController(range_class, store=store, config=self.config, clock=self._clock)
            for range_class in RangeClass
        }

    @classmethod
    def from_settings(cls, config: Settings | None = None) -> "TrafficDashboard":
        """Build a dashboard with the configured cache backend."""
        config = config or default_settings
        return cls(build_cache_store(config), config=config)

    def controller(self, range_class: RangeClass | str) -> RangeController:
        """Look up a controller; raises KeyError for unknown range classes."""
        try:
            return self.controllers[RangeClass(range_class)]
        except ValueError as exc:
            raise KeyError(str(range_class)) from exc

    def start(self) -> None:
        """Start every controller's timer on the running loop."""
        for controller in self.controllers.values():
            controller.start()
        logger.info("Dashboard started with %d controllers", len(self.controllers))

    async def stop(self) -> None:
        """Stop every controller."""
        await asyncio.gather(*(controller.stop() for controller in self.controllers.values()))
        logger.info("Dashboard stopped")

    def weekly_series(self) -> List[DailyPoint]:
        """Weekly chart series with its last point kept in step with the today counter."""
        week = self.controllers.get(RangeClass.WEEK)
        today = self.controllers.get(RangeClass.TODAY)
        if week is None:
            return []
        series = week.snapshot.daily_series
        if today is None or today.is_loading:
            return list(series)
        return reconcile(series, today.snapshot.total_transactions, today=self._clock().date())

    def snapshot(self) -> DashboardSnapshot:
        """Combined view for the presentation layer."""
        return DashboardSnapshot(
            controllers={range_class: c.view() for range_class, c in self.controllers.items()},
            weekly_series=self.weekly_series(),
        )
