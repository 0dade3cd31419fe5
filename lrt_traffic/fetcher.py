"""Fetch gate-out transactions for a date window."""
from __future__ import annotations

import asyncio
import datetime as dt
from dataclasses import dataclass, field
from typing import Any, Dict, List

from lrt_traffic import backend_client
from lrt_traffic.backend_client import EmptySuccess, Failure, Success
from lrt_traffic.config import Settings, settings as default_settings
from lrt_traffic.domain import TransactionRecord
from lrt_traffic.errors import FetchFailed
from utils.logging_utils import get_tagged_logger

logger = get_tagged_logger(__name__, tag="fetcher")


@dataclass
class FetchResult:
    """Rows plus the backend-reported total for one window.

    `raw` keeps the backend `data` object untouched (every row field) for
    callers that pass it on rather than aggregate it.
    """
    rows: List[TransactionRecord] = field(default_factory=list)
    total: int = 0
    raw: Dict[str, Any] = field(default_factory=dict)

    def as_payload(self) -> Dict[str, Any]:
        """The backend `{rows, total}` object, rebuilt from records only when absent."""
        if self.raw:
            return self.raw
        return {"rows": [row.to_row() for row in self.rows], "total": self.total}


def build_transactions_request(config: Settings, start: dt.date, end: dt.date) -> Dict[str, Any]:
    """Request body for the gate-out listing; unused filters are sent empty."""
    return {
        "rqid": config.rqid,
        "order": "DESC",
        "start_date": start.isoformat(),
        "end_date": end.isoformat(),
        "rows": str(config.page_size),
        "sort": "gate_out_on_dtm",
        "page": "1",
        "status_trx": "S",
        "card_number": "",
        "station_code": "",
        "terminal_in": "",
        "terminal_out": "",
        "card_type": "",
    }


def parse_fetch_data(data: Any) -> FetchResult:
    """Turn the backend `data` object into a FetchResult."""
    if not isinstance(data, dict):
        raise FetchFailed("Unrecognized transaction payload")
    raw_rows = data.get("rows") or []
    rows = [TransactionRecord.from_row(row) for row in raw_rows if isinstance(row, dict)]
    try:
        total = int(data.get("total", len(rows)))
    except (TypeError, ValueError):
        total = len(rows)
    return FetchResult(rows=rows, total=total, raw=data)


def fetch_transactions(config: Settings, start: dt.date, end: dt.date, token: str) -> FetchResult:
    """Blocking fetch and classification of one window."""
    response = backend_client.post_json(
        config.transactions_path, build_transactions_request(config, start, end), token=token, config=config
    )
    outcome = backend_client.normalize_outcome(response.body, status_code=response.status_code)

    if isinstance(outcome, Success):
        result = parse_fetch_data(outcome.data)
        if len(result.rows) < result.total:
            # Single page only; totals computed from rows will under-count.
            logger.warning(
                "Backend returned %d of %d rows for %s..%s (page size %d)",
                len(result.rows), result.total, start, end, config.page_size,
            )
        return result
    if isinstance(outcome, EmptySuccess):
        return FetchResult(rows=[], total=0)
    if isinstance(outcome, Failure):
        raise FetchFailed(outcome.message, auth_expired=outcome.auth_expired, status_code=outcome.status_code)
    raise FetchFailed("Unrecognized backend outcome")


class TrafficFetcher:
    """Async facade over the blocking transaction fetch."""

    def __init__(self, config: Settings | None = None) -> None:
        self.config = config or default_settings

    async def fetch(self, start: dt.date, end: dt.date, token: str) -> FetchResult:
        """Fetch rows for the inclusive window `[start, end]`."""
        logger.debug("Fetching transactions %s..%s", start, end)
        try:
            result = await asyncio.to_thread(fetch_transactions, self.config, start, end, token)
        except FetchFailed as exc:
            logger.warning(
                "Fetch %s..%s failed: %s (auth_expired=%s)", start, end, exc.message, exc.auth_expired
            )
            raise
        logger.debug("Fetched %d rows (total=%d) for %s..%s", len(result.rows), result.total, start, end)
        return result
