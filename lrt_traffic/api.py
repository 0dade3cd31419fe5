"""HTTP API exposing dashboard traffic state and a backend proxy."""

import datetime as dt
import hmac
from typing import Optional

from fastapi import APIRouter, Depends, Header, HTTPException, Query, status
from fastapi.responses import JSONResponse

from .config import settings
from .controller import ControllerView
from .dashboard import DashboardSnapshot, TrafficDashboard
from .errors import AuthenticationFailed, FetchFailed
from .fetcher import TrafficFetcher
from .session import SessionManager
from utils.logging_utils import get_tagged_logger

logger = get_tagged_logger(__name__, tag="lrt_traffic/api")


def require_api_key(x_api_key: str | None = Header(default=None)):
    """Validate the X-API-Key header against the configured static key, if any."""
    if not settings.api_key:
        logger.debug("No API key configured; allowing all requests")
        return

    if not x_api_key:
        logger.debug("No API key provided")
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Missing API key")

    if hmac.compare_digest(str(x_api_key), str(settings.api_key)):
        return

    logger.debug("Invalid API key provided")
    raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid API key")


router = APIRouter(dependencies=[Depends(require_api_key)])
dashboard = TrafficDashboard.from_settings(settings)

# The proxy route keeps its own token, separate from the range controllers.
proxy_session = SessionManager(settings, name="proxy")
proxy_fetcher = TrafficFetcher(settings)


def _parse_date(value: str, name: str) -> dt.date:
    """Parse a YYYY-MM-DD query parameter or fail with 400."""
    try:
        return dt.date.fromisoformat(value)
    except ValueError:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f'Query parameter "{name}" must be a YYYY-MM-DD date.',
        )


@router.get("/traffic", response_model=DashboardSnapshot)
def get_dashboard() -> DashboardSnapshot:
    """All range controllers plus the reconciled weekly series."""
    return dashboard.snapshot()


@router.get("/traffic/{range_class}", response_model=ControllerView)
def get_range(range_class: str) -> ControllerView:
    """One range controller's current view."""
    try:
        controller = dashboard.controller(range_class)
    except KeyError:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=f"Unknown range class '{range_class}'")
    return controller.view()


@router.get("/traffic-data")
async def traffic_data(
    start_date: Optional[str] = Query(default=None),
    end_date: Optional[str] = Query(default=None),
):
    """Fetch raw gate-out rows for a window on behalf of the browser."""
    if not start_date or not end_date:
        return JSONResponse(
            status_code=status.HTTP_400_BAD_REQUEST,
            content={"message": 'Query parameters "start_date" and "end_date" are required.'},
        )
    start = _parse_date(start_date, "start_date")
    end = _parse_date(end_date, "end_date")
    if end < start:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="end_date is before start_date")

    try:
        token = await proxy_session.get_token()
        result = await proxy_fetcher.fetch(start, end, token)
    except AuthenticationFailed as exc:
        logger.error("Traffic proxy login failed: %s", exc)
        return JSONResponse(status_code=500, content={"sts": "E", "msg": str(exc)})
    except FetchFailed as exc:
        if exc.auth_expired:
            proxy_session.invalidate()
        logger.error("Traffic proxy fetch failed: %s", exc.message)
        return JSONResponse(status_code=500, content={"sts": "E", "msg": exc.message})

    return result.as_payload()
