"""Transport for the LRT ticketing backend and its response normalizer.

The backend answers JSON over HTTP POST and signals success in one of two legacy
ways: a numeric ``code == 0`` or a string ``sts == "S"``. `normalize_outcome`
folds both into a single tagged outcome consumed by the rest of the engine.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, Optional, Union

import requests

from lrt_traffic.config import Settings, settings as default_settings
from lrt_traffic.errors import FetchFailed
from utils.logging_utils import get_tagged_logger

logger = get_tagged_logger(__name__, tag="backend_client")

session = requests.Session()

# Backend message fragments meaning "query ran fine, nothing matched".
EMPTY_RESULT_MARKERS = ("Success list",)
AUTH_STATUS_CODES = (401, 403)


@dataclass
class BackendResponse:
    """Decoded JSON body plus the HTTP status it arrived with."""
    status_code: int
    body: Any


@dataclass
class Success:
    """Backend reported success and returned a data object."""
    data: Any


@dataclass
class EmptySuccess:
    """Backend reported a successful query with no matching rows."""


@dataclass
class Failure:
    """Anything else; `auth_expired` marks a token the caller should drop."""
    message: str
    auth_expired: bool = False
    status_code: Optional[int] = None


Outcome = Union[Success, EmptySuccess, Failure]


def _url(path: str, config: Settings) -> str:
    """Join a backend path onto the configured base URL."""
    return f"{config.api_base_url}/{path.lstrip('/')}"


def backend_message(body: Any) -> str:
    """Return the human-readable message under either legacy key."""
    if not isinstance(body, dict):
        return ""
    return str(body.get("message") or body.get("msg") or "")


def is_success(body: Any) -> bool:
    """True if the body carries either legacy success discriminant."""
    if not isinstance(body, dict):
        return False
    code = body.get("code")
    return (code == 0 and not isinstance(code, bool)) or body.get("sts") == "S"


def looks_auth_expired(message: str, status_code: Optional[int] = None) -> bool:
    """Heuristic for token expiry: 401/403, or a message about the token."""
    if status_code in AUTH_STATUS_CODES:
        return True
    lowered = (message or "").lower()
    return "token" in lowered or "401" in lowered


def normalize_outcome(body: Any, *, status_code: int = 200) -> Outcome:
    """Map a decoded backend response onto Success | EmptySuccess | Failure."""
    message = backend_message(body)
    if not 200 <= status_code < 300:
        return Failure(
            message=f"Backend request failed with status {status_code}" + (f": {message}" if message else ""),
            auth_expired=looks_auth_expired(message, status_code),
            status_code=status_code,
        )
    if not isinstance(body, dict):
        return Failure(message="Unrecognized backend payload", status_code=status_code)

    if is_success(body) and body.get("data"):
        return Success(data=body["data"])

    if any(marker in str(body.get("msg") or "") for marker in EMPTY_RESULT_MARKERS) or "Success" in str(
        body.get("message") or ""
    ):
        return EmptySuccess()

    if not message:
        message = f"API Error: code {body.get('code')}"
    return Failure(message=message, auth_expired=looks_auth_expired(message), status_code=status_code)


def post_json(
    path: str,
    payload: Dict[str, Any],
    *,
    token: Optional[str] = None,
    config: Settings | None = None,
) -> BackendResponse:
    """POST a JSON body and return the decoded response.

    Blocking; callers on the event loop wrap it in ``asyncio.to_thread``.
    Raises FetchFailed on transport errors and on non-JSON responses.
    """
    headers = {"Content-Type": "application/json"}
    if token:
        headers["Authorization"] = f"Bearer {token}"
    config = config or default_settings
    url = _url(path, config)

    try:
        resp = session.post(url, json=payload, headers=headers, timeout=config.request_timeout_seconds)
    except requests.exceptions.RequestException as exc:
        logger.warning("Backend POST %s failed: %s", path, exc)
        raise FetchFailed(f"Backend unreachable: {exc}") from exc

    content_type = (resp.headers or {}).get("Content-Type", "")
    if "json" not in content_type.lower():
        logger.warning(
            "Backend POST %s returned non-JSON content (status=%s, content_type=%r): %s",
            path, resp.status_code, content_type, (resp.text or "")[:200],
        )
        raise FetchFailed(
            f"Backend returned non-JSON response with status {resp.status_code}",
            auth_expired=resp.status_code in AUTH_STATUS_CODES,
            status_code=resp.status_code,
        )

    try:
        body = resp.json()
    except ValueError as exc:
        raise FetchFailed(
            f"Backend returned malformed JSON with status {resp.status_code}",
            auth_expired=resp.status_code in AUTH_STATUS_CODES,
            status_code=resp.status_code,
        ) from exc

    logger.debug("Backend POST %s -> %s", path, resp.status_code)
    return BackendResponse(status_code=resp.status_code, body=body)
