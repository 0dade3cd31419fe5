"""Per-controller authentication session against the ticketing backend."""
from __future__ import annotations

import asyncio
from typing import Any, Callable, Optional

from lrt_traffic import backend_client
from lrt_traffic.config import Settings, settings as default_settings
from lrt_traffic.errors import AuthenticationFailed, FetchFailed
from utils.logging_utils import get_tagged_logger, mask_secret

logger = get_tagged_logger(__name__, tag="session")


def extract_token(body: Any) -> Optional[str]:
    """Pull the token from any of the shapes the login endpoint has used."""
    if not isinstance(body, dict):
        return None
    data = body.get("data") if isinstance(body.get("data"), dict) else {}
    return data.get("token") or body.get("token") or data.get("access_token") or None


def perform_login(config: Settings) -> str:
    """Blocking login call with the fixed service credentials."""
    payload = {
        "rqid": config.rqid,
        "username": config.username,
        "password": config.password,
        "type": config.client_type,
    }
    try:
        response = backend_client.post_json(config.login_path, payload, config=config)
    except FetchFailed as exc:
        raise AuthenticationFailed(f"Login failed: {exc.message}") from exc

    if not 200 <= response.status_code < 300:
        raise AuthenticationFailed(f"Login failed with status: {response.status_code}")

    body = response.body
    if backend_client.is_success(body):
        token = extract_token(body)
        if token:
            return str(token)
    raise AuthenticationFailed(backend_client.backend_message(body) or "Login failed: No token in response")


class SessionManager:
    """Holds one bearer token; logs in lazily and at most once at a time."""

    def __init__(self, config: Settings | None = None, *, name: str = "default",
                 login: Callable[[Settings], str] | None = None) -> None:
        self.config = config or default_settings
        self.name = name
        self._login = login or perform_login
        self._token: Optional[str] = None
        self._lock = asyncio.Lock()

    @property
    def token(self) -> Optional[str]:
        """Currently held token, if any."""
        return self._token

    async def get_token(self) -> str:
        """Return the held token, logging in first if there is none."""
        if self._token:
            return self._token
        async with self._lock:
            # Another caller may have finished the login while we waited.
            if self._token:
                return self._token
            logger.info("Logging in to ticketing backend", extra={"session": self.name})
            try:
                token = await asyncio.to_thread(self._login, self.config)
            except AuthenticationFailed:
                logger.warning("Login failed", extra={"session": self.name})
                raise
            if not token:
                raise AuthenticationFailed("Login failed: No token in response")
            self._token = token
            logger.debug("Login ok, token=%s", mask_secret(token), extra={"session": self.name})
            return token

    def invalidate(self) -> None:
        """Drop the held token so the next get_token() logs in again."""
        if self._token:
            logger.info("Invalidating session token", extra={"session": self.name})
        self._token = None
