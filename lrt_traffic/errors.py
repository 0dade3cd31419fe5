"""Error taxonomy for the traffic engine."""


class TrafficEngineError(Exception):
    """Base class for errors raised by the traffic engine."""


class AuthenticationFailed(TrafficEngineError):
    """Login call failed or returned no token."""


class FetchFailed(TrafficEngineError):
    """Traffic fetch failed; `auth_expired` tells the caller to drop the token."""

    def __init__(self, message: str, *, auth_expired: bool = False, status_code: int | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.auth_expired = auth_expired
        self.status_code = status_code


class MalformedCacheEntry(TrafficEngineError):
    """Stored cache blob could not be decoded; callers treat it as a miss."""
