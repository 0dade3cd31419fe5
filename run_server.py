import os

import uvicorn

from lrt_traffic.config import settings
from utils.logging_utils import get_tagged_logger, setup_logging

logger = get_tagged_logger(__name__, tag="server")


def check_credentials() -> None:
    """
    Warn early when the backend credentials are missing. Controlled by:
    - LRT_USERNAME / LRT_PASSWORD / LRT_RQID for the service account
    - LRT_API_BASE_URL for the ticketing backend.
    Every controller would otherwise fail its first login with a less obvious error.
    """
    missing = [name for name in ("rqid", "username", "password") if not getattr(settings, name)]
    if missing:
        logger.warning("Backend credentials not configured: %s", ", ".join(f"LRT_{m.upper()}" for m in missing))
    logger.info("Ticketing backend: %s", settings.api_base_url)


if __name__ == "__main__":
    setup_logging(level=os.getenv("LOG_LEVEL", "INFO"), job_name="lrt_dashboard")
    check_credentials()

    uvicorn.run(
        "lrt_traffic.main:app",
        host="0.0.0.0",
        port=int(os.getenv("PORT", 8000)),
        reload=False,
    )
