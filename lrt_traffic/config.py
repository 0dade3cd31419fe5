"""Engine configuration pulled from environment variables via pydantic."""
from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from utils.logging_utils import get_tagged_logger
logger = get_tagged_logger(__name__, tag="config")


class Settings(BaseSettings):
    """Environment-driven configuration for the LRT traffic engine."""
    model_config = SettingsConfigDict(env_prefix="LRT_", extra="ignore")

    api_base_url: str = "http://localhost:8080/lrt_api/index.php"
    login_path: str = "/login/doLogin"
    transactions_path: str = "/transaction/list_gate_out_prepaid_trx"
    rqid: str = ""
    username: str = ""
    password: str = ""
    client_type: str = "web"
    page_size: int = 100000  # one full day of exits fits in a single page
    request_timeout_seconds: float = 30.0
    refresh_interval_seconds: float = 15.0
    timezone: str = "Asia/Jakarta"
    cache_redis_url: str | None = None
    cache_prefix: str = ""
    api_key: str | None = None

    @field_validator("api_base_url", mode="after")
    @classmethod
    def strip_trailing_slash(cls, v: str) -> str:
        """Normalize base URLs to avoid double slashes."""
        return str(v).rstrip("/")

    @field_validator("page_size", mode="after")
    @classmethod
    def positive_page_size(cls, v: int) -> int:
        """Reject page sizes the backend cannot serve."""
        if v <= 0:
            raise ValueError("page_size must be positive")
        return v


settings = Settings()


if __name__ == "__main__":
    logger.setLevel("DEBUG")
    logger.debug(f"Loaded settings: {settings.model_dump_json(indent=4, exclude={'password'})}")
