"""
Collector configuration loaded from environment variables.

Uses Pydantic BaseSettings for automatic env var loading and validation.
All configuration values come from environment variables or .env files;
no hardcoded API keys or connection strings.

CHANGELOG:
- 2026-10-19: Add TIMEZONE and RUN_INTERVAL_S for scheduled runs
- 2026-10-19: Initial creation (STORY-001)

TODO:
- None
"""

from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from pydantic import field_validator
from pydantic_settings import BaseSettings


class CollectorSettings(BaseSettings):
    """Daily energy collector configuration.

    All values are loaded from environment variables. Required variables
    must be set; optional variables have sensible defaults.

    Attributes:
        api_key: Monitoring API key of the account.
        api_base_url: Monitoring API root URL (must be HTTPS).
        site_page_size: Number of sites requested from ``/sites/list``.
        request_timeout_s: Per-request HTTP timeout in seconds.
        site_concurrency: Maximum sites fetched at once (1 = sequential).
        mongodb_uri: MongoDB connection string.
        mongodb_database: Database holding the daily collection.
        mongodb_collection: Collection of daily aggregate documents.
        timezone: IANA timezone used to compute "yesterday". Empty means
            the host's local clock.
        run_interval_s: Seconds between scheduled runs. 0 runs once and exits.
        health_path: Health JSON file path. Empty disables the health file.
    """

    api_key: str
    api_base_url: str = "https://monitoringapi.solaredge.com"
    site_page_size: int = 5
    request_timeout_s: float = 30.0
    site_concurrency: int = 1
    mongodb_uri: str
    mongodb_database: str = "energy_data"
    mongodb_collection: str = "carbonEnergyData"
    timezone: str = ""
    run_interval_s: int = 0
    health_path: str = ""

    @field_validator("api_key")
    @classmethod
    def api_key_must_not_be_empty(cls, v: str) -> str:
        """Reject an empty or whitespace-only API key."""
        if not v.strip():
            raise ValueError("API_KEY must not be empty")
        return v

    @field_validator("api_base_url")
    @classmethod
    def api_base_url_must_be_https(cls, v: str) -> str:
        """Validate that the API base URL uses HTTPS and drop a trailing slash.

        The API key is sent as a query parameter, so plain HTTP would leak it.
        """
        if not v.lower().startswith("https://"):
            raise ValueError(
                f"API_BASE_URL must use HTTPS (got: '{v[:20]}...')"
            )
        return v.rstrip("/")

    @field_validator("mongodb_uri")
    @classmethod
    def mongodb_uri_must_have_mongo_scheme(cls, v: str) -> str:
        """Validate the MongoDB URI scheme."""
        if not v.startswith(("mongodb://", "mongodb+srv://")):
            raise ValueError("MONGODB_URI must start with mongodb:// or mongodb+srv://")
        return v

    @field_validator("site_page_size")
    @classmethod
    def site_page_size_must_be_valid(cls, v: int) -> int:
        """Validate site page size is between 1 and 100."""
        if v < 1 or v > 100:
            raise ValueError("SITE_PAGE_SIZE must be >= 1 and <= 100")
        return v

    @field_validator("request_timeout_s")
    @classmethod
    def request_timeout_must_be_positive(cls, v: float) -> float:
        """Validate request timeout is positive."""
        if v <= 0:
            raise ValueError("REQUEST_TIMEOUT_S must be > 0")
        return v

    @field_validator("site_concurrency")
    @classmethod
    def site_concurrency_must_be_valid(cls, v: int) -> int:
        """Validate site concurrency is between 1 and 32."""
        if v < 1 or v > 32:
            raise ValueError("SITE_CONCURRENCY must be >= 1 and <= 32")
        return v

    @field_validator("run_interval_s")
    @classmethod
    def run_interval_must_be_non_negative(cls, v: int) -> int:
        """Validate run interval is non-negative."""
        if v < 0:
            raise ValueError("RUN_INTERVAL_S must be >= 0")
        return v

    @field_validator("timezone")
    @classmethod
    def timezone_must_be_known(cls, v: str) -> str:
        """Validate that a non-empty timezone is a known IANA name."""
        if not v:
            return v
        try:
            ZoneInfo(v)
        except (ZoneInfoNotFoundError, ValueError) as exc:
            raise ValueError(f"TIMEZONE '{v}' is not a known IANA timezone") from exc
        return v

    model_config = {"env_file": ".env", "env_file_encoding": "utf-8"}
