import os
from dataclasses import dataclass

from .utils import normalize_timezone_name


@dataclass(frozen=True)
class Config:
    database_url: str
    poll_interval_seconds: float = 5.0
    batch_size: int = 10
    max_retries: int = 3
    health_port: int = 8081
    log_format: str = "json"
    reference_timezone: str = "UTC"

    @classmethod
    def from_env(cls) -> "Config":
        database_url = os.environ.get("DATABASE_URL")
        if not database_url:
            raise RuntimeError("DATABASE_URL must be set")

        raw_timezone = os.environ.get("PAWCALM_REFERENCE_TIMEZONE", "UTC")
        reference_timezone = normalize_timezone_name(raw_timezone)
        if reference_timezone is None:
            raise RuntimeError(
                f"PAWCALM_REFERENCE_TIMEZONE is not a valid IANA timezone: {raw_timezone!r}"
            )

        return cls(
            database_url=database_url,
            poll_interval_seconds=float(os.environ.get("PAWCALM_POLL_INTERVAL", "5.0")),
            batch_size=int(os.environ.get("PAWCALM_BATCH_SIZE", "10")),
            max_retries=int(os.environ.get("PAWCALM_MAX_RETRIES", "3")),
            health_port=int(os.environ.get("PAWCALM_HEALTH_PORT", "8081")),
            log_format=os.environ.get("PAWCALM_LOG_FORMAT", "json"),
            reference_timezone=reference_timezone,
        )


def reference_timezone_from_env() -> str:
    """Reference timezone for handlers that run without a Config instance."""
    return normalize_timezone_name(os.environ.get("PAWCALM_REFERENCE_TIMEZONE")) or "UTC"
