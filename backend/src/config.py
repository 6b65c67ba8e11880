"""
Configuration management for the FPL Round Tracker.

Loads configuration from environment variables with sensible defaults.
"""

import os
from dataclasses import dataclass, field


def _env_flag(name: str) -> bool:
    """Read an on/off flag; unset, empty, 0, false and no are off."""
    raw = os.getenv(name)
    if raw is None:
        return False
    return raw.strip().lower() not in ("", "0", "false", "no")


def _env_int(name: str, default: str) -> int:
    raw = os.getenv(name, default)
    try:
        return int(raw)
    except (TypeError, ValueError):
        return -1


@dataclass
class Config:
    """Application configuration."""

    # Environment
    environment: str = field(default_factory=lambda: os.getenv("ENVIRONMENT", "development"))

    # Supabase Configuration (state store)
    supabase_url: str = field(default_factory=lambda: os.getenv("SUPABASE_URL", ""))
    supabase_key: str = field(default_factory=lambda: os.getenv("SUPABASE_KEY", ""))
    supabase_service_key: str = field(default_factory=lambda: os.getenv("SUPABASE_SERVICE_KEY", ""))

    # Fantasy site (HTML pages and the elements JSON endpoint share one host)
    fpl_site_base_url: str = field(
        default_factory=lambda: os.getenv("FPL_SITE_BASE_URL", "http://fantasy.premierleague.com")
    )

    # Round being tracked
    current_week: int = field(default_factory=lambda: _env_int("CURRENT_WEEK", "0"))
    # Re-scrape every roster on each tick, not just when the round is first created
    force_fetch_teams: bool = field(default_factory=lambda: _env_flag("FORCE_FETCH_TEAMS"))

    # Seconds between ticks
    poll_interval: int = field(default_factory=lambda: _env_int("POLL_INTERVAL", "120"))

    # Rate Limiting
    max_requests_per_minute: int = field(default_factory=lambda: int(os.getenv("MAX_REQUESTS_PER_MINUTE", "60")))
    min_request_interval: float = field(default_factory=lambda: float(os.getenv("MIN_REQUEST_INTERVAL", "0.5")))

    # Retry Configuration
    max_retries: int = field(default_factory=lambda: int(os.getenv("MAX_RETRIES", "3")))
    retry_backoff_base: float = field(default_factory=lambda: float(os.getenv("RETRY_BACKOFF_BASE", "1.0")))
    max_retry_delay: int = field(default_factory=lambda: int(os.getenv("MAX_RETRY_DELAY", "60")))
    request_timeout: float = field(default_factory=lambda: float(os.getenv("REQUEST_TIMEOUT", "30.0")))

    # Logging
    log_level: str = field(default_factory=lambda: os.getenv("LOG_LEVEL", "INFO"))
    log_format: str = field(default_factory=lambda: os.getenv("LOG_FORMAT", "json"))  # json or text

    def validate(self):
        """Validate configuration."""
        errors = []

        if not self.supabase_url:
            errors.append("SUPABASE_URL is required")
        if not self.supabase_key:
            errors.append("SUPABASE_KEY is required")
        if self.current_week < 1:
            errors.append("CURRENT_WEEK must be a positive integer")
        if self.poll_interval < 1:
            errors.append("POLL_INTERVAL must be a positive integer")
        if self.log_format not in ("json", "text"):
            errors.append("LOG_FORMAT must be 'json' or 'text'")

        if errors:
            raise ValueError(f"Configuration errors: {', '.join(errors)}")

        return True

    def __post_init__(self):
        """Validate after initialization."""
        self.validate()
