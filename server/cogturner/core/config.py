import logging
import sys
from functools import lru_cache
from pathlib import Path
from typing import Literal

from pydantic_settings import BaseSettings, SettingsConfigDict

# Look for .env in project root (parent of server/)
_env_file = Path(__file__).resolve().parent.parent.parent.parent / ".env"


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=_env_file, extra="ignore")

    # Environment
    env: Literal["development", "production"] = "development"

    # Server
    port: int = 8000  # PaaS platforms set PORT env var

    # Discogs API
    discogs_token: str = ""
    discogs_api_url: str = "https://api.discogs.com"
    user_agent: str = "CogTurner/1.0"
    request_timeout_seconds: float = 15.0

    # Sampling
    sample_size: int = 20
    # Oversized page improves the odds of finding sample_size distinct artists
    search_page_size: int = 100
    sample_policy: Literal["shuffle", "first_seen"] = "shuffle"

    # Enrichment
    # "stats" uses /marketplace/stats/{id}; "listings" uses the sorted listings endpoint
    price_source: Literal["stats", "listings"] = "stats"
    enrich_pacing: Literal["chunked", "sequential"] = "chunked"
    enrich_chunk_size: int = 5
    enrich_delay_seconds: float = 1.0

    # Upstream retry on 429
    max_retries: int = 5
    backoff_base_seconds: float = 1.0
    backoff_cap_seconds: float = 10.0

    # Caches
    cache_ttl_hours: int = 24
    sample_handle_ttl_seconds: int = 600  # basic -> complete phase handoff
    serve_stale_on_error: bool = False

    # CORS - comma-separated origins or "*" for all (dev only)
    cors_origins: str = "*"

    # Rate limiting of the inbound API (disabled by default in dev, enable in prod)
    rate_limit_enabled: bool | None = None  # None = auto (disabled in dev, enabled in prod)
    records_rate_limit_per_minute: int = 30

    @property
    def is_rate_limit_enabled(self) -> bool:
        """Check if rate limiting is enabled (auto-detect based on env if not set)."""
        if self.rate_limit_enabled is not None:
            return self.rate_limit_enabled
        return self.is_production

    @property
    def is_production(self) -> bool:
        return self.env == "production"

    @property
    def cache_ttl_seconds(self) -> float:
        return self.cache_ttl_hours * 60 * 60


def validate_settings(settings: Settings) -> None:
    """Validate required settings and print helpful error messages."""
    errors = []

    if settings.is_production:
        if not settings.discogs_token:
            errors.append("DISCOGS_TOKEN must be set in production")
        if settings.cors_origins == "*":
            errors.append(
                "CORS_ORIGINS should not be '*' in production - "
                "set to your frontend domain (e.g., https://cogturner.app)"
            )
    elif not settings.discogs_token:
        logging.warning("DISCOGS_TOKEN not set - record lookups will fail with a 500")

    if settings.sample_size < 1:
        errors.append("SAMPLE_SIZE must be at least 1")
    if settings.search_page_size < settings.sample_size:
        logging.warning(
            "SEARCH_PAGE_SIZE (%d) is smaller than SAMPLE_SIZE (%d) - samples will be short",
            settings.search_page_size,
            settings.sample_size,
        )
    if settings.enrich_chunk_size < 1:
        errors.append("ENRICH_CHUNK_SIZE must be at least 1")

    if errors:
        for error in errors:
            logging.error("Configuration error: %s", error)
        sys.exit(1)


@lru_cache
def get_settings() -> Settings:
    settings = Settings()
    validate_settings(settings)
    return settings
