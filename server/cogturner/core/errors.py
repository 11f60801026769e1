"""Failure taxonomy for the record pipeline.

Everything raised by the fetch, sampling and pipeline layers derives from
``CatalogError`` so the API layer can map it to a response in one place.
Per-item enrichment catches these and degrades to absent fields instead.
"""


class CatalogError(Exception):
    """Base class for record pipeline failures."""


class ConfigError(CatalogError):
    """Required configuration is missing or invalid."""


class TokenNotConfigured(ConfigError):
    def __init__(self) -> None:
        super().__init__("Discogs token is not configured")


class UpstreamError(CatalogError):
    """Non-retryable HTTP failure from the Discogs API."""

    def __init__(self, status: int) -> None:
        self.status = status
        super().__init__(f"Discogs API error: {status}")


class RateLimitExceeded(CatalogError):
    """Still rate limited after the maximum number of retries."""

    def __init__(self, attempts: int) -> None:
        self.attempts = attempts
        super().__init__(f"Rate limit exceeded after {attempts} attempts")


class NetworkError(CatalogError):
    """Transport-level failure (DNS, connect, timeout)."""


class MalformedResponse(CatalogError):
    """Response body could not be parsed into the expected JSON shape."""


class NoResultsFound(CatalogError):
    def __init__(self, style: str) -> None:
        self.style = style
        super().__init__(f"No results found for style '{style}'")
