"""
Service layer infrastructure shared by the listing aggregator.

Provides:
- SlidingWindowRateLimiter: Per-provider request ceilings over a trailing minute
- CacheManager: In-memory response cache with TTL
- UpstreamClient: HTTP transport with deadlines and error classification
- BackgroundWriter: Fire-and-forget jobs that can be drained

The aggregator itself lives in ``swipefeed.services.aggregator``.
"""

from swipefeed.services.errors import (
    ServiceError,
    CredentialsMissingError,
    RateLimitError,
    UpstreamError,
    UpstreamTimeoutError,
    UpstreamHTTPError,
    UpstreamBadRequestError,
    UpstreamParseError,
    PersistenceError,
    NoContentAvailableError,
)
from swipefeed.services.cache import CacheManager, CacheEntry
from swipefeed.services.rate_limiter import SlidingWindowRateLimiter, RateUsage
from swipefeed.services.client import UpstreamClient
from swipefeed.services.background import BackgroundWriter

__all__ = [
    # Errors
    "ServiceError",
    "CredentialsMissingError",
    "RateLimitError",
    "UpstreamError",
    "UpstreamTimeoutError",
    "UpstreamHTTPError",
    "UpstreamBadRequestError",
    "UpstreamParseError",
    "PersistenceError",
    "NoContentAvailableError",
    # Cache
    "CacheManager",
    "CacheEntry",
    # Rate limiting
    "SlidingWindowRateLimiter",
    "RateUsage",
    # Client
    "UpstreamClient",
    # Background
    "BackgroundWriter",
]
