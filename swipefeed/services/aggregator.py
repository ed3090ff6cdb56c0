"""
Listing aggregation service.

Serves one page of listings for a provider from the cheapest tier that can
answer it, and always produces a response:

    persistent store (DUGA) -> in-memory cache -> rate check -> upstream
        -> store fallback -> placeholder items
"""

import asyncio
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Any, Literal

from loguru import logger
from pydantic import BaseModel, Field

from swipefeed.datasource.base import (
    BaseDataSource,
    ListingQuery,
    NormalizedItem,
    Provider,
)
from swipefeed.datasource.duga import DugaSource
from swipefeed.datasource.fanza import FanzaSource
from swipefeed.datastore.repositories import ListingStore
from swipefeed.services.background import BackgroundWriter
from swipefeed.services.cache import CacheManager
from swipefeed.services.client import UpstreamClient
from swipefeed.services.errors import (
    CredentialsMissingError,
    NoContentAvailableError,
    PersistenceError,
    RateLimitError,
    UpstreamBadRequestError,
    UpstreamError,
    UpstreamHTTPError,
    UpstreamTimeoutError,
)
from swipefeed.services.placeholders import demo_items
from swipefeed.services.rate_limiter import SlidingWindowRateLimiter
from swipefeed.settings import Settings, global_settings

SourceTag = Literal[
    "api",
    "memory_cache",
    "persistent_cache",
    "firestore_fallback",
    "demo",
    "error_fallback",
    "general_fallback",
]

# Extra time on top of the adapter's own HTTP timeout
FETCH_DEADLINE_MARGIN = 2.0
STORE_TIMEOUT = 5.0


class ListingResponse(BaseModel):
    """Result of fetchListings."""

    success: bool
    data: list[NormalizedItem] = Field(default_factory=list)
    source: SourceTag | None = None
    error: str | None = None
    retryable: bool = False
    # Failure kind: precondition, bad_request, no_content
    failure: str | None = Field(default=None, exclude=True)

    def to_payload(self, expose_provenance: bool = False) -> dict[str, Any]:
        """JSON body for the client; provenance is internal unless exposed."""
        exclude = None if expose_provenance else {"data": {"__all__": {"provenance"}}}
        return self.model_dump(mode="json", by_alias=True, exclude=exclude)


@dataclass
class ProviderPolicy:
    """Per-provider switches for the fetch chain."""

    # Serve from the persistent store before touching the cache or upstream
    persistent_first: bool = False
    # Return an upstream 400 to the client instead of falling back
    surface_bad_request: bool = False


DEFAULT_POLICIES = {
    Provider.FANZA: ProviderPolicy(surface_bad_request=True),
    Provider.DUGA: ProviderPolicy(persistent_first=True),
}


def is_retryable(error: Exception) -> bool:
    """Whether a client backing off and trying again could succeed."""
    if isinstance(error, (UpstreamTimeoutError, RateLimitError)):
        return True
    if isinstance(error, UpstreamHTTPError):
        code = error.status_code
        return code is None or code == 429 or code >= 500
    return False


class ListingAggregator:
    """
    Orchestrates the rate limiter, both cache tiers and the adapters.

    Nothing raised below this class reaches the caller: every path ends in a
    ListingResponse.
    """

    def __init__(
        self,
        sources: dict[Provider, BaseDataSource],
        rate_limiter: SlidingWindowRateLimiter,
        cache: CacheManager,
        store: ListingStore | None = None,
        background: BackgroundWriter | None = None,
        policies: dict[Provider, ProviderPolicy] | None = None,
        retention_days: int = 30,
        store_timeout: float = STORE_TIMEOUT,
    ):
        self.sources = sources
        self.rate_limiter = rate_limiter
        self.cache = cache
        self.store = store
        self.background = background or BackgroundWriter()
        self.policies = policies if policies is not None else dict(DEFAULT_POLICIES)
        self.retention_days = retention_days
        self.store_timeout = store_timeout

    def policy_for(self, provider: Provider) -> ProviderPolicy:
        return self.policies.get(provider, ProviderPolicy())

    async def fetch_listings(
        self, provider: Provider, query: ListingQuery
    ) -> ListingResponse:
        """Serve one page of listings for ``provider``."""
        source = self.sources.get(provider)
        if source is None:
            return ListingResponse(
                success=False,
                error=f"Provider not available: {provider.value}",
                failure="precondition",
            )

        try:
            source.require_credentials()
        except CredentialsMissingError as e:
            return ListingResponse(success=False, error=str(e), failure="precondition")

        try:
            return await self._fetch_chain(provider, source, query)
        except Exception as e:
            logger.exception(f"[Aggregator] Unexpected failure for {provider.value}: {e}")
            return await self._fallback(provider, query, e, "general_fallback")

    async def _fetch_chain(
        self, provider: Provider, source: BaseDataSource, query: ListingQuery
    ) -> ListingResponse:
        policy = self.policy_for(provider)
        keyword = query.keyword or None

        stored_matches = 0
        if policy.persistent_first:
            stored = await self._query_store(
                provider, query.page_size, query.offset - 1, keyword
            )
            stored_matches = len(stored)
            if stored_matches >= query.page_size:
                logger.info(
                    f"[Aggregator] {provider.value}: {stored_matches} items from persistent store"
                )
                return ListingResponse(success=True, data=stored, source="persistent_cache")

        cache_key = self.cache.generate_key(query.cache_params(provider))
        cached = await self.cache.get(cache_key)
        if cached is not None and stored_matches == 0:
            logger.debug(f"[Aggregator] {provider.value}: memory cache hit")
            return ListingResponse(success=True, data=cached, source="memory_cache")

        if not self.rate_limiter.can_make_request(provider.value):
            return await self._rate_limited(provider, query)

        try:
            items = await asyncio.wait_for(
                source.fetch(query), timeout=source.timeout + FETCH_DEADLINE_MARGIN
            )
        except asyncio.TimeoutError:
            error = UpstreamTimeoutError(provider.value, source.timeout)
            logger.error(f"[Aggregator] {error}")
            return await self._fallback(provider, query, error, "error_fallback")
        except UpstreamBadRequestError as e:
            if policy.surface_bad_request:
                return ListingResponse(success=False, error=str(e), failure="bad_request")
            return await self._fallback(provider, query, e, "error_fallback")
        except CredentialsMissingError as e:
            return ListingResponse(success=False, error=str(e), failure="precondition")
        except UpstreamError as e:
            logger.error(f"[Aggregator] {provider.value} upstream failed: {e}")
            return await self._fallback(provider, query, e, "error_fallback")

        self.rate_limiter.record_request(provider.value)

        if not items:
            return await self._no_upstream_items(provider, query)

        await self.cache.set(cache_key, items)
        self._persist(provider, items)
        return ListingResponse(success=True, data=items, source="api")

    async def _rate_limited(
        self, provider: Provider, query: ListingQuery
    ) -> ListingResponse:
        """Ceiling reached: stale store data if any, otherwise placeholders."""
        error = RateLimitError(provider.value, self.rate_limiter.limit_for(provider.value))
        logger.warning(f"[Aggregator] {error}, serving fallback")

        stored = await self._query_store(provider, query.page_size, 0, query.keyword or None)
        if stored:
            return ListingResponse(
                success=True, data=stored, source="firestore_fallback", retryable=True
            )
        return ListingResponse(
            success=True,
            data=demo_items(provider, query),
            source="demo",
            retryable=True,
        )

    async def _no_upstream_items(
        self, provider: Provider, query: ListingQuery
    ) -> ListingResponse:
        stored = await self._query_store(provider, query.page_size, 0, query.keyword or None)
        if stored:
            return ListingResponse(success=True, data=stored, source="firestore_fallback")

        error = NoContentAvailableError(
            f"No listings found for {provider.value}", service_id=provider.value
        )
        logger.info(f"[Aggregator] {error}")
        return ListingResponse(success=False, error=str(error), failure="no_content")

    async def _fallback(
        self,
        provider: Provider,
        query: ListingQuery,
        error: Exception,
        tag: SourceTag,
    ) -> ListingResponse:
        """Upstream failed: stale store data if any, otherwise placeholders."""
        retryable = is_retryable(error)
        stored = await self._query_store(provider, query.page_size, 0, query.keyword or None)
        if stored:
            return ListingResponse(
                success=True,
                data=stored,
                source="firestore_fallback",
                error=str(error),
                retryable=retryable,
            )
        return ListingResponse(
            success=True,
            data=demo_items(provider, query),
            source=tag,
            error=str(error),
            retryable=retryable,
        )

    async def _query_store(
        self,
        provider: Provider,
        limit: int,
        offset: int,
        keyword: str | None,
    ) -> list[NormalizedItem]:
        """Store read that degrades to an empty result."""
        if self.store is None:
            return []
        try:
            return await asyncio.wait_for(
                self.store.query(limit, offset, keyword, provider),
                timeout=self.store_timeout,
            )
        except asyncio.TimeoutError:
            logger.error(f"[Aggregator] Store query timed out after {self.store_timeout}s")
        except Exception as e:
            logger.error(f"[Aggregator] Store query failed: {e}")
        return []

    def _persist(self, provider: Provider, items: list[NormalizedItem]) -> None:
        """Queue per-item writes; the response does not wait for them."""
        if self.store is None:
            return
        error_prefix = f"{provider.value}-error-"
        to_save = [item for item in items if not item.id.startswith(error_prefix)]
        if not to_save:
            return
        store = self.store
        self.background.submit(
            f"persist {provider.value} x{len(to_save)}",
            lambda: store.upsert_many(to_save),
        )

    async def health_check(self) -> dict[str, Any]:
        """Rate limit usage per provider and persistent store status."""
        if self.store is None:
            store_status = "error"
        else:
            store_status = await self.store.status()
        return {
            "success": True,
            "timestamp": datetime.now().isoformat(),
            "rateLimit": {
                p.value: self.rate_limiter.usage(p.value).to_dict() for p in Provider
            },
            "persistentStoreStatus": store_status,
        }

    async def purge_expired(self) -> dict[str, int]:
        """Delete listings older than the retention period."""
        if self.store is None:
            raise PersistenceError("Persistent store not configured", service_id="store")
        deleted = await self.store.purge_expired(self.retention_days)
        return {"deletedCount": deleted}

    async def close(self) -> None:
        """Wait for queued writes before shutdown."""
        drained = await self.background.drain(timeout=30.0)
        if drained:
            logger.info(f"[Aggregator] Drained {drained} background writes")


def build_aggregator(
    store: ListingStore | None = None,
    client: UpstreamClient | None = None,
    settings: Settings | None = None,
) -> ListingAggregator:
    """Wire the production aggregator from settings."""
    settings = settings or global_settings
    return ListingAggregator(
        sources={
            Provider.FANZA: FanzaSource(
                api_id=settings.fanza_api_id,
                affiliate_id=settings.fanza_affiliate_id,
                timeout=settings.fanza_timeout,
                client=client,
            ),
            Provider.DUGA: DugaSource(
                app_id=settings.duga_app_id,
                agent_id=settings.duga_agent_id,
                banner_id=settings.duga_banner_id,
                timeout=settings.duga_timeout,
                client=client,
            ),
        },
        rate_limiter=SlidingWindowRateLimiter(
            {
                Provider.FANZA.value: settings.fanza_rate_limit,
                Provider.DUGA.value: settings.duga_rate_limit,
            }
        ),
        cache=CacheManager(
            prefix="listings_",
            max_size=settings.cache_max_size,
            default_ttl=timedelta(seconds=settings.cache_ttl_seconds),
        ),
        store=store,
        retention_days=settings.retention_days,
    )
