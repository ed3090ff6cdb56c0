"""FastAPI server exposing fetchListings, healthCheck and purgeExpired."""

from fastapi import FastAPI, Path, Query
from loguru import logger
from starlette.exceptions import HTTPException as StarletteHTTPException

from swipefeed.datasource.base import ListingQuery, Provider
from swipefeed.exceptions import (
    NotFoundError,
    PreconditionFailedError,
    ServiceUnavailableError,
    UpstreamFailedError,
    structured_http_exception_handler,
)
from swipefeed.services.aggregator import ListingAggregator
from swipefeed.services.errors import PersistenceError

# Terminal failure kinds; anything else is answered with a 200
FAILURE_ERRORS = {
    "precondition": PreconditionFailedError,
    "no_content": NotFoundError,
    "bad_request": UpstreamFailedError,
}


class ListingServer:
    """HTTP server in front of a ListingAggregator."""

    def __init__(self, aggregator: ListingAggregator, expose_provenance: bool = False):
        self.aggregator = aggregator
        self.expose_provenance = expose_provenance
        self.app = FastAPI(title="swipefeed")
        self.app.add_exception_handler(
            StarletteHTTPException, structured_http_exception_handler
        )

        # Register routes
        self.app.get("/listings/{provider}")(self.fetch_listings)
        self.app.get("/health")(self.health_check)
        self.app.post("/maintenance/purge")(self.purge_expired)

    async def fetch_listings(
        self,
        provider: Provider = Path(...),
        page_size: int = Query(5, alias="pageSize", ge=1, le=100),
        offset: int = Query(1, ge=1),
        keyword: str | None = Query(None),
        genre: str | None = Query(None),
    ):
        """Serve one page of listings for ``provider``.

        Terminal failures keep the structured body but change the status:
        missing credentials 412, nothing found 404, upstream rejection 502.
        """
        query = ListingQuery(
            page_size=page_size,
            offset=offset,
            keyword=keyword or None,
            genre=genre or None,
        )
        result = await self.aggregator.fetch_listings(provider, query)
        payload = result.to_payload(self.expose_provenance)

        error_cls = FAILURE_ERRORS.get(result.failure or "")
        if error_cls is not None:
            logger.info(f"[API] {provider.value} {result.failure}: {result.error}")
            raise error_cls(payload)
        return payload

    async def health_check(self):
        """Health check endpoint."""
        return await self.aggregator.health_check()

    async def purge_expired(self):
        """Delete listings past the retention period."""
        try:
            return await self.aggregator.purge_expired()
        except PersistenceError as e:
            logger.error(f"[API] Purge failed: {e}")
            raise ServiceUnavailableError(str(e)) from e


def create_app(aggregator: ListingAggregator, expose_provenance: bool = False) -> FastAPI:
    """Create the FastAPI app.

    Args:
        aggregator: ListingAggregator serving the requests
        expose_provenance: Include per-field provenance in listing payloads

    Returns:
        FastAPI app
    """
    server = ListingServer(aggregator, expose_provenance)
    return server.app
