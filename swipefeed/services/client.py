"""
UpstreamClient - Shared async HTTP transport for the provider adapters.

Responsibilities:
- One lazily created httpx.AsyncClient per process
- Per-request deadline
- Classification of failures into the service error taxonomy
"""

from typing import Any, Callable

import httpx
from loguru import logger

from swipefeed.services.errors import (
    UpstreamBadRequestError,
    UpstreamHTTPError,
    UpstreamParseError,
    UpstreamTimeoutError,
)

ErrorMessageExtractor = Callable[[httpx.Response], str | None]


class UpstreamClient:
    """
    HTTP client used by every upstream adapter.

    Usage:
        client = UpstreamClient()

        data = await client.get_json(
            service_id="fanza",
            url="https://api.dmm.com/affiliate/v3/ItemList",
            params={"hits": 5, "output": "json"},
            timeout=10.0,
        )
    """

    def __init__(
        self,
        default_timeout: float = 30.0,
        http_client: httpx.AsyncClient | None = None,
    ):
        self._default_timeout = default_timeout
        self._http_client = http_client
        self._owns_client = http_client is None

    async def _get_http_client(self) -> httpx.AsyncClient:
        """Get or create HTTP client."""
        if self._http_client is None:
            self._http_client = httpx.AsyncClient(
                timeout=httpx.Timeout(self._default_timeout),
                follow_redirects=True,
            )
        return self._http_client

    async def get_json(
        self,
        service_id: str,
        url: str,
        params: dict[str, Any] | None = None,
        timeout: float | None = None,
        error_message: ErrorMessageExtractor | None = None,
    ) -> Any:
        """
        GET ``url`` and decode the JSON body.

        Raises:
            UpstreamTimeoutError: If the deadline is exceeded
            UpstreamBadRequestError: On HTTP 400
            UpstreamHTTPError: On any other HTTP or transport failure
            UpstreamParseError: If the body is not JSON
        """
        response = await self._execute_request(
            service_id, url, params, timeout, error_message
        )
        try:
            return response.json()
        except ValueError as e:
            raise UpstreamParseError(
                f"Invalid JSON from {service_id}: {e}", service_id=service_id
            ) from e

    async def get_text(
        self,
        service_id: str,
        url: str,
        params: dict[str, Any] | None = None,
        timeout: float | None = None,
        error_message: ErrorMessageExtractor | None = None,
    ) -> str:
        """GET ``url`` and return the decoded body text."""
        response = await self._execute_request(
            service_id, url, params, timeout, error_message
        )
        return response.text

    async def _execute_request(
        self,
        service_id: str,
        url: str,
        params: dict[str, Any] | None,
        timeout: float | None,
        error_message: ErrorMessageExtractor | None,
    ) -> httpx.Response:
        """Execute the actual HTTP request."""
        client = await self._get_http_client()
        req_timeout = timeout or self._default_timeout

        try:
            response = await client.get(url, params=params, timeout=req_timeout)
            response.raise_for_status()
            return response

        except httpx.TimeoutException as e:
            raise UpstreamTimeoutError(service_id, req_timeout) from e

        except httpx.HTTPStatusError as e:
            status_code = e.response.status_code
            if status_code == 400:
                message = _safe_extract(error_message, e.response)
                logger.error(f"[{service_id}] 400 Bad Request: {message}")
                raise UpstreamBadRequestError(
                    service_id, message or "check API credentials"
                ) from e
            raise UpstreamHTTPError(
                f"HTTP {status_code}: {e.response.text[:200]}",
                service_id=service_id,
                status_code=status_code,
            ) from e

        except httpx.RequestError as e:
            raise UpstreamHTTPError(str(e), service_id=service_id) from e

    async def close(self) -> None:
        """Close the HTTP client."""
        if self._http_client and self._owns_client:
            await self._http_client.aclose()
        self._http_client = None
        logger.debug("UpstreamClient closed")

    async def __aenter__(self) -> "UpstreamClient":
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.close()


def _safe_extract(
    extractor: ErrorMessageExtractor | None, response: httpx.Response
) -> str | None:
    """Run a provider's error-body extractor without letting it raise."""
    if extractor is None:
        return None
    try:
        return extractor(response)
    except Exception as e:
        logger.debug(f"Could not extract upstream error message: {e}")
        return None


# Global client instance
_global_client: UpstreamClient | None = None


def get_upstream_client() -> UpstreamClient:
    """Get the global upstream client instance."""
    global _global_client
    if _global_client is None:
        _global_client = UpstreamClient()
    return _global_client


async def close_upstream_client() -> None:
    """Close the global upstream client."""
    global _global_client
    if _global_client:
        await _global_client.close()
        _global_client = None
