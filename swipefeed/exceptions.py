"""
Custom exceptions and error handlers
"""

from typing import Any

from fastapi import HTTPException, Request, status
from fastapi.exception_handlers import http_exception_handler
from fastapi.responses import JSONResponse, Response
from starlette.exceptions import HTTPException as StarletteHTTPException


class NotFoundError(HTTPException):
    """Not found error exception"""

    def __init__(self, detail: Any = "Resource not found"):
        super().__init__(status_code=status.HTTP_404_NOT_FOUND, detail=detail)


class PreconditionFailedError(HTTPException):
    """Server-side configuration is missing (e.g. provider credentials)"""

    def __init__(self, detail: Any = "Precondition failed"):
        super().__init__(
            status_code=status.HTTP_412_PRECONDITION_FAILED, detail=detail
        )


class UpstreamFailedError(HTTPException):
    """Upstream provider rejected the request"""

    def __init__(self, detail: Any = "Upstream request failed"):
        super().__init__(status_code=status.HTTP_502_BAD_GATEWAY, detail=detail)


class ServiceUnavailableError(HTTPException):
    """A backing service (the persistent store) is unavailable"""

    def __init__(self, detail: Any = "Service unavailable"):
        super().__init__(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=detail
        )


async def structured_http_exception_handler(
    request: Request, exc: StarletteHTTPException
) -> Response:
    """Send a dict ``detail`` as the whole body; anything else as usual."""
    if isinstance(exc.detail, dict):
        return JSONResponse(
            status_code=exc.status_code, content=exc.detail, headers=exc.headers
        )
    return await http_exception_handler(request, exc)
