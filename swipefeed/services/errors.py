"""
Service layer exceptions.
"""


class ServiceError(Exception):
    """Base exception for service layer errors."""

    def __init__(self, message: str, service_id: str | None = None):
        self.service_id = service_id
        super().__init__(message)


class CredentialsMissingError(ServiceError):
    """Required provider credentials are missing or blank."""

    def __init__(self, service_id: str, missing: list[str]):
        self.missing = missing
        super().__init__(
            f"API credentials not configured for '{service_id}': "
            f"{', '.join(missing)}",
            service_id=service_id,
        )


class RateLimitError(ServiceError):
    """Rate limit exceeded."""

    def __init__(self, service_id: str, limit: int):
        self.limit = limit
        super().__init__(
            f"Rate limit exceeded for service '{service_id}' ({limit}/min)",
            service_id=service_id,
        )


class UpstreamError(ServiceError):
    """Upstream call failed in a way we could classify."""

    pass


class UpstreamTimeoutError(UpstreamError):
    """Request timed out."""

    def __init__(self, service_id: str, timeout: float):
        self.timeout = timeout
        super().__init__(
            f"Request to service '{service_id}' timed out after {timeout}s",
            service_id=service_id,
        )


class UpstreamHTTPError(UpstreamError):
    """Upstream answered with a non-2xx status or the transport failed."""

    def __init__(
        self, message: str, service_id: str, status_code: int | None = None
    ):
        self.status_code = status_code
        super().__init__(message, service_id=service_id)


class UpstreamBadRequestError(UpstreamHTTPError):
    """Upstream rejected the request (HTTP 400), usually bad credentials."""

    def __init__(self, service_id: str, upstream_message: str):
        self.upstream_message = upstream_message
        super().__init__(
            f"{service_id} API error: {upstream_message}",
            service_id=service_id,
            status_code=400,
        )


class UpstreamParseError(UpstreamError):
    """Upstream response had an unexpected shape."""

    pass


class PersistenceError(ServiceError):
    """Persistent store operation failed."""

    pass


class NoContentAvailableError(ServiceError):
    """No tier could produce a single item."""

    pass
