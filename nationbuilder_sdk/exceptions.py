from __future__ import annotations

from typing import Any, Iterable


class NationBuilderError(Exception):
    """Base SDK exception."""


class SpecError(NationBuilderError):
    """Raised when an endpoint description cannot be turned into a registry."""


class InvalidEndpointError(NationBuilderError, LookupError):
    """Unknown endpoint or method name."""

    def __init__(self, name: str, *, known: Iterable[str] = ()) -> None:
        self.name = name
        self.known = list(known)
        message = f"invalid endpoint or method name: {name!r}"
        if self.known:
            message += f" (valid names: {', '.join(self.known)})"
        super().__init__(message)


class ValidationError(NationBuilderError, ValueError):
    """Required call arguments are missing."""

    def __init__(self, missing: Iterable[str], *, method: str | None = None) -> None:
        self.missing = list(missing)
        self.method = method
        prefix = f"{method}: " if method else ""
        super().__init__(f"{prefix}missing required parameters: {', '.join(self.missing)}")


class MalformedResponseError(NationBuilderError):
    """A response declared JSON content but its body could not be parsed."""

    def __init__(self, message: str, *, status_code: int, body: str) -> None:
        super().__init__(message)
        self.status_code = status_code
        self.body = body


class HttpError(NationBuilderError):
    """Raised for non-success NationBuilder API responses."""

    def __init__(
        self,
        status_code: int,
        message: str,
        *,
        body: str = "",
        payload: Any | None = None,
        request_id: str | None = None,
        retry_after: int | None = None,
    ) -> None:
        super().__init__(f"HTTP {status_code}: {message}")
        self.status_code = status_code
        self.message = message
        self.body = body
        self.payload = payload
        self.request_id = request_id
        self.retry_after = retry_after


class RateLimitedError(HttpError):
    """Rate limit exceeded."""


class ClientError(HttpError):
    """Request rejected by the API."""


class ServerError(HttpError):
    """Unexpected server-side failure."""
