from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
import json
from typing import Any, Union

import httpx

from .exceptions import (
    ClientError,
    HttpError,
    MalformedResponseError,
    NationBuilderError,
    RateLimitedError,
    ServerError,
)

JSON_MEDIA_TYPE = "application/json"


@dataclass(frozen=True)
class RawResponse:
    status_code: int
    headers: httpx.Headers
    body: str

    @classmethod
    def from_httpx(cls, response: httpx.Response) -> "RawResponse":
        return cls(
            status_code=response.status_code,
            headers=httpx.Headers(response.headers),
            body=response.text,
        )

    @property
    def media_type(self) -> str:
        content_type = self.headers.get("Content-Type", "")
        return content_type.split(";", 1)[0].strip().lower()


class ResponseKind(Enum):
    SUCCESS = "success"
    RATE_LIMITED = "rate_limited"
    CLIENT_ERROR = "client_error"
    SERVER_ERROR = "server_error"


def classify_status(status_code: int) -> ResponseKind:
    # 429 sits inside the 4xx range, so it has to be checked first.
    if status_code == 429:
        return ResponseKind.RATE_LIMITED
    if 400 <= status_code < 500:
        return ResponseKind.CLIENT_ERROR
    if 500 <= status_code < 600:
        return ResponseKind.SERVER_ERROR
    return ResponseKind.SUCCESS


_ERROR_TYPES: dict[ResponseKind, type[HttpError]] = {
    ResponseKind.RATE_LIMITED: RateLimitedError,
    ResponseKind.CLIENT_ERROR: ClientError,
    ResponseKind.SERVER_ERROR: ServerError,
}


def decode_response(raw: RawResponse) -> Any:
    """Return the caller-facing value of ``raw`` or raise its HTTP error.

    Successful non-JSON responses decode to ``True`` and empty JSON bodies
    to ``{}``.
    """
    kind = classify_status(raw.status_code)
    if kind is not ResponseKind.SUCCESS:
        raise _build_http_error(kind, raw)

    if raw.media_type != JSON_MEDIA_TYPE:
        return True

    body = raw.body.strip()
    if not body:
        return {}
    try:
        return json.loads(body)
    except ValueError as exc:
        raise MalformedResponseError(
            f"response declared {JSON_MEDIA_TYPE} but body is not valid JSON: {exc}",
            status_code=raw.status_code,
            body=raw.body,
        ) from exc


@dataclass(frozen=True)
class Success:
    value: Any


@dataclass(frozen=True)
class Retryable:
    error: RateLimitedError


@dataclass(frozen=True)
class Fatal:
    error: NationBuilderError


CallOutcome = Union[Success, Retryable, Fatal]


def evaluate_response(raw: RawResponse) -> CallOutcome:
    try:
        value = decode_response(raw)
    except RateLimitedError as exc:
        return Retryable(exc)
    except NationBuilderError as exc:
        return Fatal(exc)
    return Success(value)


def _build_http_error(kind: ResponseKind, raw: RawResponse) -> HttpError:
    payload: Any = None
    message = raw.body.strip() or kind.value.replace("_", " ")
    try:
        parsed = json.loads(raw.body)
    except ValueError:
        parsed = None
    if isinstance(parsed, dict):
        payload = parsed
        error_value = parsed.get("message") or parsed.get("error")
        if isinstance(error_value, str) and error_value:
            message = error_value
        elif isinstance(error_value, dict) and isinstance(error_value.get("message"), str):
            message = error_value["message"]

    return _ERROR_TYPES[kind](
        raw.status_code,
        message,
        body=raw.body,
        payload=payload,
        request_id=raw.headers.get("x-request-id"),
        retry_after=_parse_retry_after(raw.headers.get("Retry-After")),
    )


def _parse_retry_after(value: str | None) -> int | None:
    if value is None:
        return None
    try:
        return int(value)
    except ValueError:
        return None
