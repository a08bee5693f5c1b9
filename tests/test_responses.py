from __future__ import annotations

import json

import httpx
import pytest

from nationbuilder_sdk.exceptions import ClientError, MalformedResponseError, RateLimitedError, ServerError
from nationbuilder_sdk.responses import (
    Fatal,
    RawResponse,
    ResponseKind,
    Retryable,
    Success,
    classify_status,
    decode_response,
    evaluate_response,
)


def _raw(status_code: int, body: str = "", content_type: str | None = "application/json") -> RawResponse:
    headers = httpx.Headers({"Content-Type": content_type} if content_type else {})
    return RawResponse(status_code=status_code, headers=headers, body=body)


@pytest.mark.parametrize(
    ("status_code", "expected"),
    [
        (200, ResponseKind.SUCCESS),
        (204, ResponseKind.SUCCESS),
        (302, ResponseKind.SUCCESS),
        (399, ResponseKind.SUCCESS),
        (400, ResponseKind.CLIENT_ERROR),
        (404, ResponseKind.CLIENT_ERROR),
        (428, ResponseKind.CLIENT_ERROR),
        (429, ResponseKind.RATE_LIMITED),
        (499, ResponseKind.CLIENT_ERROR),
        (500, ResponseKind.SERVER_ERROR),
        (599, ResponseKind.SERVER_ERROR),
        (600, ResponseKind.SUCCESS),
    ],
)
def test_classify_status(status_code: int, expected: ResponseKind) -> None:
    assert classify_status(status_code) is expected


@pytest.mark.parametrize(
    ("body", "expected"),
    [
        ("42", 42),
        ('"hello"', "hello"),
        ('{"person": {"id": 1, "tags": ["a"]}}', {"person": {"id": 1, "tags": ["a"]}}),
        ("[1, {\"a\": null}]", [1, {"a": None}]),
    ],
)
def test_decode_json_bodies(body: str, expected: object) -> None:
    assert decode_response(_raw(200, body)) == expected


def test_decode_tolerates_content_type_parameters() -> None:
    assert decode_response(_raw(200, '{"a": 1}', "Application/JSON; charset=utf-8")) == {"a": 1}


@pytest.mark.parametrize("content_type", ["text/html", "application/vnd.api+json", None])
def test_decode_non_json_content_type_returns_true(content_type: str | None) -> None:
    assert decode_response(_raw(200, '{"a": 1}', content_type)) is True


def test_decode_empty_body_returns_empty_mapping() -> None:
    assert decode_response(_raw(200, "   ")) == {}


def test_decode_malformed_json_raises() -> None:
    with pytest.raises(MalformedResponseError):
        decode_response(_raw(200, "{oops"))


def test_decode_raises_typed_errors_with_raw_body() -> None:
    with pytest.raises(ClientError) as exc_info:
        decode_response(_raw(404, '{"code": "not_found", "message": "Record not found"}'))
    assert exc_info.value.message == "Record not found"
    assert exc_info.value.body == '{"code": "not_found", "message": "Record not found"}'
    assert exc_info.value.payload == {"code": "not_found", "message": "Record not found"}

    with pytest.raises(ServerError) as server_exc:
        decode_response(_raw(502, "<html>bad gateway</html>", "text/html"))
    assert server_exc.value.body == "<html>bad gateway</html>"
    assert server_exc.value.payload is None

    with pytest.raises(RateLimitedError):
        decode_response(_raw(429, ""))


def test_evaluate_response_tags_outcomes() -> None:
    assert evaluate_response(_raw(200, '{"id": 5}')) == Success({"id": 5})
    assert isinstance(evaluate_response(_raw(429)), Retryable)
    assert isinstance(evaluate_response(_raw(404)).error, ClientError)  # type: ignore[union-attr]
    assert isinstance(evaluate_response(_raw(500)), Fatal)
    assert isinstance(evaluate_response(_raw(200, "{oops")), Fatal)


def test_raw_response_from_httpx_has_case_insensitive_headers() -> None:
    raw = RawResponse.from_httpx(httpx.Response(200, json={"ok": True}, headers={"X-Request-ID": "abc"}))
    assert raw.headers["x-request-id"] == "abc"
    assert raw.media_type == "application/json"
    assert json.loads(raw.body) == {"ok": True}
