from __future__ import annotations

import asyncio
from contextvars import ContextVar
from dataclasses import dataclass
import itertools
import json
import logging
import sys
import threading
import time
from types import MappingProxyType
from typing import IO, Any, Iterable, Mapping
from uuid import uuid4

import httpx

from .exceptions import InvalidEndpointError, SpecError
from .responses import RawResponse, Retryable, Success, evaluate_response
from .spec import Endpoint, HttpVerb, default_spec_path, load_spec
from .url import build_url

logger = logging.getLogger(__name__)

DEFAULT_BASE_URL_TEMPLATE = "https://:nation_name.nationbuilder.com"


@dataclass(frozen=True)
class ClientConfig:
    nation_name: str
    api_key: str
    base_url_template: str = DEFAULT_BASE_URL_TEMPLATE
    max_retries: int = 8
    retry_backoff_seconds: float = 0.1
    timeout_seconds: float = 15.0
    auto_request_id: bool = True

    def __post_init__(self) -> None:
        if self.max_retries < 0:
            raise ValueError("max_retries must be >= 0")
        if self.retry_backoff_seconds < 0:
            raise ValueError("retry_backoff_seconds must be >= 0")

    @property
    def base_url(self) -> str:
        return self.base_url_template.replace(":nation_name", self.nation_name)


@dataclass(frozen=True)
class PreparedRequest:
    verb: HttpVerb
    url: str
    headers: dict[str, str]
    query: dict[str, Any]
    body: str | None = None


_last_responses: ContextVar[Mapping[int, tuple[object, RawResponse]]] = ContextVar(
    "nationbuilder_last_responses", default=MappingProxyType({})
)


def _current_owner() -> object:
    """The asyncio task running this code, else the current thread."""
    try:
        task = asyncio.current_task()
    except RuntimeError:
        task = None
    return task if task is not None else threading.current_thread()


class LastResponseCache:
    """Most recent raw response, scoped to the current thread or task.

    Entries remember the task or thread that stored them, so a child task
    or thread that inherits a copy of this context still reads ``None``
    until it makes a call of its own.
    """

    _ids = itertools.count()

    def __init__(self) -> None:
        self._key = next(self._ids)

    def set(self, response: RawResponse) -> None:
        entries = dict(_last_responses.get())
        entries[self._key] = (_current_owner(), response)
        _last_responses.set(MappingProxyType(entries))

    def get(self) -> RawResponse | None:
        entry = _last_responses.get().get(self._key)
        if entry is None:
            return None
        owner, response = entry
        if owner is not _current_owner():
            return None
        return response


class NationBuilderClient:
    def __init__(
        self,
        config: ClientConfig,
        *,
        http_client: httpx.Client | None = None,
        endpoints: Iterable[Endpoint] | None = None,
        spec_source: Any | None = None,
    ) -> None:
        self._config = config
        if endpoints is None:
            endpoints = load_spec(spec_source if spec_source is not None else default_spec_path())
        name_to_endpoint: dict[str, Endpoint] = {}
        for endpoint in endpoints:
            if endpoint.name in name_to_endpoint:
                raise SpecError(f"duplicate endpoint name: {endpoint.name!r}")
            name_to_endpoint[endpoint.name] = endpoint
        self._name_to_endpoint = MappingProxyType(name_to_endpoint)
        self._last_response = LastResponseCache()

        self._owns_http_client = http_client is None
        self._http = http_client or httpx.Client(timeout=self._config.timeout_seconds)

    def close(self) -> None:
        if self._owns_http_client:
            self._http.close()

    def __enter__(self) -> "NationBuilderClient":
        return self

    def __exit__(self, exc_type: Any, exc: Any, traceback: Any) -> None:
        self.close()

    @property
    def config(self) -> ClientConfig:
        return self._config

    @property
    def base_url(self) -> str:
        return self._config.base_url

    @property
    def endpoints(self) -> list[str]:
        return list(self._name_to_endpoint)

    def endpoint(self, name: str) -> Endpoint:
        endpoint = self._name_to_endpoint.get(name)
        if endpoint is None:
            raise InvalidEndpointError(name, known=self.endpoints)
        return endpoint

    def __getitem__(self, name: str) -> Endpoint:
        return self.endpoint(name)

    @property
    def last_response(self) -> RawResponse | None:
        """Raw response of the latest call made from this thread or task."""
        return self._last_response.get()

    def call(
        self,
        endpoint_name: str,
        method_name: str,
        args: Mapping[str, Any] | None = None,
        *,
        request_id: str | None = None,
    ) -> Any:
        args = dict(args or {})
        method = self.endpoint(endpoint_name)[method_name]
        method.validate_args(args)
        return self.raw_call(
            method.uri_template,
            method.http_verb,
            method.passthrough_args(args),
            method.path_args(args),
            request_id=request_id,
        )

    def raw_call(
        self,
        path: str,
        verb: HttpVerb | str,
        body: Mapping[str, Any] | None = None,
        args: Mapping[str, Any] | None = None,
        *,
        request_id: str | None = None,
    ) -> Any:
        request = self._prepare_request(path, HttpVerb.parse(verb), dict(body or {}), args or {}, request_id)
        logger.debug("dispatching %s %s", request.verb.value, request.url)
        return self._perform_request_with_retries(request)

    def describe(self, endpoint_name: str) -> str:
        endpoint = self.endpoint(endpoint_name)
        title = f"Endpoint: {endpoint.name}"
        lines = ["=" * len(title), title, "=" * len(title)]
        for method in endpoint.methods.values():
            lines.append("")
            lines.append(f"  Method: {method.name}")
            lines.append(f"  Description: {method.description}")
            required = [param.name for param in method.required_parameters]
            if required:
                lines.append(f"  Required parameters: {', '.join(required)}")
        return "\n".join(lines)

    def describe_all(self) -> str:
        return "\n\n".join(self.describe(name) for name in self.endpoints)

    def print_description(self, endpoint_name: str, *, file: IO[str] | None = None) -> None:
        out = file or sys.stdout
        if endpoint_name not in self._name_to_endpoint:
            print(f"Invalid endpoint name: {endpoint_name}", file=out)
            print(file=out)
            print("Valid endpoint names:", file=out)
            for name in self.endpoints:
                print(f"  {name}", file=out)
            return
        print(self.describe(endpoint_name), file=out)

    def print_all_descriptions(self, *, file: IO[str] | None = None) -> None:
        out = file or sys.stdout
        for name in self.endpoints:
            self.print_description(name, file=out)
            print(file=out)

    def _prepare_request(
        self,
        path: str,
        verb: HttpVerb,
        body: dict[str, Any],
        args: Mapping[str, Any],
        request_id: str | None,
    ) -> PreparedRequest:
        headers = {
            "Accept": "application/json",
            "Content-Type": "application/json",
        }
        normalized_request_id = self._normalize_request_id(request_id)
        if normalized_request_id is not None:
            headers["X-Request-ID"] = normalized_request_id

        query: dict[str, Any] = {"access_token": self._config.api_key}
        payload: str | None = None
        if verb is HttpVerb.GET:
            query.update(body)
        else:
            body["access_token"] = self._config.api_key
            # fire_webhooks travels in both the body and the query string.
            if body.get("fire_webhooks") is not None:
                query["fire_webhooks"] = body["fire_webhooks"]
            payload = json.dumps(body)

        return PreparedRequest(
            verb=verb,
            url=build_url(self.base_url, path, args),
            headers=headers,
            query=query,
            body=payload,
        )

    def _perform_request_with_retries(self, request: PreparedRequest) -> Any:
        attempts = self._config.max_retries + 1
        for attempt_idx in range(attempts):
            raw = self._send(request)
            outcome = evaluate_response(raw)
            if isinstance(outcome, Success):
                self._last_response.set(raw)
                return outcome.value
            if isinstance(outcome, Retryable) and attempt_idx < attempts - 1:
                self._sleep_before_retry(attempt_idx)
                continue
            # Fatal outcome, or a rate limit with no attempts left.
            self._last_response.set(raw)
            raise outcome.error

        raise RuntimeError("unreachable retry loop state")

    def _send(self, request: PreparedRequest) -> RawResponse:
        response = self._http.request(
            method=request.verb.value,
            url=request.url,
            params=request.query,
            content=request.body,
            headers=request.headers,
        )
        return RawResponse.from_httpx(response)

    def _sleep_before_retry(self, attempt_idx: int) -> None:
        backoff = self._config.retry_backoff_seconds * (2**attempt_idx)
        logger.debug("rate limited, retrying in %.3fs (attempt %d)", backoff, attempt_idx + 1)
        time.sleep(backoff)

    def _normalize_request_id(self, request_id: str | None) -> str | None:
        if request_id is not None:
            return request_id
        if self._config.auto_request_id:
            return str(uuid4())
        return None
