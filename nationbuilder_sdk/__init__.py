from .client import ClientConfig, LastResponseCache, NationBuilderClient
from .exceptions import (
    ClientError,
    HttpError,
    InvalidEndpointError,
    MalformedResponseError,
    NationBuilderError,
    RateLimitedError,
    ServerError,
    SpecError,
    ValidationError,
)
from .responses import RawResponse, ResponseKind, classify_status, decode_response
from .spec import Endpoint, HttpVerb, Method, Parameter, load_spec

__all__ = [
    "NationBuilderClient",
    "ClientConfig",
    "LastResponseCache",
    "Endpoint",
    "HttpVerb",
    "Method",
    "Parameter",
    "load_spec",
    "RawResponse",
    "ResponseKind",
    "classify_status",
    "decode_response",
    "ClientError",
    "HttpError",
    "InvalidEndpointError",
    "MalformedResponseError",
    "NationBuilderError",
    "RateLimitedError",
    "ServerError",
    "SpecError",
    "ValidationError",
]
