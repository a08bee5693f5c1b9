"""Endpoint description model and the JSON loader that builds it.

A spec document looks like::

    {"endpoints": [
        {"name": "people",
         "methods": [
             {"name": "show", "http_method": "GET", "uri": "/people/:id",
              "description": "Show a person.",
              "parameters": [{"name": "id", "required": true}]}]}]}

Placeholders in ``uri`` are ``:name`` segments; every placeholder must be
declared as a parameter and is always required.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
import json
from pathlib import Path
import re
from types import MappingProxyType
from typing import Any, Iterable, Mapping

from .exceptions import InvalidEndpointError, SpecError, ValidationError

PLACEHOLDER_PATTERN = re.compile(r":([A-Za-z_][A-Za-z0-9_]*)")


class HttpVerb(str, Enum):
    GET = "GET"
    POST = "POST"
    PUT = "PUT"
    PATCH = "PATCH"
    DELETE = "DELETE"

    @classmethod
    def parse(cls, value: Any) -> "HttpVerb":
        if isinstance(value, cls):
            return value
        if not isinstance(value, str):
            raise SpecError(f"http method must be a string, got {value!r}")
        try:
            return cls(value.upper())
        except ValueError:
            raise SpecError(f"unsupported http method: {value!r}") from None


def template_placeholders(uri_template: str) -> list[str]:
    return PLACEHOLDER_PATTERN.findall(uri_template)


@dataclass(frozen=True)
class Parameter:
    name: str
    required: bool = False
    path_bound: bool = False


@dataclass(frozen=True)
class Method:
    name: str
    http_verb: HttpVerb
    uri_template: str
    parameters: tuple[Parameter, ...] = ()
    description: str = ""

    def __post_init__(self) -> None:
        declared = {param.name: param for param in self.parameters}
        for placeholder in template_placeholders(self.uri_template):
            param = declared.get(placeholder)
            if param is None or not param.path_bound:
                raise SpecError(
                    f"method {self.name!r}: uri placeholder {placeholder!r} is not a declared path parameter"
                )

    @property
    def path_parameter_names(self) -> frozenset[str]:
        return frozenset(param.name for param in self.parameters if param.path_bound)

    @property
    def required_parameters(self) -> list[Parameter]:
        return [param for param in self.parameters if param.required]

    def path_args(self, args: Mapping[str, Any]) -> dict[str, Any]:
        names = self.path_parameter_names
        return {key: value for key, value in args.items() if key in names}

    def passthrough_args(self, args: Mapping[str, Any]) -> dict[str, Any]:
        names = self.path_parameter_names
        return {key: value for key, value in args.items() if key not in names}

    def missing_parameters(self, args: Mapping[str, Any]) -> list[str]:
        return [param.name for param in self.required_parameters if param.name not in args]

    def validate_args(self, args: Mapping[str, Any]) -> None:
        missing = self.missing_parameters(args)
        if missing:
            raise ValidationError(missing, method=self.name)


@dataclass(frozen=True)
class Endpoint:
    name: str
    methods: Mapping[str, Method] = field(default_factory=dict)

    def __post_init__(self) -> None:
        object.__setattr__(self, "methods", MappingProxyType(dict(self.methods)))

    def __getitem__(self, method_name: str) -> Method:
        method = self.methods.get(method_name)
        if method is None:
            raise InvalidEndpointError(method_name, known=self.method_names)
        return method

    def __contains__(self, method_name: object) -> bool:
        return method_name in self.methods

    @property
    def method_names(self) -> list[str]:
        return list(self.methods)


def default_spec_path() -> Path:
    return Path(__file__).parent / "api_spec" / "spec.json"


def load_spec(source: str | Path | Mapping[str, Any]) -> list[Endpoint]:
    """Build endpoint definitions from a spec file path or parsed document.

    Any defect in the document raises :class:`SpecError`; nothing is
    returned for a partially valid document.
    """
    if isinstance(source, Mapping):
        document: Any = source
    else:
        path = Path(source)
        try:
            document = json.loads(path.read_text(encoding="utf-8"))
        except OSError as exc:
            raise SpecError(f"cannot read spec file {path}: {exc}") from exc
        except ValueError as exc:
            raise SpecError(f"spec file {path} is not valid JSON: {exc}") from exc

    if not isinstance(document, Mapping) or not isinstance(document.get("endpoints"), list):
        raise SpecError("spec document must be an object with an 'endpoints' list")

    endpoints: list[Endpoint] = []
    seen: set[str] = set()
    for raw_endpoint in document["endpoints"]:
        endpoint = _parse_endpoint(raw_endpoint)
        if endpoint.name in seen:
            raise SpecError(f"duplicate endpoint name: {endpoint.name!r}")
        seen.add(endpoint.name)
        endpoints.append(endpoint)
    return endpoints


def _parse_endpoint(raw: Any) -> Endpoint:
    if not isinstance(raw, Mapping):
        raise SpecError("endpoint entry must be an object")
    name = _require_string(raw, "name", "endpoint")
    raw_methods = raw.get("methods")
    if not isinstance(raw_methods, list):
        raise SpecError(f"endpoint {name!r}: 'methods' must be a list")

    methods: dict[str, Method] = {}
    for raw_method in raw_methods:
        method = _parse_method(raw_method, endpoint_name=name)
        if method.name in methods:
            raise SpecError(f"endpoint {name!r}: duplicate method name {method.name!r}")
        methods[method.name] = method
    return Endpoint(name=name, methods=methods)


def _parse_method(raw: Any, *, endpoint_name: str) -> Method:
    if not isinstance(raw, Mapping):
        raise SpecError(f"endpoint {endpoint_name!r}: method entry must be an object")
    name = _require_string(raw, "name", f"endpoint {endpoint_name!r} method")
    uri = _require_string(raw, "uri", f"method {endpoint_name}.{name}")
    verb = HttpVerb.parse(raw.get("http_method"))
    description = raw.get("description") or ""
    if not isinstance(description, str):
        raise SpecError(f"method {endpoint_name}.{name}: 'description' must be a string")

    placeholders = set(template_placeholders(uri))
    parameters = list(_parse_parameters(raw.get("parameters") or [], placeholders, f"{endpoint_name}.{name}"))
    return Method(
        name=name,
        http_verb=verb,
        uri_template=uri,
        parameters=tuple(parameters),
        description=description,
    )


def _parse_parameters(raw_params: Any, placeholders: set[str], owner: str) -> Iterable[Parameter]:
    if not isinstance(raw_params, list):
        raise SpecError(f"method {owner}: 'parameters' must be a list")
    seen: set[str] = set()
    for raw in raw_params:
        if isinstance(raw, str):
            raw = {"name": raw, "required": True}
        if not isinstance(raw, Mapping):
            raise SpecError(f"method {owner}: parameter entry must be an object or a name")
        name = _require_string(raw, "name", f"method {owner} parameter")
        if name in seen:
            raise SpecError(f"method {owner}: duplicate parameter {name!r}")
        seen.add(name)
        path_bound = name in placeholders
        required = raw.get("required", False)
        if not isinstance(required, bool):
            raise SpecError(f"method {owner}: parameter {name!r} 'required' must be a boolean")
        yield Parameter(name=name, required=required or path_bound, path_bound=path_bound)


def _require_string(raw: Mapping[str, Any], key: str, owner: str) -> str:
    value = raw.get(key)
    if not isinstance(value, str) or not value:
        raise SpecError(f"{owner}: '{key}' must be a non-empty string")
    return value
