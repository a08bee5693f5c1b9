from __future__ import annotations

from typing import Any, Mapping
from urllib.parse import quote

from .exceptions import ValidationError
from .spec import PLACEHOLDER_PATTERN

API_PATH_PREFIX = "/api/v1"


def build_url(base_url: str, path_template: str, args: Mapping[str, Any]) -> str:
    """Substitute ``:name`` placeholders from ``args`` and join onto ``base_url``."""
    missing = [name for name in PLACEHOLDER_PATTERN.findall(path_template) if args.get(name) is None]
    if missing:
        raise ValidationError(missing)

    path = PLACEHOLDER_PATTERN.sub(lambda match: quote(str(args[match.group(1)]), safe=""), path_template)
    if not path.startswith("/"):
        path = "/" + path
    return f"{base_url.rstrip('/')}{API_PATH_PREFIX}{path}"
