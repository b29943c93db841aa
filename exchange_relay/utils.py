"""Utility functions for the exchange relay."""

import json
from typing import Any, Dict, Optional, Tuple
from urllib.parse import parse_qsl, urlencode, urlsplit

from .config import ALLOWED_METHODS, DEFAULT_ALLOW_HEADERS, NO_CACHE_HEADERS, VARY_HEADER


class ValidationError(ValueError):
    """A required request field is missing or malformed."""


def cors_headers(origin: Optional[str] = None,
                 requested_headers: Optional[str] = None,
                 default_allow_headers: str = DEFAULT_ALLOW_HEADERS) -> Dict[str, str]:
    """Build the CORS and cache-suppression headers sent with every response."""
    headers = {
        "Access-Control-Allow-Origin": origin or "*",
        "Access-Control-Allow-Methods": ALLOWED_METHODS,
        "Access-Control-Allow-Headers": requested_headers or default_allow_headers,
        "Vary": VARY_HEADER,
    }
    headers.update(NO_CACHE_HEADERS)
    return headers


def split_path(raw_path: str) -> Tuple[str, str]:
    """Split a request target into (path, query string)."""
    parts = urlsplit(raw_path)
    return parts.path, parts.query


def public_query(query: str) -> Tuple[Optional[str], str]:
    """Pull `endpoint` out of a query string and re-encode the rest.

    Returns (endpoint, remaining_query). Order and blank values of the other
    parameters are preserved.
    """
    endpoint = None
    rest = []
    for key, value in parse_qsl(query, keep_blank_values=True):
        if key == "endpoint":
            if endpoint is None:
                endpoint = value
            continue
        rest.append((key, value))
    return endpoint, urlencode(rest)


def parse_json_body(raw: bytes) -> Dict[str, Any]:
    """Decode a request body into a JSON object. An empty body is {}."""
    if not raw or not raw.strip():
        return {}
    try:
        data = json.loads(raw.decode("utf-8"))
    except (UnicodeDecodeError, json.JSONDecodeError) as e:
        raise ValidationError(f"invalid JSON body: {e}")
    if not isinstance(data, dict):
        raise ValidationError("JSON body must be an object")
    return data


def require_str(data: Dict[str, Any], field: str) -> str:
    """Return data[field] if it is a non-empty string, else raise ValidationError."""
    value = data.get(field)
    if value is None or value == "":
        raise ValidationError(f"missing `{field}`")
    if not isinstance(value, str):
        raise ValidationError(f"`{field}` must be a string")
    return value


def require_endpoint(endpoint: Optional[str]) -> str:
    """Validate an upstream endpoint path."""
    if not endpoint:
        raise ValidationError("missing `endpoint`")
    if not isinstance(endpoint, str):
        raise ValidationError("`endpoint` must be a string")
    if not endpoint.startswith("/"):
        raise ValidationError("`endpoint` must start with /")
    return endpoint


def with_query(url: str, query: str) -> str:
    """Append a query string to a URL, leaving the URL bare when it is empty."""
    return f"{url}?{query}" if query else url


def json_bytes(data: Any) -> bytes:
    return json.dumps(data).encode("utf-8")
