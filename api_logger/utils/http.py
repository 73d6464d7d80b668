"""
api-logger: ASGI Request/Response Decoding
==========================================

What:  Turns raw ASGI scope data and body bytes into the plain values that go
       into the log record (header map, query map, decoded bodies, client IP).
How:   Header and query parsing go through Starlette's datastructures; bodies
       are decoded according to their Content-Type.

Body decoding rules (request and response alike):
    empty                                  → None
    application/json, application/*+json   → parsed JSON (text if malformed)
    application/x-www-form-urlencoded      → dict, repeated keys as lists
    text/*                                 → str
    anything else                          → raw bytes
"""

import json
from typing import Any, Dict, Iterable, Optional, Tuple, Union

from starlette.datastructures import QueryParams
from starlette.types import Scope

from api_logger.schemas.log_record import HeaderValue

# Headers that cannot be folded into one comma-joined value
_LIST_HEADERS = {"set-cookie"}


def decode_headers(raw_headers: Iterable[Tuple[bytes, bytes]]) -> Dict[str, HeaderValue]:
    """
    ASGI header pairs → {lowercase name: value}.

    Repeated headers are joined with ", ", except Set-Cookie which becomes a list.
    """
    headers: Dict[str, HeaderValue] = {}
    for raw_name, raw_value in raw_headers:
        name = raw_name.decode("latin-1").lower()
        value = raw_value.decode("latin-1")
        if name in _LIST_HEADERS:
            existing = headers.setdefault(name, [])
            existing.append(value)
        elif name in headers:
            headers[name] = f"{headers[name]}, {value}"
        else:
            headers[name] = value
    return headers


def multi_items_to_dict(items: Iterable[Tuple[str, str]]) -> Dict[str, Any]:
    """Collapse (key, value) pairs; keys seen more than once map to a list."""
    result: Dict[str, Any] = {}
    for key, value in items:
        if key not in result:
            result[key] = value
        elif isinstance(result[key], list):
            result[key].append(value)
        else:
            result[key] = [result[key], value]
    return result


def decode_query(query_string: Union[bytes, str]) -> Dict[str, Any]:
    if isinstance(query_string, bytes):
        query_string = query_string.decode("latin-1")
    return multi_items_to_dict(QueryParams(query_string).multi_items())


def original_url(scope: Scope) -> str:
    """Path as received on the wire plus the raw query string, if any."""
    raw_path = scope.get("raw_path")
    if raw_path:
        # Some servers leave the query string on raw_path
        path = raw_path.decode("latin-1").split("?", 1)[0]
    else:
        path = scope.get("path", "")
    query_string = scope.get("query_string", b"")
    if query_string:
        return f"{path}?{query_string.decode('latin-1')}"
    return path


def _media_type(content_type: Optional[HeaderValue]) -> str:
    if not content_type:
        return ""
    if isinstance(content_type, list):
        content_type = content_type[0]
    return content_type.split(";", 1)[0].strip().lower()


def decode_body(raw: bytes, content_type: Optional[HeaderValue]) -> Any:
    """Decode a complete body according to its Content-Type (see module docstring)."""
    if not raw:
        return None

    media_type = _media_type(content_type)

    if media_type == "application/json" or media_type.endswith("+json"):
        try:
            return json.loads(raw)
        except ValueError:
            return raw.decode("utf-8", errors="replace")

    if media_type == "application/x-www-form-urlencoded":
        return decode_query(raw.decode("utf-8", errors="replace"))

    if media_type.startswith("text/"):
        return raw.decode("utf-8", errors="replace")

    return raw


def client_ip(scope: Scope, headers: Dict[str, HeaderValue], trust_proxy: bool = False) -> str:
    """
    Client address for the request.

    With `trust_proxy`, the left-most X-Forwarded-For entry wins over the
    socket peer address.
    """
    if trust_proxy:
        forwarded = headers.get("x-forwarded-for")
        if isinstance(forwarded, list):
            forwarded = ", ".join(forwarded)
        if forwarded:
            first_hop = forwarded.split(",", 1)[0].strip()
            if first_hop:
                return first_hop

    client = scope.get("client")
    return client[0] if client else ""
