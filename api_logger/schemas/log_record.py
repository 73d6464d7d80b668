"""
api-logger: Log Record Schemas
==============================

What:  Pydantic models for the emitted log record and the request/response
       snapshots it is assembled from.
How:   `LogRecord` is frozen and serializes with camelCase keys. Optional fields
       are only *set* when they carry a value, and `to_dict()` dumps with
       `exclude_unset=True`, so absent fields never appear as nulls.

Emitted shape (abridged):
    {
        "method": "POST",
        "url": "/orders?expand=items",
        "statusCode": 201,
        "timeTaken": 12.34,
        "requestSize": 27,
        "responseSize": 45,
        "timestamp": {"request": "2024-01-15T12:00:00.000Z",
                      "response": "2024-01-15T12:00:00.012Z"},
        "headers": {"host": "api.example.com", "content-type": "application/json"},
        "queryParams": {"expand": "items"},
        "body": {"sku": "A-1", "quantity": 2},
        "responseBody": {"id": 17, "status": "created"},
        "userAgent": "curl/8.4.0",
        "requestContentType": "application/json",
        "responseContentType": "application/json",
        "httpVersion": "1.1",
        "requestId": "a1b2c3d4",
        "hostname": "web-1"
    }
"""

from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Union

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

HeaderValue = Union[str, List[str]]


def utc_timestamp() -> str:
    """Current UTC time as ISO-8601 with millisecond precision and a `Z` suffix."""
    now = datetime.now(timezone.utc)
    return now.isoformat(timespec="milliseconds").replace("+00:00", "Z")


class Timestamp(BaseModel):
    """
    Request/response wall-clock times.

    Mutable while the request is in flight: `response` is filled in when the
    first body chunk goes out (or at completion if none ever does).
    """

    request: Optional[str] = None
    response: Optional[str] = None


class CapturedRequest(BaseModel):
    """Snapshot of the incoming request, built from the ASGI scope and body."""

    method: str
    url: str
    headers: Dict[str, HeaderValue] = Field(default_factory=dict)
    query: Dict[str, Any] = Field(default_factory=dict)
    body: Any = None
    http_version: Optional[str] = None
    client_ip: str = ""

    def header(self, name: str) -> Optional[HeaderValue]:
        return self.headers.get(name.lower())


class CapturedResponse(BaseModel):
    """Snapshot of the outgoing response as it was handed to the server."""

    status_code: int = 0
    headers: Dict[str, HeaderValue] = Field(default_factory=dict)
    raw_body: bytes = b""

    def get(self, name: str) -> Optional[HeaderValue]:
        """Case-insensitive header lookup."""
        return self.headers.get(name.lower())


class LogRecord(BaseModel):
    """The structured record emitted once per request."""

    method: str
    url: str
    status_code: int
    time_taken: float
    request_size: int
    response_size: int
    timestamp: Timestamp
    headers: Dict[str, HeaderValue]
    query_params: Dict[str, Any]

    body: Any = None
    response_body: Any = None
    ip_info: Optional[Dict[str, Any]] = None
    error: Optional[Dict[str, Any]] = None

    user_agent: Optional[HeaderValue] = None
    referer: Optional[HeaderValue] = None
    request_content_type: Optional[HeaderValue] = None
    response_content_type: Optional[HeaderValue] = None
    http_version: Optional[str] = None
    request_id: Optional[HeaderValue] = None
    hostname: Optional[str] = None

    model_config = ConfigDict(
        frozen=True,
        alias_generator=to_camel,
        populate_by_name=True,
    )

    @property
    def is_error(self) -> bool:
        """True when the record belongs on the error stream."""
        return self.error is not None or self.status_code >= 400

    def to_dict(self) -> Dict[str, Any]:
        """camelCase dict containing only the fields that were set."""
        return self.model_dump(by_alias=True, exclude_unset=True)
