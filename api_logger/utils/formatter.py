"""
api-logger: Log Record Assembly
===============================

What:  Builds the `LogRecord` for one request from the captured request and
       response snapshots plus the measured values.
How:   Copies everything unconditionally except four optional fields, which are
       set only when they carry a value:

       body          → log_body is on and the request body is present
       responseBody  → log_response is on and the response body is present
       ipInfo        → the lookup returned a non-empty mapping
       error         → an exception was captured

"Present" means not None, not "" and not b"". An empty dict or list body
still counts as present, and so does a JSON `0` or `false`.
"""

import socket
from typing import Any, Dict, Iterable, Mapping, Optional

from api_logger.middleware.request_id import request_id_var
from api_logger.schemas.log_record import (
    CapturedRequest,
    CapturedResponse,
    LogRecord,
    Timestamp,
)


def _has_value(value: Any) -> bool:
    return value is not None and value != "" and value != b""


def filter_headers(headers: Mapping[str, Any], excluded_headers: Iterable[str]) -> Dict[str, Any]:
    """Copy `headers` without any name in `excluded_headers` (case-insensitive)."""
    excluded = {name.lower() for name in excluded_headers}
    return {
        name: value
        for name, value in headers.items()
        if name.lower() not in excluded
    }


def describe_error(error: BaseException) -> Dict[str, Any]:
    """JSON-friendly summary of a captured exception."""
    return {"type": type(error).__name__, "message": str(error)}


def _resolve_request_id(request: CapturedRequest, response: CapturedResponse) -> Optional[Any]:
    return (
        request.header("x-request-id")
        or response.get("x-request-id")
        or request_id_var.get("")
        or None
    )


def format_log_data(
    *,
    request: CapturedRequest,
    response: CapturedResponse,
    response_body: Any,
    time_taken: float,
    excluded_headers: Iterable[str],
    ip_info: Optional[Mapping[str, Any]],
    log_body: bool,
    log_response: bool,
    timestamp: Timestamp,
    request_size: int,
    response_size: int,
    log_query_params: bool,
    error: Optional[BaseException] = None,
) -> LogRecord:
    """
    Assemble the log record for a finished request.

    Headers listed in `excluded_headers` are dropped from `headers` only; the
    dedicated `userAgent`/`referer`/`requestContentType`/`requestId` fields
    are still read from the full header map.
    """
    fields: Dict[str, Any] = {
        "method": request.method,
        "url": request.url,
        "status_code": response.status_code,
        "time_taken": time_taken,
        "request_size": request_size,
        "response_size": response_size,
        "timestamp": timestamp.model_copy(),
        "headers": filter_headers(request.headers, excluded_headers),
        "query_params": dict(request.query) if log_query_params else {},
        "hostname": socket.gethostname(),
    }

    optional = {
        "user_agent": request.header("user-agent"),
        "referer": request.header("referer"),
        "request_content_type": request.header("content-type"),
        "response_content_type": response.get("content-type"),
        "http_version": request.http_version,
        "request_id": _resolve_request_id(request, response),
    }
    fields.update({key: value for key, value in optional.items() if value is not None})

    if log_body and _has_value(request.body):
        fields["body"] = request.body

    if log_response and _has_value(response_body):
        fields["response_body"] = response_body

    if ip_info:
        fields["ip_info"] = dict(ip_info)

    if error is not None:
        fields["error"] = describe_error(error)

    return LogRecord(**fields)
