"""
api-logger: Timing and Size Measurement
=======================================

What:  Elapsed-time and payload byte-size calculations for the log record.
How:   Sizes are UTF-8 byte lengths of the payload itself (text, binary) or of
       its compact JSON serialization (everything else).

Compact JSON:
    separators=(",", ":") and ensure_ascii=False, so
        {"name": "test", "age": 30}  → {"name":"test","age":30}  → 24 bytes
        {"emoji": "😊"}              → {"emoji":"😊"}            → 16 bytes
"""

import json
import time
from typing import Any

_BINARY_TYPES = (bytes, bytearray, memoryview)


def to_compact_json(value: Any) -> str:
    """Serialize without whitespace, keeping non-ASCII characters as-is."""
    return json.dumps(value, separators=(",", ":"), ensure_ascii=False)


def _binary_length(value: Any) -> int:
    if isinstance(value, memoryview):
        return value.nbytes
    return len(value)


def calculate_time_taken(start_time: float) -> float:
    """
    Milliseconds elapsed since `start_time`, rounded to two decimal places.

    Args:
        start_time: A `time.perf_counter()` reading taken when the request arrived.
    """
    elapsed = time.perf_counter() - start_time
    return round(elapsed * 1000, 2)


def calculate_request_size(body: Any) -> int:
    """
    Byte length of the JSON-serialized request body.

    A missing or empty body serializes as `{}` (2 bytes). Raw binary bodies
    are counted as-is. Bodies that cannot be serialized count as 0.
    """
    if isinstance(body, _BINARY_TYPES) and body:
        return _binary_length(body)
    try:
        return len(to_compact_json(body or {}).encode("utf-8"))
    except (TypeError, ValueError):
        return 0


def calculate_response_size(response_body: Any) -> int:
    """
    Byte size of a response payload.

    - str: UTF-8 byte length ("" is 0)
    - bytes / bytearray / memoryview: length
    - None: 0
    - anything else: compact JSON byte length, or 0 when it cannot be
      serialized (circular references, unserializable objects)
    """
    if isinstance(response_body, str):
        return len(response_body.encode("utf-8"))
    if isinstance(response_body, _BINARY_TYPES):
        return _binary_length(response_body)
    if response_body is None:
        return 0
    try:
        return len(to_compact_json(response_body).encode("utf-8"))
    except (TypeError, ValueError, RecursionError):
        return 0
