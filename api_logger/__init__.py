"""
api-logger
==========

Structured request/response logging middleware for ASGI applications.

    ┌──────────────────────────────────────────────┐
    │  ApiLoggerMiddleware (middleware/)           │  ← captures the exchange
    ├──────────────────────────────────────────────┤
    │  CompletionGuard (middleware/lifecycle.py)   │  ← exactly-once emission
    ├──────────────────────────────────────────────┤
    │  metrics / formatter (utils/)                │  ← measure and assemble
    ├──────────────────────────────────────────────┤
    │  LogRecord (schemas/)                        │  ← the emitted shape
    └──────────────────────────────────────────────┘
"""

from api_logger.middleware import ApiLoggerMiddleware, RequestIDMiddleware
from api_logger.logging_config import setup_logging
from api_logger.utils.formatter import format_log_data
from api_logger.utils.metrics import (
    calculate_request_size,
    calculate_response_size,
    calculate_time_taken,
)

__version__ = "1.0.0"

__all__ = [
    "ApiLoggerMiddleware",
    "RequestIDMiddleware",
    "calculate_request_size",
    "calculate_response_size",
    "calculate_time_taken",
    "format_log_data",
    "setup_logging",
]
