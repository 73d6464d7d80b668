"""
api-logger: Middleware Package
==============================

Middleware chain (outermost first):
    Request → [RequestIDMiddleware] → [ApiLoggerMiddleware] → App

RequestIDMiddleware is optional. When present it must wrap ApiLoggerMiddleware
so the generated X-Request-ID is already in the headers the logger records.
"""

from api_logger.middleware.request_id import RequestIDMiddleware, request_id_var
from api_logger.middleware.lifecycle import CLOSE, FINISH, CompletionGuard
from api_logger.middleware.api_logger import ApiLoggerMiddleware

__all__ = [
    "ApiLoggerMiddleware",
    "CLOSE",
    "CompletionGuard",
    "FINISH",
    "RequestIDMiddleware",
    "request_id_var",
]
