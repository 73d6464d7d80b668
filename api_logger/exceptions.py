"""
api-logger: Exception Hierarchy
===============================

What:  Package-specific exceptions for configuration and IP lookup problems.
How:   Each exception carries a message and an optional context dict, the same
       shape the middleware logs when it swallows an internal failure.
Who:   Raised by `config` (option resolution) and `ip_info` (lookup helper).

Exception Hierarchy:
    ApiLoggerError (base)
    ├── ConfigurationError   → invalid middleware options, raised at construction
    └── IpLookupError        → injected IP lookup failed after all attempts

Nothing in this hierarchy ever reaches the host application at request time:
the middleware catches and logs its own failures so a logging problem cannot
turn a good response into a 500.
"""

from typing import Any, Dict, Optional


class ApiLoggerError(Exception):
    """
    Base exception for all api-logger errors.

    Attributes:
        message:  Human-readable description
        context:  Additional debug info (included in diagnostic log lines)
    """

    def __init__(
        self,
        message: str = "An unexpected api-logger error occurred",
        context: Optional[Dict[str, Any]] = None,
    ):
        self.message = message
        self.context = context or {}
        super().__init__(self.message)


class ConfigurationError(ApiLoggerError):
    """
    Raised when middleware options are invalid.

    When:    `excluded_headers` passed as a bare string, `get_ip_info` not callable.
    Raised once while the middleware is constructed, never per request.
    """

    def __init__(
        self,
        message: str = "Invalid api-logger configuration",
        option: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None,
    ):
        ctx = context or {}
        if option:
            ctx["option"] = option
        super().__init__(message=message, context=ctx)
        self.option = option


class IpLookupError(ApiLoggerError):
    """
    Raised when the injected IP lookup keeps failing.

    Only surfaces from `lookup_ip_info(..., raise_on_failure=True)`; the
    middleware itself calls the helper in swallow mode and omits `ipInfo`.
    """

    def __init__(
        self,
        ip: str = "",
        attempts: int = 0,
        context: Optional[Dict[str, Any]] = None,
    ):
        message = f"IP info lookup for '{ip}' failed after {attempts} attempt(s)"
        ctx = context or {}
        ctx["ip"] = ip
        ctx["attempts"] = attempts
        super().__init__(message=message, context=ctx)
        self.ip = ip
        self.attempts = attempts
