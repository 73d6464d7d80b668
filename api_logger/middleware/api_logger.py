"""
api-logger: Request/Response Logging Middleware
===============================================

What:  Emits one structured JSON record per HTTP request: timing, sizes,
       headers, query parameters, bodies, IP info, errors, request id, hostname.
How:   Pure ASGI middleware. The request body is read up front and replayed to
       the app; `send` is wrapped to capture status, headers and every body
       chunk before it reaches the server. A `CompletionGuard` makes sure only
       the first completion signal ("finish" or "close") emits the record.
       A finished response is logged once the app returns, so the IP lookup
       never holds up the app's final `send` or its background tasks. Body
       chunks are buffered only when `log_response` is on; the byte count is
       kept as a running total.
Who:   Registered on any ASGI app (Starlette, FastAPI, or a bare callable).

Routing:
    statusCode < 400 and no exception  → logger "api_logger.access" at INFO
    statusCode >= 400 or exception     → logger "api_logger.access" at ERROR

    `setup_logging()` sends INFO to stdout and ERROR to stderr.

Usage:
    app = FastAPI()
    app.add_middleware(
        ApiLoggerMiddleware,
        excluded_headers=["authorization", "cookie"],
        get_ip_info=geo_lookup,
    )
"""

import asyncio
import json
import logging
import time
from datetime import date, datetime
from typing import Any, Iterable, List, Optional

from starlette.types import ASGIApp, Message, Receive, Scope, Send

from api_logger.config import IpInfoGetter, LoggerOptions, Settings
from api_logger.config import settings as default_settings
from api_logger.ip_info import lookup_ip_info
from api_logger.middleware.lifecycle import CLOSE, FINISH, CompletionGuard
from api_logger.schemas.log_record import (
    CapturedRequest,
    CapturedResponse,
    LogRecord,
    Timestamp,
    utc_timestamp,
)
from api_logger.utils.formatter import format_log_data
from api_logger.utils.http import (
    client_ip,
    decode_body,
    decode_headers,
    decode_query,
    original_url,
)
from api_logger.utils.metrics import calculate_request_size, calculate_time_taken

logger = logging.getLogger(__name__)

ACCESS_LOGGER_NAME = "api_logger.access"
access_logger = logging.getLogger(ACCESS_LOGGER_NAME)


def _json_default(value: Any) -> Any:
    if isinstance(value, (bytes, bytearray)):
        return bytes(value).decode("utf-8", errors="replace")
    if isinstance(value, memoryview):
        return value.tobytes().decode("utf-8", errors="replace")
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    if isinstance(value, (set, frozenset)):
        return list(value)
    return str(value)


def render_record(record: LogRecord, indent: int = 2) -> str:
    """Serialize a record the way it is emitted (indent 0 → single line)."""
    return json.dumps(
        record.to_dict(),
        indent=indent or None,
        default=_json_default,
        ensure_ascii=False,
    )


def _is_encoded(headers: dict) -> bool:
    encoding = headers.get("content-encoding")
    return bool(encoding) and encoding != "identity"


class _Exchange:
    """
    State for a single request/response cycle.

    Created per request by `ApiLoggerMiddleware.__call__`; nothing here is
    shared between requests.
    """

    def __init__(self, middleware: "ApiLoggerMiddleware", scope: Scope, receive: Receive, send: Send):
        self.middleware = middleware
        self.options = middleware.options
        self.scope = scope
        self._receive = receive
        self._send = send

        self.start_time = time.perf_counter()
        self.timestamp = Timestamp(request=utc_timestamp())
        self.request_headers = decode_headers(scope.get("headers", []))

        self.raw_request_body = b""
        self.client_disconnected = False
        self._replayed = False

        self.response_started = False
        self.status_code = 0
        self.response_headers: dict = {}
        self.response_chunks: List[bytes] = []
        self.response_size = 0
        self.time_taken: Optional[float] = None
        self.error: Optional[BaseException] = None

        self.guard = CompletionGuard(self.emit)

    # ── Request side ──────────────────────────────────────────────────────

    async def read_request_body(self) -> None:
        """Drain the request body so it can be logged and replayed."""
        chunks = []
        more_body = True
        while more_body:
            message = await self._receive()
            if message["type"] == "http.disconnect":
                self.client_disconnected = True
                break
            chunks.append(message.get("body", b""))
            more_body = message.get("more_body", False)
        self.raw_request_body = b"".join(chunks)

    async def receive(self) -> Message:
        if not self._replayed:
            self._replayed = True
            if self.client_disconnected:
                await self.guard.fire(CLOSE)
                return {"type": "http.disconnect"}
            return {
                "type": "http.request",
                "body": self.raw_request_body,
                "more_body": False,
            }

        message = await self._receive()
        if message["type"] == "http.disconnect":
            await self.guard.fire(CLOSE)
        return message

    # ── Response side ─────────────────────────────────────────────────────

    async def send(self, message: Message) -> None:
        message_type = message["type"]

        if message_type == "http.response.start":
            self.response_started = True
            self.status_code = message["status"]
            self.response_headers = decode_headers(message.get("headers", []))
            await self._send(message)
            return

        if message_type == "http.response.body":
            body = message.get("body", b"")
            if body:
                self.response_size += len(body)
                if self.options.log_response:
                    self.response_chunks.append(body)
            if self.timestamp.response is None:
                self.timestamp.response = utc_timestamp()
            await self._send(message)
            if not message.get("more_body", False) and self.guard.claim(FINISH):
                self.time_taken = calculate_time_taken(self.start_time)
            return

        await self._send(message)

    @property
    def finished(self) -> bool:
        return self.guard.signal == FINISH

    def fail(self, exc: BaseException) -> None:
        self.error = exc
        if not self.response_started:
            self.status_code = 500

    async def complete(self) -> None:
        """Emit a finished exchange, or fire "close" for one that never finished."""
        if self.finished:
            await self.emit()
        else:
            await self.guard.fire(CLOSE)

    # ── Emission ──────────────────────────────────────────────────────────

    def captured_request(self) -> CapturedRequest:
        content_type = self.request_headers.get("content-type")
        if _is_encoded(self.request_headers):
            body: Any = self.raw_request_body or None
        else:
            body = decode_body(self.raw_request_body, content_type)
        return CapturedRequest(
            method=self.scope.get("method", ""),
            url=original_url(self.scope),
            headers=self.request_headers,
            query=decode_query(self.scope.get("query_string", b"")),
            body=body,
            http_version=self.scope.get("http_version"),
            client_ip=client_ip(self.scope, self.request_headers, self.options.trust_proxy),
        )

    def captured_response(self) -> CapturedResponse:
        return CapturedResponse(
            status_code=self.status_code,
            headers=self.response_headers,
            raw_body=b"".join(self.response_chunks),
        )

    def build_record(self, time_taken: float, request: CapturedRequest, ip_info: dict) -> LogRecord:
        response = self.captured_response()
        if _is_encoded(response.headers):
            response_body: Any = response.raw_body
        else:
            response_body = decode_body(response.raw_body, response.get("content-type"))

        return format_log_data(
            request=request,
            response=response,
            response_body=response_body,
            time_taken=time_taken,
            excluded_headers=self.options.excluded_headers,
            ip_info=ip_info,
            log_body=self.options.log_body,
            log_response=self.options.log_response,
            timestamp=self.timestamp,
            request_size=calculate_request_size(request.body),
            response_size=self.response_size,
            log_query_params=self.options.log_query_params,
            error=self.error,
        )

    def elapsed(self) -> float:
        if self.time_taken is not None:
            return self.time_taken
        return calculate_time_taken(self.start_time)

    async def emit(self) -> None:
        """Completion callback: measure, look up IP info, format, log."""
        try:
            if self.timestamp.response is None:
                self.timestamp.response = utc_timestamp()
            time_taken = self.elapsed()
            request = self.captured_request()
            ip_info = await lookup_ip_info(
                self.options.get_ip_info,
                request.client_ip,
                attempts=self.options.retry_limit,
                min_wait=self.options.retry_min_wait,
                max_wait=self.options.retry_max_wait,
            )
            self.middleware.emit(self.build_record(time_taken, request, ip_info))
        except Exception:
            logger.exception(
                "Failed to emit log record for %s %s",
                self.scope.get("method"),
                self.scope.get("path"),
            )

    def emit_now(self) -> None:
        """Emit without awaiting anything (used when the request task is cancelled)."""
        try:
            if self.timestamp.response is None:
                self.timestamp.response = utc_timestamp()
            self.middleware.emit(self.build_record(self.elapsed(), self.captured_request(), {}))
        except Exception:
            logger.exception(
                "Failed to emit log record for cancelled request %s %s",
                self.scope.get("method"),
                self.scope.get("path"),
            )


class ApiLoggerMiddleware:
    """
    ASGI middleware that logs every HTTP request/response cycle exactly once.

    Args:
        app:              The wrapped ASGI application.
        log_body:         Include the request body (default from settings: True).
        log_response:     Include the response body (default from settings: True).
        log_query_params: Include parsed query parameters (default from settings: True).
        excluded_headers: Header names to drop from `headers`, case-insensitive.
        get_ip_info:      Optional `async (ip) -> mapping` lookup.
        settings:         Settings instance; the process-wide one by default.

    Arguments left as None fall back to `settings`.

    Exceptions raised by the app are recorded on the log record and re-raised
    unchanged. Nothing the middleware itself does can fail the request.
    """

    def __init__(
        self,
        app: ASGIApp,
        *,
        log_body: Optional[bool] = None,
        log_response: Optional[bool] = None,
        log_query_params: Optional[bool] = None,
        excluded_headers: Optional[Iterable[str]] = None,
        get_ip_info: Optional[IpInfoGetter] = None,
        settings: Optional[Settings] = None,
    ) -> None:
        self.app = app
        self.options = LoggerOptions.build(
            settings or default_settings,
            log_body=log_body,
            log_response=log_response,
            log_query_params=log_query_params,
            excluded_headers=excluded_headers,
            get_ip_info=get_ip_info,
        )

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope["type"] != "http":
            await self.app(scope, receive, send)
            return

        exchange = _Exchange(self, scope, receive, send)
        await exchange.read_request_body()

        try:
            await self.app(scope, exchange.receive, exchange.send)
        except asyncio.CancelledError:
            if exchange.finished or exchange.guard.claim(CLOSE):
                exchange.emit_now()
            raise
        except Exception as exc:
            if not exchange.finished:
                exchange.fail(exc)
            await exchange.complete()
            raise

        await exchange.complete()

    def emit(self, record: LogRecord) -> None:
        """Write a finished record to the access logger."""
        level = logging.ERROR if record.is_error else logging.INFO
        if self.options.debug:
            logger.debug(
                "Emitting %s record for %s %s",
                logging.getLevelName(level),
                record.method,
                record.url,
            )
        access_logger.log(level, render_record(record, self.options.json_indent))
