"""
api-logger: Configuration
=========================

What:  Process-level defaults (Pydantic Settings) and the resolved per-middleware
       option set (`LoggerOptions`).
How:   `Settings` reads `API_LOGGER_*` environment variables (or a .env file).
       `LoggerOptions.build()` starts from those defaults and applies whatever
       the caller passed to the middleware constructor explicitly.
Who:   `ApiLoggerMiddleware.__init__` and `setup_logging()`.
When:  Settings load once at import; options resolve once per middleware instance.

Environment variables:
    API_LOGGER_LOG_BODY=true
    API_LOGGER_LOG_RESPONSE=true
    API_LOGGER_LOG_QUERY_PARAMS=true
    API_LOGGER_EXCLUDED_HEADERS=authorization,cookie
    API_LOGGER_TRUST_PROXY=false
    API_LOGGER_RETRY_LIMIT=3
    API_LOGGER_JSON_INDENT=2
    API_LOGGER_LOG_LEVEL=INFO
    API_LOGGER_DEBUG=false
"""

from typing import Any, Awaitable, Callable, Iterable, List, Mapping, Optional, Tuple

from pydantic import BaseModel, Field, field_validator
from pydantic_settings import BaseSettings

from api_logger.exceptions import ConfigurationError

IpInfoGetter = Callable[[str], Awaitable[Mapping[str, Any]]]


class Settings(BaseSettings):
    """
    Environment-driven defaults for every middleware instance in the process.

    All settings default to the most verbose behaviour: bodies, responses and
    query parameters are logged and no header is excluded.
    """

    # ── Record content ────────────────────────────────────────────────────
    log_body: bool = Field(default=True)
    log_response: bool = Field(default=True)
    log_query_params: bool = Field(default=True)

    # Comma-separated, matched case-insensitively against request header names
    excluded_headers: str = Field(default="")

    @property
    def excluded_headers_list(self) -> List[str]:
        """Splits the comma-separated header names into a lowercase list."""
        return [
            name.strip().lower()
            for name in self.excluded_headers.split(",")
            if name.strip()
        ]

    # ── Client address ────────────────────────────────────────────────────
    # When enabled, the first X-Forwarded-For hop is treated as the client IP
    trust_proxy: bool = Field(default=False)

    # ── IP lookup ─────────────────────────────────────────────────────────
    retry_limit: int = Field(default=3, ge=1, le=10)
    retry_min_wait: float = Field(default=0.1, ge=0, le=30)
    retry_max_wait: float = Field(default=2.0, ge=0, le=120)

    # ── Output ────────────────────────────────────────────────────────────
    # 0 renders each record on a single line
    json_indent: int = Field(default=2, ge=0, le=8)

    log_level: str = Field(default="INFO")
    debug: bool = Field(default=False)

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        """Ensures log level is a valid Python logging level name."""
        valid_levels = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}
        upper = v.upper()
        if upper not in valid_levels:
            raise ValueError(f"Invalid log_level '{v}'. Must be one of: {valid_levels}")
        return upper

    model_config = {
        "env_prefix": "API_LOGGER_",
        "env_file": ".env",
        "env_file_encoding": "utf-8",
        "case_sensitive": False,
        "extra": "ignore",
    }


class LoggerOptions(BaseModel):
    """
    Resolved options for one `ApiLoggerMiddleware` instance.

    `excluded_headers` is stored lowercased so the formatter can compare with a
    single `in` check per header.
    """

    log_body: bool = True
    log_response: bool = True
    log_query_params: bool = True
    excluded_headers: Tuple[str, ...] = ()
    get_ip_info: Optional[IpInfoGetter] = None
    trust_proxy: bool = False
    retry_limit: int = 3
    retry_min_wait: float = 0.1
    retry_max_wait: float = 2.0
    json_indent: int = 2
    debug: bool = False

    model_config = {"frozen": True, "arbitrary_types_allowed": True}

    @field_validator("excluded_headers")
    @classmethod
    def normalize_excluded_headers(cls, v: Tuple[str, ...]) -> Tuple[str, ...]:
        return tuple(name.strip().lower() for name in v if name.strip())

    @classmethod
    def build(
        cls,
        settings: Optional[Settings] = None,
        *,
        log_body: Optional[bool] = None,
        log_response: Optional[bool] = None,
        log_query_params: Optional[bool] = None,
        excluded_headers: Optional[Iterable[str]] = None,
        get_ip_info: Optional[IpInfoGetter] = None,
    ) -> "LoggerOptions":
        """
        Merge constructor arguments over settings.

        Arguments left as None fall back to the settings value.

        Raises:
            ConfigurationError: `excluded_headers` is a plain string, or
                `get_ip_info` is not callable.
        """
        settings = settings or Settings()

        if isinstance(excluded_headers, (str, bytes)):
            raise ConfigurationError(
                "excluded_headers must be a list of header names, not a string",
                option="excluded_headers",
                context={"value": excluded_headers},
            )
        if get_ip_info is not None and not callable(get_ip_info):
            raise ConfigurationError(
                "get_ip_info must be an async callable taking an IP address",
                option="get_ip_info",
            )

        return cls(
            log_body=settings.log_body if log_body is None else log_body,
            log_response=settings.log_response if log_response is None else log_response,
            log_query_params=(
                settings.log_query_params if log_query_params is None else log_query_params
            ),
            excluded_headers=tuple(
                settings.excluded_headers_list if excluded_headers is None else excluded_headers
            ),
            get_ip_info=get_ip_info,
            trust_proxy=settings.trust_proxy,
            retry_limit=settings.retry_limit,
            retry_min_wait=settings.retry_min_wait,
            retry_max_wait=settings.retry_max_wait,
            json_indent=settings.json_indent,
            debug=settings.debug,
        )


settings = Settings()
