"""
api-logger: IP Info Lookup
==========================

What:  Calls the injected `get_ip_info(ip)` capability with retries.
How:   Tenacity retries any exception with exponential backoff plus jitter,
       up to `attempts` calls. If every attempt fails the failure is logged and
       an empty mapping is returned, which keeps `ipInfo` out of the record.

Limitation:
    No timeout is applied to an individual lookup. A lookup that never returns
    holds back that request's log record (and only that one).
"""

import logging
from typing import Any, Dict, Mapping, Optional

from tenacity import (
    AsyncRetrying,
    RetryError,
    before_sleep_log,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
    wait_random,
)

from api_logger.config import IpInfoGetter
from api_logger.exceptions import IpLookupError

logger = logging.getLogger(__name__)


async def lookup_ip_info(
    get_ip_info: Optional[IpInfoGetter],
    ip: str,
    *,
    attempts: int = 3,
    min_wait: float = 0.1,
    max_wait: float = 2.0,
    raise_on_failure: bool = False,
) -> Dict[str, Any]:
    """
    Resolve IP information for `ip`.

    Args:
        get_ip_info:      Injected async lookup, or None to skip the lookup.
        ip:               Client address ("" when the server did not report one).
        attempts:         Total calls before giving up.
        min_wait:         Initial backoff in seconds (also the jitter range).
        max_wait:         Backoff ceiling in seconds.
        raise_on_failure: Raise IpLookupError instead of returning {}.

    Returns:
        A plain dict copy of the lookup result, or {} when there is no lookup,
        the lookup failed, or it returned something other than a mapping.
    """
    if get_ip_info is None:
        return {}

    retrying = AsyncRetrying(
        retry=retry_if_exception_type(Exception),
        stop=stop_after_attempt(attempts),
        wait=wait_exponential(multiplier=min_wait, max=max_wait) + wait_random(0, min_wait),
        before_sleep=before_sleep_log(logger, logging.WARNING),
    )

    try:
        async for attempt in retrying:
            with attempt:
                result = await get_ip_info(ip)
    except RetryError as e:
        last_error = e.last_attempt.exception() if e.last_attempt else None
        logger.warning(
            "IP info lookup for %r failed after %d attempt(s): %s",
            ip,
            attempts,
            last_error,
        )
        if raise_on_failure:
            raise IpLookupError(
                ip=ip,
                attempts=attempts,
                context={"error": str(last_error)},
            ) from last_error
        return {}

    if not isinstance(result, Mapping):
        logger.warning(
            "IP info lookup for %r returned %s instead of a mapping; ignoring",
            ip,
            type(result).__name__,
        )
        return {}

    return dict(result)
