"""
api-logger: IP Info Lookup Tests
================================

What:  Retry behaviour and result handling of `lookup_ip_info`.
How:   AsyncMock lookups; zero backoff so retries don't slow the suite.
"""

from unittest.mock import AsyncMock

import pytest

from api_logger.exceptions import IpLookupError
from api_logger.ip_info import lookup_ip_info

FAST = {"min_wait": 0, "max_wait": 0}


class TestLookupIpInfo:

    @pytest.mark.asyncio
    async def test_no_lookup_configured(self):
        assert await lookup_ip_info(None, "127.0.0.1") == {}

    @pytest.mark.asyncio
    async def test_returns_copy_of_result(self):
        result = {"city": "Lisbon"}
        lookup = AsyncMock(return_value=result)

        info = await lookup_ip_info(lookup, "192.0.2.1", **FAST)

        assert info == {"city": "Lisbon"}
        assert info is not result
        lookup.assert_awaited_once_with("192.0.2.1")

    @pytest.mark.asyncio
    async def test_retries_transient_failure(self):
        lookup = AsyncMock(side_effect=[ConnectionError("reset"), {"country": "PT"}])

        info = await lookup_ip_info(lookup, "192.0.2.1", attempts=3, **FAST)

        assert info == {"country": "PT"}
        assert lookup.await_count == 2

    @pytest.mark.asyncio
    async def test_gives_up_after_attempts(self, caplog):
        lookup = AsyncMock(side_effect=TimeoutError("slow"))

        info = await lookup_ip_info(lookup, "192.0.2.1", attempts=3, **FAST)

        assert info == {}
        assert lookup.await_count == 3
        assert any("failed after 3 attempt" in r.getMessage() for r in caplog.records)

    @pytest.mark.asyncio
    async def test_raise_on_failure(self):
        lookup = AsyncMock(side_effect=RuntimeError("down"))

        with pytest.raises(IpLookupError) as exc_info:
            await lookup_ip_info(lookup, "192.0.2.1", attempts=2, raise_on_failure=True, **FAST)

        assert exc_info.value.attempts == 2
        assert exc_info.value.context["error"] == "down"

    @pytest.mark.asyncio
    async def test_non_mapping_result_ignored(self):
        lookup = AsyncMock(return_value=["not", "a", "mapping"])
        assert await lookup_ip_info(lookup, "192.0.2.1", **FAST) == {}

    @pytest.mark.asyncio
    @pytest.mark.filterwarnings("error::DeprecationWarning")
    async def test_backoff_uses_current_tenacity_api(self):
        lookup = AsyncMock(side_effect=[OSError("reset"), OSError("reset"), {"asn": 64500}])

        info = await lookup_ip_info(lookup, "192.0.2.1", attempts=3, min_wait=0, max_wait=0)

        assert info == {"asn": 64500}
        assert lookup.await_count == 3
