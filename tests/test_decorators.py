# tests/test_decorators.py
import pytest
from unittest.mock import AsyncMock

import httpx

from shared.decorators.error_handling import handle_errors, handle_network_errors
from shared.decorators.retry import compute_delay, retry


@pytest.fixture
def no_sleep(mocker):
    return mocker.patch("shared.decorators.retry.asyncio.sleep", new_callable=AsyncMock)


@pytest.mark.asyncio
async def test_retry_succeeds_after_transient_failures(no_sleep):
    calls = []

    @retry(max_attempts=3, delay=1.0, jitter=False, exceptions=(ConnectionError,))
    async def flaky():
        calls.append(1)
        if len(calls) < 3:
            raise ConnectionError("down")
        return "ok"

    assert await flaky() == "ok"
    assert len(calls) == 3
    assert [c.args[0] for c in no_sleep.await_args_list] == [1.0, 2.0]


@pytest.mark.asyncio
async def test_retry_raises_last_exception(no_sleep):
    @retry(max_attempts=2, jitter=False)
    async def always_fails():
        raise ValueError("nope")

    with pytest.raises(ValueError, match="nope"):
        await always_fails()
    assert no_sleep.await_count == 1


@pytest.mark.asyncio
async def test_retry_ignores_unlisted_exceptions(no_sleep):
    @retry(max_attempts=3, exceptions=(ConnectionError,))
    async def wrong_kind():
        raise KeyError("x")

    with pytest.raises(KeyError):
        await wrong_kind()
    no_sleep.assert_not_awaited()


def test_compute_delay_caps_at_max():
    assert compute_delay(0, 1.0, 2.0, 60.0, jitter=False) == 1.0
    assert compute_delay(10, 1.0, 2.0, 5.0, jitter=False) == 5.0
    assert 0.5 <= compute_delay(0, 1.0, 2.0, 60.0, jitter=True) <= 1.0


@pytest.mark.asyncio
async def test_handle_errors_returns_default():
    @handle_errors(default_return=[])
    async def broken():
        raise RuntimeError("boom")

    assert await broken() == []


def test_handle_errors_passthrough_reraises():
    @handle_errors(default_return=None, passthrough_exceptions=(KeyError,))
    def lookup():
        raise KeyError("missing")

    with pytest.raises(KeyError):
        lookup()


@pytest.mark.asyncio
async def test_handle_network_errors_swallows_http_errors():
    request = httpx.Request("GET", "http://test/models")

    @handle_network_errors(default_return="fallback")
    async def fetch():
        raise httpx.ConnectError("refused", request=request)

    assert await fetch() == "fallback"
