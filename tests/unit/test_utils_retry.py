"""Contains unit tests for the utils.retry module."""

from unittest.mock import AsyncMock

import pytest
from pytest import MonkeyPatch

from github_asana_relay.tasks.exceptions import RateLimitedError, TaskServiceError
from github_asana_relay.utils.retry import _wait_time_from_headers, retry_on_rate_limit


@pytest.fixture
def sleep_mock(monkeypatch: MonkeyPatch) -> AsyncMock:
    """Replace the backoff sleep so tests do not wait."""
    mock = AsyncMock()
    monkeypatch.setattr("github_asana_relay.utils.retry.asyncio.sleep", mock)
    return mock


@pytest.mark.asyncio
async def test_retries_task_service_rate_limit(sleep_mock: AsyncMock) -> None:
    """Test that a rate-limited call is retried using the retry-after header."""
    calls = 0

    @retry_on_rate_limit()
    async def flaky() -> str:
        nonlocal calls
        calls += 1
        if calls < 3:
            raise RateLimitedError(429, "slow down", headers={"retry-after": "7"})
        return "ok"

    assert await flaky() == "ok"
    assert calls == 3
    assert [call.args[0] for call in sleep_mock.await_args_list] == [7.0, 7.0]


@pytest.mark.asyncio
async def test_rate_limit_backoff_without_header(sleep_mock: AsyncMock) -> None:
    """Test exponential backoff when the service gives no retry-after."""

    @retry_on_rate_limit(max_retries=3, initial_delay=1.0)
    async def always_limited() -> None:
        raise RateLimitedError(429, "slow down")

    with pytest.raises(RateLimitedError):
        await always_limited()
    assert [call.args[0] for call in sleep_mock.await_args_list] == [1.0, 2.0, 4.0]


@pytest.mark.asyncio
async def test_other_errors_propagate_immediately(sleep_mock: AsyncMock) -> None:
    """Test that errors other than rate limits are not retried."""
    calls = 0

    @retry_on_rate_limit()
    async def broken() -> None:
        nonlocal calls
        calls += 1
        raise TaskServiceError(500, "Server error")

    with pytest.raises(TaskServiceError):
        await broken()
    assert calls == 1
    sleep_mock.assert_not_awaited()


def test_sync_function_is_rejected() -> None:
    """Test that decorating a synchronous function fails at decoration time."""
    with pytest.raises(TypeError):

        @retry_on_rate_limit()
        def not_async() -> None:
            pass


@pytest.mark.parametrize(
    "headers,expected",
    [
        pytest.param({"retry-after": "12"}, 12.0, id="retry-after"),
        pytest.param({"retry-after": "later"}, 3.0, id="invalid retry-after"),
        pytest.param({"x-ratelimit-reset": "not-a-number"}, 3.0, id="invalid reset"),
        pytest.param({"x-ratelimit-reset": "0"}, 3.0, id="reset in the past"),
        pytest.param({}, 3.0, id="no headers"),
    ],
)
def test_wait_time_from_headers(headers: dict[str, str], expected: float) -> None:
    """Test deriving the wait time from rate limit headers."""
    assert _wait_time_from_headers(headers, 3.0) == expected
