"""Retry decorator for handling API rate limits.

This module provides a decorator that retries async API calls which hit a rate limit,
either on GitHub (githubkit exceptions) or on the task service (``RateLimitedError``),
respecting rate limit headers and applying exponential backoff. Any other error is
propagated immediately; blind retries of whole deliveries belong to the coordinator.
"""

import asyncio
import functools
import inspect
import time
from typing import Any, Callable, TypeVar

import structlog
from githubkit.exception import PrimaryRateLimitExceeded, RequestFailed, SecondaryRateLimitExceeded

from github_asana_relay.tasks.exceptions import RateLimitedError

logger = structlog.get_logger(__name__)

F = TypeVar("F", bound=Callable[..., Any])


def _wait_time_from_headers(headers: Any, default: float) -> float:
    """Derive a wait time from retry-after or x-ratelimit-reset headers."""
    retry_after = headers.get("retry-after")
    if retry_after:
        try:
            return float(retry_after)
        except ValueError:
            logger.warning("Invalid retry-after header value", retry_after=retry_after)
            return default

    rate_limit_reset = headers.get("x-ratelimit-reset")
    if rate_limit_reset:
        try:
            reset_timestamp = int(rate_limit_reset)
        except ValueError:
            logger.warning("Invalid x-ratelimit-reset header value", rate_limit_reset=rate_limit_reset)
            return default
        current_timestamp = int(time.time())
        if reset_timestamp > current_timestamp:
            return reset_timestamp - current_timestamp + 1
    return default


def retry_on_rate_limit(
    max_retries: int = 5,
    initial_delay: float = 2.0,
    max_delay: float = 60.0,
    exponential_base: float = 2.0,
) -> Callable[[F], F]:
    """Decorator for retrying async functions when they encounter a rate limit.

    This decorator handles:
    - GitHub primary and secondary rate limits (githubkit exceptions)
    - GitHub 403/429 responses that mention a rate limit
    - Task service 429 responses
    - Respects retry-after and x-ratelimit-reset headers

    Args:
        max_retries: Maximum number of retry attempts (default: 5)
        initial_delay: Initial delay in seconds between retries (default: 2.0)
        max_delay: Maximum delay in seconds between retries (default: 60.0)
        exponential_base: Base for exponential backoff calculation (default: 2.0)

    Returns:
        Decorated function with retry logic
    """

    def decorator(func: F) -> F:
        if not inspect.iscoroutinefunction(func):
            raise TypeError(f"Function {func.__name__} decorated with @retry_on_rate_limit must be async.")

        @functools.wraps(func)
        async def async_wrapper(*args: Any, **kwargs: Any) -> Any:
            delay = initial_delay

            for attempt in range(max_retries + 1):
                try:
                    return await func(*args, **kwargs)
                except (PrimaryRateLimitExceeded, SecondaryRateLimitExceeded) as e:
                    if attempt == max_retries:
                        logger.error(
                            "Max retries reached for GitHub rate limit error",
                            function=func.__name__,
                            attempt=attempt + 1,
                            error_type=type(e).__name__,
                        )
                        raise
                    if getattr(e, "retry_after", None):
                        wait_time = min(e.retry_after.total_seconds(), max_delay)
                    else:
                        wait_time = min(delay, max_delay)
                except RateLimitedError as e:
                    if attempt == max_retries:
                        logger.error("Max retries reached for task service rate limit", function=func.__name__, attempt=attempt + 1)
                        raise
                    wait_time = min(e.retry_after if e.retry_after is not None else delay, max_delay)
                except RequestFailed as e:
                    status_code = e.response.status_code
                    is_rate_limit = status_code == 429 or (status_code == 403 and "rate limit" in str(e).lower())
                    if not is_rate_limit:
                        raise
                    if attempt == max_retries:
                        logger.error(
                            "Max retries reached for rate limit error",
                            function=func.__name__,
                            attempt=attempt + 1,
                            status_code=status_code,
                            error=str(e),
                        )
                        raise
                    wait_time = min(_wait_time_from_headers(e.response.headers, delay), max_delay)

                logger.warning(
                    f"Rate limit hit, retrying in {wait_time} seconds",
                    function=func.__name__,
                    attempt=attempt + 1,
                    max_retries=max_retries,
                    wait_time=wait_time,
                )
                await asyncio.sleep(wait_time)
                delay = min(delay * exponential_base, max_delay)

        return async_wrapper  # type: ignore

    return decorator
