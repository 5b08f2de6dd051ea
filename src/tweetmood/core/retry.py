from __future__ import annotations

import ssl
import time
from functools import wraps
from typing import Any, Callable, TypeVar

import httpx
from tenacity import (
    Retrying,
    retry,
    stop_after_attempt,
    wait_exponential,
    wait_exponential_jitter,
    retry_if_exception_type,
    before_sleep_log,
)

from tweetmood.core.errors import NetworkError
from tweetmood.core.logger import get_logger

log = get_logger("retry")

T = TypeVar("T")

# Default retryable exceptions
RETRYABLE_EXCEPTIONS = (
    NetworkError,
    httpx.TimeoutException,
    httpx.TransportError,
    ConnectionError,
    TimeoutError,
    ssl.SSLError,
)


def exponential_retrying(
    max_retries: int = 2,
    backoff_base: float = 1.0,
    max_wait: float = 30.0,
    exceptions: tuple = RETRYABLE_EXCEPTIONS,
    sleep: Callable[[float], None] = time.sleep,
) -> Retrying:
    """Build a retry controller with plain exponential backoff.

    ``max_retries`` counts retries, not attempts: 2 retries means up to 3
    attempts. Waits are ``backoff_base * 2**attempt`` (1s, 2s for the
    default base). The last exception is re-raised when the budget is spent.

    Example:
        for attempt in exponential_retrying(max_retries=2):
            with attempt:
                payload = backend.request(text)
    """
    return Retrying(
        sleep=sleep,
        stop=stop_after_attempt(max_retries + 1),
        wait=wait_exponential(multiplier=backoff_base, max=max_wait),
        retry=retry_if_exception_type(exceptions),
        before_sleep=before_sleep_log(log, log_level=20),  # INFO level
        reraise=True,
    )


def with_retry(
    max_attempts: int = 3,
    min_wait: float = 1.0,
    max_wait: float = 10.0,
    exceptions: tuple = RETRYABLE_EXCEPTIONS,
) -> Callable[[Callable[..., T]], Callable[..., T]]:
    """Decorator to add retry logic with exponential backoff and jitter.

    Args:
        max_attempts: Maximum number of attempts (default: 3)
        min_wait: Minimum wait time between retries in seconds (default: 1.0)
        max_wait: Maximum wait time between retries in seconds (default: 10.0)
        exceptions: Tuple of exception types to retry on

    Example:
        @with_retry(max_attempts=3)
        def fetch_rows():
            response = httpx.get(url)
            return response.json()
    """

    def decorator(func: Callable[..., T]) -> Callable[..., T]:
        @wraps(func)
        def wrapper(*args: Any, **kwargs: Any) -> T:
            @retry(
                stop=stop_after_attempt(max_attempts),
                wait=wait_exponential_jitter(initial=min_wait, max=max_wait, jitter=min_wait / 2),
                retry=retry_if_exception_type(exceptions),
                before_sleep=before_sleep_log(log, log_level=20),  # INFO level
                reraise=True,
            )
            def inner() -> T:
                return func(*args, **kwargs)

            return inner()

        return wrapper

    return decorator
