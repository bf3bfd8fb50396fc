"""Startup connection retries for backing services, using tenacity."""

from collections.abc import Awaitable, Callable
from functools import wraps
from typing import Any, TypeVar

from loguru import logger
from tenacity import (
    RetryCallState,
    retry,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from .exceptions import StorageError

T = TypeVar("T")

TRANSIENT_ERRORS = (TimeoutError, ConnectionError)


def _log_failed_attempt(service_name: str) -> Callable[[RetryCallState], None]:
    def log(state: RetryCallState) -> None:
        error = state.outcome.exception() if state.outcome else None
        logger.warning(
            f"{service_name} not reachable, retrying",
            attempt=state.attempt_number,
            error=repr(error),
        )

    return log


def with_startup_retry(
    service_name: str,
    max_retries: int = 3,
) -> Callable[[Callable[..., Awaitable[T]]], Callable[..., Awaitable[T]]]:
    """Retry a coroutine that opens a connection at startup.

    Timeouts and refused connections are retried with exponential backoff and
    re-raised once ``max_retries`` attempts are used up. Any other OS-level
    failure (bad path, permissions) is reported as a ``StorageError`` at once.

    Args:
        service_name: Used in log lines and the error message.
        max_retries: Total number of attempts.
    """

    def decorator(connect: Callable[..., Awaitable[T]]) -> Callable[..., Awaitable[T]]:
        @wraps(connect)
        async def attempt(*args: Any, **kwargs: Any) -> T:
            try:
                return await connect(*args, **kwargs)
            except TRANSIENT_ERRORS:
                raise
            except OSError as e:
                logger.error(f"{service_name} cannot be opened: {e}")
                raise StorageError(f"{service_name} unavailable: {e}") from e

        return retry(
            retry=retry_if_exception_type(TRANSIENT_ERRORS),
            stop=stop_after_attempt(max_retries),
            wait=wait_exponential(multiplier=1, min=1, max=10),
            reraise=True,
            before_sleep=_log_failed_attempt(service_name),
        )(attempt)

    return decorator
