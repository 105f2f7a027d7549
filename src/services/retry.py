"""
Bounded retry with linear backoff for navigation and detail fetches.
"""
import logging
from typing import Awaitable, Callable, Tuple, Type, TypeVar

from tenacity import (
    AsyncRetrying,
    RetryCallState,
    retry_if_exception_type,
    stop_after_attempt,
    wait_incrementing,
)

logger = logging.getLogger(__name__)

T = TypeVar("T")


async def retry_async(
    operation: Callable[[], Awaitable[T]],
    *,
    attempts: int = 3,
    base_delay_s: float = 2.0,
    retry_on: Tuple[Type[BaseException], ...] = (Exception,),
    description: str = "operation",
) -> T:
    """
    Run operation up to attempts times, sleeping base_delay_s * attempt
    between tries. Re-raises the last error once attempts are exhausted.
    """

    def log_failure(state: RetryCallState) -> None:
        error = state.outcome.exception() if state.outcome else None
        logger.warning(f"{description} failed (attempt {state.attempt_number}/{attempts}): {error}")

    retrying = AsyncRetrying(
        stop=stop_after_attempt(max(1, attempts)),
        wait=wait_incrementing(start=base_delay_s, increment=base_delay_s),
        retry=retry_if_exception_type(retry_on),
        before_sleep=log_failure,
        reraise=True,
    )
    return await retrying(operation)
