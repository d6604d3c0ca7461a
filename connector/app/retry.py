"""
Bounded retry for calls that fail while a freshly created directory object
is still propagating.
"""

import asyncio
import logging
from typing import Awaitable, Callable, TypeVar


logger = logging.getLogger(__name__)

T = TypeVar("T")


async def do_with_retry(
    operation: Callable[[], Awaitable[T]],
    sleep_period: float,
    try_count: int = 3,
) -> T:
    """
    Await ``operation`` until it succeeds or the attempts run out.

    Args:
        operation: Zero-argument coroutine factory, called once per attempt
        sleep_period: Seconds to wait between attempts
        try_count: Total number of attempts

    Returns:
        The result of the first successful attempt

    Raises:
        ValueError: If try_count is not positive
        Exception: The last attempt's exception when every attempt fails
    """
    if try_count <= 0:
        raise ValueError(f"try_count must be positive, got {try_count}")

    attempt = 0
    while True:
        attempt += 1
        try:
            return await operation()
        except Exception as e:
            if attempt >= try_count:
                logger.error(
                    f"Operation failed after {attempt} attempts: {e}",
                    extra={"attempts": attempt},
                )
                raise
            logger.warning(
                f"Attempt {attempt}/{try_count} failed, retrying in {sleep_period}s: {e}",
                extra={"attempt": attempt, "exception_type": type(e).__name__},
            )
            await asyncio.sleep(sleep_period)
