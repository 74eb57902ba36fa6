"""
Retry combinator with timeout and backoff.

One configurable retry path shared by provider I/O calls and the
watcher reconnect loop.
"""

import asyncio
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import Any, Literal, TypeVar

from loguru import logger

from chainsweep.config.constants import (
    BLOCKCHAIN_MAX_RETRIES,
    BLOCKCHAIN_RETRY_DELAY_BASE,
    BLOCKCHAIN_TIMEOUT,
)
from chainsweep.utils.exceptions import RetryExhaustedError

T = TypeVar("T")


class OperationTimeoutError(TimeoutError):
    """Raised when an awaited operation exceeds its time bound."""


@dataclass(frozen=True)
class RetryPolicy:
    """
    Retry schedule.

    Attributes:
        max_attempts: Total attempts including the first one
        base_delay: Base delay in seconds
        backoff: "linear" (base * attempt) or "exponential" (base * 2**(attempt-1))
        max_delay: Upper bound on a single delay
    """

    max_attempts: int = BLOCKCHAIN_MAX_RETRIES
    base_delay: float = BLOCKCHAIN_RETRY_DELAY_BASE
    backoff: Literal["linear", "exponential"] = "exponential"
    max_delay: float = 60.0

    def delay_for(self, attempt: int) -> float:
        """
        Delay to wait after a failed attempt.

        Args:
            attempt: 1-based number of the attempt that just failed

        Returns:
            Delay in seconds
        """
        if self.backoff == "linear":
            delay = self.base_delay * attempt
        else:
            delay = self.base_delay * (2 ** (attempt - 1))
        return min(delay, self.max_delay)


async def with_timeout(
    coro: Awaitable[T],
    timeout: float = BLOCKCHAIN_TIMEOUT,
    operation_name: str = "RPC call",
) -> T:
    """
    Execute awaitable with timeout.

    Args:
        coro: Awaitable to execute
        timeout: Timeout in seconds
        operation_name: Operation name for logging

    Returns:
        Result of the awaitable

    Raises:
        OperationTimeoutError: If operation times out
    """
    try:
        return await asyncio.wait_for(coro, timeout=timeout)
    except TimeoutError as e:
        error_msg = f"{operation_name} timed out after {timeout}s"
        logger.error(error_msg)
        raise OperationTimeoutError(error_msg) from e


async def retry_async(
    coro_factory: Callable[[], Awaitable[T]],
    policy: RetryPolicy | None = None,
    operation_name: str = "RPC call",
    timeout: float | None = None,
    retry_on: tuple[type[BaseException], ...] = (Exception,),
    sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
) -> T:
    """
    Execute an async operation with retry, backoff and optional timeout.

    Exceptions outside ``retry_on`` propagate immediately. Cancellation
    always propagates.

    Args:
        coro_factory: Factory returning a fresh awaitable per attempt
        policy: Retry schedule (defaults to exponential, 3 attempts)
        operation_name: Operation name for logging
        timeout: Per-attempt timeout in seconds (None = no bound)
        retry_on: Exception types that trigger another attempt
        sleep: Sleep function (injectable for tests)

    Returns:
        Result of the first successful attempt

    Raises:
        RetryExhaustedError: If every attempt failed
    """
    policy = policy or RetryPolicy()
    last_error: BaseException | None = None

    for attempt in range(1, policy.max_attempts + 1):
        try:
            if timeout is not None:
                result = await with_timeout(
                    coro_factory(),
                    timeout=timeout,
                    operation_name=f"{operation_name} (attempt {attempt}/{policy.max_attempts})",
                )
            else:
                result = await coro_factory()

            if attempt > 1:
                logger.success(f"{operation_name} succeeded on attempt {attempt}")
            return result

        except asyncio.CancelledError:
            raise
        except retry_on as e:
            last_error = e

            if attempt < policy.max_attempts:
                delay = policy.delay_for(attempt)
                logger.warning(
                    f"{operation_name} failed on attempt {attempt}/{policy.max_attempts}: {e}. "
                    f"Retrying in {delay:.1f}s..."
                )
                await sleep(delay)
            else:
                logger.error(
                    f"{operation_name} failed after {policy.max_attempts} attempts: {e}"
                )

    raise RetryExhaustedError(operation_name, policy.max_attempts, last_error) from last_error
