"""
Bounded retry with backoff for the device tracking backend.

Used only at startup, where the coordinate store connection is retried a
fixed number of times before the service gives up. Request handling never
retries.

The delay before retry ``n`` (0-indexed) is
``initial_delay * exponential_base ** n``, capped by ``max_delay``. An
exponential_base of 1.0 gives a fixed interval.
"""

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Optional, Tuple, Type, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass
class RetryConfig:
    """
    Configuration for retry behavior.

    Attributes:
        max_attempts: Total number of attempts, including the first.
        initial_delay: Delay before the first retry, in seconds.
        exponential_base: Multiplier applied to the delay after each retry.
        max_delay: Optional cap on any single delay, in seconds.
        retryable_exceptions: Exception types that trigger a retry; anything
            else propagates immediately.
    """
    max_attempts: int = 3
    initial_delay: float = 1.0
    exponential_base: float = 2.0
    max_delay: Optional[float] = None
    retryable_exceptions: Tuple[Type[Exception], ...] = field(
        default_factory=lambda: (Exception,)
    )

    def __post_init__(self) -> None:
        if self.max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")
        if self.initial_delay < 0:
            raise ValueError("initial_delay cannot be negative")

    @classmethod
    def fixed_interval(cls, max_attempts: int, interval: float, **kwargs: Any) -> "RetryConfig":
        """Config that waits the same interval between every attempt."""
        return cls(
            max_attempts=max_attempts,
            initial_delay=interval,
            exponential_base=1.0,
            **kwargs
        )


class RetryExhaustedException(Exception):
    """
    Raised when every attempt of an operation has failed.

    Attributes:
        attempts: Number of attempts made
        last_exception: The failure from the final attempt
        operation_name: Name of the operation, for logs
    """

    def __init__(
        self,
        message: str,
        attempts: int,
        last_exception: Exception,
        operation_name: Optional[str] = None
    ):
        self.attempts = attempts
        self.last_exception = last_exception
        self.operation_name = operation_name
        super().__init__(message)


def calculate_delay(
    attempt: int,
    initial_delay: float,
    exponential_base: float,
    max_delay: Optional[float] = None
) -> float:
    """
    Delay in seconds before retry number ``attempt`` (0-indexed).

    With initial_delay=5.0 and exponential_base=1.0 every delay is 5s;
    with initial_delay=1.0 and exponential_base=2.0 the delays are 1s, 2s, 4s.
    """
    delay = initial_delay * (exponential_base ** attempt)

    if max_delay is not None:
        delay = min(delay, max_delay)

    return delay


async def retry_async(
    func: Callable[..., Awaitable[T]],
    *args: Any,
    config: Optional[RetryConfig] = None,
    operation_name: Optional[str] = None,
    **kwargs: Any
) -> T:
    """
    Await ``func(*args, **kwargs)``, retrying on failure.

    Example:
        await retry_async(
            store.connect,
            config=RetryConfig.fixed_interval(max_attempts=6, interval=5.0),
            operation_name="coordinate_store_connect"
        )

    Raises:
        RetryExhaustedException: When all attempts have failed
    """
    effective_config = config or RetryConfig()
    op_name = operation_name or getattr(func, "__name__", "operation")
    max_attempts = effective_config.max_attempts

    for attempt in range(max_attempts):
        try:
            return await func(*args, **kwargs)
        except effective_config.retryable_exceptions as e:
            if attempt == max_attempts - 1:
                logger.error(
                    "Retry exhausted for operation '%s' after %d attempts. "
                    "Last error: %s",
                    op_name,
                    max_attempts,
                    str(e),
                    extra={"extra_data": {
                        "operation": op_name,
                        "attempts": max_attempts,
                        "last_error": str(e),
                        "error_type": type(e).__name__
                    }}
                )
                raise RetryExhaustedException(
                    f"Operation '{op_name}' failed after {max_attempts} attempts",
                    attempts=max_attempts,
                    last_exception=e,
                    operation_name=op_name
                ) from e

            delay = calculate_delay(
                attempt,
                effective_config.initial_delay,
                effective_config.exponential_base,
                effective_config.max_delay
            )

            logger.warning(
                "Attempt %d/%d for operation '%s' failed with %s: %s. "
                "Retrying in %.2f seconds (%d attempts left)...",
                attempt + 1,
                max_attempts,
                op_name,
                type(e).__name__,
                str(e),
                delay,
                max_attempts - attempt - 1,
                extra={"extra_data": {
                    "operation": op_name,
                    "attempt": attempt + 1,
                    "max_attempts": max_attempts,
                    "delay_seconds": delay,
                    "error_type": type(e).__name__,
                    "error_message": str(e)
                }}
            )

            await asyncio.sleep(delay)

    # Unreachable: the loop either returns or raises on its last attempt
    raise RuntimeError(f"Retry loop for '{op_name}' ended without a result")
