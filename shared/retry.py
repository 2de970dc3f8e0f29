"""
Retries for idempotent internal calls such as token verification.

Never wrap the candidate data provider with this: a provider batch is sent
exactly once per request cycle.
"""

import asyncio
import functools
import random
from typing import Any, Awaitable, Callable, Optional, Tuple, Type

from shared.logging import get_logger


class RetryConfig:
    """Attempt budget and exponential backoff schedule."""

    def __init__(self,
                 max_attempts: int = 3,
                 base_delay: float = 1.0,
                 max_delay: float = 60.0,
                 exponential_base: float = 2.0,
                 jitter: bool = True):
        if max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")
        self.max_attempts = max_attempts
        self.base_delay = base_delay
        self.max_delay = max_delay
        self.exponential_base = exponential_base
        self.jitter = jitter

    def delay_for(self, attempt: int) -> float:
        """Pause after failed ``attempt`` (1-based), capped, with up to 10% jitter."""
        delay = min(self.base_delay * self.exponential_base ** (attempt - 1), self.max_delay)
        if self.jitter:
            delay += random.uniform(-0.1, 0.1) * delay
        return max(0.0, delay)


class RetryError(Exception):
    """Every attempt failed with a retryable exception."""

    def __init__(self, message: str, last_exception: Exception, attempts: int):
        super().__init__(message)
        self.last_exception = last_exception
        self.attempts = attempts


def retry_on_exception(exceptions: Tuple[Type[BaseException], ...] = (Exception,),
                       config: Optional[RetryConfig] = None) -> Callable:
    """
    Retry an async callable while it raises one of ``exceptions``.

    Other exceptions propagate immediately. When the budget is spent a
    RetryError chained to the last failure is raised.
    """
    config = config or RetryConfig()

    def decorator(func: Callable[..., Awaitable[Any]]) -> Callable[..., Awaitable[Any]]:
        logger = get_logger(f"retry.{func.__name__}")

        @functools.wraps(func)
        async def wrapper(*args, **kwargs) -> Any:
            attempt = 1
            while True:
                try:
                    return await func(*args, **kwargs)
                except exceptions as e:
                    if attempt >= config.max_attempts:
                        logger.error("Retries exhausted", attempts=attempt, error=str(e))
                        raise RetryError(
                            f"{func.__name__} failed after {attempt} attempts",
                            last_exception=e,
                            attempts=attempt
                        ) from e
                    delay = config.delay_for(attempt)
                    logger.warning("Attempt failed, retrying", attempt=attempt, delay=round(delay, 3),
                                   error=str(e))
                    await asyncio.sleep(delay)
                    attempt += 1

        return wrapper

    return decorator
