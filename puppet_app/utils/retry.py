"""Retry helper for transport-level backend failures."""

import asyncio
from typing import Any, Awaitable, Callable, TypeVar

import structlog

from ..errors import BackendFailureError

logger = structlog.get_logger(__name__)

T = TypeVar("T")


async def call_with_retry(
    func: Callable[..., Awaitable[T]],
    *args: Any,
    max_retries: int = 3,
    retry_delay: float = 1.0,
    backoff: float = 2.0,
    **kwargs: Any
) -> T:
    """
    Await ``func(*args, **kwargs)``, retrying BackendFailureError with backoff.

    Only transport failures are retried. NotFound, MalformedPayload and
    lifecycle errors propagate on the first attempt.

    Args:
        func: Coroutine function to call
        max_retries: Maximum number of retry attempts after the first call
        retry_delay: Delay before the first retry in seconds
        backoff: Multiplier applied to the delay after each retry

    Returns:
        Whatever ``func`` returns on the first successful attempt
    """
    attempt = 0
    delay = retry_delay

    while True:
        try:
            return await func(*args, **kwargs)
        except BackendFailureError as e:
            e.retry_count = attempt
            e.max_retries = max_retries
            if attempt >= max_retries:
                logger.error(
                    "Max retries exceeded",
                    operation=e.operation or getattr(func, "__name__", str(func)),
                    attempts=attempt + 1,
                    error=str(e)
                )
                raise

            attempt += 1
            logger.warning(
                f"Backend call attempt {attempt} failed, retrying in {delay}s",
                operation=e.operation or getattr(func, "__name__", str(func)),
                error=str(e)
            )
            await asyncio.sleep(delay)
            delay *= backoff
