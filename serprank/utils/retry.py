import asyncio
from collections.abc import Callable, Coroutine
from typing import Any, TypeVar

import structlog

log = structlog.get_logger()

T = TypeVar("T")


def backoff_delay(attempt: int, base_delay: float, max_delay: float = 30.0) -> float:
    """Delay before retry round ``attempt`` (1-based): grows with the attempt number."""
    return min(base_delay * attempt, max_delay)


async def retry_async(
    fn: Callable[..., Coroutine[Any, Any, T]],
    *args: Any,
    max_retries: int = 3,
    base_delay: float = 1.0,
    max_delay: float = 30.0,
    retry_on: tuple[type[Exception], ...] = (Exception,),
    **kwargs: Any,
) -> T:
    """Retry an async function, sleeping ``base_delay * attempt`` between attempts."""
    last_error: Exception | None = None

    for attempt in range(max_retries + 1):
        try:
            return await fn(*args, **kwargs)
        except retry_on as e:
            last_error = e
            if attempt == max_retries:
                break
            delay = backoff_delay(attempt + 1, base_delay, max_delay)
            log.warning(
                "retry_attempt",
                attempt=attempt + 1,
                max_retries=max_retries,
                delay=delay,
                error=str(e),
            )
            await asyncio.sleep(delay)

    raise last_error  # type: ignore[misc]
