from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable
from typing import TypeVar

T = TypeVar("T")


async def retry(
    operation: Callable[[], Awaitable[T]],
    retries: int,
    delay_sec: float = 1.0,
    retry_on: Callable[[Exception], bool] = lambda exc: True,
) -> T:
    last_error: Exception | None = None
    for attempt in range(retries + 1):
        try:
            return await operation()
        except Exception as exc:
            last_error = exc
            if attempt >= retries or not retry_on(exc):
                break
            await asyncio.sleep(delay_sec * (attempt + 1))

    if last_error is None:
        raise RuntimeError("retry() failed without exception")
    raise last_error
