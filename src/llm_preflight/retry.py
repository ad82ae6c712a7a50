"""
retry.py — Bounded retry with exponential back-off.

Every exception from the operation is treated as transient; there is no
error-type filtering. The caller gets a RetryResult and must check
``success`` instead of catching.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Awaitable, Callable, Optional, TypeVar

from llm_preflight.models import RetryResult

logger = logging.getLogger(__name__)

T = TypeVar("T")


async def with_retry(
    operation: Callable[[], Awaitable[T]],
    max_retries: int = 3,
    base_delay: float = 1.0,
    sleep: Callable[[float], Awaitable[object]] = asyncio.sleep,
    on_retry: Optional[Callable[[int, BaseException], None]] = None,
) -> RetryResult[T]:
    """
    Run ``operation`` up to ``max_retries + 1`` times.

    Waits ``base_delay * 2**attempt`` seconds between attempts (0.5, 1.0, …
    for base_delay=0.5). The last failure returns immediately.
    """
    attempts = max(0, max_retries) + 1
    last_exc: Optional[BaseException] = None

    for attempt in range(attempts):
        try:
            result = await operation()
            return RetryResult(success=True, result=result, attempts=attempt + 1)
        except Exception as exc:
            last_exc = exc
            if attempt == attempts - 1:
                break
            delay = base_delay * (2**attempt)
            logger.warning(
                "Attempt %d/%d failed, retrying in %.2fs: %s",
                attempt + 1,
                attempts,
                delay,
                exc,
            )
            if on_retry is not None:
                on_retry(attempt + 1, exc)
            await sleep(delay)

    return RetryResult(
        success=False,
        error=(str(last_exc) or type(last_exc).__name__) if last_exc is not None else "Max retries exceeded",
        exception=last_exc,
        attempts=attempts,
    )
