"""
Bounded retry for single remote operations.

Only TransientError (e.g. a 5xx from Acorn) is retried. Everything else -
session expiry included - propagates on first occurrence so the caller can
react instead of burning the retry budget.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Awaitable, Callable, TypeVar

from squirrel.errors import TransientError


log = logging.getLogger(__name__)

T = TypeVar("T")

MAX_ATTEMPTS = 3
RETRY_DELAY = 2.0


async def retry_operation(
    operation: Callable[[], Awaitable[T]],
    attempts: int = MAX_ATTEMPTS,
    delay: float = RETRY_DELAY,
    what: str = "operation",
    sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
) -> T:
    """
    Run `operation` up to `attempts` times, sleeping `delay` seconds between tries.

    After the last attempt the last TransientError is re-raised.
    """
    if attempts < 1:
        raise ValueError("attempts must be >= 1")

    for attempt in range(1, attempts + 1):
        try:
            return await operation()
        except TransientError as exc:
            if attempt == attempts:
                raise
            log.warning(
                "%s: attempt %d failed (%s), retrying in %gs...", what, attempt, exc, delay
            )
            await sleep(delay)

    # unreachable: the loop either returns or raises
    raise AssertionError("retry loop exited without result")
