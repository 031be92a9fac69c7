"""Bounded polling loop shared by the receipt wait and the relayer job wait."""

import asyncio
import logging
import time
from typing import Awaitable, Callable, Optional, TypeVar

from zkpool.exceptions import PollingTimeout

logger = logging.getLogger(__name__)

T = TypeVar("T")


async def poll(
    fetch: Callable[[], Awaitable[T]],
    is_done: Callable[[T], bool],
    interval: float,
    max_attempts: Optional[int] = None,
    timeout: Optional[float] = None,
) -> T:
    """
    Await ``fetch()`` until ``is_done`` accepts its result.

    With neither ``max_attempts`` nor ``timeout`` the loop only ends when the
    remote side reaches a terminal state. The caller can always cancel the
    surrounding task.

    Args:
        fetch: Coroutine factory performing one round trip
        is_done: Predicate on the fetched value
        interval: Seconds to sleep between attempts
        max_attempts: Optional upper bound on fetches
        timeout: Optional deadline in seconds, measured from the first fetch

    Returns:
        The first fetched value accepted by ``is_done``

    Raises:
        PollingTimeout: If attempts or time run out first
    """
    started = time.monotonic()
    attempts = 0
    while True:
        result = await fetch()
        attempts += 1
        if is_done(result):
            return result
        elapsed = time.monotonic() - started
        if max_attempts is not None and attempts >= max_attempts:
            raise PollingTimeout(attempts, elapsed)
        if timeout is not None and elapsed > timeout:
            raise PollingTimeout(attempts, elapsed)
        logger.debug(f"Not done after attempt {attempts}, sleeping {interval}s")
        await asyncio.sleep(interval)
