from __future__ import annotations

import asyncio
import time
from typing import Awaitable, Callable, Union

Predicate = Callable[[], Union[bool, Awaitable[bool]]]


async def wait_for_condition(
    predicate: Predicate,
    timeout_s: float,
    interval_s: float = 0.5,
    backoff: float = 1.0,
    max_interval_s: float = 2.0,
    clock: Callable[[], float] = time.monotonic,
) -> bool:
    """Poll ``predicate`` until it holds or ``timeout_s`` elapses.

    The predicate is checked once before any sleep. Returns ``True`` as soon as
    it holds and ``False`` on timeout; a timeout is not an error.
    """
    deadline = clock() + max(0.0, timeout_s)
    delay = interval_s
    while True:
        result = predicate()
        if asyncio.iscoroutine(result):
            result = await result
        if result:
            return True
        remaining = deadline - clock()
        if remaining <= 0:
            return False
        await asyncio.sleep(min(delay, remaining))
        delay = min(delay * backoff, max_interval_s) if backoff > 1.0 else delay
