import asyncio
from typing import Any, Awaitable, Callable, Optional

Callback = Callable[[Optional[BaseException], Any], None]

def with_callback(awaitable: Awaitable, callback: Optional[Callback] = None) -> asyncio.Future:
    """
        Schedules ``awaitable`` and returns its future. When ``callback`` is
        given it is also called as ``callback(error, result)`` once the
        future settles, with exactly one of the two set.
    """
    future = asyncio.ensure_future(awaitable)
    if callback is None:
        return future

    def _done(fut: asyncio.Future):
        if fut.cancelled():
            callback(asyncio.CancelledError(), None)
            return
        error = fut.exception()
        callback(error, None if error is not None else fut.result())

    future.add_done_callback(_done)
    return future
