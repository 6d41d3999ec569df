"""Shutdown-aware suspension points for ingestion runs.

Remote calls and throttle delays are the long waits in an ingestion run, so
both are raced against the worker pool's shared shutdown event. Whichever
finishes first wins; a set event surfaces as
:class:`~relwatch.ingestion.errors.IngestionCancelledError`.
"""

from __future__ import annotations

import asyncio
import typing as typ

from .errors import IngestionCancelledError

if typ.TYPE_CHECKING:
    import collections.abc as cabc


async def race_shutdown[T](
    awaitable: cabc.Awaitable[T], shutdown: asyncio.Event
) -> T:
    """Await ``awaitable`` unless ``shutdown`` is set first.

    The abandoned side of the race is cancelled before returning.

    Raises
    ------
    IngestionCancelledError
        If ``shutdown`` is set before ``awaitable`` completes.

    """
    call = asyncio.ensure_future(awaitable)
    if shutdown.is_set():
        call.cancel()
        raise IngestionCancelledError.shutdown_requested()

    stop = asyncio.ensure_future(shutdown.wait())
    try:
        await asyncio.wait({call, stop}, return_when=asyncio.FIRST_COMPLETED)
    finally:
        stop.cancel()
        if not call.done():
            call.cancel()

    if call.done() and not call.cancelled():
        return call.result()
    raise IngestionCancelledError.shutdown_requested()


async def throttle(shutdown: asyncio.Event, delay_s: float) -> None:
    """Sleep for ``delay_s`` seconds, waking early on shutdown.

    Raises
    ------
    IngestionCancelledError
        If ``shutdown`` is set before the delay elapses.

    """
    if shutdown.is_set():
        raise IngestionCancelledError.shutdown_requested()
    if delay_s <= 0:
        return
    try:
        await asyncio.wait_for(shutdown.wait(), timeout=delay_s)
    except TimeoutError:
        return
    raise IngestionCancelledError.shutdown_requested()
