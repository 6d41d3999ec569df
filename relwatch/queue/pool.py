"""Worker pool consuming the work queue.

Each worker owns its own subscription (one AMQP channel with a prefetch of
one) and processes deliveries strictly one at a time. All workers share one
shutdown event: it is checked at every receive, and the ingestion run in
flight observes it through its own cancellable suspension points.
"""

from __future__ import annotations

import asyncio
import os
import typing as typ

from .observability import QueueEventLogger

if typ.TYPE_CHECKING:
    import collections.abc as cabc
    import contextlib

    from .governor import Delivery, RetryGovernor

    type Subscribe = cabc.Callable[
        [], contextlib.AbstractAsyncContextManager[cabc.AsyncIterator[Delivery]]
    ]


def default_worker_count() -> int:
    """Return the number of CPUs, or one when it cannot be determined."""
    return os.cpu_count() or 1


class WorkerPool:
    """Run ``worker_count`` identical consumers until shutdown is signalled."""

    def __init__(
        self,
        subscribe: Subscribe,
        governor: RetryGovernor,
        *,
        shutdown: asyncio.Event,
        worker_count: int | None = None,
        event_logger: QueueEventLogger | None = None,
    ) -> None:
        """Configure the pool.

        Parameters
        ----------
        subscribe
            Factory returning an async context manager that yields an
            iterator over deliveries; called once per worker.
        governor
            Decides and settles the disposition of each delivery.
        shutdown
            Event shared with the ingestion workers; setting it stops the
            pool.
        worker_count
            Number of consumers, defaulting to the CPU count.

        """
        count = default_worker_count() if worker_count is None else worker_count
        if count < 1:
            msg = f"worker_count must be positive, got: {count}"
            raise ValueError(msg)
        self._subscribe = subscribe
        self._governor = governor
        self._shutdown = shutdown
        self._worker_count = count
        self._event_logger = event_logger or QueueEventLogger()

    @property
    def worker_count(self) -> int:
        """Return the number of consumers the pool runs."""
        return self._worker_count

    async def run(self) -> None:
        """Run every consumer and return once all have stopped."""
        async with asyncio.TaskGroup() as group:
            for index in range(self._worker_count):
                group.create_task(self._consume(index), name=f"relwatch-worker-{index}")

    async def _consume(self, index: int) -> None:
        processed = 0
        async with self._subscribe() as deliveries:
            self._event_logger.log_worker_started(worker_index=index)
            while not self._shutdown.is_set():
                delivery = await self._next_or_shutdown(deliveries)
                if delivery is None:
                    break
                await self._governor.handle(delivery)
                processed += 1
        self._event_logger.log_worker_stopped(worker_index=index, processed=processed)

    async def _next_or_shutdown(
        self, deliveries: cabc.AsyncIterator[Delivery]
    ) -> Delivery | None:
        """Return the next delivery, or ``None`` on shutdown or exhaustion.

        A delivery that arrives together with shutdown is still returned so it
        is settled rather than left unacknowledged.
        """
        receive = asyncio.ensure_future(anext(deliveries))
        stop = asyncio.ensure_future(self._shutdown.wait())
        try:
            await asyncio.wait({receive, stop}, return_when=asyncio.FIRST_COMPLETED)
        finally:
            stop.cancel()
            if not receive.done():
                receive.cancel()

        if not receive.done() or receive.cancelled():
            return None
        try:
            return receive.result()
        except StopAsyncIteration:
            return None
