"""Retry and poison-message handling for work-queue deliveries.

The governor turns the outcome of one ingestion run into a queue disposition:

- acknowledge: the work is done, or can never succeed (poison or malformed
  messages, and failures other than rate limits or cancellation);
- requeue: the worker is shutting down and another consumer should retry;
- dead-letter: the GitHub rate limit ran out, so the message waits in the
  TTL retry queue before it returns to the work queue.
"""

from __future__ import annotations

import asyncio
import enum
import typing as typ

from relwatch.github.errors import GitHubRateLimitError
from relwatch.ingestion.errors import IngestionCancelledError

from .messages import MalformedWorkMessageError, death_count, decode_work_message
from .observability import QueueEventLogger

if typ.TYPE_CHECKING:
    import collections.abc as cabc

DEFAULT_MAX_DEATHS = 10


class Disposition(enum.StrEnum):
    """How a delivery is settled with the broker."""

    ACKNOWLEDGE = "ack"
    REQUEUE = "requeue"
    DEAD_LETTER = "dead_letter"


class Delivery(typ.Protocol):
    """Subset of an AMQP incoming message used by the governor."""

    @property
    def body(self) -> bytes:
        """Raw message body."""
        ...

    @property
    def headers(self) -> cabc.Mapping[str, typ.Any]:
        """AMQP message headers, including ``x-death`` once dead-lettered."""
        ...

    async def ack(self) -> None:
        """Acknowledge the delivery."""
        ...

    async def nack(self, *, requeue: bool = True) -> None:
        """Negatively acknowledge the delivery."""
        ...

    async def reject(self, *, requeue: bool = False) -> None:
        """Reject the delivery, dead-lettering it unless requeued."""
        ...


class ReleaseIngester(typ.Protocol):
    """Interface the governor drives for each decoded work message."""

    async def ingest(self, owner: str, name: str) -> object:
        """Ingest new releases for ``owner/name``."""
        ...


async def settle(delivery: Delivery, disposition: Disposition) -> None:
    """Apply ``disposition`` to ``delivery``."""
    match disposition:
        case Disposition.ACKNOWLEDGE:
            await delivery.ack()
        case Disposition.REQUEUE:
            await delivery.nack(requeue=True)
        case Disposition.DEAD_LETTER:
            await delivery.reject(requeue=False)


class RetryGovernor:
    """Decide and apply the queue disposition for work-queue deliveries."""

    def __init__(
        self,
        ingester: ReleaseIngester,
        *,
        max_deaths: int = DEFAULT_MAX_DEATHS,
        event_logger: QueueEventLogger | None = None,
    ) -> None:
        """Bind the governor to the ingestion worker it dispatches to."""
        self._ingester = ingester
        self._max_deaths = max_deaths
        self._event_logger = event_logger or QueueEventLogger()

    async def decide(self, delivery: Delivery) -> Disposition:
        """Run ingestion for ``delivery`` if eligible and pick a disposition.

        ``asyncio.CancelledError`` propagates; :meth:`handle` requeues it.
        """
        deaths = death_count(delivery.headers)
        if deaths > self._max_deaths:
            self._event_logger.log_message_poisoned(
                deaths=deaths, max_deaths=self._max_deaths
            )
            return Disposition.ACKNOWLEDGE

        try:
            message = decode_work_message(delivery.body)
        except MalformedWorkMessageError as exc:
            self._event_logger.log_message_malformed(exc)
            return Disposition.ACKNOWLEDGE

        try:
            await self._ingester.ingest(message.owner, message.repo)
        except IngestionCancelledError:
            return Disposition.REQUEUE
        except GitHubRateLimitError:
            return Disposition.DEAD_LETTER
        except Exception as exc:
            # Other failures are not retried; the message is dropped.
            self._event_logger.log_message_dropped(
                owner=message.owner, repo=message.repo, error=exc
            )
            return Disposition.ACKNOWLEDGE
        return Disposition.ACKNOWLEDGE

    async def handle(self, delivery: Delivery) -> Disposition:
        """Decide the disposition for ``delivery`` and settle it.

        Broker errors while settling are logged and do not propagate, so one
        broken channel cannot stop the other consumers.
        """
        try:
            disposition = await self.decide(delivery)
        except asyncio.CancelledError:
            await self._settle(delivery, Disposition.REQUEUE)
            raise
        if await self._settle(delivery, disposition):
            self._event_logger.log_message_settled(
                disposition=disposition, deaths=death_count(delivery.headers)
            )
        return disposition

    async def _settle(self, delivery: Delivery, disposition: Disposition) -> bool:
        try:
            await settle(delivery, disposition)
        except Exception as exc:
            self._event_logger.log_settle_failed(disposition=disposition, error=exc)
            return False
        return True
