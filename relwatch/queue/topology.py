"""RabbitMQ topology for work messages and delayed retries.

Rejected messages on the work queue are dead-lettered to a fanout exchange
whose only queue holds them for a fixed TTL, then dead-letters them back to
the default exchange under their original routing key. The broker therefore
redelivers rate-limited work about a minute later, and the ``x-death`` header
counts the round trips.
"""

from __future__ import annotations

import collections.abc as cabc
import contextlib
import typing as typ

import aio_pika

from .messages import encode_work_message

if typ.TYPE_CHECKING:
    from aio_pika.abc import AbstractChannel, AbstractConnection, AbstractQueue

    from .governor import Delivery
    from .messages import WorkMessage

WORK_QUEUE = "source-requests"
RETRY_EXCHANGE = "dlx-source-requests"
RETRY_QUEUE = "dlq-source-requests"
RETRY_DELAY_MS = 60_000


async def declare_work_queue(channel: AbstractChannel) -> AbstractQueue:
    """Declare the retry exchange, the retry queue and the work queue.

    Declarations are idempotent, so every publisher and consumer declares the
    full topology before use.
    """
    retry_exchange = await channel.declare_exchange(
        RETRY_EXCHANGE,
        aio_pika.ExchangeType.FANOUT,
        durable=True,
    )
    retry_queue = await channel.declare_queue(
        RETRY_QUEUE,
        durable=True,
        arguments={
            "x-dead-letter-exchange": "",
            "x-message-ttl": RETRY_DELAY_MS,
        },
    )
    await retry_queue.bind(retry_exchange, routing_key="")
    return await channel.declare_queue(
        WORK_QUEUE,
        durable=True,
        arguments={"x-dead-letter-exchange": RETRY_EXCHANGE},
    )


@contextlib.asynccontextmanager
async def subscribe_work_queue(
    connection: AbstractConnection,
    *,
    prefetch_count: int = 1,
) -> cabc.AsyncIterator[cabc.AsyncIterator[Delivery]]:
    """Open a channel and yield an iterator over work-queue deliveries.

    Deliveries are not acknowledged automatically; the caller settles each
    one. The channel is closed on exit, which returns any unsettled delivery
    to the queue.
    """
    channel = await connection.channel()
    try:
        await channel.set_qos(prefetch_count=prefetch_count)
        queue = await declare_work_queue(channel)
        async with queue.iterator() as deliveries:
            yield typ.cast("cabc.AsyncIterator[Delivery]", deliveries)
    finally:
        await channel.close()


async def publish_work_message(
    connection: AbstractConnection, message: WorkMessage
) -> None:
    """Publish a persistent work message to the work queue."""
    channel = await connection.channel()
    try:
        queue = await declare_work_queue(channel)
        await channel.default_exchange.publish(
            aio_pika.Message(
                body=encode_work_message(message),
                content_type="application/json",
                delivery_mode=aio_pika.DeliveryMode.PERSISTENT,
            ),
            routing_key=queue.name,
        )
    finally:
        await channel.close()
