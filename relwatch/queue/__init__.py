"""Work-queue consumption with delayed retries and poison-message handling."""

from __future__ import annotations

from .governor import (
    DEFAULT_MAX_DEATHS,
    Delivery,
    Disposition,
    ReleaseIngester,
    RetryGovernor,
    settle,
)
from .messages import (
    MalformedWorkMessageError,
    WorkMessage,
    death_count,
    decode_work_message,
    encode_work_message,
)
from .observability import QueueEventLogger, QueueEventType
from .pool import WorkerPool, default_worker_count
from .topology import (
    RETRY_DELAY_MS,
    RETRY_EXCHANGE,
    RETRY_QUEUE,
    WORK_QUEUE,
    declare_work_queue,
    publish_work_message,
    subscribe_work_queue,
)

__all__ = [
    "DEFAULT_MAX_DEATHS",
    "RETRY_DELAY_MS",
    "RETRY_EXCHANGE",
    "RETRY_QUEUE",
    "WORK_QUEUE",
    "Delivery",
    "Disposition",
    "MalformedWorkMessageError",
    "QueueEventLogger",
    "QueueEventType",
    "ReleaseIngester",
    "RetryGovernor",
    "WorkMessage",
    "WorkerPool",
    "death_count",
    "declare_work_queue",
    "decode_work_message",
    "default_worker_count",
    "encode_work_message",
    "publish_work_message",
    "settle",
    "subscribe_work_queue",
]
