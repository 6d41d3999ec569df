"""Structured log events for work-queue consumers.

Usage
-----
>>> event_logger = QueueEventLogger()
>>> event_logger.log_worker_started(worker_index=0)

"""

from __future__ import annotations

import enum
import typing as typ

from relwatch.ingestion.observability import categorize_error
from relwatch.logging import (
    format_log_message,
    get_logger,
    log_error,
    log_exception,
    log_info,
    log_warning,
)

if typ.TYPE_CHECKING:
    from .governor import Disposition

logger = get_logger(__name__)


class QueueEventType(enum.StrEnum):
    """Structured log event types for queue consumption."""

    WORKER_STARTED = "queue.worker.started"
    WORKER_STOPPED = "queue.worker.stopped"
    MESSAGE_SETTLED = "queue.message.settled"
    MESSAGE_POISONED = "queue.message.poisoned"
    MESSAGE_MALFORMED = "queue.message.malformed"
    MESSAGE_DROPPED = "queue.message.dropped"
    SETTLE_FAILED = "queue.message.settle_failed"


class QueueEventLogger:
    """Emit structured queue events via femtologging."""

    def log_worker_started(self, *, worker_index: int) -> None:
        """Log a consumer loop subscribing to the work queue."""
        log_info(
            logger,
            "[%s] worker_index=%d",
            QueueEventType.WORKER_STARTED,
            worker_index,
        )

    def log_worker_stopped(self, *, worker_index: int, processed: int) -> None:
        """Log a consumer loop exiting after shutdown."""
        log_info(
            logger,
            "[%s] worker_index=%d messages_processed=%d",
            QueueEventType.WORKER_STOPPED,
            worker_index,
            processed,
        )

    def log_message_settled(
        self, *, disposition: Disposition, deaths: int
    ) -> None:
        """Log the final disposition chosen for a delivery."""
        log_info(
            logger,
            "[%s] disposition=%s death_count=%d",
            QueueEventType.MESSAGE_SETTLED,
            disposition,
            deaths,
        )

    def log_message_poisoned(self, *, deaths: int, max_deaths: int) -> None:
        """Log a delivery dropped after exceeding the retry budget."""
        log_warning(
            logger,
            "[%s] death_count=%d max_deaths=%d",
            QueueEventType.MESSAGE_POISONED,
            deaths,
            max_deaths,
        )

    def log_message_malformed(self, error: Exception) -> None:
        """Log a delivery whose body is not a work message."""
        log_warning(
            logger,
            "[%s] error_message=%s",
            QueueEventType.MESSAGE_MALFORMED,
            str(error),
        )

    def log_message_dropped(
        self, *, owner: str, repo: str, error: BaseException
    ) -> None:
        """Log a work message acknowledged despite a failed ingestion."""
        log_error(
            logger,
            "[%s] repo_slug=%s/%s error_type=%s error_category=%s",
            QueueEventType.MESSAGE_DROPPED,
            owner,
            repo,
            type(error).__name__,
            categorize_error(error),
            exc_info=error,
        )

    def log_settle_failed(
        self, *, disposition: Disposition, error: BaseException
    ) -> None:
        """Log a broker failure while acknowledging, requeueing or rejecting.

        The broker redelivers unsettled messages once the channel closes, so
        the consumer keeps running.
        """
        log_exception(
            logger,
            format_log_message(
                "[%s] disposition=%s error_type=%s error_message=%s",
                QueueEventType.SETTLE_FAILED,
                disposition,
                type(error).__name__,
                str(error),
            ),
            error,
        )
