"""Observability primitives for release ingestion.

Provides structured logging and error categorization for ingestion runs,
rate-limit stops and lost commit races. All events are emitted as structured
log lines suitable for parsing by log aggregators.
"""

from __future__ import annotations

import asyncio
import dataclasses
import enum
import typing as typ

from sqlalchemy.exc import (
    IntegrityError,
    InterfaceError,
    OperationalError,
    SQLAlchemyError,
)

from relwatch.github.errors import (
    GitHubAPIError,
    GitHubConfigError,
    GitHubRateLimitError,
    GitHubResponseShapeError,
)
from relwatch.logging import get_logger, log_debug, log_error, log_info, log_warning

from .errors import IngestionCancelledError, RepositoryNotRegisteredError

if typ.TYPE_CHECKING:
    import datetime as dt

    from relwatch.github.models import FetchMode

    from .orchestrator import IngestionResult

logger = get_logger(__name__)

# HTTP status code threshold for server errors (5xx)
_HTTP_SERVER_ERROR_THRESHOLD = 500


class IngestionEventType(enum.StrEnum):
    """Structured log event types for ingestion observability."""

    RUN_STARTED = "ingestion.run.started"
    RUN_COMPLETED = "ingestion.run.completed"
    RUN_FAILED = "ingestion.run.failed"
    RUN_CANCELLED = "ingestion.run.cancelled"
    PAGE_FETCHED = "ingestion.page.fetched"
    RATE_LIMITED = "ingestion.rate_limited"
    NO_HISTORY = "ingestion.no_history"
    NOTHING_NEW = "ingestion.nothing_new"
    COMMIT_SKIPPED = "ingestion.commit.skipped"


class ErrorCategory(enum.StrEnum):
    """Categories for error classification in alerts."""

    RATE_LIMITED = "rate_limited"
    CANCELLED = "cancelled"
    NOT_REGISTERED = "not_registered"
    TRANSIENT = "transient"
    CLIENT_ERROR = "client_error"
    SCHEMA_DRIFT = "schema_drift"
    CONFIGURATION = "configuration"
    DATABASE_CONNECTIVITY = "database_connectivity"
    DATA_INTEGRITY = "data_integrity"
    DATABASE_ERROR = "database_error"
    UNKNOWN = "unknown"


@dataclasses.dataclass(frozen=True, slots=True)
class IngestionRunContext:
    """Shared context for a single repository ingestion run."""

    owner: str
    name: str
    started_at: dt.datetime

    @property
    def repo_slug(self) -> str:
        """Return the ``owner/name`` slug used in log lines."""
        return f"{self.owner}/{self.name}"


_EXCEPTION_CATEGORY_MAP: tuple[tuple[type[BaseException], ErrorCategory], ...] = (
    (GitHubRateLimitError, ErrorCategory.RATE_LIMITED),
    (IngestionCancelledError, ErrorCategory.CANCELLED),
    (asyncio.CancelledError, ErrorCategory.CANCELLED),
    (RepositoryNotRegisteredError, ErrorCategory.NOT_REGISTERED),
    (GitHubResponseShapeError, ErrorCategory.SCHEMA_DRIFT),
    (GitHubConfigError, ErrorCategory.CONFIGURATION),
    (OperationalError, ErrorCategory.DATABASE_CONNECTIVITY),
    (InterfaceError, ErrorCategory.DATABASE_CONNECTIVITY),
    (IntegrityError, ErrorCategory.DATA_INTEGRITY),
    (SQLAlchemyError, ErrorCategory.DATABASE_ERROR),
)


def categorize_error(exc: BaseException) -> ErrorCategory:
    """Categorize an exception for alerting purposes.

    Returns:
        ErrorCategory indicating the type of failure for alert routing.

    """
    for exc_type, category in _EXCEPTION_CATEGORY_MAP:
        if isinstance(exc, exc_type):
            return category

    # Remaining GitHubAPIErrors split on status code
    if isinstance(exc, GitHubAPIError):
        if (
            exc.status_code is not None
            and exc.status_code >= _HTTP_SERVER_ERROR_THRESHOLD
        ):
            return ErrorCategory.TRANSIENT
        return ErrorCategory.CLIENT_ERROR

    return ErrorCategory.UNKNOWN


class IngestionEventLogger:
    """Emit structured ingestion events via femtologging.

    Events are emitted at INFO level for run progress, WARNING for rate-limit
    stops, lost races and cancellation, and ERROR for failures.
    """

    def log_run_started(self, context: IngestionRunContext) -> None:
        """Log ingestion run start."""
        log_info(
            logger,
            "[%s] repo_slug=%s started_at=%s",
            IngestionEventType.RUN_STARTED,
            context.repo_slug,
            context.started_at.isoformat(),
        )

    def log_run_completed(
        self,
        context: IngestionRunContext,
        result: IngestionResult,
        duration: dt.timedelta,
    ) -> None:
        """Log successful ingestion run completion with counts."""
        log_info(
            logger,
            "[%s] repo_slug=%s external_id=%s mode=%s duration_seconds=%.3f "
            "pages_fetched=%d releases_committed=%d committed=%s",
            IngestionEventType.RUN_COMPLETED,
            context.repo_slug,
            result.external_id,
            result.mode,
            duration.total_seconds(),
            result.pages_fetched,
            result.releases_committed,
            result.committed,
        )

    def log_run_failed(
        self,
        context: IngestionRunContext,
        error: BaseException,
        duration: dt.timedelta,
    ) -> None:
        """Log failed ingestion run with error categorization."""
        category = categorize_error(error)
        if category is ErrorCategory.CANCELLED:
            log_warning(
                logger,
                "[%s] repo_slug=%s duration_seconds=%.3f",
                IngestionEventType.RUN_CANCELLED,
                context.repo_slug,
                duration.total_seconds(),
            )
            return
        log_error(
            logger,
            "[%s] repo_slug=%s duration_seconds=%.3f "
            "error_type=%s error_category=%s error_message=%s",
            IngestionEventType.RUN_FAILED,
            context.repo_slug,
            duration.total_seconds(),
            type(error).__name__,
            category,
            str(error),
            exc_info=error,
        )

    def log_page_fetched(
        self,
        context: IngestionRunContext,
        *,
        after: str | None,
        releases: int,
        has_next_page: bool,
    ) -> None:
        """Log one fetched page at DEBUG level."""
        log_debug(
            logger,
            "[%s] repo_slug=%s after=%s releases=%d has_next_page=%s",
            IngestionEventType.PAGE_FETCHED,
            context.repo_slug,
            after,
            releases,
            has_next_page,
        )

    def log_rate_limited(
        self,
        context: IngestionRunContext,
        *,
        pages_fetched: int,
        releases_kept: int,
    ) -> None:
        """Log a fetch loop stopped by an exhausted rate-limit budget."""
        log_warning(
            logger,
            "[%s] repo_slug=%s pages_fetched=%d releases_kept=%d",
            IngestionEventType.RATE_LIMITED,
            context.repo_slug,
            pages_fetched,
            releases_kept,
        )

    def log_no_history(self, context: IngestionRunContext) -> None:
        """Log a repository with neither releases nor tags."""
        log_info(
            logger,
            "[%s] repo_slug=%s",
            IngestionEventType.NO_HISTORY,
            context.repo_slug,
        )

    def log_nothing_new(
        self, context: IngestionRunContext, mode: FetchMode
    ) -> None:
        """Log a run that found no new releases and skipped the commit."""
        log_info(
            logger,
            "[%s] repo_slug=%s mode=%s",
            IngestionEventType.NOTHING_NEW,
            context.repo_slug,
            mode,
        )

    def log_commit_skipped(
        self, context: IngestionRunContext, external_id: str
    ) -> None:
        """Log a commit that lost the race against a concurrent run."""
        log_warning(
            logger,
            "[%s] repo_slug=%s external_id=%s reason=cursor_moved",
            IngestionEventType.COMMIT_SKIPPED,
            context.repo_slug,
            external_id,
        )
