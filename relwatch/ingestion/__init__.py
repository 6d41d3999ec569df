"""Incremental release-history ingestion for registered repositories."""

from __future__ import annotations

from .cancellation import race_shutdown, throttle
from .config import IngestionConfig
from .errors import IngestionCancelledError, RepositoryNotRegisteredError
from .fetcher import CursorPaginatedFetcher, FetchOutcome, classify_releases
from .observability import (
    ErrorCategory,
    IngestionEventLogger,
    IngestionEventType,
    IngestionRunContext,
    categorize_error,
)
from .orchestrator import IngestionResult, ReleaseIngestionWorker

__all__ = [
    "CursorPaginatedFetcher",
    "ErrorCategory",
    "FetchOutcome",
    "IngestionCancelledError",
    "IngestionConfig",
    "IngestionEventLogger",
    "IngestionEventType",
    "IngestionResult",
    "IngestionRunContext",
    "ReleaseIngestionWorker",
    "RepositoryNotRegisteredError",
    "categorize_error",
    "classify_releases",
    "race_shutdown",
    "throttle",
]
