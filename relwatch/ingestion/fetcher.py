"""Cursor-paginated fetching of release history.

The fetcher walks a repository's releases or tags connection from a stored
cursor, oldest first. It stops at the last page or at a page with no nodes;
an exhausted rate-limit budget also ends the loop. Remote failures do not
discard progress: the records and cursor reached so far are returned
alongside the error so the caller can commit them.
"""

from __future__ import annotations

import asyncio
import dataclasses
import typing as typ

import httpx

from relwatch.common.time import utcnow
from relwatch.github.errors import (
    GitHubAPIError,
    GitHubRateLimitError,
    GitHubResponseShapeError,
)
from relwatch.storage.models import ReleaseRecord
from relwatch.versions import classify_tag

from .cancellation import race_shutdown, throttle
from .config import IngestionConfig
from .observability import IngestionEventLogger, IngestionRunContext

if typ.TYPE_CHECKING:
    import collections.abc as cabc

    from relwatch.github.client import GitHubReleasesClient
    from relwatch.github.models import FetchedRelease, FetchMode

# Failures that end the page loop but keep the records fetched so far.
_REMOTE_ERRORS: tuple[type[Exception], ...] = (
    GitHubAPIError,
    GitHubResponseShapeError,
    httpx.HTTPError,
)


@dataclasses.dataclass(frozen=True, slots=True)
class FetchOutcome:
    """Records and cursor reached by one fetch loop."""

    records: tuple[ReleaseRecord, ...]
    end_cursor: str | None
    pages_fetched: int
    error: Exception | None = None

    @property
    def rate_limited(self) -> bool:
        """Return True when the loop stopped on an exhausted budget."""
        return isinstance(self.error, GitHubRateLimitError)


def classify_releases(
    releases: cabc.Iterable[FetchedRelease],
) -> list[ReleaseRecord]:
    """Annotate fetched releases with version fields, dropping prereleases."""
    records: list[ReleaseRecord] = []
    for fetched in releases:
        version = classify_tag(fetched.tag_name)
        if version.is_prerelease:
            continue
        records.append(ReleaseRecord.from_fetched(fetched, version))
    return records


class CursorPaginatedFetcher:
    """Page through a repository's releases or tags from a stored cursor."""

    def __init__(
        self,
        client: GitHubReleasesClient,
        *,
        shutdown: asyncio.Event | None = None,
        config: IngestionConfig | None = None,
        event_logger: IngestionEventLogger | None = None,
    ) -> None:
        """Bind the fetcher to a GitHub client and the pool's shutdown event."""
        self._client = client
        self._shutdown = shutdown or asyncio.Event()
        self._config = config or IngestionConfig()
        self._event_logger = event_logger or IngestionEventLogger()

    async def fetch(
        self,
        owner: str,
        name: str,
        *,
        mode: FetchMode,
        after: str | None,
        context: IngestionRunContext | None = None,
    ) -> FetchOutcome:
        """Fetch every page after ``after`` and return the accumulated records.

        A page reporting zero remaining rate-limit budget is discarded and the
        cursor stays at the previous page's end, so the page is fetched again
        on retry.

        Raises
        ------
        IngestionCancelledError
            If shutdown is signalled while waiting on GitHub or the throttle.

        """
        run_context = context or IngestionRunContext(
            owner=owner, name=name, started_at=utcnow()
        )
        records: list[ReleaseRecord] = []
        cursor = after
        pages = 0

        while True:
            if pages:
                await throttle(self._shutdown, self._config.throttle_s)
            try:
                page = await race_shutdown(
                    self._client.fetch_page(
                        owner,
                        name,
                        mode=mode,
                        after=cursor,
                        page_size=self._config.page_size,
                    ),
                    self._shutdown,
                )
            except _REMOTE_ERRORS as exc:
                return FetchOutcome(tuple(records), cursor, pages, exc)
            pages += 1

            if page.rate_limited:
                self._event_logger.log_rate_limited(
                    run_context, pages_fetched=pages, releases_kept=len(records)
                )
                return FetchOutcome(
                    tuple(records),
                    cursor,
                    pages,
                    GitHubRateLimitError.budget_exhausted(),
                )

            self._event_logger.log_page_fetched(
                run_context,
                after=cursor,
                releases=len(page.releases),
                has_next_page=page.has_next_page,
            )
            if page.is_empty:
                break

            records.extend(classify_releases(page.releases))
            if page.end_cursor is not None:
                cursor = page.end_cursor
            if not page.has_next_page:
                break

        return FetchOutcome(tuple(records), cursor, pages)
