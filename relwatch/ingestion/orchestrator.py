"""Release ingestion worker.

One run handles one work message: it probes the repository on GitHub,
resolves its registered sync state, pages through new releases (or tags for
repositories that publish no releases) from the stored cursor, and commits
the merged history with a cursor-guarded update. Replaying a message is safe:
a run that finds nothing new commits nothing, and a run that lost a race to a
concurrent worker leaves the winner's state untouched.
"""

from __future__ import annotations

import asyncio
import dataclasses
import typing as typ

from relwatch.common.time import utcnow

from .cancellation import race_shutdown
from .config import IngestionConfig
from .errors import RepositoryNotRegisteredError
from .fetcher import CursorPaginatedFetcher
from .observability import IngestionEventLogger, IngestionRunContext

if typ.TYPE_CHECKING:
    from relwatch.github.client import GitHubReleasesClient
    from relwatch.github.models import FetchMode, RepositoryProbe
    from relwatch.storage.services import SyncStateSnapshot, SyncStateStore


@dataclasses.dataclass(frozen=True, slots=True)
class IngestionResult:
    """Summary of a single repository ingestion run."""

    owner: str
    name: str
    external_id: str | None = None
    mode: FetchMode | None = None
    pages_fetched: int = 0
    releases_committed: int = 0
    end_cursor: str | None = None
    committed: bool = False


class ReleaseIngestionWorker:
    """Ingest new releases for repositories named by work messages."""

    def __init__(
        self,
        store: SyncStateStore,
        client: GitHubReleasesClient,
        *,
        shutdown: asyncio.Event | None = None,
        config: IngestionConfig | None = None,
        event_logger: IngestionEventLogger | None = None,
    ) -> None:
        """Create a worker bound to a sync-state store and GitHub client."""
        self._store = store
        self._client = client
        self._shutdown = shutdown or asyncio.Event()
        self._event_logger = event_logger or IngestionEventLogger()
        self._fetcher = CursorPaginatedFetcher(
            client,
            shutdown=self._shutdown,
            config=config,
            event_logger=self._event_logger,
        )

    async def ingest(self, owner: str, name: str) -> IngestionResult:
        """Ingest new release history for ``owner/name``.

        Raises
        ------
        RepositoryNotRegisteredError
            If the repository has no registered sync state.
        GitHubRateLimitError
            If the rate-limit budget ran out. Records fetched before the
            limit are committed first.
        IngestionCancelledError
            If worker shutdown interrupted the run. Nothing is committed.

        """
        context = IngestionRunContext(owner=owner, name=name, started_at=utcnow())
        self._event_logger.log_run_started(context)

        try:
            result = await self._ingest_inner(context)
        except BaseException as exc:
            self._event_logger.log_run_failed(
                context, exc, utcnow() - context.started_at
            )
            raise

        self._event_logger.log_run_completed(
            context, result, utcnow() - context.started_at
        )
        return result

    async def _ingest_inner(self, context: IngestionRunContext) -> IngestionResult:
        """Resolve sync state, then fetch and commit with the flag cleared."""
        probe = await race_shutdown(
            self._client.probe_repository(context.owner, context.name),
            self._shutdown,
        )
        external_id = probe.external_id
        state = await self._store.load(external_id)
        if state is None:
            raise RepositoryNotRegisteredError.for_repository(
                context.owner, context.name, external_id
            )

        try:
            return await self._fetch_and_commit(context, probe, state)
        finally:
            await self._store.clear_fetching(external_id)

    async def _fetch_and_commit(
        self,
        context: IngestionRunContext,
        probe: RepositoryProbe,
        state: SyncStateSnapshot,
    ) -> IngestionResult:
        mode = probe.fetch_mode
        if mode is None:
            self._event_logger.log_no_history(context)
            return IngestionResult(
                owner=context.owner,
                name=context.name,
                external_id=state.external_id,
                end_cursor=state.end_cursor,
            )

        outcome = await self._fetcher.fetch(
            context.owner,
            context.name,
            mode=mode,
            after=state.end_cursor,
            context=context,
        )
        if not outcome.records:
            if outcome.error is not None:
                raise outcome.error
            self._event_logger.log_nothing_new(context, mode)
            return IngestionResult(
                owner=context.owner,
                name=context.name,
                external_id=state.external_id,
                mode=mode,
                pages_fetched=outcome.pages_fetched,
                end_cursor=state.end_cursor,
            )

        committed = await self._store.commit_releases(
            state.external_id,
            expected_cursor=state.end_cursor,
            new_cursor=outcome.end_cursor,
            releases=outcome.records,
        )
        if not committed:
            self._event_logger.log_commit_skipped(context, state.external_id)

        # Partial progress is saved; the failure still decides the retry.
        if outcome.error is not None:
            raise outcome.error

        return IngestionResult(
            owner=context.owner,
            name=context.name,
            external_id=state.external_id,
            mode=mode,
            pages_fetched=outcome.pages_fetched,
            releases_committed=len(outcome.records) if committed else 0,
            end_cursor=outcome.end_cursor if committed else state.end_cursor,
            committed=committed,
        )
