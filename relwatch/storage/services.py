"""Services for reading and updating repository sync state."""

from __future__ import annotations

import collections.abc as cabc
import dataclasses as dc
import typing as typ

from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError

from relwatch.storage.models import (
    ReleaseRecord,
    decode_releases,
    encode_releases,
    merge_releases,
)
from relwatch.storage.tables import RepoSyncState

if typ.TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker
    from sqlalchemy.sql.elements import ColumnElement


@dc.dataclass(frozen=True, slots=True)
class SyncStateSnapshot:
    """Immutable view of a repository's sync state at read time."""

    external_id: str
    owner: str
    name: str
    end_cursor: str | None
    is_fetching: bool
    releases: tuple[ReleaseRecord, ...]


@dc.dataclass(frozen=True, slots=True)
class RepositoryRegistration:
    """Repository metadata captured when an operator registers a repository."""

    external_id: str
    owner: str
    name: str
    url: str
    description: str | None = None


def _snapshot(row: RepoSyncState) -> SyncStateSnapshot:
    return SyncStateSnapshot(
        external_id=row.external_id,
        owner=row.owner,
        name=row.name,
        end_cursor=row.end_cursor,
        is_fetching=row.is_fetching,
        releases=tuple(decode_releases(row.releases)),
    )


def _cursor_matches(expected: str | None) -> ColumnElement[bool]:
    """Return a null-safe equality filter on the stored cursor."""
    if expected is None:
        return RepoSyncState.end_cursor.is_(None)
    return RepoSyncState.end_cursor == expected


class SyncStateStore:
    """Read and conditionally update RepoSyncState rows.

    The store is the only writer of cursors and release lists. Commits are
    guarded by the cursor read before fetching, so two workers ingesting the
    same repository cannot both apply a page range.
    """

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]) -> None:
        """Store the session factory shared by all workers."""
        self._session_factory = session_factory

    async def load(self, external_id: str) -> SyncStateSnapshot | None:
        """Return the sync state for ``external_id`` or ``None`` if unregistered."""
        async with self._session_factory() as session:
            row = await session.scalar(
                select(RepoSyncState).where(RepoSyncState.external_id == external_id)
            )
            return None if row is None else _snapshot(row)

    async def commit_releases(
        self,
        external_id: str,
        *,
        expected_cursor: str | None,
        new_cursor: str | None,
        releases: cabc.Sequence[ReleaseRecord],
    ) -> bool:
        """Merge ``releases`` and advance the cursor if it is still unchanged.

        Returns ``True`` when the update applied and ``False`` when the stored
        cursor no longer equals ``expected_cursor`` because another worker
        committed first.
        """
        async with self._session_factory() as session, session.begin():
            stored = await session.scalar(
                select(RepoSyncState.releases).where(
                    RepoSyncState.external_id == external_id,
                    _cursor_matches(expected_cursor),
                )
            )
            if stored is None:
                return False

            merged = merge_releases(decode_releases(stored), releases)
            result = await session.execute(
                update(RepoSyncState)
                .where(
                    RepoSyncState.external_id == external_id,
                    _cursor_matches(expected_cursor),
                )
                .values(
                    end_cursor=new_cursor,
                    is_fetching=False,
                    releases=encode_releases(merged),
                )
                .execution_options(synchronize_session=False)
            )
            return typ.cast("typ.Any", result).rowcount == 1

    async def clear_fetching(self, external_id: str) -> None:
        """Clear the advisory in-progress flag."""
        async with self._session_factory() as session, session.begin():
            await session.execute(
                update(RepoSyncState)
                .where(RepoSyncState.external_id == external_id)
                .values(is_fetching=False)
                .execution_options(synchronize_session=False)
            )

    async def register(self, registration: RepositoryRegistration) -> SyncStateSnapshot:
        """Create or refresh the sync state for a repository.

        Existing cursors and release lists are preserved; the in-progress flag
        is raised because a work message is published right after
        registration.
        """
        try:
            return await self._upsert(registration)
        except IntegrityError:
            # A concurrent registration inserted the row first; update it.
            return await self._upsert(registration)

    async def _upsert(self, registration: RepositoryRegistration) -> SyncStateSnapshot:
        async with self._session_factory() as session, session.begin():
            row = await session.scalar(
                select(RepoSyncState).where(
                    RepoSyncState.external_id == registration.external_id
                )
            )
            if row is None:
                row = RepoSyncState(
                    external_id=registration.external_id,
                    end_cursor=None,
                    releases=[],
                )
                session.add(row)
            row.owner = registration.owner
            row.name = registration.name
            row.url = registration.url
            row.description = registration.description
            row.is_fetching = True
            await session.flush()
            return _snapshot(row)
