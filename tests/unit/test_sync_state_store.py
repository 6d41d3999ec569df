"""Unit tests for the sync-state store."""

from __future__ import annotations

import typing as typ

import pytest
from sqlalchemy import select

from relwatch.storage import (
    ReleaseRecord,
    RepositoryRegistration,
    RepoSyncState,
    SyncStateStore,
)
from relwatch.versions import classify_tag
from tests.helpers.releases import make_release

if typ.TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

_EXTERNAL_ID = "github/4242"


def _registration(**overrides: str | None) -> RepositoryRegistration:
    fields: dict[str, typ.Any] = {
        "external_id": _EXTERNAL_ID,
        "owner": "octo",
        "name": "reef",
        "url": "https://github.com/octo/reef",
        "description": "Coral reef simulator",
    }
    fields.update(overrides)
    return RepositoryRegistration(**fields)


def _record(tag: str, *, day: int) -> ReleaseRecord:
    return ReleaseRecord.from_fetched(make_release(tag, day=day), classify_tag(tag))


@pytest.mark.asyncio
async def test_load_unknown_repository_returns_none(store: SyncStateStore) -> None:
    """Repositories that were never registered have no state."""
    assert await store.load("github/1") is None


@pytest.mark.asyncio
async def test_register_creates_state_with_fetching_flag(
    store: SyncStateStore,
    session_factory: async_sessionmaker[AsyncSession],
) -> None:
    """Registration inserts an empty history with the in-progress flag set."""
    snapshot = await store.register(_registration())

    assert snapshot.external_id == _EXTERNAL_ID
    assert snapshot.end_cursor is None
    assert snapshot.is_fetching is True
    assert snapshot.releases == ()

    async with session_factory() as session:
        row = await session.scalar(select(RepoSyncState))
    assert row is not None
    assert row.url == "https://github.com/octo/reef"
    assert row.description == "Coral reef simulator"
    assert row.created_at.tzinfo is not None


@pytest.mark.asyncio
async def test_register_existing_repository_preserves_history(
    store: SyncStateStore,
) -> None:
    """Re-registering refreshes metadata but keeps cursor and releases."""
    await store.register(_registration())
    await store.commit_releases(
        _EXTERNAL_ID,
        expected_cursor=None,
        new_cursor="cursor-1",
        releases=[_record("v1.0.0", day=1)],
    )

    snapshot = await store.register(_registration(description="Renamed", name="reef2"))

    assert snapshot.name == "reef2"
    assert snapshot.end_cursor == "cursor-1"
    assert snapshot.is_fetching is True
    assert [record.tag_name for record in snapshot.releases] == ["v1.0.0"]


@pytest.mark.asyncio
async def test_commit_releases_advances_cursor_and_merges(
    store: SyncStateStore,
) -> None:
    """A commit from the stored cursor applies and clears the flag."""
    await store.register(_registration())

    applied = await store.commit_releases(
        _EXTERNAL_ID,
        expected_cursor=None,
        new_cursor="cursor-1",
        releases=[_record("v1.1.0", day=4), _record("v1.0.0", day=1)],
    )

    assert applied is True
    snapshot = await store.load(_EXTERNAL_ID)
    assert snapshot is not None
    assert snapshot.end_cursor == "cursor-1"
    assert snapshot.is_fetching is False
    assert [record.tag_name for record in snapshot.releases] == ["v1.0.0", "v1.1.0"]


@pytest.mark.asyncio
async def test_commit_releases_rejects_stale_cursor(store: SyncStateStore) -> None:
    """A commit whose expected cursor no longer matches changes nothing."""
    await store.register(_registration())
    await store.commit_releases(
        _EXTERNAL_ID,
        expected_cursor=None,
        new_cursor="cursor-1",
        releases=[_record("v1.0.0", day=1)],
    )

    applied = await store.commit_releases(
        _EXTERNAL_ID,
        expected_cursor=None,
        new_cursor="cursor-other",
        releases=[_record("v9.0.0", day=9)],
    )

    assert applied is False
    snapshot = await store.load(_EXTERNAL_ID)
    assert snapshot is not None
    assert snapshot.end_cursor == "cursor-1"
    assert [record.tag_name for record in snapshot.releases] == ["v1.0.0"]


@pytest.mark.asyncio
async def test_commit_releases_for_unknown_repository_is_noop(
    store: SyncStateStore,
) -> None:
    """Commits for repositories without state report no update."""
    applied = await store.commit_releases(
        "github/999",
        expected_cursor=None,
        new_cursor="cursor-1",
        releases=[_record("v1.0.0", day=1)],
    )

    assert applied is False


@pytest.mark.asyncio
async def test_clear_fetching_resets_flag(store: SyncStateStore) -> None:
    """The advisory flag can be cleared without touching the history."""
    await store.register(_registration())

    await store.clear_fetching(_EXTERNAL_ID)

    snapshot = await store.load(_EXTERNAL_ID)
    assert snapshot is not None
    assert snapshot.is_fetching is False
    assert snapshot.end_cursor is None
