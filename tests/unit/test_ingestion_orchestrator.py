"""Unit tests for the release ingestion worker."""

from __future__ import annotations

import asyncio
import typing as typ

import pytest

from relwatch.github import FetchMode, GitHubAPIError, GitHubRateLimitError, ReleasePage
from relwatch.ingestion import (
    IngestionCancelledError,
    IngestionConfig,
    IngestionEventType,
    ReleaseIngestionWorker,
    RepositoryNotRegisteredError,
)
from relwatch.storage import RepositoryRegistration, SyncStateSnapshot
from tests.helpers.log_capture import record_module_logs
from tests.helpers.releases import (
    BlockingReleasesClient,
    FakeReleasesClient,
    chain_pages,
    make_probe,
    make_release,
)

if typ.TYPE_CHECKING:
    import collections.abc as cabc

    from relwatch.storage import SyncStateStore

_EXTERNAL_ID = "github/4242"
_NO_THROTTLE = IngestionConfig(throttle_s=0)


async def _register(store: SyncStateStore) -> None:
    await store.register(
        RepositoryRegistration(
            external_id=_EXTERNAL_ID,
            owner="octo",
            name="reef",
            url="https://github.com/octo/reef",
        )
    )


def _worker(
    store: SyncStateStore,
    client: FakeReleasesClient,
    *,
    shutdown: asyncio.Event | None = None,
) -> ReleaseIngestionWorker:
    return ReleaseIngestionWorker(
        store, client, shutdown=shutdown, config=_NO_THROTTLE
    )


async def _state(store: SyncStateStore) -> SyncStateSnapshot:
    snapshot = await store.load(_EXTERNAL_ID)
    assert snapshot is not None, "Expected registered sync state"
    return snapshot


def _tags(snapshot: SyncStateSnapshot) -> list[str]:
    return [record.tag_name for record in snapshot.releases]


def _three_pages() -> dict[str | None, ReleasePage]:
    return chain_pages(
        [
            [make_release("v1.0.0", day=1), make_release("v1.1.0", day=2)],
            [make_release("v1.2.0", day=3)],
            [make_release("v1.3.0", day=4)],
        ]
    )


@pytest.mark.asyncio
async def test_ingest_commits_new_releases(store: SyncStateStore) -> None:
    """A first run stores every page and advances the cursor."""
    await _register(store)
    client = FakeReleasesClient(make_probe(), _three_pages())

    result = await _worker(store, client).ingest("octo", "reef")

    assert result.committed is True
    assert result.external_id == _EXTERNAL_ID
    assert result.mode is FetchMode.RELEASES
    assert result.pages_fetched == 3
    assert result.releases_committed == 4
    snapshot = await _state(store)
    assert snapshot.end_cursor == "cursor-3"
    assert snapshot.is_fetching is False
    assert _tags(snapshot) == ["v1.0.0", "v1.1.0", "v1.2.0", "v1.3.0"]


@pytest.mark.asyncio
async def test_replaying_message_without_new_data_is_idempotent(
    store: SyncStateStore,
) -> None:
    """A second run with nothing new leaves cursor and history unchanged."""
    await _register(store)
    client = FakeReleasesClient(make_probe(), _three_pages())
    worker = _worker(store, client)
    await worker.ingest("octo", "reef")
    before = await _state(store)

    result = await worker.ingest("octo", "reef")

    after = await _state(store)
    assert result.committed is False
    assert client.fetch_calls[-1].after == "cursor-3"
    assert after.end_cursor == before.end_cursor
    assert after.releases == before.releases


@pytest.mark.asyncio
async def test_rate_limit_mid_fetch_commits_partial_progress(
    store: SyncStateStore,
) -> None:
    """Rate limit on page 2 of 3 keeps page 1 and reports the failure."""
    await _register(store)
    pages = _three_pages()
    pages["cursor-1"] = ReleasePage(
        releases=(make_release("v1.2.0", day=3),),
        end_cursor="cursor-2",
        has_next_page=True,
        rate_limit_remaining=0,
    )
    client = FakeReleasesClient(make_probe(), pages)

    with pytest.raises(GitHubRateLimitError):
        await _worker(store, client).ingest("octo", "reef")

    snapshot = await _state(store)
    assert snapshot.end_cursor == "cursor-1"
    assert _tags(snapshot) == ["v1.0.0", "v1.1.0"]
    assert snapshot.is_fetching is False


@pytest.mark.asyncio
async def test_rate_limit_on_first_page_commits_nothing(
    store: SyncStateStore,
) -> None:
    """Without records the rate-limit failure surfaces and nothing changes."""
    await _register(store)
    client = FakeReleasesClient(
        make_probe(), failures={None: GitHubRateLimitError.throttled(429)}
    )

    with pytest.raises(GitHubRateLimitError):
        await _worker(store, client).ingest("octo", "reef")

    snapshot = await _state(store)
    assert snapshot.end_cursor is None
    assert snapshot.releases == ()
    assert snapshot.is_fetching is False, "Flag is cleared on failure"


@pytest.mark.asyncio
async def test_remote_failure_after_progress_commits_then_raises(
    store: SyncStateStore,
) -> None:
    """Non rate-limit failures also keep progress before surfacing."""
    await _register(store)
    client = FakeReleasesClient(
        make_probe(),
        _three_pages(),
        failures={"cursor-2": GitHubAPIError.http_error(502)},
    )

    with pytest.raises(GitHubAPIError):
        await _worker(store, client).ingest("octo", "reef")

    snapshot = await _state(store)
    assert snapshot.end_cursor == "cursor-2"
    assert _tags(snapshot) == ["v1.0.0", "v1.1.0", "v1.2.0"]


@pytest.mark.asyncio
async def test_tags_are_used_when_repository_has_no_releases(
    store: SyncStateStore,
) -> None:
    """Repositories with only tags are ingested from the tags connection."""
    await _register(store)
    pages = chain_pages([[make_release("v0.9.0", day=1)]])
    client = FakeReleasesClient(make_probe(release_count=0, tag_count=1), pages)

    result = await _worker(store, client).ingest("octo", "reef")

    assert result.mode is FetchMode.TAGS
    assert [call.mode for call in client.fetch_calls] == [FetchMode.TAGS]
    assert _tags(await _state(store)) == ["v0.9.0"]


@pytest.mark.asyncio
async def test_repository_without_history_is_noop(store: SyncStateStore) -> None:
    """No releases and no tags means no fetch and no commit."""
    await _register(store)
    client = FakeReleasesClient(make_probe(release_count=0, tag_count=0))

    result = await _worker(store, client).ingest("octo", "reef")

    assert result.mode is None
    assert result.committed is False
    assert client.fetch_calls == []
    assert (await _state(store)).is_fetching is False


@pytest.mark.asyncio
async def test_unregistered_repository_fails(store: SyncStateStore) -> None:
    """Messages for repositories without sync state are hard failures."""
    client = FakeReleasesClient(make_probe(), _three_pages())

    with pytest.raises(RepositoryNotRegisteredError) as excinfo:
        await _worker(store, client).ingest("octo", "reef")

    assert excinfo.value.external_id == _EXTERNAL_ID
    assert client.fetch_calls == []


@pytest.mark.asyncio
async def test_committed_history_is_sorted_and_excludes_prereleases(
    store: SyncStateStore,
) -> None:
    """Out-of-order pages merge into an ascending list without prereleases."""
    await _register(store)
    first = FakeReleasesClient(
        make_probe(),
        chain_pages([[make_release("v2.0.0", day=10), make_release("v1.0.0", day=1)]]),
    )
    await _worker(store, first).ingest("octo", "reef")
    second = FakeReleasesClient(
        make_probe(),
        chain_pages(
            [
                [
                    make_release("v1.5.0", day=5),
                    make_release("v3.0.0-rc.1", day=12),
                    make_release("v2.1.0", day=11),
                ]
            ],
            start="cursor-1",
            prefix="next",
        ),
    )

    await _worker(store, second).ingest("octo", "reef")

    snapshot = await _state(store)
    assert _tags(snapshot) == ["v1.0.0", "v1.5.0", "v2.0.0", "v2.1.0"]
    published = [record.published_at for record in snapshot.releases]
    assert published == sorted(published)
    assert not any(record.is_prerelease for record in snapshot.releases)
    assert snapshot.end_cursor == "next-1"


@pytest.mark.asyncio
async def test_shutdown_cancels_without_committing(store: SyncStateStore) -> None:
    """Cancellation unwinds immediately, commits nothing and clears the flag."""
    await _register(store)
    shutdown = asyncio.Event()
    client = BlockingReleasesClient(make_probe())
    task = asyncio.create_task(
        _worker(store, client, shutdown=shutdown).ingest("octo", "reef")
    )
    await client.fetch_started.wait()

    shutdown.set()

    with pytest.raises(IngestionCancelledError):
        await asyncio.wait_for(task, timeout=5)
    snapshot = await _state(store)
    assert snapshot.end_cursor is None
    assert snapshot.releases == ()
    assert snapshot.is_fetching is False


def _wait_once(barrier: asyncio.Barrier) -> cabc.Callable[[], cabc.Awaitable[None]]:
    waited = False

    async def _before_fetch() -> None:
        nonlocal waited
        if not waited:
            waited = True
            await barrier.wait()

    return _before_fetch


def _racing_client(prefix: str, barrier: asyncio.Barrier) -> FakeReleasesClient:
    releases = [
        make_release(f"v1.0.{index}", day=index, node_id=f"{prefix}{index}")
        for index in (1, 2)
    ]
    return FakeReleasesClient(
        make_probe(),
        chain_pages([releases], prefix=prefix),
        before_fetch=_wait_once(barrier),
    )


@pytest.mark.asyncio
async def test_concurrent_runs_from_same_cursor_commit_once(
    store: SyncStateStore,
    monkeypatch: pytest.MonkeyPatch,
) -> None:
    """Two runs racing from one cursor produce one commit and one no-op."""
    await _register(store)
    logs = record_module_logs(monkeypatch, "relwatch.ingestion.observability")
    barrier = asyncio.Barrier(2)
    clients = [_racing_client(prefix, barrier) for prefix in ("alpha", "beta")]

    results = await asyncio.gather(
        *(_worker(store, client).ingest("octo", "reef") for client in clients)
    )

    committed = [result for result in results if result.committed]
    assert len(committed) == 1, "Exactly one run should win the commit"
    winner = committed[0]
    snapshot = await _state(store)
    assert snapshot.end_cursor == winner.end_cursor
    winner_prefix = typ.cast("str", winner.end_cursor).split("-")[0]
    assert {record.id for record in snapshot.releases} == {
        f"{winner_prefix}1",
        f"{winner_prefix}2",
    }
    assert any(
        IngestionEventType.COMMIT_SKIPPED in message
        for message in logs.messages("WARNING")
    )


@pytest.mark.asyncio
async def test_run_events_are_logged(
    store: SyncStateStore, monkeypatch: pytest.MonkeyPatch
) -> None:
    """Runs emit started and completed events with the repository slug."""
    await _register(store)
    logs = record_module_logs(monkeypatch, "relwatch.ingestion.observability")
    client = FakeReleasesClient(make_probe(), _three_pages())

    await _worker(store, client).ingest("octo", "reef")

    info = logs.messages("INFO")
    assert any(IngestionEventType.RUN_STARTED in message for message in info)
    completed = [m for m in info if IngestionEventType.RUN_COMPLETED in m]
    assert len(completed) == 1
    assert "repo_slug=octo/reef" in completed[0]
    assert "releases_committed=4" in completed[0]
    assert len(logs.messages("DEBUG")) == 3, "One page event per fetched page"
