"""Register repositories for release tracking.

Registration resolves a GitHub link to the repository's stable identity,
upserts its sync state with the in-progress flag raised, and publishes a work
message so a worker performs the first ingestion.
"""

from __future__ import annotations

import typing as typ

from relwatch.common.links import parse_github_repo_link
from relwatch.logging import get_logger, log_info
from relwatch.queue.messages import WorkMessage
from relwatch.storage.services import RepositoryRegistration

if typ.TYPE_CHECKING:
    import collections.abc as cabc

    from relwatch.github.client import GitHubReleasesClient
    from relwatch.storage.services import SyncStateSnapshot, SyncStateStore

    type Publish = cabc.Callable[[WorkMessage], cabc.Awaitable[None]]

logger = get_logger(__name__)


async def register_repository(
    link: str,
    *,
    client: GitHubReleasesClient,
    store: SyncStateStore,
    publish: Publish,
) -> SyncStateSnapshot:
    """Register the repository at ``link`` and queue its first ingestion.

    Raises
    ------
    InvalidRepositoryLinkError
        If ``link`` is not a GitHub repository URL.
    GitHubAPIError
        If GitHub cannot resolve the repository.

    """
    owner, repo = parse_github_repo_link(link)
    probe = await client.probe_repository(owner, repo)
    snapshot = await store.register(
        RepositoryRegistration(
            external_id=probe.external_id,
            owner=probe.owner,
            name=probe.name,
            url=probe.url,
            description=probe.description,
        )
    )
    await publish(WorkMessage(owner=owner, repo=repo))
    log_info(
        logger,
        "Registered %s/%s as %s (releases=%d)",
        snapshot.owner,
        snapshot.name,
        snapshot.external_id,
        len(snapshot.releases),
    )
    return snapshot
