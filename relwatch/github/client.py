"""GitHub API client implementations used by ingestion workers."""

from __future__ import annotations

import collections.abc as cabc
import dataclasses
import os
import typing as typ

import httpx

from relwatch.common.time import parse_github_datetime
from relwatch.logging import get_logger, log_warning

from .errors import (
    GitHubAPIError,
    GitHubConfigError,
    GitHubRateLimitError,
    GitHubResponseShapeError,
)
from .models import FetchedRelease, FetchMode, ReleasePage, RepositoryProbe

if typ.TYPE_CHECKING:
    import datetime as dt

logger = get_logger(__name__)

DEFAULT_PAGE_SIZE = 50


class GitHubReleasesClient(typ.Protocol):
    """Interface for reading release history from GitHub."""

    async def probe_repository(self, owner: str, name: str) -> RepositoryProbe:
        """Return the repository identity and release/tag counts."""
        ...

    async def fetch_page(
        self,
        owner: str,
        name: str,
        *,
        mode: FetchMode,
        after: str | None,
        page_size: int = DEFAULT_PAGE_SIZE,
    ) -> ReleasePage:
        """Return one page of releases or tags, oldest first."""
        ...


@dataclasses.dataclass(frozen=True, slots=True)
class GitHubGraphQLConfig:
    """Configuration for the GitHub GraphQL API client."""

    token: str
    endpoint: str = "https://api.github.com/graphql"
    timeout_s: float = 20.0
    user_agent: str = "relwatch/0.1"

    @classmethod
    def from_env(cls) -> GitHubGraphQLConfig:
        """Build configuration using the `RELWATCH_GITHUB_TOKEN` env var."""
        token = os.environ.get("RELWATCH_GITHUB_TOKEN", "").strip()
        if not token:
            raise GitHubConfigError.missing_token()
        return cls(token=token)


_PROBE_QUERY = """
query($owner: String!, $name: String!) {
  repository(owner: $owner, name: $name) {
    databaseId
    name
    url
    description
    owner { login }
    releases { totalCount }
    refs(refPrefix: "refs/tags/") { totalCount }
  }
}
"""

_RELEASES_QUERY = """
query($owner: String!, $name: String!, $perPage: Int!, $after: String) {
  rateLimit { remaining }
  repository(owner: $owner, name: $name) {
    releases(
      first: $perPage
      after: $after
      orderBy: {field: CREATED_AT, direction: ASC}
    ) {
      pageInfo {
        hasNextPage
        endCursor
      }
      nodes {
        id
        name
        tagName
        url
        publishedAt
        createdAt
      }
    }
  }
}
"""

_TAGS_QUERY = """
query($owner: String!, $name: String!, $perPage: Int!, $after: String) {
  rateLimit { remaining }
  repository(owner: $owner, name: $name) {
    refs(
      refPrefix: "refs/tags/"
      first: $perPage
      after: $after
      orderBy: {field: TAG_COMMIT_DATE, direction: ASC}
    ) {
      pageInfo {
        hasNextPage
        endCursor
      }
      nodes {
        id
        name
        target {
          ... on Tag {
            commitUrl
            tagger { date }
          }
          ... on Commit {
            commitUrl
            committedDate
          }
        }
      }
    }
  }
}
"""

_HTTP_ERROR_STATUS_THRESHOLD = 400
_HTTP_TOO_MANY_REQUESTS = 429
_RATE_LIMIT_STATUSES = frozenset({403, _HTTP_TOO_MANY_REQUESTS})


def _optional_str(value: object) -> str | None:
    return value if isinstance(value, str) else None


def _parse_timestamp(value: str) -> dt.datetime | None:
    try:
        return parse_github_datetime(value)
    except ValueError:
        return None


def _total_count(repository: dict[str, typ.Any], field: str) -> int:
    connection = repository.get(field)
    if not isinstance(connection, dict):
        raise GitHubResponseShapeError.missing(f"repository.{field}")
    count = connection.get("totalCount")
    if not isinstance(count, int):
        raise GitHubResponseShapeError.missing(f"repository.{field}.totalCount")
    return count


def _release_from_node(node: dict[str, typ.Any]) -> FetchedRelease | None:
    node_id = node.get("id")
    tag_name = node.get("tagName")
    url = node.get("url")
    published = _optional_str(node.get("publishedAt")) or _optional_str(
        node.get("createdAt")
    )
    if (
        not isinstance(node_id, str)
        or not isinstance(tag_name, str)
        or not isinstance(url, str)
        or published is None
    ):
        return None
    published_at = _parse_timestamp(published)
    if published_at is None:
        return None
    return FetchedRelease(
        id=node_id,
        name=_optional_str(node.get("name")) or tag_name,
        tag_name=tag_name,
        url=url,
        published_at=published_at,
    )


def _tag_target_details(target: object) -> tuple[str, str] | None:
    """Return ``(commit_url, timestamp)`` for annotated or lightweight tags."""
    if not isinstance(target, dict):
        return None
    commit_url = _optional_str(target.get("commitUrl"))
    tagger = target.get("tagger")
    timestamp = (
        _optional_str(tagger.get("date"))
        if isinstance(tagger, dict)
        else _optional_str(target.get("committedDate"))
    )
    if commit_url is None or timestamp is None:
        return None
    return commit_url, timestamp


def _tag_from_node(node: dict[str, typ.Any]) -> FetchedRelease | None:
    node_id = node.get("id")
    name = node.get("name")
    details = _tag_target_details(node.get("target"))
    if not isinstance(node_id, str) or not isinstance(name, str) or details is None:
        return None
    commit_url, timestamp = details
    published_at = _parse_timestamp(timestamp)
    if published_at is None:
        return None
    return FetchedRelease(
        id=node_id,
        name=name,
        tag_name=name,
        url=commit_url,
        published_at=published_at,
    )


@dataclasses.dataclass(frozen=True, slots=True)
class _PageSpec:
    """Query and node mapping for one fetch mode."""

    query: str
    connection_field: str
    node_to_release: cabc.Callable[[dict[str, typ.Any]], FetchedRelease | None]


_PAGE_SPECS: dict[FetchMode, _PageSpec] = {
    FetchMode.RELEASES: _PageSpec(
        query=_RELEASES_QUERY,
        connection_field="releases",
        node_to_release=_release_from_node,
    ),
    FetchMode.TAGS: _PageSpec(
        query=_TAGS_QUERY,
        connection_field="refs",
        node_to_release=_tag_from_node,
    ),
}


def _connection_nodes(
    connection: dict[str, typ.Any],
    *,
    field: str,
) -> list[dict[str, typ.Any]]:
    nodes = connection.get("nodes")
    if not isinstance(nodes, list):
        raise GitHubResponseShapeError.missing(f"{field}.nodes")
    return [node for node in nodes if isinstance(node, dict)]


def _page_info(connection: dict[str, typ.Any]) -> tuple[str | None, bool]:
    page_info = connection.get("pageInfo")
    if not isinstance(page_info, dict):
        return (None, False)
    return (
        _optional_str(page_info.get("endCursor")),
        bool(page_info.get("hasNextPage", False)),
    )


def _rate_limit_remaining(data: dict[str, typ.Any]) -> int | None:
    rate_limit = data.get("rateLimit")
    if not isinstance(rate_limit, dict):
        return None
    remaining = rate_limit.get("remaining")
    return remaining if isinstance(remaining, int) else None


def _extract_repository(
    data: dict[str, typ.Any], owner: str, name: str
) -> dict[str, typ.Any]:
    if "repository" not in data:
        raise GitHubResponseShapeError.missing("repository")
    repository = data["repository"]
    if repository is None:
        raise GitHubAPIError.repository_not_found(owner, name)
    if not isinstance(repository, dict):
        raise GitHubResponseShapeError.missing("repository")
    return repository


def _is_rate_limit_errors(errors: object) -> bool:
    if not isinstance(errors, list):
        return False
    return any(
        isinstance(error, dict) and error.get("type") == "RATE_LIMITED"
        for error in errors
    )


def _parse_graphql_payload(payload_raw: object) -> dict[str, typ.Any]:
    """Parse and validate a GraphQL response payload, extracting data field."""
    if not isinstance(payload_raw, dict):
        raise GitHubResponseShapeError.missing("response")

    errors = payload_raw.get("errors")
    if errors:
        if _is_rate_limit_errors(errors):
            raise GitHubRateLimitError.budget_exhausted()
        raise GitHubAPIError.graphql_errors(errors)

    data = payload_raw.get("data")
    if not isinstance(data, dict):
        raise GitHubResponseShapeError.missing("data")
    return data


def _raise_for_status(response: httpx.Response) -> None:
    status = response.status_code
    if status < _HTTP_ERROR_STATUS_THRESHOLD:
        return
    if status in _RATE_LIMIT_STATUSES and (
        status == _HTTP_TOO_MANY_REQUESTS
        or response.headers.get("x-ratelimit-remaining") == "0"
    ):
        raise GitHubRateLimitError.throttled(status)
    raise GitHubAPIError.http_error(status)


class GitHubGraphQLClient:
    """GitHub GraphQL implementation of :class:`GitHubReleasesClient`."""

    def __init__(
        self,
        config: GitHubGraphQLConfig,
        *,
        http_client: httpx.AsyncClient | None = None,
    ) -> None:
        """Initialise the client with the provided API configuration."""
        if not config.token.strip():
            raise GitHubConfigError.empty_token()

        self._config = config
        self._owns_client = http_client is None
        self._client = http_client or httpx.AsyncClient(
            timeout=config.timeout_s,
            headers={
                "Authorization": f"Bearer {config.token}",
                "User-Agent": config.user_agent,
                "Accept": "application/json",
            },
        )

    async def aclose(self) -> None:
        """Close any owned HTTP resources."""
        if self._owns_client:
            await self._client.aclose()

    async def probe_repository(self, owner: str, name: str) -> RepositoryProbe:
        """Resolve the repository's database id and release/tag counts."""
        data = await self._graphql(_PROBE_QUERY, {"owner": owner, "name": name})
        repository = _extract_repository(data, owner, name)

        database_id = repository.get("databaseId")
        if not isinstance(database_id, int):
            raise GitHubResponseShapeError.missing("repository.databaseId")
        raw_owner = repository.get("owner")
        login = raw_owner.get("login") if isinstance(raw_owner, dict) else None

        return RepositoryProbe(
            database_id=database_id,
            owner=login if isinstance(login, str) else owner,
            name=_optional_str(repository.get("name")) or name,
            url=_optional_str(repository.get("url")) or "",
            description=_optional_str(repository.get("description")),
            release_count=_total_count(repository, "releases"),
            tag_count=_total_count(repository, "refs"),
        )

    async def fetch_page(
        self,
        owner: str,
        name: str,
        *,
        mode: FetchMode,
        after: str | None,
        page_size: int = DEFAULT_PAGE_SIZE,
    ) -> ReleasePage:
        """Fetch one ascending page of releases or tags after ``after``."""
        spec = _PAGE_SPECS[mode]
        data = await self._graphql(
            spec.query,
            {"owner": owner, "name": name, "perPage": page_size, "after": after},
        )
        repository = _extract_repository(data, owner, name)
        connection = repository.get(spec.connection_field)
        if not isinstance(connection, dict):
            raise GitHubResponseShapeError.missing(
                f"repository.{spec.connection_field}"
            )

        releases: list[FetchedRelease] = []
        skipped = 0
        for node in _connection_nodes(connection, field=spec.connection_field):
            release = spec.node_to_release(node)
            if release is None:
                skipped += 1
                log_warning(
                    logger,
                    "Skipping unmappable %s node for %s/%s (id=%s)",
                    spec.connection_field,
                    owner,
                    name,
                    node.get("id"),
                )
                continue
            releases.append(release)
        end_cursor, has_next_page = _page_info(connection)
        return ReleasePage(
            releases=tuple(releases),
            end_cursor=end_cursor,
            has_next_page=has_next_page,
            rate_limit_remaining=_rate_limit_remaining(data),
            skipped_nodes=skipped,
        )

    async def _graphql(
        self, query: str, variables: dict[str, typ.Any]
    ) -> dict[str, typ.Any]:
        """Execute a GraphQL query and return the validated data field."""
        response = await self._client.post(
            self._config.endpoint,
            json={"query": query, "variables": variables},
        )
        _raise_for_status(response)
        try:
            payload = response.json()
        except ValueError as exc:
            raise GitHubResponseShapeError.invalid_json(response.status_code) from exc
        return _parse_graphql_payload(payload)
