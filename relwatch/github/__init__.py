"""GitHub GraphQL client primitives for release-history ingestion."""

from __future__ import annotations

from .client import (
    DEFAULT_PAGE_SIZE,
    GitHubGraphQLClient,
    GitHubGraphQLConfig,
    GitHubReleasesClient,
)
from .errors import (
    GitHubAPIError,
    GitHubConfigError,
    GitHubRateLimitError,
    GitHubResponseShapeError,
)
from .models import FetchedRelease, FetchMode, ReleasePage, RepositoryProbe

__all__ = [
    "DEFAULT_PAGE_SIZE",
    "FetchMode",
    "FetchedRelease",
    "GitHubAPIError",
    "GitHubConfigError",
    "GitHubGraphQLClient",
    "GitHubGraphQLConfig",
    "GitHubRateLimitError",
    "GitHubReleasesClient",
    "GitHubResponseShapeError",
    "ReleasePage",
    "RepositoryProbe",
]
