"""Typed domain models returned by the GitHub client."""

from __future__ import annotations

import dataclasses
import enum
import typing as typ

if typ.TYPE_CHECKING:
    import datetime as dt

PROVIDER = "github"


class FetchMode(enum.StrEnum):
    """Which GitHub connection a repository's history is read from."""

    RELEASES = "releases"
    TAGS = "tags"


@dataclasses.dataclass(frozen=True, slots=True)
class RepositoryProbe:
    """Identity and capability counts for a GitHub repository."""

    database_id: int
    owner: str
    name: str
    url: str
    description: str | None
    release_count: int
    tag_count: int

    @property
    def external_id(self) -> str:
        """Return the provider-qualified identifier, e.g. ``github/1234``."""
        return f"{PROVIDER}/{self.database_id}"

    @property
    def fetch_mode(self) -> FetchMode | None:
        """Prefer releases, fall back to tags, or ``None`` when both are empty."""
        if self.release_count > 0:
            return FetchMode.RELEASES
        if self.tag_count > 0:
            return FetchMode.TAGS
        return None


@dataclasses.dataclass(frozen=True, slots=True)
class FetchedRelease:
    """A release or tag node normalised into release shape."""

    id: str
    name: str
    tag_name: str
    url: str
    published_at: dt.datetime


@dataclasses.dataclass(frozen=True, slots=True)
class ReleasePage:
    """One page of a releases or tags connection."""

    releases: tuple[FetchedRelease, ...]
    end_cursor: str | None
    has_next_page: bool
    rate_limit_remaining: int | None = None
    skipped_nodes: int = 0

    @property
    def is_empty(self) -> bool:
        """Return True when GitHub returned no nodes at all for the page."""
        return not self.releases and not self.skipped_nodes

    @property
    def rate_limited(self) -> bool:
        """Return True when GitHub reported an exhausted rate-limit budget."""
        return self.rate_limit_remaining == 0
