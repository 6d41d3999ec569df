"""Release records stored in a repository's ordered history."""

from __future__ import annotations

import collections.abc as cabc
import datetime as dt
import typing as typ

import msgspec

from relwatch.storage.errors import TimezoneAwareRequiredError

if typ.TYPE_CHECKING:
    from relwatch.github.models import FetchedRelease
    from relwatch.versions import VersionInfo


class ReleaseRecord(msgspec.Struct, kw_only=True, frozen=True):
    """A published release or tag with its derived semantic version.

    Attributes
    ----------
    id : str
        Immutable GitHub node identifier.
    name : str
        Display name (the tag name when the release has none).
    tag_name : str
        Raw tag string the version fields were derived from.
    url : str
        Release page URL, or the tagged commit URL for bare tags.
    published_at : datetime
        Publish time for releases, tagger or commit time for tags.
    is_semver : bool
        Whether ``tag_name`` parsed as a semantic version. ``major``,
        ``minor`` and ``patch`` are zero when it did not.
    is_prerelease : bool
        Whether the semantic version carries a prerelease component.

    """

    id: str
    name: str
    tag_name: str
    url: str
    published_at: dt.datetime
    is_semver: bool = False
    major: int = 0
    minor: int = 0
    patch: int = 0
    is_prerelease: bool = False

    @classmethod
    def from_fetched(
        cls, fetched: FetchedRelease, version: VersionInfo
    ) -> ReleaseRecord:
        """Combine a fetched GitHub node with its version classification."""
        return cls(
            id=fetched.id,
            name=fetched.name,
            tag_name=fetched.tag_name,
            url=fetched.url,
            published_at=fetched.published_at,
            is_semver=version.is_semver,
            major=version.major,
            minor=version.minor,
            patch=version.patch,
            is_prerelease=version.is_prerelease,
        )


def encode_releases(
    releases: cabc.Iterable[ReleaseRecord],
) -> list[dict[str, typ.Any]]:
    """Encode release records into JSON-safe dictionaries for storage."""
    encoded: list[dict[str, typ.Any]] = []
    for release in releases:
        if release.published_at.tzinfo is None:
            raise TimezoneAwareRequiredError.for_release(release.id)
        encoded.append(msgspec.to_builtins(release))
    return encoded


def decode_releases(raw: object) -> list[ReleaseRecord]:
    """Decode stored release dictionaries back into records."""
    if not raw:
        return []
    return msgspec.convert(raw, type=list[ReleaseRecord])


def merge_releases(
    existing: cabc.Sequence[ReleaseRecord],
    incoming: cabc.Iterable[ReleaseRecord],
) -> list[ReleaseRecord]:
    """Merge new releases into a stored history.

    Records whose id is already stored are skipped, so stored records stay
    immutable. The result is sorted ascending by publish time; records with
    equal timestamps keep their stored-then-incoming order.
    """
    seen = {release.id for release in existing}
    merged = list(existing)
    for release in incoming:
        if release.id in seen:
            continue
        seen.add(release.id)
        merged.append(release)
    return sorted(merged, key=lambda release: release.published_at)
