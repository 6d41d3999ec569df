"""Semantic version classification for release tags.

Release tags in the wild are a mix of proper semantic versions (``v1.2.3``),
prereleases (``2.0.0-rc.1``) and free-form names (``release-42``). The
classifier never raises: a tag that is not a semantic version is a valid
outcome and yields zeroed version fields.

Examples
--------
>>> classify_tag("v1.2.3")
VersionInfo(is_semver=True, major=1, minor=2, patch=3, is_prerelease=False)
>>> classify_tag("release-42").is_semver
False

"""

from __future__ import annotations

import dataclasses

import semver

_PREFIXES = ("v", "V")


@dataclasses.dataclass(frozen=True, slots=True)
class VersionInfo:
    """Semantic version fields derived from a tag string."""

    is_semver: bool = False
    major: int = 0
    minor: int = 0
    patch: int = 0
    is_prerelease: bool = False


NOT_SEMVER = VersionInfo()


def _strip_prefix(tag: str) -> str:
    text = tag.strip()
    if text[:1] in _PREFIXES:
        return text[1:]
    return text


def classify_tag(tag: str) -> VersionInfo:
    """Classify a tag string as a semantic version.

    A single leading ``v`` is accepted, as are missing minor and patch
    components (``"1.4"`` parses as ``1.4.0``). Build metadata is ignored.
    """
    try:
        version = semver.Version.parse(
            _strip_prefix(tag), optional_minor_and_patch=True
        )
    except (TypeError, ValueError):
        return NOT_SEMVER

    return VersionInfo(
        is_semver=True,
        major=version.major,
        minor=version.minor,
        patch=version.patch,
        is_prerelease=bool(version.prerelease),
    )
