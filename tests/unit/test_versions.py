"""Unit tests for semantic version classification of tags."""

from __future__ import annotations

import pytest

from relwatch.versions import NOT_SEMVER, VersionInfo, classify_tag


@pytest.mark.parametrize(
    ("tag", "expected"),
    [
        ("v1.2.3", VersionInfo(is_semver=True, major=1, minor=2, patch=3)),
        ("1.2.3", VersionInfo(is_semver=True, major=1, minor=2, patch=3)),
        ("V3.1.4", VersionInfo(is_semver=True, major=3, minor=1, patch=4)),
        (
            "v2.0.0-rc.1",
            VersionInfo(is_semver=True, major=2, minor=0, patch=0, is_prerelease=True),
        ),
        ("1.4", VersionInfo(is_semver=True, major=1, minor=4, patch=0)),
        ("v7", VersionInfo(is_semver=True, major=7, minor=0, patch=0)),
        ("1.0.0+build.5", VersionInfo(is_semver=True, major=1, minor=0, patch=0)),
    ],
)
def test_classify_tag_parses_semantic_versions(
    tag: str, expected: VersionInfo
) -> None:
    """Valid semantic versions yield their numeric fields."""
    assert classify_tag(tag) == expected, f"Unexpected classification for {tag!r}"


@pytest.mark.parametrize(
    "tag",
    ["release-42", "", "vv1.0.0", "1.2.3.4", "01.2.3", "latest"],
)
def test_classify_tag_rejects_non_semver(tag: str) -> None:
    """Free-form tags are classified as non-semver with zeroed fields."""
    info = classify_tag(tag)

    assert info == NOT_SEMVER
    assert (info.major, info.minor, info.patch) == (0, 0, 0)
    assert info.is_prerelease is False


def test_prerelease_flag_requires_prerelease_component() -> None:
    """Build metadata alone does not mark a version as a prerelease."""
    assert classify_tag("v1.0.0-beta").is_prerelease is True
    assert classify_tag("v1.0.0+beta").is_prerelease is False
