"""GitHub repository link utilities.

Operators register repositories by pasting their GitHub web URL. These
helpers extract the ``owner`` and ``repo`` components from such links; they
are not general URL parsers and deliberately accept only ``github.com``.
"""

from __future__ import annotations

import re

_REPO_LINK = re.compile(
    r"^https://github\.com/(?P<owner>[A-Za-z0-9_-]+)/(?P<repo>[A-Za-z0-9_-]+)/?"
)


class InvalidRepositoryLinkError(ValueError):
    """Raised when a link does not point at a GitHub repository."""

    def __init__(self, link: str) -> None:
        """Record the rejected link in the message."""
        self.link = link
        super().__init__(f"Invalid GitHub repository link: {link!r}")


def parse_github_repo_link(link: str) -> tuple[str, str]:
    """Parse a GitHub repository URL into owner and repository name.

    Parameters
    ----------
    link:
        URL such as ``https://github.com/owner/repo``. A trailing slash or
        deeper path (``/tree/main``) is tolerated.

    Returns
    -------
    tuple[str, str]
        ``(owner, repo)``.

    Raises
    ------
    InvalidRepositoryLinkError
        If the link is not a GitHub repository URL.

    Examples
    --------
    >>> parse_github_repo_link("https://github.com/octo/reef/")
    ('octo', 'reef')

    """
    match = _REPO_LINK.match(link)
    if match is None:
        raise InvalidRepositoryLinkError(link)
    return match.group("owner"), match.group("repo")
