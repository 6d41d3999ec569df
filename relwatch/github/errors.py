"""GitHub client errors."""

from __future__ import annotations


class GitHubAPIError(RuntimeError):
    """Raised when GitHub returns an error response."""

    def __init__(self, message: str, *, status_code: int | None = None) -> None:
        """Initialise with a message and optional HTTP status code."""
        self.status_code = status_code
        super().__init__(message)

    @classmethod
    def http_error(cls, status_code: int) -> GitHubAPIError:
        """Return an error for non-2xx HTTP responses."""
        return cls(f"GitHub GraphQL HTTP {status_code}", status_code=status_code)

    @classmethod
    def graphql_errors(cls, errors: object) -> GitHubAPIError:
        """Return an error for GraphQL `errors` payloads."""
        return cls(f"GitHub GraphQL errors: {errors}")

    @classmethod
    def repository_not_found(cls, owner: str, name: str) -> GitHubAPIError:
        """Return an error when GitHub resolves the repository to null."""
        return cls(f"GitHub repository not found: {owner}/{name}")


class GitHubRateLimitError(GitHubAPIError):
    """Raised when the GitHub API rate-limit budget is exhausted.

    Callers treat this as transient: the work is retried after a delay rather
    than dropped.
    """

    @classmethod
    def budget_exhausted(cls) -> GitHubRateLimitError:
        """Return an error for a response reporting zero remaining budget."""
        return cls("Reached GitHub API rate limits")

    @classmethod
    def throttled(cls, status_code: int) -> GitHubRateLimitError:
        """Return an error for a 403/429 response caused by rate limiting."""
        return cls(
            f"GitHub GraphQL HTTP {status_code}: rate limit exceeded",
            status_code=status_code,
        )


class GitHubResponseShapeError(RuntimeError):
    """Raised when GitHub GraphQL responses are missing expected fields."""

    @classmethod
    def missing(cls, field: str) -> GitHubResponseShapeError:
        """Return an error for a missing GraphQL response field."""
        return cls(f"GitHub GraphQL response missing expected field: {field}")

    @classmethod
    def invalid_json(cls, status_code: int) -> GitHubResponseShapeError:
        """Return an error for a response body that is not JSON."""
        return cls(f"GitHub GraphQL HTTP {status_code} returned a non-JSON body")


class GitHubConfigError(RuntimeError):
    """Raised when GitHub client configuration is invalid."""

    @classmethod
    def missing_token(cls) -> GitHubConfigError:
        """Return an error when no GitHub token is configured."""
        return cls("RELWATCH_GITHUB_TOKEN is required for GitHub API")

    @classmethod
    def empty_token(cls) -> GitHubConfigError:
        """Return an error when the provided token is empty."""
        return cls("GitHub token must be non-empty")
