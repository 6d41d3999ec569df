"""Storage-layer error types."""

from __future__ import annotations


class TimezoneAwareRequiredError(ValueError):
    """Raised when datetime inputs lack timezone information."""

    def __init__(self, context: str) -> None:
        """Attach a consistent message for the failing context."""
        super().__init__(f"{context} must be timezone aware")

    @classmethod
    def for_column(cls) -> TimezoneAwareRequiredError:
        """Return an error indicating a bound column value was naive."""
        return cls("timestamp column values")

    @classmethod
    def for_release(cls, release_id: str) -> TimezoneAwareRequiredError:
        """Return an error indicating a release publish time was naive."""
        return cls(f"published_at of release {release_id}")
