"""Ingestion workflow errors."""

from __future__ import annotations


class RepositoryNotRegisteredError(LookupError):
    """Raised when a work message names a repository with no sync state."""

    def __init__(self, message: str, *, external_id: str) -> None:
        """Initialise with a message and the unmatched external identifier."""
        self.external_id = external_id
        super().__init__(message)

    @classmethod
    def for_repository(
        cls, owner: str, name: str, external_id: str
    ) -> RepositoryNotRegisteredError:
        """Return an error for a repository that was never registered."""
        return cls(
            f"Repository {owner}/{name} ({external_id}) is not registered",
            external_id=external_id,
        )


class IngestionCancelledError(Exception):
    """Raised when worker shutdown interrupts an ingestion run.

    Nothing is committed when this is raised; the work message is requeued.
    """

    @classmethod
    def shutdown_requested(cls) -> IngestionCancelledError:
        """Return an error for a run abandoned because shutdown was signalled."""
        return cls("Ingestion cancelled by worker shutdown")
