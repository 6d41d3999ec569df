"""Persistence of per-repository release history and pagination state."""

from __future__ import annotations

from .errors import TimezoneAwareRequiredError
from .models import ReleaseRecord, decode_releases, encode_releases, merge_releases
from .services import RepositoryRegistration, SyncStateSnapshot, SyncStateStore
from .tables import Base, RepoSyncState, init_storage

__all__ = [
    "Base",
    "ReleaseRecord",
    "RepoSyncState",
    "RepositoryRegistration",
    "SyncStateSnapshot",
    "SyncStateStore",
    "TimezoneAwareRequiredError",
    "decode_releases",
    "encode_releases",
    "init_storage",
    "merge_releases",
]
