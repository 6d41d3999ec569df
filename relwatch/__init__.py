"""relwatch: incremental release-history ingestion for GitHub repositories."""

from __future__ import annotations

__version__ = "0.1.0"
