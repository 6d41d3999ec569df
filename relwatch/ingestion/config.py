"""Runtime knobs for release ingestion."""

from __future__ import annotations

import dataclasses
import os

from relwatch.github.client import DEFAULT_PAGE_SIZE

DEFAULT_THROTTLE_SECONDS = 1.0


@dataclasses.dataclass(frozen=True, slots=True)
class IngestionConfig:
    """Pagination settings shared by every ingestion run.

    Attributes
    ----------
    page_size
        Number of releases or tags requested per GitHub page.
    throttle_s
        Delay enforced between successive page requests, in seconds.

    """

    page_size: int = DEFAULT_PAGE_SIZE
    throttle_s: float = DEFAULT_THROTTLE_SECONDS

    @staticmethod
    def _parse_non_negative_float(env_var: str, default: float) -> float:
        """Read a non-negative float env var, falling back to a default."""
        raw = os.environ.get(env_var, "")
        if not raw.strip():
            return default
        try:
            value = float(raw)
        except ValueError as exc:
            msg = f"{env_var} must be a number, got: {raw!r}"
            raise ValueError(msg) from exc
        if value < 0:
            msg = f"{env_var} must not be negative, got: {value}"
            raise ValueError(msg)
        return value

    @classmethod
    def from_env(cls) -> IngestionConfig:
        """Create configuration from environment variables.

        Reads ``RELWATCH_PAGE_THROTTLE_SECONDS`` (default ``1.0``). The page
        size is fixed at the GitHub client's default.
        """
        return cls(
            throttle_s=cls._parse_non_negative_float(
                "RELWATCH_PAGE_THROTTLE_SECONDS", DEFAULT_THROTTLE_SECONDS
            ),
        )
