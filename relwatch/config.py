"""Worker process configuration.

Configuration is driven by environment variables:

- ``RELWATCH_DATABASE_URL``: SQLAlchemy async database URL (required).
- ``RELWATCH_AMQP_URL``: RabbitMQ connection URL (required).
- ``RELWATCH_WORKER_COUNT``: Number of concurrent consumers (default: CPU
  count).
- ``RELWATCH_LOG_LEVEL``: Log level (default ``INFO``).
"""

from __future__ import annotations

import dataclasses
import os

from relwatch.queue.governor import DEFAULT_MAX_DEATHS
from relwatch.queue.pool import default_worker_count


class WorkerConfigError(ValueError):
    """Raised when worker environment configuration is missing or invalid."""

    @classmethod
    def missing(cls, env_var: str) -> WorkerConfigError:
        """Return an error for a required variable that is unset."""
        return cls(f"{env_var} is required to run the worker")

    @classmethod
    def invalid_int(cls, env_var: str, raw: str) -> WorkerConfigError:
        """Return an error for a value that is not an integer."""
        return cls(f"{env_var} must be an integer, got: {raw!r}")

    @classmethod
    def not_positive(cls, env_var: str, value: int) -> WorkerConfigError:
        """Return an error for a value below one."""
        return cls(f"{env_var} must be positive, got: {value}")


def _require(env_var: str) -> str:
    value = os.environ.get(env_var, "").strip()
    if not value:
        raise WorkerConfigError.missing(env_var)
    return value


def _parse_positive_int(env_var: str, default: int) -> int:
    """Read a positive integer env var, falling back to a default."""
    raw = os.environ.get(env_var, "")
    if not raw.strip():
        return default
    try:
        value = int(raw)
    except ValueError as exc:
        raise WorkerConfigError.invalid_int(env_var, raw) from exc
    if value < 1:
        raise WorkerConfigError.not_positive(env_var, value)
    return value


@dataclasses.dataclass(frozen=True, slots=True)
class WorkerConfig:
    """Settings for one ingestion worker process."""

    database_url: str
    amqp_url: str
    worker_count: int = dataclasses.field(default_factory=default_worker_count)
    log_level: str = "INFO"
    max_deaths: int = DEFAULT_MAX_DEATHS

    @classmethod
    def from_env(cls) -> WorkerConfig:
        """Create configuration from ``RELWATCH_*`` environment variables.

        Raises
        ------
        WorkerConfigError
            If a required variable is unset or a numeric value is invalid.

        """
        return cls(
            database_url=_require("RELWATCH_DATABASE_URL"),
            amqp_url=_require("RELWATCH_AMQP_URL"),
            worker_count=_parse_positive_int(
                "RELWATCH_WORKER_COUNT", default_worker_count()
            ),
            log_level=os.environ.get("RELWATCH_LOG_LEVEL", "INFO"),
        )
