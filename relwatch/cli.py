"""Command-line entrypoint for the relwatch worker and registration."""

from __future__ import annotations

import argparse
import asyncio
import dataclasses

from relwatch.config import WorkerConfig, WorkerConfigError
from relwatch.github.errors import GitHubAPIError, GitHubConfigError
from relwatch.logging import configure_logging, get_logger, log_error, log_warning
from relwatch.runtime import run_register, run_worker

logger = get_logger(__name__)


def _positive_int(raw: str) -> int:
    try:
        value = int(raw)
    except ValueError as exc:
        msg = f"expected a positive integer, got: {raw!r}"
        raise argparse.ArgumentTypeError(msg) from exc
    if value < 1:
        msg = f"expected a positive integer, got: {value}"
        raise argparse.ArgumentTypeError(msg)
    return value


def build_parser() -> argparse.ArgumentParser:
    """Return the argument parser for the ``relwatch`` command."""
    parser = argparse.ArgumentParser(
        prog="relwatch",
        description="Track GitHub release history for registered repositories.",
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    worker = subparsers.add_parser("worker", help="Consume the ingestion queue")
    worker.add_argument(
        "--workers",
        type=_positive_int,
        default=None,
        help="Number of concurrent consumers (default: RELWATCH_WORKER_COUNT)",
    )
    worker.add_argument(
        "--log-level",
        default=None,
        help="Log level (default: RELWATCH_LOG_LEVEL or INFO)",
    )

    register = subparsers.add_parser(
        "register", help="Register a GitHub repository and queue ingestion"
    )
    register.add_argument("link", help="GitHub repository URL")
    return parser


def _configure_logging(raw_level: str) -> None:
    normalized, invalid = configure_logging(raw_level)
    if invalid:
        log_warning(
            logger,
            "Invalid RELWATCH_LOG_LEVEL %r, falling back to %s",
            raw_level,
            normalized,
        )


def main(argv: list[str] | None = None) -> int:
    """Run the ``relwatch`` command.

    Parameters
    ----------
    argv : list[str] | None, optional
        Command-line arguments. ``None`` defaults to ``sys.argv``.

    Returns
    -------
    int
        Exit code: 0 on success, 1 on configuration or registration errors.

    """
    args = build_parser().parse_args(argv)

    try:
        config = WorkerConfig.from_env()
    except WorkerConfigError as exc:
        print(f"relwatch: {exc}")
        return 1

    _configure_logging(getattr(args, "log_level", None) or config.log_level)

    try:
        if args.command == "worker":
            if args.workers is not None:
                config = dataclasses.replace(config, worker_count=args.workers)
            asyncio.run(run_worker(config))
            return 0

        snapshot = asyncio.run(run_register(args.link, config))
    except (GitHubConfigError, ValueError) as exc:
        log_error(logger, "relwatch %s failed: %s", args.command, exc)
        print(f"relwatch: {exc}")
        return 1
    except GitHubAPIError as exc:
        log_error(logger, "relwatch %s failed: %s", args.command, exc, exc_info=exc)
        print(f"relwatch: {exc}")
        return 1

    print(f"registered {snapshot.owner}/{snapshot.name} as {snapshot.external_id}")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
