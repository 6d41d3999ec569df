"""Process wiring for the ingestion worker and registration command.

The runtime builds the shared resources (async SQLAlchemy engine, GitHub
client, robust RabbitMQ connection), hands them to the worker pool, and
tears them down in reverse order on exit. SIGINT and SIGTERM set the shared
shutdown event; in-flight ingestion runs abandon their GitHub calls and
their messages are requeued.
"""

from __future__ import annotations

import asyncio
import contextlib
import functools
import signal
import typing as typ

import aio_pika
from sqlalchemy.ext.asyncio import async_sessionmaker, create_async_engine

from relwatch.github.client import GitHubGraphQLClient, GitHubGraphQLConfig
from relwatch.ingestion.config import IngestionConfig
from relwatch.ingestion.orchestrator import ReleaseIngestionWorker
from relwatch.logging import get_logger, log_info
from relwatch.queue.governor import RetryGovernor
from relwatch.queue.pool import WorkerPool
from relwatch.queue.topology import publish_work_message, subscribe_work_queue
from relwatch.registration import register_repository
from relwatch.storage.services import SyncStateStore
from relwatch.storage.tables import init_storage

if typ.TYPE_CHECKING:
    import collections.abc as cabc

    from aio_pika.abc import AbstractRobustConnection

    from relwatch.config import WorkerConfig
    from relwatch.storage.services import SyncStateSnapshot

logger = get_logger(__name__)

_SHUTDOWN_SIGNALS = (signal.SIGINT, signal.SIGTERM)


@contextlib.contextmanager
def shutdown_on_signals(shutdown: asyncio.Event) -> cabc.Iterator[None]:
    """Set ``shutdown`` when the process receives SIGINT or SIGTERM."""
    loop = asyncio.get_running_loop()
    installed: list[signal.Signals] = []
    for sig in _SHUTDOWN_SIGNALS:
        try:
            loop.add_signal_handler(sig, shutdown.set)
        except NotImplementedError:
            # Event loops without signal support (e.g. Windows Proactor).
            continue
        installed.append(sig)
    try:
        yield
    finally:
        for sig in installed:
            loop.remove_signal_handler(sig)


async def _open_resources(
    stack: contextlib.AsyncExitStack,
    config: WorkerConfig,
    github_config: GitHubGraphQLConfig,
) -> tuple[SyncStateStore, GitHubGraphQLClient, AbstractRobustConnection]:
    engine = create_async_engine(config.database_url)
    stack.push_async_callback(engine.dispose)
    await init_storage(engine)
    store = SyncStateStore(async_sessionmaker(engine, expire_on_commit=False))

    client = GitHubGraphQLClient(github_config)
    stack.push_async_callback(client.aclose)

    connection = await aio_pika.connect_robust(config.amqp_url)
    stack.push_async_callback(connection.close)
    return store, client, connection


async def run_worker(
    config: WorkerConfig,
    *,
    github_config: GitHubGraphQLConfig | None = None,
    ingestion_config: IngestionConfig | None = None,
    shutdown: asyncio.Event | None = None,
) -> None:
    """Consume the work queue until SIGINT/SIGTERM or ``shutdown`` is set."""
    resolved_github = github_config or GitHubGraphQLConfig.from_env()
    resolved_ingestion = ingestion_config or IngestionConfig.from_env()
    stop = shutdown or asyncio.Event()

    async with contextlib.AsyncExitStack() as stack:
        store, client, connection = await _open_resources(
            stack, config, resolved_github
        )
        worker = ReleaseIngestionWorker(
            store, client, shutdown=stop, config=resolved_ingestion
        )
        pool = WorkerPool(
            functools.partial(subscribe_work_queue, connection),
            RetryGovernor(worker, max_deaths=config.max_deaths),
            shutdown=stop,
            worker_count=config.worker_count,
        )
        log_info(
            logger,
            "Starting relwatch worker pool (workers=%d, throttle_s=%.2f)",
            pool.worker_count,
            resolved_ingestion.throttle_s,
        )
        with shutdown_on_signals(stop):
            await pool.run()
        log_info(logger, "Relwatch worker pool stopped")


async def run_register(
    link: str,
    config: WorkerConfig,
    *,
    github_config: GitHubGraphQLConfig | None = None,
) -> SyncStateSnapshot:
    """Register ``link`` and publish its first work message."""
    resolved_github = github_config or GitHubGraphQLConfig.from_env()
    async with contextlib.AsyncExitStack() as stack:
        store, client, connection = await _open_resources(
            stack, config, resolved_github
        )
        return await register_repository(
            link,
            client=client,
            store=store,
            publish=functools.partial(publish_work_message, connection),
        )
