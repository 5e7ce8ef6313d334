"""
Synchronization engine that mirrors a list-oriented HTTP API into PostgreSQL.

Modules:
    fetcher: Retrying HTTP fetcher (bounded retries, backoff, 429 handling)
    gateway: Client for the authenticated gateway (call + schema)
    schema_cache: Time-limited cache for the schema catalog
    paginator: Skip/take auto-pagination
    store: PostgreSQL primitives (relations, append, queries, system tables)
    parent_ids: Parent identifier streaming for parameterized endpoints
    introspector: Best-effort key field and relationship inference
    synchronizer: One endpoint end to end (direct or fan-out)
    scheduler: Dependency ordering and wave execution
    sync_log: Watermarks and outcome recording
    report: End-of-run summary delivery
    runner: Discovery and full-run orchestration
    periodic: APScheduler interval job

Subpackages:
    loaders: Batched, idempotent persistence

Architecture:
    Scheduler orders endpoints → per wave, synchronizers run concurrently →
    each reads its watermark → fetches via Paginator/Fetcher (optionally
    fanned out over parent IDs) → writes via the loader → appends to the sync
    log → metadata is refreshed → a report is produced after the last wave.

Usage:
    from ingestion.gateway import GatewayClient
    from ingestion.store import PostgresStore
    from ingestion.runner import MirrorRunner

Example:
    async with GatewayClient() as gateway:
        runner = MirrorRunner(gateway, PostgresStore(engine))
        report = await runner.run()

    print(report.render())

Error Handling:
    All components raise exceptions from core.exceptions. Per-parent failures
    are logged and skipped, per-resource failures become zero-row outcomes,
    and only discovery failures abort the run.
"""

__all__ = [
    "RetryingFetcher",
    "GatewayClient",
    "Paginator",
    "PostgresStore",
    "PostgresLoader",
    "ResourceSynchronizer",
    "DependencyScheduler",
    "MirrorRunner",
]
