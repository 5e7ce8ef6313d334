"""
Synchronize one endpoint end to end.

Steps:
1. Derive and claim the relation name
2. Read the watermark (incremental lower bound)
3. Fan out over parent IDs for parameterized paths, flushing periodically
4. Otherwise fetch directly, paginating list endpoints
5. Persist what is left in the buffer
6. Append the outcome (row count, fingerprint, watermark, errors) to the sync log
7. Refresh the resource's inferred metadata

Failures in steps 3-5 propagate to the scheduler, which records them as a
zero-row outcome. A missing parent relation is not a failure of this kind:
the endpoint is skipped and the skip is recorded here.

A fetch cut short by max_pages/max_rows makes the outcome PARTIAL and holds
the watermark back so the next run picks up the remaining rows.
"""

import logging
from datetime import datetime, timezone
from typing import Any, Callable, List, Optional, Tuple
from urllib.parse import quote

from core.config import settings
from core.exceptions import AuthenticationError, MirrorException, ParentRelationMissingError
from core.identifiers import RelationName, RelationRegistry
from ingestion.introspector import SchemaIntrospector
from ingestion.loaders.postgres_loader import PostgresLoader
from ingestion.paginator import PageResult, Paginator, page_items
from ingestion.parent_ids import ParentIdStreamer
from ingestion.sync_log import SyncLog, describe_error, fingerprint
from models.base import SyncStatus
from schemas.catalog import EndpointOp
from schemas.sync import SyncOutcome

logger = logging.getLogger(__name__)

# Per-parent failures beyond this are only counted
MAX_RECORDED_ERRORS = 50

# Payload key mirrored into the createdutc column
CREATED_KEY = "createdUtc"


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def as_records(value: Any) -> List[Any]:
    """Normalize a response body into a list of records."""
    if value is None:
        return []
    rows = page_items(value)
    if rows is not None:
        return rows
    if isinstance(value, dict):
        return [value]
    logger.warning(f"Ignoring scalar response of type {type(value).__name__}")
    return []


def parse_timestamp(value: Any) -> Optional[datetime]:
    """ISO-8601 text (``Z`` suffix allowed) to an aware datetime; None if unparseable"""
    if not isinstance(value, str) or not value:
        return None
    try:
        parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError:
        return None
    return parsed if parsed.tzinfo else parsed.replace(tzinfo=timezone.utc)


def resume_point(records: List[Any], since: datetime) -> datetime:
    """
    Watermark after a truncated fetch.

    Pages are sorted by creation time ascending, so the newest parseable
    creation time among the kept records is where the next run resumes.
    Falls back to the previous watermark.
    """
    for record in reversed(records):
        if isinstance(record, dict):
            created = parse_timestamp(record.get(CREATED_KEY))
            if created is not None and created > since:
                return created
    return since


class ResourceSynchronizer:
    """
    Orchestrates one endpoint's incremental fetch and hands results to the loader.

    Collaborators default to the settings-driven implementations and can be
    swapped in tests.
    """

    def __init__(
        self,
        gateway,
        store,
        loader: Optional[PostgresLoader] = None,
        introspector: Optional[SchemaIntrospector] = None,
        sync_log: Optional[SyncLog] = None,
        registry: Optional[RelationRegistry] = None,
        paginator: Optional[Paginator] = None,
        flush_threshold: int = None,
        max_rows: int = None,
        fanout_max_rows: int = None,
        parent_batch_size: int = None,
        clock: Callable[[], datetime] = utcnow
    ):
        self.gateway = gateway
        self.store = store
        self.loader = loader or PostgresLoader(store)
        self.introspector = introspector or SchemaIntrospector(store)
        self.sync_log = sync_log or SyncLog(store)
        self.registry = registry or RelationRegistry()
        self.paginator = paginator or Paginator(gateway)
        self.flush_threshold = flush_threshold or settings.FLUSH_THRESHOLD
        self.max_rows = max_rows or settings.MAX_ROWS
        self.fanout_max_rows = fanout_max_rows or settings.FANOUT_MAX_ROWS
        self.parent_batch_size = parent_batch_size or settings.PARENT_ID_BATCH_SIZE
        self.clock = clock

    def resource_for(self, endpoint: EndpointOp) -> RelationName:
        return self.registry.claim(endpoint.relation, endpoint.path)

    @staticmethod
    def request_body(endpoint: EndpointOp, since: datetime) -> Optional[dict]:
        if endpoint.is_paginated or endpoint.accepts_body:
            return {"DateFrom": since.isoformat()}
        return None

    async def fetch(self, endpoint: EndpointOp, path: str, body: Optional[dict], max_rows: int) -> PageResult:
        """Fetch one concrete path, through the paginator when list-shaped."""
        if endpoint.is_paginated:
            result = await self.paginator.paginate(
                path,
                method=endpoint.method,
                body=body,
                max_rows=max_rows
            )
            if result.is_passthrough:
                return PageResult(records=as_records(result.passthrough), pages=result.pages)
            return result

        value = await self.gateway.call(path, method=endpoint.method, body=body)
        return PageResult(records=as_records(value), pages=1)

    async def _sync_direct(
        self,
        endpoint: EndpointOp,
        resource: RelationName,
        body,
        since: datetime,
        errors: List[str]
    ) -> Tuple[int, Optional[datetime]]:
        """Returns the row count and, when the fetch was cut short, where to resume"""
        result = await self.fetch(endpoint, endpoint.path, body, self.max_rows)
        await self.loader.save(resource, result.records)

        if not result.truncated:
            return len(result.records), None

        resume_from = resume_point(result.records, since)
        errors.append(
            f"{endpoint.path}: stopped at {result.limit} after {len(result.records)} rows, "
            f"resuming from {resume_from.isoformat()}"
        )
        return len(result.records), resume_from

    async def _sync_fan_out(
        self,
        endpoint: EndpointOp,
        resource: RelationName,
        body,
        errors: List[str]
    ) -> Tuple[int, bool]:
        """Returns the row count and whether any parent's fetch was cut short"""
        placeholder = endpoint.placeholder
        streamer = ParentIdStreamer.for_placeholder(
            self.store, placeholder, batch_size=self.parent_batch_size
        )
        await streamer.ensure_exists(endpoint.path)

        logger.info(f"→ expanding parameterized endpoint: {endpoint.path} using IDs from {streamer.relation}")

        buffer: List[Any] = []
        total = 0
        failed = 0
        truncated = 0

        async for ids in streamer.batches():
            for parent_id in ids:
                full_path = endpoint.path.replace(
                    "{" + placeholder + "}", quote(str(parent_id), safe="")
                )
                try:
                    result = await self.fetch(endpoint, full_path, body, self.fanout_max_rows)
                except AuthenticationError:
                    raise
                except MirrorException as e:
                    failed += 1
                    logger.warning(f"⚠ {full_path} failed → {e.message}")
                    if failed <= MAX_RECORDED_ERRORS:
                        errors.append(f"{full_path}: {describe_error(e)}")
                    continue

                if result.truncated:
                    truncated += 1
                    if truncated <= MAX_RECORDED_ERRORS:
                        errors.append(f"{full_path}: stopped at {result.limit} after {len(result.records)} rows")

                buffer.extend(result.records)
                total += len(result.records)

                if len(buffer) >= self.flush_threshold:
                    await self.loader.save(resource, buffer)
                    buffer = []

        if failed > MAX_RECORDED_ERRORS:
            errors.append(f"{failed - MAX_RECORDED_ERRORS} more parent fetches failed")
        if truncated > MAX_RECORDED_ERRORS:
            errors.append(f"{truncated - MAX_RECORDED_ERRORS} more parent fetches were cut short")

        # Final flush also creates the relation when nothing came back
        await self.loader.save(resource, buffer)
        return total, truncated > 0

    async def sync(self, endpoint: EndpointOp) -> SyncOutcome:
        resource = self.resource_for(endpoint)
        logger.info(f"→ syncing {resource}")

        since = await self.sync_log.current_watermark(resource)
        started_at = self.clock()
        body = self.request_body(endpoint, since)
        errors: List[str] = []
        resume_from: Optional[datetime] = None

        try:
            if endpoint.placeholder:
                rowcount, truncated = await self._sync_fan_out(endpoint, resource, body, errors)
                if truncated:
                    # Per-parent windows have no common resume point
                    resume_from = since
            else:
                rowcount, resume_from = await self._sync_direct(endpoint, resource, body, since, errors)
        except ParentRelationMissingError as e:
            logger.warning(f"⚠ Skipping {endpoint.path}: {e.message}")
            outcome = SyncOutcome(
                resource=resource,
                path=endpoint.path,
                status=SyncStatus.SKIPPED,
                rowcount=0,
                fingerprint=fingerprint(resource, 0),
                errors=[describe_error(e)],
            )
            await self.sync_log.record(outcome)
            return outcome

        outcome = SyncOutcome(
            resource=resource,
            path=endpoint.path,
            status=SyncStatus.PARTIAL if errors else SyncStatus.SUCCESS,
            rowcount=rowcount,
            fingerprint=fingerprint(resource, rowcount),
            watermark=resume_from or started_at,
            errors=errors,
        )
        await self.sync_log.record(outcome)
        logger.info(f"✓ {resource}: {rowcount} total records processed")

        try:
            await self.introspector.analyze(resource)
        except MirrorException as e:
            logger.warning(f"Schema analysis failed for {resource}: {e.message}")
            outcome.errors.append(f"schema analysis: {describe_error(e)}")
            outcome.status = SyncStatus.PARTIAL

        return outcome
