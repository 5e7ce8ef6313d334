"""
Append-only sync log: watermarks for resumption and outcomes for reporting
"""

import hashlib
import logging
from datetime import datetime, timezone
from typing import Optional

from models.base import SyncStatus
from schemas.sync import SyncOutcome

logger = logging.getLogger(__name__)

EPOCH = datetime(1900, 1, 1, tzinfo=timezone.utc)


def describe_error(error: Exception) -> str:
    """One-line error text for the sync log and the report"""
    message = getattr(error, "message", None) or str(error)
    cause = getattr(error, "original_exception", None)
    if cause is not None:
        message += f" ({type(cause).__name__}: {getattr(cause, 'message', None) or cause})"
    return message


def fingerprint(resource: str, rowcount: int) -> str:
    """Cheap row-count drift detector, not an integrity check"""
    return hashlib.md5(f"{resource}:{rowcount}".encode("utf-8")).hexdigest()


class SyncLog:
    """Reads watermarks from and appends outcomes to mirror_log"""

    def __init__(self, store):
        self.store = store

    async def current_watermark(self, resource: str) -> datetime:
        """Lower bound for the next incremental fetch; epoch on first run"""
        watermark: Optional[datetime] = await self.store.latest_watermark(resource)
        return watermark or EPOCH

    async def record(self, outcome: SyncOutcome):
        await self.store.append_sync_log({
            "resource": outcome.resource,
            "rowcount": outcome.rowcount,
            "synced_at": outcome.synced_at,
            "fingerprint": outcome.fingerprint,
            "watermark": outcome.watermark,
            "errors": outcome.errors,
        })

    async def record_failure(self, resource: str, path: str, error: Exception) -> SyncOutcome:
        """Convert a per-resource failure into a zero-row outcome and log it"""
        outcome = SyncOutcome(
            resource=resource,
            path=path,
            status=SyncStatus.FAILED,
            rowcount=0,
            fingerprint=fingerprint(resource, 0),
            errors=[describe_error(error)],
        )
        try:
            await self.record(outcome)
        except Exception as e:
            # The outcome still reaches the report
            logger.error(f"Could not record failure for {resource}: {e}")
            outcome.errors.append(f"sync log write failed: {e}")
        return outcome
