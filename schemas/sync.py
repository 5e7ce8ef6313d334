"""
Pydantic schemas for sync outcomes and the end-of-run report
"""

from pydantic import BaseModel, Field
from typing import Optional, List
from datetime import datetime, timezone

from models.base import SyncStatus


class SyncOutcome(BaseModel):
    """Result of synchronizing one endpoint"""
    resource: str
    path: str
    status: SyncStatus = SyncStatus.SUCCESS
    rowcount: int = 0
    fingerprint: Optional[str] = None
    watermark: Optional[datetime] = None
    synced_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    errors: List[str] = Field(default_factory=list)

    @property
    def failed(self) -> bool:
        return bool(self.errors)


class SyncReport(BaseModel):
    """Aggregated, purely observational view of a run"""
    outcomes: List[SyncOutcome] = Field(default_factory=list)
    started_at: Optional[datetime] = None
    finished_at: Optional[datetime] = None

    @classmethod
    def from_outcomes(
        cls,
        outcomes: List[SyncOutcome],
        started_at: Optional[datetime] = None
    ) -> "SyncReport":
        return cls(
            outcomes=list(outcomes),
            started_at=started_at,
            finished_at=datetime.now(timezone.utc)
        )

    @property
    def total_rows(self) -> int:
        return sum(outcome.rowcount for outcome in self.outcomes)

    @property
    def failures(self) -> List[SyncOutcome]:
        return [outcome for outcome in self.outcomes if outcome.failed]

    def render(self) -> str:
        """Human-readable summary, one line per resource"""
        lines = [
            "API Mirror Sync Summary",
            "=======================",
            f"Total Resources: {len(self.outcomes)}",
            f"Total Rows Synced: {self.total_rows}",
            f"Failures: {len(self.failures)}",
            "",
        ]
        for outcome in self.outcomes:
            line = f"• {outcome.resource}: {outcome.rowcount} rows"
            if outcome.errors:
                line += f" (errors: {'; '.join(outcome.errors)})"
            lines.append(line)
        return "\n".join(lines)
