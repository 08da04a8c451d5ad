"""Reconciliation report models."""

from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field

from relman.models.releases import ReleaseState


class CorrectionReason(str, Enum):
    """Why reconciliation rewrote a record."""

    FILE_MISSING = "file_missing"
    FILE_RESTORED = "file_restored"
    SIZE_CHANGED = "size_changed"
    INVALID_VERSION = "invalid_version"


class ReleaseCorrection(BaseModel):
    """One record rewritten by a reconciliation pass."""

    model_config = ConfigDict(frozen=True)

    software_name: str
    version: str
    reason: CorrectionReason
    previous_state: ReleaseState
    new_state: ReleaseState
    previous_size: int
    new_size: int


class ReconciliationReport(BaseModel):
    """Outcome of a single ``reconcile()`` invocation.

    A pass either applies every correction it planned or none of them, so
    the report always describes a fully reconciled store.
    """

    model_config = ConfigDict(frozen=True)

    checked: int = 0
    corrections: list[ReleaseCorrection] = []
    started_at: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc)
    )
    finished_at: datetime | None = None

    @property
    def mutations(self) -> int:
        """Number of records the pass rewrote."""
        return len(self.corrections)
