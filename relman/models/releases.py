"""Release metadata models.

A release is one versioned ``.tgz`` artifact of a named software package.
Records are frozen: the metadata store hands out immutable snapshots and
every change goes through the store as a new record.
"""

from __future__ import annotations

import uuid
from datetime import datetime, timezone
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field, field_validator

from relman.models.versioning import normalize_version_text


class ReleaseState(str, Enum):
    """Whether a release's backing archive is known to be on disk.

    * ``available``: a regular file exists at the derived path and its size
      matches ``file_size``.
    * ``unavailable``: no such file is guaranteed.
    """

    AVAILABLE = "available"
    UNAVAILABLE = "unavailable"


class ReleaseMetadata(BaseModel):
    """Metadata for a single software release.

    The pair ``(software_name, version)`` identifies a release and is unique
    across the metadata store. ``file_size`` is authoritative only while
    ``release_state`` is ``available``.

    Examples
    --------
    >>> meta = ReleaseMetadata(software_name="acme", version="1.0.0")
    >>> meta.key
    ('acme', '1.0.0')
    >>> meta.release_state
    <ReleaseState.UNAVAILABLE: 'unavailable'>
    """

    model_config = ConfigDict(frozen=True)

    id: str = Field(default_factory=lambda: f"rel-{uuid.uuid4().hex[:12]}")
    software_name: str = Field(min_length=1)
    version: str = Field(min_length=1)
    release_timestamp: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc)
    )
    file_size: int = Field(default=0, ge=0)
    release_state: ReleaseState = ReleaseState.UNAVAILABLE
    changelog: str = ""
    release_date: datetime | None = None  # nominal date supplied by the caller

    @field_validator("version")
    @classmethod
    def _canonical_version(cls, value: str) -> str:
        # Malformed text is kept so reconciliation can flag the record
        return normalize_version_text(value)

    @field_validator("release_timestamp", "release_date")
    @classmethod
    def _assume_utc(cls, value: datetime | None) -> datetime | None:
        # Naive datetimes are taken as UTC so dates always compare cleanly
        if value is not None and value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value

    @property
    def key(self) -> tuple[str, str]:
        """The store key for this release."""
        return (self.software_name, self.version)

    @property
    def is_available(self) -> bool:
        return self.release_state is ReleaseState.AVAILABLE
