"""Derived package views.

There is no persisted software-package record: a package exists while at
least one release carries its name, and everything here is recomputed
from the release set on every call.
"""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, ConfigDict


class SoftwarePackageInfo(BaseModel):
    """Summary of one software package, derived from its releases."""

    model_config = ConfigDict(frozen=True)

    name: str
    latest_version: str
    latest_release_date: datetime | None = None
    release_count: int = 0
    available_count: int = 0


class RepositoryStatus(BaseModel):
    """Point-in-time counters for the whole repository."""

    model_config = ConfigDict(frozen=True)

    server_version: str
    total_packages: int = 0
    total_releases: int = 0
    available_releases: int = 0
    unavailable_releases: int = 0
