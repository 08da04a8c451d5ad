"""relman data models: all Pydantic v2, all frozen (immutable)."""

from relman.models.packages import RepositoryStatus, SoftwarePackageInfo
from relman.models.releases import ReleaseMetadata, ReleaseState
from relman.models.reports import (
    CorrectionReason,
    ReconciliationReport,
    ReleaseCorrection,
)
from relman.models.versioning import Version

__all__ = [
    # versioning
    "Version",
    # releases
    "ReleaseMetadata",
    "ReleaseState",
    # packages
    "SoftwarePackageInfo",
    "RepositoryStatus",
    # reports
    "CorrectionReason",
    "ReleaseCorrection",
    "ReconciliationReport",
]
