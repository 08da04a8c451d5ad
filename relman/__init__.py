"""relman: versioned release repository.

Tracks metadata for named software releases (name, semantic version,
state, size, timestamps) and the ``.tgz`` archives that back them, and
keeps the two in agreement:
  - JSON metadata store, durable on every write, single-writer/multi-reader
  - Deterministic archive paths from a persisted software identifier table
  - Numeric major.minor.patch ordering for latest-release queries
  - Startup reconciliation that repairs drift between metadata and disk
  - Uploads with compensating delete when the metadata commit fails
"""

__version__ = "0.1.0"

from relman.core.release_service import ReleaseService
from relman.models.releases import ReleaseMetadata, ReleaseState

__all__ = ["ReleaseService", "ReleaseMetadata", "ReleaseState", "__version__"]
