"""Error taxonomy for the release repository core.

Every error carries a machine-readable ``kind`` plus the software name,
version, filesystem path and operation involved where they are known, so
an outer API layer can map them to responses without parsing messages.
Nothing in the core retries or swallows these.
"""

from __future__ import annotations

from pathlib import Path
from typing import Any


class RepositoryError(RuntimeError):
    """Base class for all release repository errors."""

    kind = "repository_error"

    def __init__(
        self,
        message: str,
        *,
        software_name: str | None = None,
        version: str | None = None,
        path: Path | str | None = None,
        operation: str | None = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.software_name = software_name
        self.version = version
        self.path = Path(path) if path is not None else None
        self.operation = operation

    def to_dict(self) -> dict[str, Any]:
        """Structured form for callers that report errors outward."""
        return {
            "kind": self.kind,
            "message": self.message,
            "software_name": self.software_name,
            "version": self.version,
            "path": str(self.path) if self.path is not None else None,
            "operation": self.operation,
        }


class ReleaseNotFoundError(RepositoryError):
    """Raised when a software name or release version is unknown."""

    kind = "not_found"


class ReleaseUnavailableError(ReleaseNotFoundError):
    """Raised when a release is recorded but its archive is unavailable."""

    kind = "not_available"


class ReleaseAlreadyExistsError(RepositoryError):
    """Raised when creating a release whose (name, version) is taken."""

    kind = "already_exists"


class VersionParseError(RepositoryError, ValueError):
    """Raised when a version string is not ``X.Y.Z`` with integer parts."""

    kind = "parse_error"


class IOFailure(RepositoryError):
    """Raised when a filesystem operation fails.

    The underlying ``OSError`` is chained as ``__cause__``.
    """

    kind = "io_failure"


class ReconciliationAborted(RepositoryError):
    """Raised when a reconciliation pass hits an I/O failure.

    No correction from the aborted pass is applied.
    """

    kind = "reconciliation_aborted"


class CompensationFailure(RepositoryError):
    """Raised when cleanup after a failed upload fails too.

    Carries both errors: ``primary`` is the failure that triggered the
    cleanup and ``cleanup_error`` is why the cleanup failed. The placed file
    is left on disk without metadata.
    """

    kind = "compensation_failure"

    def __init__(
        self,
        message: str,
        *,
        primary: BaseException,
        cleanup_error: BaseException,
        **context: Any,
    ) -> None:
        super().__init__(message, **context)
        self.primary = primary
        self.cleanup_error = cleanup_error

    def to_dict(self) -> dict[str, Any]:
        data = super().to_dict()
        data["primary"] = (
            self.primary.to_dict()
            if isinstance(self.primary, RepositoryError)
            else {"kind": type(self.primary).__name__, "message": str(self.primary)}
        )
        data["cleanup_error"] = {
            "kind": type(self.cleanup_error).__name__,
            "message": str(self.cleanup_error),
        }
        return data
