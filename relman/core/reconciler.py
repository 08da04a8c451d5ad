"""Reconciliation: align recorded release state with the repository tree.

Each pass walks every metadata record, stats the path the resolver derives
for it, and corrects ``release_state`` and ``file_size`` to match what is
on disk. A pass is all-or-nothing: it first plans every correction, and
only when every stat succeeded applies them with one store write. An
unexpected filesystem error aborts the pass with nothing applied.

Corrections touch only ``release_state`` and ``file_size`` of the record as
it is at write time. A record deleted, or whose state or size was rewritten,
between planning and applying is left as the other writer left it and is
not reported.

Orphaned archives (files with no record) are not detected; the pass only
walks metadata.
"""

from __future__ import annotations

import logging
import os
import stat
from datetime import datetime, timezone

from relman.core.errors import IOFailure, ReconciliationAborted, VersionParseError
from relman.core.metadata_store import MetadataStore
from relman.core.path_resolver import PathResolver
from relman.models.releases import ReleaseMetadata, ReleaseState
from relman.models.reports import (
    CorrectionReason,
    ReconciliationReport,
    ReleaseCorrection,
)

logger = logging.getLogger(__name__)


class ReconciliationEngine:
    """Detects and repairs drift between metadata and archive files.

    Parameters
    ----------
    store:
        The metadata store to reconcile. Corrections go through it.
    resolver:
        Derives the archive path for each release.
    """

    def __init__(self, store: MetadataStore, resolver: PathResolver) -> None:
        self._store = store
        self._resolver = resolver

    def reconcile(self) -> ReconciliationReport:
        """Run one reconciliation pass.

        Returns a report listing every record that was rewritten. Running
        it again with no filesystem change in between rewrites nothing.

        Raises
        ------
        ReconciliationAborted
            If a file could not be inspected or the corrections could not be
            persisted. No correction from this pass is applied.
        """
        started = datetime.now(timezone.utc)
        releases = self._store.list_all()
        logger.info("Reconciling %d release(s) against %s.", len(releases), self._resolver.repo_root)

        planned: list[tuple[ReleaseMetadata, ReleaseCorrection]] = []
        for release in releases:
            outcome = self._check(release)
            if outcome is not None:
                planned.append(outcome)

        corrections: list[ReleaseCorrection] = []
        if planned:
            try:
                applied = self._store.apply_file_states(
                    (seen, c.new_state, c.new_size) for seen, c in planned
                )
            except IOFailure as exc:
                raise ReconciliationAborted(
                    f"Reconciliation aborted, corrections could not be persisted: {exc}",
                    path=exc.path,
                    operation=exc.operation,
                ) from exc
            applied_keys = {(r.software_name, r.version) for r in applied}
            corrections = [
                c for seen, c in planned if (seen.software_name, seen.version) in applied_keys
            ]
        for c in corrections:
            logger.warning(
                "Reconciled %s %s: %s (%s -> %s, size %d -> %d).",
                c.software_name,
                c.version,
                c.reason.value,
                c.previous_state.value,
                c.new_state.value,
                c.previous_size,
                c.new_size,
            )
        logger.info(
            "Reconciliation complete: %d checked, %d corrected.",
            len(releases),
            len(corrections),
        )
        return ReconciliationReport(
            checked=len(releases),
            corrections=corrections,
            started_at=started,
            finished_at=datetime.now(timezone.utc),
        )

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    def _check(
        self, release: ReleaseMetadata
    ) -> tuple[ReleaseMetadata, ReleaseCorrection] | None:
        """Plan the correction for one release, or ``None`` if it is in sync."""
        try:
            path = self._resolver.file_for(release)
        except VersionParseError:
            logger.warning(
                "Release %s has malformed version %r, no archive path can exist.",
                release.software_name,
                release.version,
            )
            return self._mark(release, ReleaseState.UNAVAILABLE, release.file_size,
                              CorrectionReason.INVALID_VERSION)
        except IOFailure as exc:
            raise ReconciliationAborted(
                f"Reconciliation aborted resolving {release.software_name} "
                f"{release.version}: {exc}",
                software_name=release.software_name,
                version=release.version,
                path=exc.path,
                operation=exc.operation,
            ) from exc

        try:
            st = os.stat(path)
        except (FileNotFoundError, NotADirectoryError):
            st = None
        except OSError as exc:
            failure = IOFailure(
                f"Failed to stat release file: {exc}",
                software_name=release.software_name,
                version=release.version,
                path=path,
                operation="stat",
            )
            failure.__cause__ = exc
            raise ReconciliationAborted(
                f"Reconciliation aborted checking {release.software_name} "
                f"{release.version} at {path}: {exc}",
                software_name=release.software_name,
                version=release.version,
                path=path,
                operation="stat",
            ) from failure

        if st is None or not stat.S_ISREG(st.st_mode):
            return self._mark(release, ReleaseState.UNAVAILABLE, release.file_size,
                              CorrectionReason.FILE_MISSING)
        if not release.is_available:
            return self._mark(release, ReleaseState.AVAILABLE, st.st_size,
                              CorrectionReason.FILE_RESTORED)
        return self._mark(release, ReleaseState.AVAILABLE, st.st_size,
                          CorrectionReason.SIZE_CHANGED)

    @staticmethod
    def _mark(
        release: ReleaseMetadata,
        state: ReleaseState,
        size: int,
        reason: CorrectionReason,
    ) -> tuple[ReleaseMetadata, ReleaseCorrection] | None:
        if release.release_state is state and release.file_size == size:
            return None
        return release, ReleaseCorrection(
            software_name=release.software_name,
            version=release.version,
            reason=reason,
            previous_state=release.release_state,
            new_state=state,
            previous_size=release.file_size,
            new_size=size,
        )
