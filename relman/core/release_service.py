"""Release service: the entry point for callers of the repository core.

The ReleaseService wires together the MetadataStore, PathResolver,
ReconciliationEngine and UploadCoordinator, and adds the derived queries
(latest release, package overview, status) built on version ordering.
An API or CLI layer talks to this class only.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import BinaryIO

from relman.config import SERVER_VERSION, RelmanConfig
from relman.core.errors import IOFailure, ReleaseUnavailableError
from relman.core.metadata_store import MetadataStore
from relman.core.path_resolver import PathResolver, RollingHashIds, SoftwareIdTable
from relman.core.reconciler import ReconciliationEngine
from relman.core.upload_coordinator import UploadCoordinator
from relman.core.version_comparator import latest_release, sort_releases
from relman.models.packages import RepositoryStatus, SoftwarePackageInfo
from relman.models.releases import ReleaseMetadata
from relman.models.reports import ReconciliationReport

logger = logging.getLogger(__name__)


class ReleaseService:
    """Release repository operations over one data directory and repository tree.

    Parameters
    ----------
    store:
        The metadata store.
    resolver:
        Derives archive paths.
    reconcile_on_startup:
        Run one reconciliation pass before returning, so the store agrees
        with the repository tree before anything is served from it.
    """

    def __init__(
        self,
        store: MetadataStore,
        resolver: PathResolver,
        *,
        reconcile_on_startup: bool = False,
    ) -> None:
        self.store = store
        self.resolver = resolver
        self.reconciler = ReconciliationEngine(store, resolver)
        self.uploader = UploadCoordinator(store, resolver)
        self.last_reconciliation: ReconciliationReport | None = None

        if reconcile_on_startup:
            self.reconcile()

    @classmethod
    def from_config(cls, config: RelmanConfig) -> ReleaseService:
        """Build a service from configuration.

        Raises
        ------
        IOFailure
            If the metadata file or identifier table cannot be loaded.
        ReconciliationAborted
            If startup reconciliation is enabled and fails.
        """
        ids = (
            RollingHashIds()
            if config.id_scheme == "hash"
            else SoftwareIdTable(config.id_table_path)
        )
        logger.info(
            "Opening release repository (data=%s, repository=%s, ids=%s).",
            config.data_path,
            config.repository_path,
            config.id_scheme,
        )
        return cls(
            MetadataStore(config.metadata_path),
            PathResolver(config.repository_path, ids),
            reconcile_on_startup=config.reconcile_on_startup,
        )

    # ------------------------------------------------------------------
    # Metadata operations
    # ------------------------------------------------------------------

    def get_release(self, software_name: str, version: str) -> ReleaseMetadata:
        return self.store.get(software_name, version)

    def list_releases(
        self,
        software_name: str,
        *,
        sort_by: str = "version",
        order: str = "desc",
    ) -> list[ReleaseMetadata]:
        """List one package's releases, newest version first by default."""
        releases = self.store.list_for_software(software_name)
        return sort_releases(releases, by=sort_by, order=order)

    def list_all_releases(self) -> list[ReleaseMetadata]:
        return self.store.list_all()

    def create_release(self, metadata: ReleaseMetadata) -> ReleaseMetadata:
        return self.store.create(metadata)

    def update_release(self, metadata: ReleaseMetadata) -> ReleaseMetadata:
        return self.store.update(metadata)

    def delete_release(
        self, software_name: str, version: str, *, purge_file: bool = True
    ) -> ReleaseMetadata:
        """Delete a release's metadata, removing its archive first by default.

        The archive goes before the record: if the record removal then
        fails, reconciliation marks the surviving record unavailable, whereas
        an archive left behind without a record could never be found again.
        """
        release = self.store.get(software_name, version)
        if purge_file:
            path = self.resolver.file_for(release)
            try:
                path.unlink()
            except FileNotFoundError:
                logger.debug("Archive for %s %s already absent.", software_name, version)
            except OSError as exc:
                raise IOFailure(
                    f"Failed to remove release file: {exc}",
                    software_name=software_name,
                    version=version,
                    path=path,
                    operation="delete",
                ) from exc
        return self.store.delete(software_name, version)

    # ------------------------------------------------------------------
    # Derived queries
    # ------------------------------------------------------------------

    def latest_release(self, software_name: str) -> ReleaseMetadata:
        """Return the highest-versioned release of a package.

        Raises
        ------
        ReleaseNotFoundError
            If the package has no releases.
        """
        return latest_release(self.store.list_for_software(software_name))

    def list_packages(self) -> list[SoftwarePackageInfo]:
        """Summarize every package that has at least one release, by name."""
        grouped: dict[str, list[ReleaseMetadata]] = {}
        for release in self.store.list_all():
            grouped.setdefault(release.software_name, []).append(release)

        packages: list[SoftwarePackageInfo] = []
        for name in sorted(grouped):
            releases = grouped[name]
            latest = latest_release(releases)
            packages.append(
                SoftwarePackageInfo(
                    name=name,
                    latest_version=latest.version,
                    latest_release_date=latest.release_date,
                    release_count=len(releases),
                    available_count=sum(1 for r in releases if r.is_available),
                )
            )
        return packages

    def status(self) -> RepositoryStatus:
        releases = self.store.list_all()
        available = sum(1 for r in releases if r.is_available)
        return RepositoryStatus(
            server_version=SERVER_VERSION,
            total_packages=len({r.software_name for r in releases}),
            total_releases=len(releases),
            available_releases=available,
            unavailable_releases=len(releases) - available,
        )

    # ------------------------------------------------------------------
    # Files
    # ------------------------------------------------------------------

    def resolve_path(self, metadata: ReleaseMetadata) -> Path:
        return self.resolver.file_for(metadata)

    def release_file(self, software_name: str, version: str) -> Path:
        """Return the archive path of an available release.

        Raises
        ------
        ReleaseNotFoundError
            If the release is unknown.
        ReleaseUnavailableError
            If the release's archive is unavailable.
        """
        release = self.store.get(software_name, version)
        self._require_available(release)
        return self.resolver.file_for(release)

    def open_for_read(self, metadata: ReleaseMetadata) -> BinaryIO:
        """Open a release archive for binary reading. The caller closes it.

        Raises
        ------
        ReleaseUnavailableError
            If the stored record is marked unavailable.
        IOFailure
            If the archive cannot be opened.
        """
        release = self.store.get(metadata.software_name, metadata.version)
        self._require_available(release)
        path = self.resolver.file_for(release)
        try:
            return open(path, "rb")
        except OSError as exc:
            raise IOFailure(
                f"Failed to open release file for reading: {exc}",
                software_name=release.software_name,
                version=release.version,
                path=path,
                operation="open",
            ) from exc

    @staticmethod
    def _require_available(release: ReleaseMetadata) -> None:
        if not release.is_available:
            raise ReleaseUnavailableError(
                f"Release is not available: {release.software_name} {release.version}",
                software_name=release.software_name,
                version=release.version,
            )

    # ------------------------------------------------------------------
    # Coordination
    # ------------------------------------------------------------------

    def reconcile(self) -> ReconciliationReport:
        report = self.reconciler.reconcile()
        self.last_reconciliation = report
        return report

    def upload(self, archive_path: Path, metadata: ReleaseMetadata) -> ReleaseMetadata:
        return self.uploader.upload(archive_path, metadata)
