"""Upload coordination: place an archive, then commit its metadata.

There is no transaction spanning the filesystem and the metadata store.
The coordinator copies the archive into a private staging file beside its
final path, and then, holding a per-release lock, moves it into place and
commits the record. If the commit fails, the placed file is deleted
(compensating delete) before the original error is re-raised. A second
upload of a committed release never overwrites the first one's archive.
"""

from __future__ import annotations

import contextlib
import logging
import shutil
import uuid
from datetime import datetime, timezone
from pathlib import Path

from relman.core.errors import (
    CompensationFailure,
    IOFailure,
    ReleaseAlreadyExistsError,
    ReleaseNotFoundError,
    RepositoryError,
)
from relman.core.locks import KeyedLock
from relman.core.metadata_store import MetadataStore
from relman.core.path_resolver import PathResolver
from relman.core.version_comparator import canonical_version
from relman.models.releases import ReleaseMetadata, ReleaseState

logger = logging.getLogger(__name__)

STAGING_SUFFIX = ".part"


class UploadCoordinator:
    """Stores new release archives and records their metadata.

    Parameters
    ----------
    store:
        Metadata store the release is committed to.
    resolver:
        Derives the destination path for the archive.
    """

    def __init__(self, store: MetadataStore, resolver: PathResolver) -> None:
        self._store = store
        self._resolver = resolver
        self._key_locks = KeyedLock()

    def upload(self, archive_path: Path, metadata: ReleaseMetadata) -> ReleaseMetadata:
        """Store ``archive_path`` as the release described by ``metadata``.

        The version is normalized to ``X.Y.Z``; ``file_size``,
        ``release_state`` and ``release_timestamp`` are set here, and
        ``release_date`` defaults to the commit time. A release whose
        archive went missing (``unavailable``) may be uploaded again and
        keeps its id.

        Returns
        -------
        ReleaseMetadata
            The committed record.

        Raises
        ------
        VersionParseError
            If the version is not ``X.Y.Z``.
        ReleaseAlreadyExistsError
            If the release is already present and available.
        IOFailure
            If the archive could not be read, copied, or placed, or the
            metadata could not be persisted.
        CompensationFailure
            If a commit failed and the placed file could not be removed.
        """
        archive = Path(archive_path)
        draft = metadata.model_copy(update={"version": canonical_version(metadata.version)})
        name = draft.software_name

        self._check_archive(archive, draft)
        destination = self._resolver.file_for(draft)
        staged = self._stage(archive, destination, draft)

        try:
            size = staged.stat().st_size
        except OSError as exc:
            self._discard(staged)
            raise IOFailure(
                f"Failed to stat staged archive: {exc}",
                software_name=name,
                version=draft.version,
                path=staged,
                operation="stat",
            ) from exc

        now = datetime.now(timezone.utc)
        committed = draft.model_copy(
            update={
                "file_size": size,
                "release_state": ReleaseState.AVAILABLE,
                "release_timestamp": now,
                "release_date": draft.release_date or now,
            }
        )

        with self._key_locks.hold(committed.key):
            try:
                existing = self._store.get(name, committed.version)
            except ReleaseNotFoundError:
                existing = None

            if existing is not None and existing.is_available:
                error = ReleaseAlreadyExistsError(
                    f"Release version already exists for software {name}: "
                    f"{committed.version}",
                    software_name=name,
                    version=committed.version,
                )
                self._compensate(staged, error, committed)
                raise error

            self._place(staged, destination, committed)
            try:
                if existing is None:
                    result = self._store.create(committed)
                else:
                    result = self._store.update(committed.model_copy(update={"id": existing.id}))
            except RepositoryError as error:
                self._compensate(destination, error, committed)
                raise

        logger.info(
            "Uploaded %s %s (%d bytes) to %s.",
            name,
            result.version,
            result.file_size,
            destination,
        )
        return result

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    @staticmethod
    def _check_archive(archive: Path, draft: ReleaseMetadata) -> None:
        if not archive.is_file():
            raise IOFailure(
                f"Archive is not a readable file: {archive}",
                software_name=draft.software_name,
                version=draft.version,
                path=archive,
                operation="read",
            )

    @staticmethod
    def _stage(archive: Path, destination: Path, draft: ReleaseMetadata) -> Path:
        """Copy the archive next to its destination under a unique name."""
        try:
            destination.parent.mkdir(parents=True, exist_ok=True)
        except OSError as exc:
            raise IOFailure(
                f"Failed to create release directory: {exc}",
                software_name=draft.software_name,
                version=draft.version,
                path=destination.parent,
                operation="mkdir",
            ) from exc

        staged = destination.with_name(
            f".{destination.name}.{uuid.uuid4().hex[:12]}{STAGING_SUFFIX}"
        )
        try:
            shutil.copyfile(archive, staged)
        except OSError as exc:
            with contextlib.suppress(FileNotFoundError):
                staged.unlink()
            raise IOFailure(
                f"Failed to store release file: {exc}",
                software_name=draft.software_name,
                version=draft.version,
                path=staged,
                operation="copy",
            ) from exc
        logger.debug("Staged %s as %s.", archive, staged)
        return staged

    def _place(self, staged: Path, destination: Path, committed: ReleaseMetadata) -> None:
        try:
            staged.replace(destination)
        except OSError as exc:
            failure = IOFailure(
                f"Failed to move release file into place: {exc}",
                software_name=committed.software_name,
                version=committed.version,
                path=destination,
                operation="rename",
            )
            failure.__cause__ = exc
            self._compensate(staged, failure, committed)
            raise failure

    @staticmethod
    def _discard(path: Path) -> None:
        with contextlib.suppress(FileNotFoundError):
            path.unlink()

    @staticmethod
    def _compensate(
        path: Path, primary: RepositoryError, committed: ReleaseMetadata
    ) -> None:
        """Delete a file this upload placed, after ``primary`` failed the upload.

        Raises ``CompensationFailure`` (chained from ``primary``) if the file
        cannot be removed.
        """
        try:
            path.unlink()
        except FileNotFoundError:
            pass
        except OSError as cleanup_error:
            logger.error(
                "Could not remove %s after failed upload of %s %s: %s",
                path,
                committed.software_name,
                committed.version,
                cleanup_error,
            )
            raise CompensationFailure(
                f"Upload of {committed.software_name} {committed.version} failed "
                f"({primary}) and the placed file could not be removed: {cleanup_error}",
                primary=primary,
                cleanup_error=cleanup_error,
                software_name=committed.software_name,
                version=committed.version,
                path=path,
                operation="delete",
            ) from primary
        else:
            logger.warning(
                "Removed %s after failed upload of %s %s (%s).",
                path,
                committed.software_name,
                committed.version,
                primary.kind,
            )
