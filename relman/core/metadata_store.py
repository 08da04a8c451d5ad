"""Authoritative store of release metadata, persisted as one JSON file.

Design:
- Keyed by (software_name, canonical version); the pair is unique, so
  ``1.02.3`` and ``1.2.3`` address one record.
- Durable-on-return: every mutation rewrites the whole file (temp file,
  fsync, atomic rename) before it is visible in memory, so a call that
  returns has been persisted and a call that raises changed nothing.
- Single-writer, multi-reader: reads share a lock, writes are exclusive.
- Records are frozen models; callers only ever hold snapshots.
"""

from __future__ import annotations

import json
import logging
from collections.abc import Iterable
from pathlib import Path

from pydantic import ValidationError

from relman.core.errors import IOFailure, ReleaseAlreadyExistsError, ReleaseNotFoundError
from relman.core.fileio import atomic_write_text
from relman.core.locks import ReadWriteLock
from relman.models.releases import ReleaseMetadata, ReleaseState
from relman.models.versioning import normalize_version_text

logger = logging.getLogger(__name__)

_Key = tuple[str, str]


def _key(software_name: str, version: str) -> _Key:
    # 1.02.3 and 1.2.3 name the same release
    return (software_name, normalize_version_text(version))


class MetadataStore:
    """Keyed, durably persisted collection of :class:`ReleaseMetadata`.

    Parameters
    ----------
    metadata_path:
        Path to the JSON metadata file. A missing file is an empty store;
        the file is created on the first mutation.
    """

    def __init__(self, metadata_path: Path) -> None:
        self._path = Path(metadata_path)
        self._lock = ReadWriteLock()
        self._releases: dict[_Key, ReleaseMetadata] = self._load()

    @property
    def path(self) -> Path:
        return self._path

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def get(self, software_name: str, version: str) -> ReleaseMetadata:
        """Return the release for ``(software_name, version)``.

        Raises
        ------
        ReleaseNotFoundError
            If the software or the version is unknown.
        """
        with self._lock.read():
            release = self._releases.get(_key(software_name, version))
            if release is None:
                raise self._not_found(software_name, version)
            return release

    def list_for_software(self, software_name: str) -> list[ReleaseMetadata]:
        """Return every release of one software package, in store order.

        Raises
        ------
        ReleaseNotFoundError
            If no release carries ``software_name``.
        """
        with self._lock.read():
            releases = [
                r for r in self._releases.values() if r.software_name == software_name
            ]
        if not releases:
            raise ReleaseNotFoundError(
                f"Software package not found: {software_name}",
                software_name=software_name,
            )
        return releases

    def list_all(self) -> list[ReleaseMetadata]:
        """Return every release across all software packages, in store order."""
        with self._lock.read():
            return list(self._releases.values())

    def __contains__(self, key: object) -> bool:
        if not (isinstance(key, tuple) and len(key) == 2):
            return False
        with self._lock.read():
            return _key(*key) in self._releases

    def __len__(self) -> int:
        with self._lock.read():
            return len(self._releases)

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    def create(self, metadata: ReleaseMetadata) -> ReleaseMetadata:
        """Insert a new release and persist.

        Raises
        ------
        ReleaseAlreadyExistsError
            If ``(software_name, version)`` is already present.
        IOFailure
            If the store could not be persisted; nothing was inserted.
        """
        with self._lock.write():
            if _key(metadata.software_name, metadata.version) in self._releases:
                raise ReleaseAlreadyExistsError(
                    f"Release version already exists for software "
                    f"{metadata.software_name}: {metadata.version}",
                    software_name=metadata.software_name,
                    version=metadata.version,
                )
            releases = dict(self._releases)
            releases[_key(metadata.software_name, metadata.version)] = metadata
            self._commit(releases)
        logger.info("Created release %s %s.", metadata.software_name, metadata.version)
        return metadata

    def update(self, metadata: ReleaseMetadata) -> ReleaseMetadata:
        """Replace an existing release and persist.

        Raises
        ------
        ReleaseNotFoundError
            If ``(software_name, version)`` is absent.
        IOFailure
            If the store could not be persisted; nothing was changed.
        """
        self.update_many([metadata])
        return metadata

    def update_many(self, records: Iterable[ReleaseMetadata]) -> None:
        """Replace several existing releases with a single persist.

        Either every record is applied or none is.

        Raises
        ------
        ReleaseNotFoundError
            If any record's key is absent.
        IOFailure
            If the store could not be persisted.
        """
        records = list(records)
        if not records:
            return
        with self._lock.write():
            for record in records:
                if _key(record.software_name, record.version) not in self._releases:
                    raise self._not_found(record.software_name, record.version)
            releases = dict(self._releases)
            for record in records:
                releases[_key(record.software_name, record.version)] = record
            self._commit(releases)
        for record in records:
            logger.info(
                "Updated release %s %s (state=%s, size=%d).",
                record.software_name,
                record.version,
                record.release_state.value,
                record.file_size,
            )

    def apply_file_states(
        self, changes: Iterable[tuple[ReleaseMetadata, ReleaseState, int]]
    ) -> list[ReleaseMetadata]:
        """Set ``release_state`` and ``file_size`` on records, with a single persist.

        Each change names the record as it was read when the change was
        planned. Inside the write lock the change is applied to the current
        record, leaving its other fields alone. A change is skipped when its
        record has since been deleted, or when its state or size has since
        been rewritten by another writer.

        Returns
        -------
        list[ReleaseMetadata]
            The planned-against records whose change was applied.

        Raises
        ------
        IOFailure
            If the store could not be persisted; nothing was changed.
        """
        changes = list(changes)
        if not changes:
            return []
        applied: list[ReleaseMetadata] = []
        with self._lock.write():
            releases = dict(self._releases)
            for seen, state, size in changes:
                key = _key(seen.software_name, seen.version)
                current = releases.get(key)
                if current is None or (current.release_state, current.file_size) != (
                    seen.release_state,
                    seen.file_size,
                ):
                    logger.info(
                        "Skipped correction of %s %s, changed by another writer.",
                        seen.software_name,
                        seen.version,
                    )
                    continue
                releases[key] = current.model_copy(
                    update={"release_state": state, "file_size": size}
                )
                applied.append(seen)
            if applied:
                self._commit(releases)
        return applied

    def delete(self, software_name: str, version: str) -> ReleaseMetadata:
        """Remove a release and persist. Returns the removed record.

        Raises
        ------
        ReleaseNotFoundError
            If ``(software_name, version)`` is absent.
        IOFailure
            If the store could not be persisted; nothing was removed.
        """
        key = _key(software_name, version)
        with self._lock.write():
            removed = self._releases.get(key)
            if removed is None:
                raise self._not_found(software_name, version)
            releases = {k: v for k, v in self._releases.items() if k != key}
            self._commit(releases)
        logger.info("Deleted release %s %s.", software_name, version)
        return removed

    # ------------------------------------------------------------------
    # Persistence
    # ------------------------------------------------------------------

    def _commit(self, releases: dict[_Key, ReleaseMetadata]) -> None:
        """Persist ``releases`` and make it current. Caller holds the write lock."""
        payload = json.dumps(
            [r.model_dump(mode="json") for r in releases.values()],
            indent=2,
        )
        try:
            atomic_write_text(self._path, payload + "\n")
        except OSError as exc:
            raise IOFailure(
                f"Failed to persist release metadata: {exc}",
                path=self._path,
                operation="persist",
            ) from exc
        self._releases = releases
        logger.debug("Persisted %d release(s) to %s.", len(releases), self._path)

    def _load(self) -> dict[_Key, ReleaseMetadata]:
        if not self._path.exists():
            logger.debug("No metadata file at %s, starting with an empty store.", self._path)
            return {}
        try:
            raw = json.loads(self._path.read_text(encoding="utf-8"))
            if not isinstance(raw, list):
                raise ValueError("expected a JSON array of release records")
            records = [ReleaseMetadata.model_validate(item) for item in raw]
        except (OSError, ValueError, ValidationError) as exc:
            raise IOFailure(
                f"Failed to load release metadata: {exc}",
                path=self._path,
                operation="load",
            ) from exc

        releases: dict[_Key, ReleaseMetadata] = {}
        for record in records:
            if _key(record.software_name, record.version) in releases:
                logger.warning(
                    "Duplicate release %s %s in %s, keeping the first entry.",
                    record.software_name,
                    record.version,
                    self._path,
                )
                continue
            releases[_key(record.software_name, record.version)] = record
        logger.info("Loaded %d release(s) from %s.", len(releases), self._path)
        return releases

    @staticmethod
    def _not_found(software_name: str, version: str) -> ReleaseNotFoundError:
        return ReleaseNotFoundError(
            f"Release version not found for software {software_name}: {version}",
            software_name=software_name,
            version=version,
        )
