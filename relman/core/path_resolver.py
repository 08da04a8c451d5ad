"""Canonical on-disk locations for release archives.

Layout::

    {repo_root}/{id:06d}_{sanitized}/{id:06d}_{sanitized}_{major}.{minor}.{patch}.tgz

``id`` is a stable per-software identifier and ``sanitized`` is the
lowercased, filesystem-safe form of the software name. The same
(software_name, version) always resolves to the same path, across calls
and across restarts; upload placement and reconciliation both rely on it.
"""

from __future__ import annotations

import json
import logging
import re
import threading
from pathlib import Path
from typing import Protocol

from relman.core.errors import IOFailure
from relman.core.fileio import atomic_write_text
from relman.core.version_comparator import parse_version
from relman.models.releases import ReleaseMetadata

logger = logging.getLogger(__name__)

ARCHIVE_EXTENSION = ".tgz"
ID_WIDTH = 6

_UNSAFE_CHARS = re.compile(r"[^a-z0-9._-]")


def sanitize_name(software_name: str) -> str:
    """Return a filesystem-safe form of a software name.

    Lowercases, turns spaces into underscores, and replaces anything else
    outside ``[a-z0-9._-]`` (path separators included) with ``_``.

    >>> sanitize_name("Acme Tools/CLI")
    'acme_tools_cli'
    """
    lowered = software_name.lower().replace(" ", "_")
    return _UNSAFE_CHARS.sub("_", lowered)


class IdentifierScheme(Protocol):
    """Maps a software name to its stable numeric directory prefix."""

    def id_for(self, software_name: str) -> int: ...


class RollingHashIds:
    """Legacy identifiers: a 31-multiplier rolling hash kept to 20 bits.

    Reproducible from the name alone with no state, but distinct names can
    collide and then share a directory prefix. Kept so repositories laid
    out by the legacy server can be reconciled in place.
    """

    MASK = 0xFFFFF

    def id_for(self, software_name: str) -> int:
        value = 0
        for char in software_name:
            value = (value * 31 + ord(char)) & self.MASK
        return value


class SoftwareIdTable:
    """Persisted name -> identifier table with a monotonic counter.

    The first time a name is seen it gets the next counter value, and the
    assignment is written to disk before it is returned. Identifiers are
    never reused, so distinct names never share a directory.

    Parameters
    ----------
    table_path:
        JSON file holding ``{"next_id": int, "ids": {name: id}}``.
        Created on the first assignment.
    """

    def __init__(self, table_path: Path) -> None:
        self._path = Path(table_path)
        self._lock = threading.Lock()
        self._ids: dict[str, int] = {}
        self._next_id = 1
        self._load()

    def id_for(self, software_name: str) -> int:
        with self._lock:
            existing = self._ids.get(software_name)
            if existing is not None:
                return existing

            assigned = self._next_id
            ids = {**self._ids, software_name: assigned}
            self._persist(ids, assigned + 1)
            self._ids = ids
            self._next_id = assigned + 1
            logger.info("Assigned identifier %d to software '%s'.", assigned, software_name)
            return assigned

    def known_names(self) -> dict[str, int]:
        with self._lock:
            return dict(self._ids)

    def _persist(self, ids: dict[str, int], next_id: int) -> None:
        payload = json.dumps({"next_id": next_id, "ids": ids}, indent=2, sort_keys=True)
        try:
            atomic_write_text(self._path, payload)
        except OSError as exc:
            raise IOFailure(
                f"Failed to persist software identifier table: {exc}",
                path=self._path,
                operation="persist",
            ) from exc

    def _load(self) -> None:
        if not self._path.exists():
            logger.debug("No identifier table at %s, starting fresh.", self._path)
            return
        try:
            raw = json.loads(self._path.read_text(encoding="utf-8"))
            ids = {str(name): int(value) for name, value in raw.get("ids", {}).items()}
            next_id = int(raw.get("next_id", 1))
        except (OSError, ValueError, AttributeError) as exc:
            raise IOFailure(
                f"Failed to load software identifier table: {exc}",
                path=self._path,
                operation="load",
            ) from exc
        self._ids = ids
        self._next_id = max([next_id, *(value + 1 for value in ids.values())])
        logger.debug("Loaded %d software identifier(s) from %s.", len(ids), self._path)


class PathResolver:
    """Derives archive directories and file paths for releases.

    Performs no filesystem I/O of its own beyond what the identifier scheme
    needs to persist new assignments.
    """

    def __init__(self, repo_root: Path, ids: IdentifierScheme) -> None:
        self._root = Path(repo_root)
        self._ids = ids

    @property
    def repo_root(self) -> Path:
        return self._root

    @property
    def ids(self) -> IdentifierScheme:
        return self._ids

    def _prefix(self, software_name: str) -> str:
        return f"{self._ids.id_for(software_name):0{ID_WIDTH}d}_{sanitize_name(software_name)}"

    def directory_for(self, software_name: str) -> Path:
        """Return the storage directory for a software package."""
        return self._root / self._prefix(software_name)

    def file_for(self, metadata: ReleaseMetadata) -> Path:
        """Return the archive path for a release.

        Raises
        ------
        VersionParseError
            If the release version is not ``X.Y.Z``.
        """
        version = parse_version(metadata.version)
        prefix = self._prefix(metadata.software_name)
        return self._root / prefix / f"{prefix}_{version}{ARCHIVE_EXTENSION}"
