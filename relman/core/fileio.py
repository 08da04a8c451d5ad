"""Durable file writes.

A successful ``atomic_write_text`` means the new content is in place: it is
written to a sibling temp file, flushed and fsynced, then renamed over the
target. Readers never observe a partially written file.

The rename is the commit point. The parent directory is fsynced afterwards
so the rename survives a crash; a failure there is logged, not raised,
because the target already holds the new content and callers must not
treat the write as undone.
"""

from __future__ import annotations

import contextlib
import logging
import os
import uuid
from pathlib import Path

logger = logging.getLogger(__name__)


def fsync_directory(directory: Path) -> None:
    """Flush a directory entry to disk. No-op where directories can't be opened."""
    if os.name != "posix":
        return
    fd = os.open(directory, os.O_RDONLY)
    try:
        os.fsync(fd)
    finally:
        os.close(fd)


def atomic_write_text(path: Path, text: str, *, encoding: str = "utf-8") -> None:
    """Replace ``path`` with ``text``.

    Raises ``OSError`` only when ``path`` still holds its previous content.
    """
    path.parent.mkdir(parents=True, exist_ok=True)
    tmp = path.with_name(f".{path.name}.{uuid.uuid4().hex[:8]}.tmp")
    try:
        with open(tmp, "w", encoding=encoding) as fh:
            fh.write(text)
            fh.flush()
            os.fsync(fh.fileno())
        os.replace(tmp, path)
    except BaseException:
        with contextlib.suppress(FileNotFoundError):
            tmp.unlink()
        raise
    try:
        fsync_directory(path.parent)
    except OSError as exc:
        logger.warning(
            "Wrote %s but could not flush directory %s: %s", path, path.parent, exc
        )
