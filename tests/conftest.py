"""Shared test fixtures for relman."""

from __future__ import annotations

from collections.abc import Callable
from pathlib import Path
from typing import Any

import pytest

from relman.core.metadata_store import MetadataStore
from relman.core.path_resolver import PathResolver, SoftwareIdTable
from relman.core.release_service import ReleaseService
from relman.models.releases import ReleaseMetadata


@pytest.fixture
def tmp_dir(tmp_path: Path) -> Path:
    """Provide a temporary directory for test artifacts."""
    return tmp_path


@pytest.fixture
def data_dir(tmp_dir: Path) -> Path:
    return tmp_dir / "data"


@pytest.fixture
def repo_dir(tmp_dir: Path) -> Path:
    return tmp_dir / "repository"


@pytest.fixture
def store(data_dir: Path) -> MetadataStore:
    """Provide a fresh MetadataStore backed by a temp JSON file."""
    return MetadataStore(data_dir / "releases.json")


@pytest.fixture
def id_table(data_dir: Path) -> SoftwareIdTable:
    return SoftwareIdTable(data_dir / "software_ids.json")


@pytest.fixture
def resolver(repo_dir: Path, id_table: SoftwareIdTable) -> PathResolver:
    """Provide a PathResolver over a temp repository root."""
    return PathResolver(repo_dir, id_table)


@pytest.fixture
def service(store: MetadataStore, resolver: PathResolver) -> ReleaseService:
    """Provide a ReleaseService wired to the test store and resolver."""
    return ReleaseService(store, resolver)


# ---------------------------------------------------------------------------
# Factories: shared across test modules
# ---------------------------------------------------------------------------


@pytest.fixture
def make_release() -> Callable[..., ReleaseMetadata]:
    """Factory fixture: build a ReleaseMetadata with sensible defaults."""

    def _factory(
        software_name: str = "acme",
        version: str = "1.0.0",
        **overrides: Any,
    ) -> ReleaseMetadata:
        return ReleaseMetadata(software_name=software_name, version=version, **overrides)

    return _factory


@pytest.fixture
def make_archive(tmp_dir: Path) -> Callable[..., Path]:
    """Factory fixture: write a fake .tgz archive of a given size."""
    counter = {"n": 0}

    def _factory(size: int = 1024, name: str | None = None) -> Path:
        counter["n"] += 1
        uploads = tmp_dir / "uploads"
        uploads.mkdir(parents=True, exist_ok=True)
        path = uploads / (name or f"archive-{counter['n']}.tgz")
        path.write_bytes(b"\x1f\x8b" + b"x" * max(size - 2, 0))
        return path

    return _factory
