"""Tests for MetadataStore: keyed CRUD, durability, failed persists."""

from __future__ import annotations

import json
from pathlib import Path

import pytest

from relman.core import fileio
from relman.core import metadata_store as metadata_store_module
from relman.core.errors import IOFailure, ReleaseAlreadyExistsError, ReleaseNotFoundError
from relman.core.metadata_store import MetadataStore
from relman.models.releases import ReleaseState


@pytest.fixture
def failing_writes(monkeypatch):
    """Make every durable write fail as if the disk were full."""

    def _fail(path, text, **kwargs):
        raise OSError(28, "No space left on device")

    monkeypatch.setattr(metadata_store_module, "atomic_write_text", _fail)


def _raise_io_error(path, text, **kwargs):
    raise OSError(5, "Input/output error")


class TestCreateAndGet:
    def test_create_then_get(self, store: MetadataStore, make_release):
        meta = make_release(changelog="first", file_size=10)
        store.create(meta)
        assert store.get("acme", "1.0.0") == meta

    def test_create_duplicate_raises(self, store: MetadataStore, make_release):
        store.create(make_release(changelog="original"))
        with pytest.raises(ReleaseAlreadyExistsError) as info:
            store.create(make_release(changelog="impostor"))
        assert info.value.software_name == "acme"
        assert info.value.version == "1.0.0"
        assert store.get("acme", "1.0.0").changelog == "original"
        assert len(store) == 1

    def test_get_unknown_software(self, store: MetadataStore):
        with pytest.raises(ReleaseNotFoundError):
            store.get("nope", "1.0.0")

    def test_get_unknown_version(self, store: MetadataStore, make_release):
        store.create(make_release())
        with pytest.raises(ReleaseNotFoundError) as info:
            store.get("acme", "9.9.9")
        assert info.value.kind == "not_found"

    def test_same_version_different_software(self, store: MetadataStore, make_release):
        store.create(make_release(software_name="a"))
        store.create(make_release(software_name="b"))
        assert len(store) == 2


class TestListing:
    def test_list_for_software(self, store: MetadataStore, make_release):
        store.create(make_release(version="1.0.0"))
        store.create(make_release(version="1.1.0"))
        store.create(make_release(software_name="other"))
        assert {r.version for r in store.list_for_software("acme")} == {"1.0.0", "1.1.0"}

    def test_list_for_unknown_software_raises(self, store: MetadataStore):
        with pytest.raises(ReleaseNotFoundError):
            store.list_for_software("ghost")

    def test_list_all_in_insertion_order(self, store: MetadataStore, make_release):
        for name in ("c", "a", "b"):
            store.create(make_release(software_name=name))
        assert [r.software_name for r in store.list_all()] == ["c", "a", "b"]

    def test_contains(self, store: MetadataStore, make_release):
        store.create(make_release())
        assert ("acme", "1.0.0") in store
        assert ("acme", "2.0.0") not in store


class TestCanonicalKeys:
    def test_padded_version_addresses_same_record(self, store: MetadataStore, make_release):
        meta = store.create(make_release(version="1.2.3"))
        assert store.get("acme", "1.02.3") == meta
        assert ("acme", "01.2.03") in store

    def test_padded_duplicate_rejected(self, store: MetadataStore, make_release):
        store.create(make_release(version="1.2.3", changelog="original"))
        with pytest.raises(ReleaseAlreadyExistsError):
            store.create(make_release(version="1.02.3"))
        assert len(store) == 1
        assert store.get("acme", "1.2.3").changelog == "original"

    def test_unvalidated_padded_record_collides(self, store: MetadataStore, make_release):
        # model_copy skips the version validator
        store.create(make_release(version="1.2.3"))
        padded = make_release(version="1.2.3").model_copy(update={"version": "1.02.3"})
        with pytest.raises(ReleaseAlreadyExistsError):
            store.create(padded)
        assert len(store) == 1

    def test_delete_by_padded_version(self, store: MetadataStore, make_release):
        store.create(make_release(version="1.2.3"))
        store.delete("acme", "001.2.3")
        assert len(store) == 0

    def test_padded_records_on_disk_merge_on_load(self, tmp_dir: Path):
        path = tmp_dir / "releases.json"
        path.write_text(json.dumps([
            {"software_name": "acme", "version": "1.2.3", "changelog": "first"},
            {"software_name": "acme", "version": "1.02.3", "changelog": "second"},
        ]), encoding="utf-8")
        reopened = MetadataStore(path)
        assert len(reopened) == 1
        assert reopened.get("acme", "1.02.3").changelog == "first"

    def test_malformed_version_kept_verbatim(self, store: MetadataStore, make_release):
        store.create(make_release(version="1.0"))
        assert store.get("acme", "1.0").version == "1.0"
        assert ("acme", "1.0.0") not in store


class TestUpdateAndDelete:
    def test_update(self, store: MetadataStore, make_release):
        meta = store.create(make_release())
        store.update(meta.model_copy(update={"release_state": ReleaseState.AVAILABLE, "file_size": 5}))
        got = store.get("acme", "1.0.0")
        assert got.release_state is ReleaseState.AVAILABLE
        assert got.file_size == 5

    def test_update_missing_raises(self, store: MetadataStore, make_release):
        with pytest.raises(ReleaseNotFoundError):
            store.update(make_release())

    def test_update_many_is_all_or_nothing(self, store: MetadataStore, make_release):
        meta = store.create(make_release())
        with pytest.raises(ReleaseNotFoundError):
            store.update_many([
                meta.model_copy(update={"file_size": 99}),
                make_release(version="7.7.7"),
            ])
        assert store.get("acme", "1.0.0").file_size == 0

    def test_delete(self, store: MetadataStore, make_release):
        meta = store.create(make_release())
        assert store.delete("acme", "1.0.0") == meta
        assert len(store) == 0

    def test_delete_missing_raises(self, store: MetadataStore):
        with pytest.raises(ReleaseNotFoundError):
            store.delete("acme", "1.0.0")


class TestApplyFileStates:
    def test_applies_state_and_size_only(self, store: MetadataStore, make_release):
        seen = store.create(make_release(changelog="notes", file_size=5))
        applied = store.apply_file_states([(seen, ReleaseState.AVAILABLE, 7)])
        assert applied == [seen]
        got = store.get("acme", "1.0.0")
        assert (got.release_state, got.file_size) == (ReleaseState.AVAILABLE, 7)
        assert got.changelog == "notes"
        assert got.id == seen.id

    def test_keeps_fields_rewritten_since_read(self, store: MetadataStore, make_release):
        seen = store.create(make_release())
        store.update(seen.model_copy(update={"changelog": "edited meanwhile"}))
        store.apply_file_states([(seen, ReleaseState.AVAILABLE, 3)])
        got = MetadataStore(store.path).get("acme", "1.0.0")
        assert got.changelog == "edited meanwhile"
        assert got.file_size == 3

    def test_skips_record_whose_size_changed(self, store: MetadataStore, make_release):
        seen = store.create(make_release())
        store.update(seen.model_copy(update={"release_state": ReleaseState.AVAILABLE, "file_size": 9}))
        assert store.apply_file_states([(seen, ReleaseState.UNAVAILABLE, 0)]) == []
        assert store.get("acme", "1.0.0").file_size == 9

    def test_skips_deleted_record(self, store: MetadataStore, make_release):
        gone = store.create(make_release(version="1.0.0"))
        kept = store.create(make_release(version="2.0.0"))
        store.delete("acme", "1.0.0")
        applied = store.apply_file_states([
            (gone, ReleaseState.AVAILABLE, 1),
            (kept, ReleaseState.AVAILABLE, 2),
        ])
        assert applied == [kept]
        assert len(store) == 1
        assert store.get("acme", "2.0.0").file_size == 2

    def test_nothing_applicable_writes_nothing(self, store: MetadataStore, make_release, monkeypatch):
        seen = store.create(make_release())
        store.delete("acme", "1.0.0")
        monkeypatch.setattr(metadata_store_module, "atomic_write_text", _raise_io_error)
        assert store.apply_file_states([(seen, ReleaseState.AVAILABLE, 1)]) == []

    def test_failed_persist_changes_nothing(self, store: MetadataStore, make_release, monkeypatch):
        seen = store.create(make_release())
        monkeypatch.setattr(metadata_store_module, "atomic_write_text", _raise_io_error)
        with pytest.raises(IOFailure):
            store.apply_file_states([(seen, ReleaseState.AVAILABLE, 4)])
        assert store.get("acme", "1.0.0") == seen


class TestPersistence:
    def test_reload_sees_writes(self, store: MetadataStore, make_release):
        meta = store.create(make_release(changelog="notes", file_size=3))
        reopened = MetadataStore(store.path)
        assert reopened.get("acme", "1.0.0") == meta

    def test_file_format(self, store: MetadataStore, make_release):
        store.create(make_release())
        raw = json.loads(store.path.read_text(encoding="utf-8"))
        assert isinstance(raw, list)
        assert set(raw[0]) == {
            "id",
            "software_name",
            "version",
            "release_timestamp",
            "file_size",
            "release_state",
            "changelog",
            "release_date",
        }
        assert raw[0]["release_state"] == "unavailable"

    def test_delete_is_persisted(self, store: MetadataStore, make_release):
        store.create(make_release())
        store.delete("acme", "1.0.0")
        assert len(MetadataStore(store.path)) == 0

    def test_missing_file_is_empty(self, tmp_dir: Path):
        store = MetadataStore(tmp_dir / "absent" / "releases.json")
        assert store.list_all() == []
        assert not store.path.exists()

    def test_corrupt_file_raises(self, tmp_dir: Path):
        path = tmp_dir / "releases.json"
        path.write_text("[{]", encoding="utf-8")
        with pytest.raises(IOFailure) as info:
            MetadataStore(path)
        assert info.value.operation == "load"
        assert info.value.path == path

    def test_invalid_record_raises(self, tmp_dir: Path):
        path = tmp_dir / "releases.json"
        path.write_text(json.dumps([{"software_name": "x", "version": "1.0.0", "release_state": "lost"}]))
        with pytest.raises(IOFailure):
            MetadataStore(path)

    def test_duplicate_records_keep_first(self, tmp_dir: Path, make_release):
        path = tmp_dir / "releases.json"
        first = make_release(changelog="first")
        second = make_release(changelog="second")
        path.write_text(
            json.dumps([first.model_dump(mode="json"), second.model_dump(mode="json")]),
            encoding="utf-8",
        )
        assert MetadataStore(path).get("acme", "1.0.0").changelog == "first"

    def test_legacy_file_loads(self, tmp_dir: Path):
        path = tmp_dir / "releases.json"
        path.write_text(json.dumps([{
            "id": "0f3c",
            "software_name": "acme",
            "version": "1.0.0",
            "release_timestamp": "2024-03-01T10:00:00.123456+01:00",
            "file_size": 2048,
            "release_state": "available",
            "changelog": "",
            "release_date": "2024-03-01T00:00:00Z",
        }]), encoding="utf-8")
        release = MetadataStore(path).get("acme", "1.0.0")
        assert release.file_size == 2048
        assert release.is_available


class TestFailedPersistence:
    def test_failed_create_changes_nothing(self, store: MetadataStore, make_release, failing_writes):
        with pytest.raises(IOFailure) as info:
            store.create(make_release())
        assert info.value.operation == "persist"
        assert len(store) == 0

    def test_failed_update_changes_nothing(self, store: MetadataStore, make_release, monkeypatch):
        meta = store.create(make_release())
        monkeypatch.setattr(metadata_store_module, "atomic_write_text", _raise_io_error)
        with pytest.raises(IOFailure):
            store.update(meta.model_copy(update={"file_size": 42}))
        assert store.get("acme", "1.0.0").file_size == 0

    def test_failed_delete_changes_nothing(self, store: MetadataStore, make_release, monkeypatch):
        store.create(make_release())
        monkeypatch.setattr(metadata_store_module, "atomic_write_text", _raise_io_error)
        with pytest.raises(IOFailure):
            store.delete("acme", "1.0.0")
        assert ("acme", "1.0.0") in store


class TestDirectoryFlushFailure:
    @pytest.fixture
    def failing_dir_flush(self, monkeypatch):
        def _fail(directory):
            raise OSError(5, "Input/output error")

        monkeypatch.setattr(fileio, "fsync_directory", _fail)

    def test_create_after_rename_is_kept(self, store: MetadataStore, make_release, failing_dir_flush):
        meta = store.create(make_release())
        assert store.get("acme", "1.0.0") == meta
        assert len(MetadataStore(store.path)) == 1

    def test_memory_and_disk_agree_on_delete(self, store: MetadataStore, make_release, monkeypatch):
        store.create(make_release())

        def _fail(directory):
            raise OSError(5, "Input/output error")

        monkeypatch.setattr(fileio, "fsync_directory", _fail)
        store.delete("acme", "1.0.0")
        assert len(store) == 0
        assert len(MetadataStore(store.path)) == 0

    def test_no_temp_files_left(self, store: MetadataStore, make_release, failing_dir_flush):
        store.create(make_release())
        assert [p.name for p in store.path.parent.iterdir()] == ["releases.json"]
