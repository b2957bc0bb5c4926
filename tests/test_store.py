"""Tests for the JSON document store."""

import json
import threading

import pytest

from crossdevice.errors import StorageIOError
from crossdevice.models import Document
from crossdevice.store import DocumentStore


@pytest.fixture
def db_path(tmp_path):
    return tmp_path / "shared-data" / "database.json"


@pytest.fixture
def store(db_path):
    """Create an initialized store in a temp directory."""
    store = DocumentStore(db_path, device_id="abcd1234")
    store.initialize()
    return store


class TestInitialize:
    """Tests for store initialization."""

    def test_creates_directory_and_document(self, store, db_path):
        """Test a fresh document is written with both sections."""
        assert db_path.exists()

        raw = json.loads(db_path.read_text())
        assert raw["data"] == {}
        assert raw["projects"] == {}
        assert raw["created"]
        assert not store.degraded

    def test_idempotent(self, store, db_path):
        """Test initializing twice keeps existing content."""
        store.write_key("greeting", "hi")
        created = json.loads(db_path.read_text())["created"]

        store.initialize()

        raw = json.loads(db_path.read_text())
        assert raw["created"] == created
        assert raw["data"] == {"greeting": "hi"}

    def test_unwritable_location_degrades(self, tmp_path):
        """Test a path under a regular file logs instead of raising."""
        blocker = tmp_path / "blocker"
        blocker.write_text("not a directory")
        store = DocumentStore(blocker / "database.json", device_id="abcd1234")

        store.initialize()

        assert store.degraded
        document = store.read_all()
        assert document.data == {}
        assert document.projects == {}

    def test_write_to_unwritable_location_raises(self, tmp_path):
        """Test writes surface StorageIOError for the engine to convert."""
        blocker = tmp_path / "blocker"
        blocker.write_text("not a directory")
        store = DocumentStore(blocker / "database.json", device_id="abcd1234")
        store.initialize()

        with pytest.raises(StorageIOError):
            store.write_key("k", "v")


class TestKeyValue:
    """Tests for key/value reads and writes."""

    def test_write_then_read(self, store):
        store.write_key("greeting", "hi")
        assert store.read_key("greeting") == "hi"

    def test_last_write_wins(self, store):
        store.write_key("greeting", "hi")
        store.write_key("greeting", "bye")
        assert store.read_key("greeting") == "bye"

    def test_nested_values(self, store):
        value = {"message": "hello", "count": 3, "tags": ["a", "b"], "ok": True}
        store.write_key("latest-note-created", value)
        assert store.read_key("latest-note-created") == value

    def test_missing_key_is_none(self, store):
        assert store.read_key("nope") is None

    def test_write_stamps_last_updated(self, store):
        store.write_key("k", 1)
        assert store.read_all().last_updated is not None

    def test_corrupt_document_reads_as_empty(self, store, db_path):
        """Test unparseable JSON falls back to an empty document."""
        db_path.write_text("{not json")

        document = store.read_all()

        assert document == Document()
        assert store.read_key("anything") is None

    def test_corrupt_document_is_rebuilt_on_write(self, store, db_path):
        db_path.write_text("[1, 2, 3]")

        store.write_key("k", "v")

        raw = json.loads(db_path.read_text())
        assert raw["data"] == {"k": "v"}
        assert raw["projects"] == {}

    def test_document_missing_sections(self, store, db_path):
        """Test a document without data/projects still reads with both."""
        db_path.write_text(json.dumps({"created": "2026-01-01T00:00:00"}))

        document = store.read_all()

        assert document.data == {}
        assert document.projects == {}
        assert document.created == "2026-01-01T00:00:00"


class TestProjects:
    """Tests for project records."""

    def test_unknown_project_is_empty(self, store):
        record = store.read_project("x")
        assert record.is_empty
        assert record.to_dict() == {}

    def test_write_project_stamps_provenance(self, store):
        store.write_project("x", {"a": 1})

        record = store.read_project("x").to_dict()

        assert record["a"] == 1
        assert record["lastUpdated"]
        assert record["device"] == "abcd1234"

    def test_write_project_with_explicit_device(self, store):
        store.write_project("x", {"a": 1}, device="feedbeef")
        assert store.read_project("x").device == "feedbeef"

    def test_write_project_replaces_wholesale(self, store):
        """Test a second write drops fields from the first."""
        store.write_project("x", {"a": 1, "b": 2})
        store.write_project("x", {"c": 3})

        record = store.read_project("x")

        assert record.fields == {"c": 3}

    def test_projects_do_not_touch_data(self, store):
        store.write_key("x", "value")
        store.write_project("x", {"a": 1})

        assert store.read_key("x") == "value"


class TestSerializedWrites:
    """Tests for the serialized-writer mode."""

    def test_concurrent_writers_keep_every_key(self, db_path):
        """Test threads writing distinct keys never lose an update."""
        store = DocumentStore(db_path, device_id="abcd1234", serialize_writes=True)
        store.initialize()

        def writer(n):
            store.write_key(f"key-{n}", n)

        threads = [threading.Thread(target=writer, args=(n,)) for n in range(20)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        data = store.read_all().data
        assert data == {f"key-{n}": n for n in range(20)}
