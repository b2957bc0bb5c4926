"""JSON document store owned by the hub."""

import contextlib
import json
import logging
import os
import tempfile
import threading
from pathlib import Path
from typing import Iterator

from ..errors import StorageIOError
from ..identity import device_id as host_device_id
from ..models import Document, JSONValue, ProjectRecord, utc_now

logger = logging.getLogger(__name__)


class DocumentStore:
    """A single JSON file holding the key/value map and the project map.

    Every write is a read-modify-write of the whole document. Without
    ``serialize_writes`` two concurrent writers may lose one update (last
    full-document write wins). With it, an in-process lock covers each
    read-modify-write cycle. Multiple processes sharing one file is not
    supported either way.
    """

    def __init__(
        self,
        path: str | Path,
        device_id: str | None = None,
        serialize_writes: bool = False,
    ):
        """Initialize the store.

        Args:
            path: Path to the JSON document file.
            device_id: Identifier stamped on project writes. Defaults to
                this host's id.
            serialize_writes: Serialize read-modify-write cycles in-process.
        """
        self.path = Path(path).expanduser()
        self.device_id = device_id or host_device_id()
        self.serialize_writes = serialize_writes
        self._lock = threading.Lock() if serialize_writes else None
        self._degraded = False

    @property
    def degraded(self) -> bool:
        """True when initialization could not create the backing file."""
        return self._degraded

    def initialize(self) -> None:
        """Create the storage directory and an empty document if missing.

        Calling this on an initialized store does nothing. Filesystem
        errors are logged; later reads fall back to an empty document.
        """
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            if not self.path.exists():
                self._persist(Document.fresh())
                logger.info(f"Created document store at {self.path}")
            self._degraded = False
        except (OSError, StorageIOError) as e:
            self._degraded = True
            logger.error(f"Storage initialization failed for {self.path}: {e}")

    def read_all(self) -> Document:
        """Load the full document, or an empty default if it is unreadable."""
        try:
            return self._load()
        except StorageIOError as e:
            logger.error(f"Read error: {e}")
            return Document()

    def read_key(self, key: str) -> JSONValue | None:
        return self.read_all().data.get(key)

    def write_key(self, key: str, value: JSONValue) -> None:
        """Set ``data[key]`` and rewrite the document.

        Raises:
            StorageIOError: If the document cannot be written.
        """
        with self._write_cycle():
            document = self._load_for_update()
            document.data[key] = value
            document.last_updated = utc_now()
            self._persist(document)
        logger.debug(f"Saved key {key!r}")

    def read_project(self, name: str) -> ProjectRecord:
        """Return the project record, empty if it was never written."""
        return ProjectRecord.from_dict(self.read_all().projects.get(name))

    def write_project(
        self,
        name: str,
        fields: dict[str, JSONValue],
        device: str | None = None,
    ) -> ProjectRecord:
        """Replace a project record wholesale.

        Args:
            name: Project name.
            fields: Caller-supplied fields. Any previous fields are dropped.
            device: Writer's device id; defaults to this store's id.

        Returns:
            The record as stored.

        Raises:
            StorageIOError: If the document cannot be written.
        """
        caller_fields = ProjectRecord.from_dict(fields).fields
        record = ProjectRecord(
            fields=caller_fields,
            last_updated=utc_now(),
            device=device or self.device_id,
        )
        with self._write_cycle():
            document = self._load_for_update()
            document.projects[name] = record.to_dict()
            document.last_updated = record.last_updated
            self._persist(document)
        logger.debug(f"Saved project {name!r} from device {record.device}")
        return record

    @contextlib.contextmanager
    def _write_cycle(self) -> Iterator[None]:
        if self._lock is None:
            yield
            return
        with self._lock:
            yield

    def _load(self) -> Document:
        try:
            with open(self.path, encoding="utf-8") as f:
                raw = json.load(f)
            return Document.from_dict(raw)
        except (OSError, ValueError) as e:
            raise StorageIOError(f"Cannot read {self.path}: {e}") from e

    def _load_for_update(self) -> Document:
        # A missing or corrupt file is rebuilt from the empty default
        try:
            return self._load()
        except StorageIOError as e:
            logger.warning(f"Rebuilding unreadable document: {e}")
            return Document.fresh()

    def _persist(self, document: Document) -> None:
        """Write the document via a temp file so readers never see half of it."""
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            fd, tmp_path = tempfile.mkstemp(
                dir=self.path.parent, prefix=f".{self.path.name}.", suffix=".tmp"
            )
            try:
                with os.fdopen(fd, "w", encoding="utf-8") as f:
                    json.dump(document.to_dict(), f, indent=2)
                os.replace(tmp_path, self.path)
            except BaseException:
                with contextlib.suppress(OSError):
                    os.unlink(tmp_path)
                raise
        except (OSError, TypeError, ValueError) as e:
            raise StorageIOError(f"Cannot write {self.path}: {e}") from e
