"""Data model shared by the store, the sync engine and the HTTP surface."""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Union

# Values accepted for keys and project fields
JSONValue = Union[
    str, int, float, bool, None, list["JSONValue"], dict[str, "JSONValue"]
]

# Keys the store adds to every project record
PROJECT_STAMP_KEYS = ("lastUpdated", "device")


def utc_now() -> str:
    """Current time as an ISO-8601 UTC string."""
    return datetime.now(timezone.utc).isoformat()


@dataclass
class Document:
    """The whole persisted store.

    ``data`` and ``projects`` are always present, even when the file on
    disk is missing them.
    """

    data: dict[str, JSONValue] = field(default_factory=dict)
    projects: dict[str, dict[str, JSONValue]] = field(default_factory=dict)
    created: str | None = None
    last_updated: str | None = None

    def to_dict(self) -> dict[str, Any]:
        """Serialize to the on-disk and wire format."""
        result: dict[str, Any] = {
            "data": self.data,
            "projects": self.projects,
            "created": self.created,
        }
        if self.last_updated is not None:
            result["lastUpdated"] = self.last_updated
        return result

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Document":
        """Deserialize, tolerating missing sections."""
        if not isinstance(data, dict):
            raise ValueError(f"Document must be an object, got {type(data).__name__}")

        values = data.get("data") or {}
        projects = data.get("projects") or {}
        if not isinstance(values, dict) or not isinstance(projects, dict):
            raise ValueError("Document 'data' and 'projects' must be objects")

        return cls(
            data=values,
            projects=projects,
            created=data.get("created"),
            last_updated=data.get("lastUpdated"),
        )

    @classmethod
    def fresh(cls) -> "Document":
        """A new empty document stamped with its creation time."""
        return cls(created=utc_now())


@dataclass
class ProjectRecord:
    """A named project: arbitrary caller fields plus provenance stamps."""

    fields: dict[str, JSONValue] = field(default_factory=dict)
    last_updated: str | None = None
    device: str | None = None

    @property
    def is_empty(self) -> bool:
        return not self.fields and self.last_updated is None and self.device is None

    def to_dict(self) -> dict[str, JSONValue]:
        """Flatten to the stored shape; an empty record becomes ``{}``."""
        result = dict(self.fields)
        if self.last_updated is not None:
            result["lastUpdated"] = self.last_updated
        if self.device is not None:
            result["device"] = self.device
        return result

    @classmethod
    def from_dict(cls, data: dict[str, JSONValue] | None) -> "ProjectRecord":
        if not data:
            return cls()
        fields = {k: v for k, v in data.items() if k not in PROJECT_STAMP_KEYS}
        return cls(
            fields=fields,
            last_updated=data.get("lastUpdated"),
            device=data.get("device"),
        )


class WriteKind(Enum):
    """Which section of the document a pending write targets."""

    DATA = "data"
    PROJECT = "project"


@dataclass
class PendingWrite:
    """A write accepted while offline, waiting to be replayed to the hub."""

    key: str
    value: Any
    timestamp: datetime = field(default_factory=datetime.now)
    kind: WriteKind = WriteKind.DATA
    device: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "key": self.key,
            "value": self.value,
            "timestamp": self.timestamp.isoformat(),
            "kind": self.kind.value,
            "device": self.device,
        }
