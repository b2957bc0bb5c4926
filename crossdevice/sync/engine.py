"""Sync engine: local-first reads and writes with offline buffering.

A hub owns the document store directly. A satellite forwards every read
and write to its hub, queues writes while the hub is unreachable, and
replays the queue when the heartbeat sees the hub come back.
"""

import logging
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Any

from ..config import Config
from ..errors import StorageIOError
from ..identity import device_id as host_device_id
from ..models import JSONValue, PendingWrite, WriteKind
from ..store import DocumentStore
from .heartbeat import Heartbeat
from .remote_client import RemoteClient, RemoteResult

logger = logging.getLogger(__name__)


class Role(Enum):
    HUB = "hub"
    SATELLITE = "satellite"


class ConnectivityState(Enum):
    ONLINE = "online"
    OFFLINE = "offline"


@dataclass
class ReplayResult:
    """Result of one replay pass over the pending queue."""

    attempted: int = 0
    replayed: int = 0
    requeued: int = 0


class SyncEngine:
    """Entry point for every read and write, whatever the role.

    Satellites start optimistic (``ONLINE``). Only the connectivity probe
    moves them between states. A write that fails while online is reported
    as failed and is not queued; only writes made while offline are
    buffered.
    """

    def __init__(
        self,
        config: Config,
        store: DocumentStore | None = None,
        remote: RemoteClient | None = None,
        device_id: str | None = None,
        log: logging.Logger | None = None,
    ):
        """Initialize the engine.

        Args:
            config: Application configuration. An empty ``sync.hub_url``
                makes this engine a hub.
            store: Document store for the hub role. Built from config if omitted.
            remote: Hub client for the satellite role. Built from config if omitted.
            device_id: Identifier for provenance stamps. Defaults to this host's id.
            log: Diagnostic sink. Defaults to the module logger.
        """
        self.config = config
        self.role = Role.SATELLITE if config.sync.hub_url else Role.HUB
        self.device_id = device_id or host_device_id()
        self._log = log or logger

        self._state = ConnectivityState.ONLINE
        self._pending: list[PendingWrite] = []
        self._last_probe: datetime | None = None
        self._last_replay: datetime | None = None

        self.store: DocumentStore | None = None
        self.remote: RemoteClient | None = None
        self.heartbeat: Heartbeat | None = None

        if self.role is Role.HUB:
            if store is None:
                store = DocumentStore(
                    config.storage.document_path,
                    device_id=self.device_id,
                    serialize_writes=config.storage.serialize_writes,
                )
            store.initialize()
            self.store = store
        else:
            self.remote = remote or RemoteClient(config.sync.hub_url, config.network)
            self.heartbeat = Heartbeat(
                probe=self.check_connectivity,
                is_online=lambda: self.is_online,
                on_reconnect=self.replay_pending,
                interval_seconds=config.sync.heartbeat_interval_seconds,
            )

    @property
    def is_hub(self) -> bool:
        return self.role is Role.HUB

    @property
    def state(self) -> ConnectivityState:
        return self._state

    @property
    def is_online(self) -> bool:
        return self._state is ConnectivityState.ONLINE

    @property
    def pending_writes(self) -> list[PendingWrite]:
        """Snapshot of the pending queue, oldest first."""
        return list(self._pending)

    async def start(self) -> None:
        """Start the heartbeat (satellites only)."""
        if self.heartbeat:
            await self.heartbeat.start()

    async def stop(self) -> None:
        """Stop the heartbeat and release the HTTP client."""
        if self.heartbeat:
            await self.heartbeat.stop()
        if self.remote:
            await self.remote.close()

    async def __aenter__(self) -> "SyncEngine":
        await self.start()
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.stop()

    # ==================== Reads ====================

    async def read(self, key: str | None = None) -> Any:
        """Read one key, or the whole document when ``key`` is None.

        Satellites read from the hub and get None on any failure.
        """
        result = await self.read_result(key)
        return result.value if result.ok else None

    async def read_result(self, key: str | None = None) -> RemoteResult:
        """Like ``read``, but keeps "missing" apart from "could not read".

        Hub reads always succeed; a missing key is ``ok`` with a None value.
        """
        if self.is_hub:
            if key is None:
                return RemoteResult(ok=True, value=self.store.read_all().to_dict())
            return RemoteResult(ok=True, value=self.store.read_key(key))

        return await self.remote.read(key)

    async def read_project(self, name: str) -> dict[str, JSONValue] | None:
        """Read a project record; ``{}`` if it was never written.

        Satellites get None when the hub cannot be read.
        """
        if self.is_hub:
            return self.store.read_project(name).to_dict()

        result = await self.remote.read_project(name)
        return result.value if result.ok else None

    # ==================== Writes ====================

    async def write(self, key: str, value: JSONValue) -> bool:
        """Write a key.

        Returns:
            Hub: whether the store write succeeded.
            Satellite offline: always True (queued for replay).
            Satellite online: the hub's write outcome.
        """
        if self.is_hub:
            try:
                self.store.write_key(key, value)
                return True
            except StorageIOError as e:
                self._log.error(f"Write error for {key!r}: {e}")
                return False

        if not self.is_online:
            self._enqueue(PendingWrite(key=key, value=value))
            return True

        result = await self.remote.write(key, value)
        self._report_remote_failure("write", key, result)
        return result.ok

    async def write_project(
        self,
        name: str,
        fields: dict[str, JSONValue],
        device: str | None = None,
    ) -> bool:
        """Replace a project record, stamped with the writer's device id.

        Args:
            name: Project name.
            fields: Caller-supplied fields.
            device: Writer's device id, set when a hub stores on behalf of a
                satellite. Defaults to this engine's id.
        """
        device = device or self.device_id

        if self.is_hub:
            try:
                self.store.write_project(name, fields, device=device)
                return True
            except StorageIOError as e:
                self._log.error(f"Project write error for {name!r}: {e}")
                return False

        if not self.is_online:
            self._enqueue(
                PendingWrite(
                    key=name, value=fields, kind=WriteKind.PROJECT, device=device
                )
            )
            return True

        result = await self.remote.write_project(name, fields, device=device)
        self._report_remote_failure("project write", name, result)
        return result.ok

    # ==================== Connectivity ====================

    async def check_connectivity(self) -> bool:
        """Probe the hub and update the connectivity state.

        Hubs are always online and never probe.
        """
        if self.is_hub:
            return True

        reachable = await self.remote.check_health()
        self._state = (
            ConnectivityState.ONLINE if reachable else ConnectivityState.OFFLINE
        )
        self._last_probe = datetime.now()
        return reachable

    async def probe(self) -> bool:
        """Run one heartbeat now, replaying the queue if the hub came back."""
        if self.heartbeat is None:
            return True
        return await self.heartbeat.beat()

    async def replay_pending(self) -> ReplayResult:
        """Replay every queued write once, in enqueue order.

        The queue is swapped out before replaying. Entries that fail are
        appended to the live queue, after anything queued during the pass.
        """
        if not self._pending:
            return ReplayResult()

        writes = self._pending
        self._pending = []
        result = ReplayResult(attempted=len(writes))
        self._log.info(f"Syncing {len(writes)} pending writes...")

        for write in writes:
            outcome = await self._send_pending(write)
            if outcome.ok:
                result.replayed += 1
            else:
                self._pending.append(write)
                result.requeued += 1

        self._last_replay = datetime.now()
        self._log.info(
            f"Sync completed: replayed={result.replayed}, requeued={result.requeued}"
        )
        return result

    def status(self) -> dict[str, Any]:
        """Current engine status.

        Returns:
            Dictionary with role, connectivity and queue statistics.
        """
        return {
            "role": self.role.value,
            "device": self.device_id,
            "online": self.is_online,
            "state": self._state.value,
            "hub_url": self.config.sync.hub_url or None,
            "pending_writes": len(self._pending),
            "last_probe": self._last_probe.isoformat() if self._last_probe else None,
            "last_replay": self._last_replay.isoformat() if self._last_replay else None,
        }

    # ==================== Internals ====================

    def _enqueue(self, write: PendingWrite) -> None:
        self._pending.append(write)
        self._log.info(f"Queued for sync: {write.key} ({write.kind.value})")

    async def _send_pending(self, write: PendingWrite) -> RemoteResult:
        if write.kind is WriteKind.PROJECT:
            return await self.remote.write_project(
                write.key, write.value, device=write.device
            )
        return await self.remote.write(write.key, write.value)

    def _report_remote_failure(self, action: str, key: str, result: RemoteResult) -> None:
        if result.ok:
            return
        kind = result.failure.value if result.failure else "unknown"
        self._log.warning(f"Remote {action} failed for {key!r} ({kind}): {result.error}")
