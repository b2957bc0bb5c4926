"""Cross-device synchronization.

A hub owns the document store; satellites forward to it over HTTP, buffer
writes while it is unreachable, and replay them when the heartbeat sees
the hub again.
"""

from .engine import ConnectivityState, ReplayResult, Role, SyncEngine
from .heartbeat import Heartbeat
from .remote_client import RemoteClient, RemoteResult

__all__ = [
    "ConnectivityState",
    "Heartbeat",
    "RemoteClient",
    "RemoteResult",
    "ReplayResult",
    "Role",
    "SyncEngine",
]
