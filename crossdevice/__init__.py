"""Local-first key/value and project store mirrored across devices."""

from .config import Config, load_config
from .identity import device_id
from .store import DocumentStore
from .sync import ConnectivityState, RemoteClient, Role, SyncEngine

__version__ = "0.1.0"

__all__ = [
    "Config",
    "ConnectivityState",
    "DocumentStore",
    "RemoteClient",
    "Role",
    "SyncEngine",
    "device_id",
    "load_config",
]
