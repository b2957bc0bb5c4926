"""Configuration loading for crossdevice."""

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import yaml


@dataclass
class StorageConfig:
    """Where the hub keeps its JSON document."""

    path: str = "~/.crossdevice/shared-data"
    filename: str = "database.json"
    serialize_writes: bool = False  # Lock around read-modify-write

    @property
    def document_path(self) -> Path:
        return Path(self.path).expanduser() / self.filename


@dataclass
class NetworkConfig:
    host: str = "0.0.0.0"
    port: int = 3000
    fallback_ports: list[int] = field(default_factory=lambda: [3001, 3002, 3003])
    timeout_seconds: float = 10.0
    health_timeout_seconds: float = 5.0
    retry_attempts: int = 3
    retry_backoff_seconds: float = 1.0
    cors_origins: list[str] = field(default_factory=lambda: ["*"])

    @property
    def candidate_ports(self) -> list[int]:
        """Ports to try when binding, in order."""
        ports = [self.port]
        ports.extend(p for p in self.fallback_ports if p != self.port)
        return ports


@dataclass
class SyncConfig:
    """Configuration for satellite synchronization.

    An empty ``hub_url`` makes this process the hub.
    """

    hub_url: str = ""
    heartbeat_interval_seconds: float = 30.0


@dataclass
class Config:
    storage: StorageConfig = field(default_factory=StorageConfig)
    network: NetworkConfig = field(default_factory=NetworkConfig)
    sync: SyncConfig = field(default_factory=SyncConfig)


def _get_env(key: str, default: Any = None) -> Any:
    """Get environment variable with CROSSDEVICE_ prefix."""
    return os.environ.get(f"CROSSDEVICE_{key}", default)


def _parse_bool(value: str) -> bool:
    return value.lower() in ("true", "1", "yes")


def _apply_env_overrides(config: Config) -> Config:
    """Apply environment variable overrides to config."""
    # Storage overrides
    if path := _get_env("STORAGE_PATH"):
        config.storage.path = path
    if serialize := _get_env("SERIALIZE_WRITES"):
        config.storage.serialize_writes = _parse_bool(serialize)

    # Network overrides
    if host := _get_env("HOST"):
        config.network.host = host
    if port := _get_env("PORT"):
        config.network.port = int(port)
    if fallback := _get_env("FALLBACK_PORTS"):
        config.network.fallback_ports = [
            int(p) for p in fallback.split(",") if p.strip()
        ]
    if timeout := _get_env("TIMEOUT"):
        config.network.timeout_seconds = float(timeout)
    if retries := _get_env("RETRY_ATTEMPTS"):
        config.network.retry_attempts = int(retries)
    if origins := _get_env("CORS_ORIGINS"):
        config.network.cors_origins = [
            o.strip() for o in origins.split(",") if o.strip()
        ]

    # Sync overrides
    if hub_url := _get_env("HUB_URL"):
        config.sync.hub_url = hub_url
    if interval := _get_env("HEARTBEAT_INTERVAL"):
        config.sync.heartbeat_interval_seconds = float(interval)

    return config


def load_config(config_path: str | Path | None = None) -> Config:
    """Load configuration from YAML file with environment variable overrides.

    Args:
        config_path: Path to YAML config file. If None, uses default config.

    Returns:
        Loaded Config object.
    """
    config = Config()

    if config_path:
        path = Path(config_path)
        if path.exists():
            with open(path) as f:
                data = yaml.safe_load(f) or {}

            # Parse storage config
            if "storage" in data:
                storage_data = data["storage"]
                config.storage = StorageConfig(
                    path=storage_data.get("path", config.storage.path),
                    filename=storage_data.get("filename", config.storage.filename),
                    serialize_writes=storage_data.get(
                        "serialize_writes", config.storage.serialize_writes
                    ),
                )

            # Parse network config
            if "network" in data:
                net_data = data["network"]
                config.network = NetworkConfig(
                    host=net_data.get("host", config.network.host),
                    port=net_data.get("port", config.network.port),
                    fallback_ports=net_data.get(
                        "fallback_ports", config.network.fallback_ports
                    ),
                    timeout_seconds=net_data.get(
                        "timeout_seconds", config.network.timeout_seconds
                    ),
                    health_timeout_seconds=net_data.get(
                        "health_timeout_seconds",
                        config.network.health_timeout_seconds,
                    ),
                    retry_attempts=net_data.get(
                        "retry_attempts", config.network.retry_attempts
                    ),
                    retry_backoff_seconds=net_data.get(
                        "retry_backoff_seconds", config.network.retry_backoff_seconds
                    ),
                    cors_origins=net_data.get(
                        "cors_origins", config.network.cors_origins
                    ),
                )

            # Parse sync config
            if "sync" in data:
                sync_data = data["sync"]
                config.sync = SyncConfig(
                    hub_url=sync_data.get("hub_url", config.sync.hub_url) or "",
                    heartbeat_interval_seconds=sync_data.get(
                        "heartbeat_interval_seconds",
                        config.sync.heartbeat_interval_seconds,
                    ),
                )

    # Apply environment variable overrides
    return _apply_env_overrides(config)
