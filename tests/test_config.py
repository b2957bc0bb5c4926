"""Tests for configuration loading."""

from unittest.mock import patch

from crossdevice.config import Config, NetworkConfig, load_config
from crossdevice.identity import device_id


class TestLoadConfig:
    """Tests for load_config."""

    def test_defaults(self):
        config = load_config(None)

        assert config.network.port == 3000
        assert config.network.fallback_ports == [3001, 3002, 3003]
        assert config.network.host == "0.0.0.0"
        assert config.network.timeout_seconds == 10.0
        assert config.network.retry_attempts == 3
        assert config.sync.hub_url == ""
        assert config.sync.heartbeat_interval_seconds == 30.0
        assert config.storage.serialize_writes is False

    def test_missing_file_uses_defaults(self, tmp_path):
        config = load_config(tmp_path / "missing.yaml")
        assert config == Config()

    def test_yaml_file(self, tmp_path):
        path = tmp_path / "config.yaml"
        path.write_text(
            "storage:\n"
            f"  path: {tmp_path}\n"
            "  serialize_writes: true\n"
            "network:\n"
            "  port: 4000\n"
            "  fallback_ports: [4001]\n"
            "sync:\n"
            "  hub_url: http://192.168.1.100:3000\n"
            "  heartbeat_interval_seconds: 5\n"
        )

        config = load_config(path)

        assert config.storage.document_path == tmp_path / "database.json"
        assert config.storage.serialize_writes is True
        assert config.network.port == 4000
        assert config.network.fallback_ports == [4001]
        assert config.network.timeout_seconds == 10.0
        assert config.sync.hub_url == "http://192.168.1.100:3000"
        assert config.sync.heartbeat_interval_seconds == 5

    def test_env_overrides(self, monkeypatch):
        monkeypatch.setenv("CROSSDEVICE_HUB_URL", "http://hub:3000")
        monkeypatch.setenv("CROSSDEVICE_PORT", "3100")
        monkeypatch.setenv("CROSSDEVICE_FALLBACK_PORTS", "3101, 3102")
        monkeypatch.setenv("CROSSDEVICE_SERIALIZE_WRITES", "yes")
        monkeypatch.setenv("CROSSDEVICE_HEARTBEAT_INTERVAL", "2.5")

        config = load_config(None)

        assert config.sync.hub_url == "http://hub:3000"
        assert config.network.port == 3100
        assert config.network.fallback_ports == [3101, 3102]
        assert config.storage.serialize_writes is True
        assert config.sync.heartbeat_interval_seconds == 2.5

    def test_cors_origins(self, tmp_path, monkeypatch):
        assert load_config(None).network.cors_origins == ["*"]

        path = tmp_path / "config.yaml"
        path.write_text("network:\n  cors_origins: [http://laptop.local:8080]\n")
        assert load_config(path).network.cors_origins == ["http://laptop.local:8080"]

        monkeypatch.setenv("CROSSDEVICE_CORS_ORIGINS", "http://a.local, http://b.local")
        assert load_config(path).network.cors_origins == ["http://a.local", "http://b.local"]

    def test_candidate_ports(self):
        network = NetworkConfig(port=3001, fallback_ports=[3001, 3002])
        assert network.candidate_ports == [3001, 3002]


class TestDeviceId:
    """Tests for the device identifier."""

    def test_format(self):
        ident = device_id()
        assert len(ident) == 8
        assert all(c in "0123456789abcdef" for c in ident)

    def test_deterministic(self):
        assert device_id() == device_id()

    def test_depends_on_hostname(self):
        with patch("crossdevice.identity.socket.gethostname", return_value="laptop"):
            first = device_id()
        with patch("crossdevice.identity.socket.gethostname", return_value="desktop"):
            second = device_id()

        assert first != second
