import pytest
from pydantic import ValidationError

from mtopo.config import MTopoSettings
from mtopo.core.config import DiscoveryConfig


def test_discovery_config_defaults() -> None:
    config = DiscoveryConfig()
    assert config.router_freshness_ms == 60_000
    assert config.prefer_advertised_hostname is True
    assert config.host_read_preference == "secondaryPreferred"
    assert config.router_read_preference == "secondaryPreferred"
    assert config.shard_read_preference == "primaryPreferred"


def test_discovery_config_validation() -> None:
    with pytest.raises(ValueError):
        DiscoveryConfig(router_freshness_ms=-1)
    with pytest.raises(ValueError):
        DiscoveryConfig(connect_timeout_ms=0)
    assert DiscoveryConfig(connect_timeout_ms=None).connect_timeout_ms is None


def test_settings_from_environment(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("MTOPO_URI", "mongodb://mongos1:27017/")
    monkeypatch.setenv("MTOPO_ROUTER_FRESHNESS_MS", "120000")
    monkeypatch.setenv("MTOPO_PREFER_ADVERTISED_HOSTNAME", "false")
    monkeypatch.setenv("MTOPO_INCLUDE_CONFIG_HOSTS", "true")

    settings = MTopoSettings(_env_file=None)
    assert settings.uri == "mongodb://mongos1:27017/"

    config = settings.discovery_config()
    assert config.router_freshness_ms == 120_000
    assert config.prefer_advertised_hostname is False
    assert config.include_config_hosts is True


def test_settings_reject_invalid_values() -> None:
    with pytest.raises(ValidationError):
        MTopoSettings(_env_file=None, connect_timeout_ms=0)
