from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from mtopo.core.config import DEFAULT_ROUTER_FRESHNESS_MS, DiscoveryConfig


class MTopoSettings(BaseSettings):
    """mtopo command line configuration settings."""

    model_config = SettingsConfigDict(
        env_prefix="MTOPO_", env_file=".env", extra="ignore"
    )

    uri: str = Field(
        "mongodb://127.0.0.1:27017/",
        description="Connection string of the initiating mongod or mongos.",
    )
    log_level: str = Field("INFO", description="Log level for the stderr sink.")
    router_freshness_ms: int = Field(
        DEFAULT_ROUTER_FRESHNESS_MS,
        ge=0,
        description="Ignore mongos whose last ping is older than this.",
    )
    prefer_advertised_hostname: bool = Field(
        True,
        description="Dial mongos by their advertised FQDN instead of the raw _id.",
    )
    connect_timeout_ms: int = Field(
        10_000, gt=0, description="Per-node connection attempt deadline."
    )
    include_config_hosts: bool = Field(
        False, description="Also run host commands on config server members."
    )
    app_name: str = Field("mtopo", description="appName sent to the servers.")

    def discovery_config(self) -> DiscoveryConfig:
        return DiscoveryConfig(
            router_freshness_ms=self.router_freshness_ms,
            prefer_advertised_hostname=self.prefer_advertised_hostname,
            connect_timeout_ms=self.connect_timeout_ms,
            include_config_hosts=self.include_config_hosts,
            app_name=self.app_name,
        )
