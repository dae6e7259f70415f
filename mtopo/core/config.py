from dataclasses import dataclass

from mtopo.datastructures.type_aliases import (
    DurationMilliseconds,
    ReadPreferenceMode,
)

DEFAULT_ROUTER_FRESHNESS_MS: DurationMilliseconds = 60_000


@dataclass(frozen=True, slots=True)
class DiscoveryConfig:
    """Discovery and fan-out configuration threaded through a run."""

    # mongos whose last ping is older than this are considered gone
    router_freshness_ms: DurationMilliseconds = DEFAULT_ROUTER_FRESHNESS_MS
    # use advisoryHostFQDNs[0] instead of the raw config.mongos _id when present
    prefer_advertised_hostname: bool = True

    host_read_preference: ReadPreferenceMode = "secondaryPreferred"
    router_read_preference: ReadPreferenceMode = "secondaryPreferred"
    shard_read_preference: ReadPreferenceMode = "primaryPreferred"

    # per node-connection attempt; None leaves the driver default in place
    connect_timeout_ms: DurationMilliseconds | None = 10_000

    include_config_hosts: bool = False
    app_name: str = "mtopo"

    def __post_init__(self) -> None:
        if self.router_freshness_ms < 0:
            raise ValueError("router_freshness_ms must be >= 0")
        if self.connect_timeout_ms is not None and self.connect_timeout_ms <= 0:
            raise ValueError("connect_timeout_ms must be positive")
