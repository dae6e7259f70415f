"""Topology discovery and command fan-out."""

from .config import DiscoveryConfig
from .connection_options import (
    build_connection_options,
    direct_node_uri,
    redact_uri,
    replica_set_uri,
)
from .discovery import (
    discover_config_shard,
    discover_replica_set_members,
    discover_routers,
    discover_shards,
)
from .errors import MalformedShardHostError, MTopoError, NodeConnectionError
from .fanout import FanoutExecutor, NodeCommand
from .model import (
    CommandOptions,
    ConnectionOptions,
    DiscoveryError,
    DiscoveryOutcome,
    FailureStage,
    FetchFailure,
    FetchOutcome,
    FetchResult,
    NodeCategory,
    NodeDescriptor,
    ShardDescriptor,
    TopologyKind,
)
from .runner import TopologyReport, TopologyRunner, TopologySnapshot
from .session import (
    Connector,
    NodeSession,
    PyMongoConnector,
    PyMongoSession,
    SessionSettings,
)
from .shard_hosts import expand_shard_hosts, parse_shard_host
from .topology import (
    classify_topology,
    is_load_balanced,
    is_router_entry_point,
    is_standalone,
)

__all__ = [
    "CommandOptions",
    "ConnectionOptions",
    "Connector",
    "DiscoveryConfig",
    "DiscoveryError",
    "DiscoveryOutcome",
    "FailureStage",
    "FanoutExecutor",
    "FetchFailure",
    "FetchOutcome",
    "FetchResult",
    "MTopoError",
    "MalformedShardHostError",
    "NodeCategory",
    "NodeCommand",
    "NodeConnectionError",
    "NodeDescriptor",
    "NodeSession",
    "PyMongoConnector",
    "PyMongoSession",
    "SessionSettings",
    "ShardDescriptor",
    "TopologyKind",
    "TopologyReport",
    "TopologyRunner",
    "TopologySnapshot",
    "build_connection_options",
    "classify_topology",
    "direct_node_uri",
    "discover_config_shard",
    "discover_replica_set_members",
    "discover_routers",
    "discover_shards",
    "expand_shard_hosts",
    "is_load_balanced",
    "is_router_entry_point",
    "is_standalone",
    "parse_shard_host",
    "redact_uri",
    "replica_set_uri",
]
