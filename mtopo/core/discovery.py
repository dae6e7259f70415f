"""
Member discovery for replica sets and sharded clusters.

Each procedure takes the initiating session and returns a
``DiscoveryOutcome``. A procedure that cannot complete (missing privileges,
not a replica set, config metadata unavailable) logs the problem and returns
the error as a value so discovery of the other node classes carries on.
"""

from __future__ import annotations

from typing import Any

from loguru import logger

from mtopo.datastructures.type_aliases import (
    Document,
    DurationMilliseconds,
    HostAddress,
)

from .config import DiscoveryConfig
from .model import DiscoveryOutcome, NodeDescriptor, ShardDescriptor
from .session import NodeSession

HEALTHY = 1
ARBITER_STATE = "ARBITER"
SHARD_STATE_ACTIVE = 1

CONFIG_DB = "config"
MONGOS_COLLECTION = "mongos"
SHARD_IDENTITY_ID = "shardIdentity"


def healthy_data_bearing_members(
    members: list[Document],
) -> list[NodeDescriptor]:
    """Filter replSetGetStatus members down to healthy, non-arbiter nodes."""
    return [
        NodeDescriptor(host=member["name"], role=member.get("stateStr"))
        for member in members
        if member.get("health") == HEALTHY
        and member.get("stateStr") != ARBITER_STATE
    ]


def advertised_peers(hello: Document) -> list[NodeDescriptor]:
    """Hosts a node advertises about its replica set, without roles."""
    names = [*hello.get("hosts", []), *hello.get("passives", [])]
    return [NodeDescriptor(host=name) for name in names]


async def discover_replica_set_members(
    session: NodeSession,
) -> DiscoveryOutcome[NodeDescriptor]:
    """Return healthy data-bearing members of the connected replica set.

    ``replSetGetStatus`` also reveals hidden members but needs privileges the
    caller may lack. When it fails we fall back to the peers the connected
    node advertises in ``hello`` (hosts plus passives).
    """
    try:
        status = await session.admin_command({"replSetGetStatus": 1})
        members = healthy_data_bearing_members(status["members"])
    except Exception as e:
        logger.info(
            "replSetGetStatus unavailable ({}); using advertised replica set peers",
            e,
        )
    else:
        logger.debug("Discovered {} replica set members from status", len(members))
        return DiscoveryOutcome.success(members)

    try:
        hello = await session.hello()
        members = advertised_peers(hello)
    except Exception as e:
        logger.warning("Lack the ability to discover replica set members: {}", e)
        return DiscoveryOutcome.failure("replica_set", e)
    logger.debug("Discovered {} replica set members from hello", len(members))
    return DiscoveryOutcome.success(members)


def select_router_host(
    record: Document, *, prefer_advertised: bool = True
) -> HostAddress:
    """Pick the address to dial for a config.mongos record.

    ``_id`` is the ``host:port`` the mongos registered with. When it also
    advertises fully-qualified names, the first one is spliced with the port
    from ``_id``.
    """
    raw_id = str(record["_id"])
    fqdns = record.get("advisoryHostFQDNs") or []
    if not prefer_advertised or not fqdns:
        return raw_id
    _, sep, port = raw_id.rpartition(":")
    if not sep:
        return str(fqdns[0])
    return f"{fqdns[0]}:{port}"


def router_pipeline(window: DurationMilliseconds) -> list[dict[str, Any]]:
    return [
        {
            "$match": {
                "$expr": {"$gte": ["$ping", {"$subtract": ["$$NOW", window]}]}
            }
        },
        {"$project": {"_id": 1, "advisoryHostFQDNs": 1}},
    ]


async def discover_routers(
    session: NodeSession, config: DiscoveryConfig
) -> DiscoveryOutcome[NodeDescriptor]:
    """Return mongos instances that have pinged within the freshness window."""
    try:
        records = await session.aggregate(
            CONFIG_DB,
            MONGOS_COLLECTION,
            router_pipeline(config.router_freshness_ms),
            read_concern="local",
            allowDiskUse=True,
            comment="Discovering living mongos process",
        )
        routers = [
            NodeDescriptor(
                host=select_router_host(
                    record, prefer_advertised=config.prefer_advertised_hostname
                )
            )
            for record in records
        ]
    except Exception as e:
        logger.warning("Lack the ability to discover mongos: {}", e)
        return DiscoveryOutcome.failure("routers", e)
    logger.debug("Discovered {} mongos", len(routers))
    return DiscoveryOutcome.success(routers)


async def discover_shards(session: NodeSession) -> DiscoveryOutcome[ShardDescriptor]:
    """Return active shards from ``listShards``."""
    try:
        response = await session.admin_command({"listShards": 1})
        shards = [
            ShardDescriptor(name=shard["_id"], host=shard["host"])
            for shard in response["shards"]
            if shard.get("state") == SHARD_STATE_ACTIVE
        ]
    except Exception as e:
        logger.warning("Lack the ability to discover shards: {}", e)
        return DiscoveryOutcome.failure("shards", e)
    logger.debug("Discovered {} active shards", len(shards))
    return DiscoveryOutcome.success(shards)


async def discover_config_shard(
    session: NodeSession,
) -> DiscoveryOutcome[ShardDescriptor]:
    """Return the config server replica set from the shard identity document."""
    try:
        documents = await session.find(
            "admin", "system.version", {"_id": SHARD_IDENTITY_ID}
        )
    except Exception as e:
        logger.warning("Lack the ability to discover the config shard: {}", e)
        return DiscoveryOutcome.failure("config_shard", e)

    shards: list[ShardDescriptor] = []
    for document in documents:
        name = document.get("shardName")
        host = document.get("configsvrConnectionString")
        if not name or not host:
            logger.warning("Ignoring incomplete shard identity document: {}", document)
            continue
        shards.append(ShardDescriptor(name=name, host=host))
    return DiscoveryOutcome.success(shards)
