"""Classify the role of the initiating connection."""

from __future__ import annotations

from loguru import logger

from .model import TopologyKind
from .session import NodeSession

ROUTER_HELLO_MSG = "isdbgrid"


async def is_router_entry_point(session: NodeSession) -> bool:
    """True when the connected process is a mongos."""
    hello = await session.hello()
    return hello.get("msg") == ROUTER_HELLO_MSG


async def is_standalone(session: NodeSession) -> bool:
    # standalone discovery is not supported yet
    return False


async def is_load_balanced(session: NodeSession) -> bool:
    # load balanced topologies are not supported yet
    return False


async def classify_topology(session: NodeSession) -> TopologyKind:
    if await is_router_entry_point(session):
        kind = TopologyKind.SHARDED
    elif await is_load_balanced(session):
        kind = TopologyKind.LOAD_BALANCED
    elif await is_standalone(session):
        kind = TopologyKind.STANDALONE
    else:
        kind = TopologyKind.REPLICA_SET
    logger.debug("Classified initiating connection as {}", kind.value)
    return kind
