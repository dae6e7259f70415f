"""
Parallel execution of a command against every discovered node.

Each node gets its own connection and its own task. Tasks are started
together and joined with settle-all semantics: every task runs to completion
or failure, failures become ``FetchFailure`` values, and the i-th outcome
always belongs to the i-th input.
"""

from __future__ import annotations

import asyncio
import inspect
from collections.abc import Awaitable, Callable, Sequence
from typing import Any

from loguru import logger

from mtopo.datastructures.type_aliases import HostAddress, MongoUri, ReadPreferenceMode

from .config import DiscoveryConfig
from .connection_options import direct_node_uri, redact_uri, replica_set_uri
from .model import (
    CommandOptions,
    ConnectionOptions,
    FailureStage,
    FetchFailure,
    FetchOutcome,
    FetchResult,
    NodeCategory,
    NodeDescriptor,
    ShardDescriptor,
)
from .session import Connector, NodeSession
from .shard_hosts import parse_shard_host

type NodeCommand[T] = Callable[[NodeSession, CommandOptions], Awaitable[T] | T]


async def node_identity(session: NodeSession, fallback: HostAddress) -> str:
    """The ``me`` a node reports in hello; standalones report none."""
    hello = await session.hello()
    me = hello.get("me")
    if not me:
        logger.debug("{} did not report a self identity", fallback)
        return fallback
    return str(me)


class FanoutExecutor:
    """Run a command on many nodes concurrently, isolating per-node failures."""

    def __init__(
        self,
        connector: Connector,
        options: ConnectionOptions,
        config: DiscoveryConfig | None = None,
    ) -> None:
        self.connector = connector
        self.options = options
        self.config = config or DiscoveryConfig()

    async def fetch_hosts[T](
        self, nodes: Sequence[NodeDescriptor], command: NodeCommand[T]
    ) -> list[FetchOutcome[T]]:
        """Execute a command on each replica set member over a direct connection."""
        read_preference = self.config.host_read_preference
        return await self._settle(
            [node.host for node in nodes],
            [
                self._fetch(
                    node.host,
                    direct_node_uri(node.host, self.options, read_preference),
                    NodeCategory.HOST,
                    read_preference,
                    command,
                )
                for node in nodes
            ],
        )

    async def fetch_routers[T](
        self, nodes: Sequence[NodeDescriptor], command: NodeCommand[T]
    ) -> list[FetchOutcome[T]]:
        """Execute a command on each mongos."""
        read_preference = self.config.router_read_preference
        return await self._settle(
            [node.host for node in nodes],
            [
                self._fetch(
                    node.host,
                    direct_node_uri(node.host, self.options, read_preference),
                    NodeCategory.ROUTER,
                    read_preference,
                    command,
                )
                for node in nodes
            ],
        )

    async def fetch_shards[T](
        self, shards: Sequence[ShardDescriptor], command: NodeCommand[T]
    ) -> list[FetchOutcome[T]]:
        """Execute a command once per shard replica set.

        The driver picks the member from the shard's seed list; the shard
        read preference favours the primary.
        """
        read_preference = self.config.shard_read_preference
        targets: list[tuple[HostAddress, MongoUri]] = []
        for shard in shards:
            parsed = parse_shard_host(shard.host)
            uri = replica_set_uri(
                parsed.set_name, parsed.seeds, self.options, read_preference
            )
            targets.append((parsed.seed_list, uri))
        return await self._settle(
            [target for target, _ in targets],
            [
                self._fetch(target, uri, NodeCategory.SHARD, read_preference, command)
                for target, uri in targets
            ],
        )

    async def _settle[T](
        self,
        hosts: list[HostAddress],
        fetches: list[Awaitable[FetchOutcome[T]]],
    ) -> list[FetchOutcome[T]]:
        settled = await asyncio.gather(*fetches, return_exceptions=True)
        outcomes: list[FetchOutcome[T]] = []
        for host, result in zip(hosts, settled, strict=True):
            if isinstance(result, (KeyboardInterrupt, SystemExit)):
                raise result
            if isinstance(result, BaseException):
                logger.error("Command failed on {}: {!r}", host, result)
                outcomes.append(
                    FetchFailure(
                        host=host,
                        error=str(result) or type(result).__name__,
                        stage=FailureStage.COMMAND,
                        exception=result,
                    )
                )
            else:
                outcomes.append(result)
        return outcomes

    async def _fetch[T](
        self,
        host: HostAddress,
        uri: MongoUri,
        category: NodeCategory,
        read_preference: ReadPreferenceMode,
        command: NodeCommand[T],
    ) -> FetchOutcome[T]:
        try:
            session = await self.connector.connect(
                uri, timeout_ms=self.config.connect_timeout_ms
            )
        except Exception as e:
            logger.warning("Could not connect to {} {}: {}", category.value, host, e)
            return FetchFailure(
                host=host, error=str(e), stage=FailureStage.CONNECT, exception=e
            )

        logger.debug("Connected to {} {} via {}", category.value, host, redact_uri(uri))
        try:
            results: Any = command(session, CommandOptions(read_preference))
            if inspect.isawaitable(results):
                results = await results
            if category is NodeCategory.ROUTER:
                process = host
            else:
                process = await node_identity(session, host)
        finally:
            await _close_quietly(session, host)

        return FetchResult(process=process, results=results, host=host)


async def _close_quietly(session: NodeSession, host: HostAddress) -> None:
    try:
        await session.close()
    except Exception as e:
        logger.debug("Error closing connection to {}: {}", host, e)
