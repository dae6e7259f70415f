"""
Topology run orchestration.

A run classifies the initiating connection, discovers the participants of
the deployment and fans the caller's commands out to routers, shards and
individual hosts. Everything the reporting layer needs ends up in a
``TopologyReport``.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from typing import Any

from loguru import logger

from .config import DiscoveryConfig
from .connection_options import build_connection_options
from .discovery import (
    discover_config_shard,
    discover_replica_set_members,
    discover_routers,
    discover_shards,
)
from .fanout import FanoutExecutor, NodeCommand
from .model import (
    DiscoveryError,
    DiscoveryOutcome,
    FetchFailure,
    FetchOutcome,
    NodeDescriptor,
    ShardDescriptor,
    TopologyKind,
)
from .session import Connector, NodeSession
from .shard_hosts import expand_shard_hosts
from .topology import classify_topology


@dataclass(frozen=True, slots=True)
class TopologySnapshot:
    """Participants discovered from the initiating connection."""

    topology: TopologyKind
    routers: tuple[NodeDescriptor, ...] = ()
    shards: tuple[ShardDescriptor, ...] = ()
    config_shards: tuple[ShardDescriptor, ...] = ()
    hosts: tuple[NodeDescriptor, ...] = ()
    config_hosts: tuple[NodeDescriptor, ...] = ()
    errors: tuple[DiscoveryError, ...] = ()

    @property
    def is_sharded(self) -> bool:
        return self.topology is TopologyKind.SHARDED


@dataclass(frozen=True, slots=True)
class TopologyReport:
    snapshot: TopologySnapshot
    router_results: list[FetchOutcome[Any]] = field(default_factory=list)
    shard_results: list[FetchOutcome[Any]] = field(default_factory=list)
    host_results: list[FetchOutcome[Any]] = field(default_factory=list)

    @property
    def topology(self) -> TopologyKind:
        return self.snapshot.topology

    def all_results(self) -> list[FetchOutcome[Any]]:
        return [*self.router_results, *self.shard_results, *self.host_results]

    def failures(self) -> list[FetchFailure]:
        return [
            outcome
            for outcome in self.all_results()
            if isinstance(outcome, FetchFailure)
        ]

    def unreachable_summary(self) -> str:
        total = len(self.all_results())
        return f"{len(self.failures())} of {total} nodes unreachable"


def _items[T](outcome: DiscoveryOutcome[T], errors: list[DiscoveryError]) -> tuple[T, ...]:
    if outcome.error is not None:
        errors.append(outcome.error)
    return outcome.items


class TopologyRunner:
    """Discover a deployment from ``session`` and fan commands out over it."""

    def __init__(
        self,
        session: NodeSession,
        connector: Connector,
        config: DiscoveryConfig | None = None,
    ) -> None:
        self.session = session
        self.connector = connector
        self.config = config or DiscoveryConfig()

    async def discover(self) -> TopologySnapshot:
        topology = await classify_topology(self.session)
        errors: list[DiscoveryError] = []

        if topology is not TopologyKind.SHARDED:
            members = await discover_replica_set_members(self.session)
            hosts = _items(members, errors)
            logger.info("hosts: {}", [node.host for node in hosts])
            return TopologySnapshot(topology=topology, hosts=hosts, errors=tuple(errors))

        router_outcome, config_outcome, shard_outcome = await asyncio.gather(
            discover_routers(self.session, self.config),
            discover_config_shard(self.session),
            discover_shards(self.session),
        )
        routers = _items(router_outcome, errors)
        config_shards = _items(config_outcome, errors)
        shards = _items(shard_outcome, errors)
        hosts = tuple(expand_shard_hosts(shards))
        config_hosts = tuple(expand_shard_hosts(config_shards))

        logger.info("mongos: {}", [node.host for node in routers])
        logger.info("shards: {}", [shard.name for shard in shards])
        logger.info("config members: {}", [node.host for node in config_hosts])
        logger.info("hosts: {}", [node.host for node in hosts])
        return TopologySnapshot(
            topology=topology,
            routers=routers,
            shards=shards,
            config_shards=config_shards,
            hosts=hosts,
            config_hosts=config_hosts,
            errors=tuple(errors),
        )

    async def run(
        self,
        host_command: NodeCommand[Any],
        *,
        router_command: NodeCommand[Any] | None = None,
        shard_command: NodeCommand[Any] | None = None,
    ) -> TopologyReport:
        """Discover the deployment and execute commands on every participant.

        ``router_command`` and ``shard_command`` default to ``host_command``.
        Routers, shards and hosts are fanned out concurrently.
        """
        options = build_connection_options(self.session)
        snapshot = await self.discover()
        executor = FanoutExecutor(self.connector, options, self.config)

        hosts = list(snapshot.hosts)
        if self.config.include_config_hosts:
            hosts.extend(snapshot.config_hosts)

        if snapshot.is_sharded:
            router_results, shard_results, host_results = await asyncio.gather(
                executor.fetch_routers(snapshot.routers, router_command or host_command),
                executor.fetch_shards(snapshot.shards, shard_command or host_command),
                executor.fetch_hosts(hosts, host_command),
            )
            report = TopologyReport(
                snapshot=snapshot,
                router_results=router_results,
                shard_results=shard_results,
                host_results=host_results,
            )
        else:
            host_results = await executor.fetch_hosts(hosts, host_command)
            report = TopologyReport(snapshot=snapshot, host_results=host_results)
        logger.info("Fan-out complete: {}", report.unreachable_summary())
        return report
