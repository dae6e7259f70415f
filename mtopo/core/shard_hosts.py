"""Parsing of ``setName/host1,host2`` shard connection strings."""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass

from mtopo.datastructures.type_aliases import HostAddress, ReplicaSetName, SeedList

from .errors import MalformedShardHostError
from .model import NodeDescriptor, ShardDescriptor


@dataclass(frozen=True, slots=True)
class ShardConnectionString:
    set_name: ReplicaSetName
    seeds: tuple[HostAddress, ...]

    @property
    def seed_list(self) -> SeedList:
        return ",".join(self.seeds)


def parse_shard_host(value: str) -> ShardConnectionString:
    """Split a shard host string into its replica set name and seed hosts.

    The set name is everything before the last ``/``; seed hosts are the
    comma-separated entries after it. Any empty component is rejected.
    """
    set_name, sep, seed_list = value.rpartition("/")
    if not sep:
        raise MalformedShardHostError(value, "missing '/' separator")
    if not set_name:
        raise MalformedShardHostError(value, "empty replica set name")
    if not seed_list:
        raise MalformedShardHostError(value, "empty seed list")
    seeds = tuple(seed.strip() for seed in seed_list.split(","))
    if any(not seed for seed in seeds):
        raise MalformedShardHostError(value, "empty host in seed list")
    return ShardConnectionString(set_name=set_name, seeds=seeds)


def shard_seed_nodes(shard: ShardDescriptor) -> list[NodeDescriptor]:
    parsed = parse_shard_host(shard.host)
    return [NodeDescriptor(host=seed, name=parsed.set_name) for seed in parsed.seeds]


def expand_shard_hosts(shards: Iterable[ShardDescriptor]) -> list[NodeDescriptor]:
    """Return one NodeDescriptor per seed host across all shards, in order."""
    hosts: list[NodeDescriptor] = []
    for shard in shards:
        hosts.extend(shard_seed_nodes(shard))
    return hosts
