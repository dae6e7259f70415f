"""Pytest configuration and an in-memory MongoDB cluster for mtopo tests.

The fakes implement the ``NodeSession`` and ``Connector`` protocols closely
enough for discovery and the fan-out executor: each ``FakeNode`` carries its
hello document, command responses and collections, and the ``FakeConnector``
resolves direct and replica set URIs against a ``FakeCluster``.
"""

import asyncio
from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field
from typing import Any
from urllib.parse import parse_qs, urlsplit

import pytest

from mtopo.core.errors import NodeConnectionError
from mtopo.core.session import SessionSettings


class FakeOperationFailure(Exception):
    """Stands in for a server-side command error."""


@dataclass(slots=True)
class FakeNode:
    host: str
    hello: dict[str, Any] = field(default_factory=dict)
    commands: dict[str, Any] = field(default_factory=dict)
    collections: dict[tuple[str, str], Any] = field(default_factory=dict)
    settings: SessionSettings = field(default_factory=SessionSettings)
    delay: float = 0.0
    now_ms: int = 1_000_000

    def __post_init__(self) -> None:
        self.hello.setdefault("me", self.host)


@dataclass(slots=True)
class FakeCluster:
    nodes: dict[str, FakeNode] = field(default_factory=dict)
    unreachable: set[str] = field(default_factory=set)
    connect_delays: dict[str, float] = field(default_factory=dict)

    def add(self, node: FakeNode) -> FakeNode:
        self.nodes[node.host] = node
        return node


class FakeSession:
    def __init__(self, node: FakeNode, uri: str = "") -> None:
        self.node = node
        self.uri = uri
        self.calls: list[tuple[str, Any]] = []
        self.closed = False

    async def hello(self) -> dict[str, Any]:
        self.calls.append(("hello", None))
        await asyncio.sleep(self.node.delay)
        response = self.node.hello
        if isinstance(response, Exception):
            raise response
        return dict(response)

    async def admin_command(
        self,
        command: Mapping[str, Any],
        *,
        read_preference: str | None = None,
    ) -> dict[str, Any]:
        name = next(iter(command))
        self.calls.append((name, read_preference))
        await asyncio.sleep(self.node.delay)
        if name not in self.node.commands:
            raise FakeOperationFailure(f"no such command: '{name}'")
        response = self.node.commands[name]
        if isinstance(response, Exception):
            raise response
        return dict(response)

    async def find(
        self, database: str, collection: str, query: Mapping[str, Any]
    ) -> list[dict[str, Any]]:
        self.calls.append(("find", (database, collection)))
        documents = self.node.collections.get((database, collection), [])
        if isinstance(documents, Exception):
            raise documents
        return [
            dict(doc)
            for doc in documents
            if all(doc.get(key) == value for key, value in query.items())
        ]

    async def aggregate(
        self,
        database: str,
        collection: str,
        pipeline: Sequence[Mapping[str, Any]],
        *,
        read_concern: str | None = None,
        **options: Any,
    ) -> list[dict[str, Any]]:
        self.calls.append(("aggregate", (database, collection, read_concern, options)))
        documents = self.node.collections.get((database, collection), [])
        if isinstance(documents, Exception):
            raise documents
        window = pipeline[0]["$match"]["$expr"]["$gte"][1]["$subtract"][1]
        now = self.node.now_ms
        projection = pipeline[1]["$project"]
        return [
            {key: doc[key] for key in projection if key in doc}
            for doc in documents
            if doc["ping"] >= now - window
        ]

    def effective_settings(self) -> SessionSettings:
        return self.node.settings

    async def close(self) -> None:
        self.closed = True


class FakeConnector:
    """Resolves mongodb:// URIs against a FakeCluster."""

    def __init__(self, cluster: FakeCluster) -> None:
        self.cluster = cluster
        self.uris: list[str] = []
        self.timeouts: list[int | None] = []
        self.sessions: list[FakeSession] = []

    def _reachable(self, host: str) -> FakeNode | None:
        if host in self.cluster.unreachable:
            return None
        return self.cluster.nodes.get(host)

    async def connect(self, uri: str, *, timeout_ms: int | None = None) -> FakeSession:
        self.uris.append(uri)
        self.timeouts.append(timeout_ms)
        parts = urlsplit(uri)
        seeds = parts.netloc.rpartition("@")[2].split(",")
        query = parse_qs(parts.query)

        for seed in seeds:
            await asyncio.sleep(self.cluster.connect_delays.get(seed, 0.0))

        candidates = [node for seed in seeds if (node := self._reachable(seed))]
        if "replicaSet" in query:
            set_name = query["replicaSet"][0]
            candidates = [n for n in candidates if n.hello.get("setName") == set_name]
            primaries = [n for n in candidates if n.hello.get("isWritablePrimary")]
            mode = query.get("readPreference", ["primary"])[0]
            if primaries or mode == "primary":
                candidates = primaries
        if not candidates:
            raise NodeConnectionError(",".join(seeds), "No servers found yet")

        session = FakeSession(candidates[0], uri)
        self.sessions.append(session)
        return session


def replica_set_node(
    host: str,
    set_name: str = "rs0",
    *,
    primary: bool = False,
    peers: Sequence[str] = (),
    passives: Sequence[str] = (),
    status_members: list[dict[str, Any]] | Exception | None = None,
    databases: list[dict[str, Any]] | None = None,
) -> FakeNode:
    commands: dict[str, Any] = {
        "ping": {"ok": 1},
        "listDatabases": {"databases": databases or [{"name": "admin"}], "ok": 1},
    }
    if status_members is not None:
        commands["replSetGetStatus"] = (
            status_members
            if isinstance(status_members, Exception)
            else {"set": set_name, "members": status_members, "ok": 1}
        )
    return FakeNode(
        host=host,
        hello={
            "setName": set_name,
            "isWritablePrimary": primary,
            "secondary": not primary,
            "hosts": list(peers),
            "passives": list(passives),
            "me": host,
        },
        commands=commands,
    )


def mongos_node(host: str, **commands: Any) -> FakeNode:
    return FakeNode(
        host=host,
        hello={"msg": "isdbgrid", "isWritablePrimary": True},
        commands={"ping": {"ok": 1}, **commands},
    )


@pytest.fixture
def cluster() -> FakeCluster:
    return FakeCluster()


@pytest.fixture
def connector(cluster: FakeCluster) -> FakeConnector:
    return FakeConnector(cluster)


@pytest.fixture
def replica_set(cluster: FakeCluster) -> FakeCluster:
    """Three-member replica set rs0 with a privileged initiating node."""
    hosts = ["rs1:27017", "rs2:27017", "rs3:27017"]
    members = [
        {"name": hosts[0], "health": 1, "stateStr": "PRIMARY"},
        {"name": hosts[1], "health": 1, "stateStr": "SECONDARY"},
        {"name": hosts[2], "health": 1, "stateStr": "SECONDARY"},
    ]
    for index, host in enumerate(hosts):
        cluster.add(
            replica_set_node(
                host,
                primary=index == 0,
                peers=hosts,
                status_members=members,
                databases=[{"name": "admin"}, {"name": f"db{index}"}],
            )
        )
    return cluster


@pytest.fixture
def sharded_cluster(cluster: FakeCluster) -> FakeCluster:
    """Two mongos, two shards of two members each and a config replica set."""
    for shard in ("shard01", "shard02"):
        hosts = [f"{shard}a:27018", f"{shard}b:27018"]
        for index, host in enumerate(hosts):
            cluster.add(
                replica_set_node(host, shard, primary=index == 0, peers=hosts)
            )

    mongos_records = [
        {"_id": "mongos1:27017", "ping": 990_000},
        {"_id": "mongos2:27017", "ping": 995_000},
        {"_id": "stale:27017", "ping": 100_000},
    ]
    list_shards = {
        "shards": [
            {"_id": "shard01", "host": "shard01/shard01a:27018,shard01b:27018", "state": 1},
            {"_id": "shard02", "host": "shard02/shard02a:27018,shard02b:27018", "state": 1},
            {"_id": "draining", "host": "draining/gone:27018", "state": 0},
        ],
        "ok": 1,
    }
    shard_identity = [
        {
            "_id": "shardIdentity",
            "shardName": "config",
            "configsvrConnectionString": "configRS/cfg1:27019,cfg2:27019",
        }
    ]
    for host in ("mongos1:27017", "mongos2:27017"):
        node = cluster.add(mongos_node(host, listShards=list_shards))
        node.collections[("config", "mongos")] = mongos_records
        node.collections[("admin", "system.version")] = shard_identity
    for host in ("cfg1:27019", "cfg2:27019"):
        cluster.add(replica_set_node(host, "configRS", primary=host.startswith("cfg1")))
    return cluster
