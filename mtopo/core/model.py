"""Typed records passed between discovery, the fan-out executor and reporting."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum

from mtopo.datastructures.type_aliases import (
    HostAddress,
    MemberState,
    ProcessIdentity,
    ReadPreferenceMode,
    ReplicaSetName,
    ShardName,
)


class TopologyKind(Enum):
    """Deployment shape of the initiating connection."""

    REPLICA_SET = "replica_set"
    SHARDED = "sharded"
    STANDALONE = "standalone"
    LOAD_BALANCED = "load_balanced"


class NodeCategory(Enum):
    """Executor variants; each resolves self-identity differently."""

    HOST = "host"
    ROUTER = "router"
    SHARD = "shard"


class FailureStage(Enum):
    CONNECT = "connect"
    COMMAND = "command"


@dataclass(frozen=True, slots=True)
class NodeDescriptor:
    """A single addressable participant of the cluster."""

    host: HostAddress
    role: MemberState | None = None
    name: ReplicaSetName | None = None

    def __post_init__(self) -> None:
        if not self.host or not self.host.strip():
            raise ValueError("NodeDescriptor.host must not be empty")
        if "," in self.host or "/" in self.host:
            raise ValueError(
                f"NodeDescriptor.host must be a single host:port, got {self.host!r}"
            )


@dataclass(frozen=True, slots=True)
class ShardDescriptor:
    """A shard as reported by listShards: ``host`` is ``setName/seed,seed``."""

    name: ShardName
    host: str


@dataclass(frozen=True, slots=True)
class ConnectionOptions:
    """Connection parameters reused for every node connection in a run."""

    username: str | None = None
    password: str | None = None
    auth_source: str = "admin"
    auth_mechanism: str = "DEFAULT"
    compressors: tuple[str, ...] = ("none",)
    tls: bool = False

    @property
    def authenticated(self) -> bool:
        return self.username is not None


@dataclass(frozen=True, slots=True)
class CommandOptions:
    """Effective options handed to a command alongside its connected node."""

    read_preference: ReadPreferenceMode


@dataclass(frozen=True, slots=True)
class FetchResult[T]:
    """Successful per-node outcome."""

    process: ProcessIdentity
    results: T
    host: HostAddress

    @property
    def ok(self) -> bool:
        return True


@dataclass(frozen=True, slots=True)
class FetchFailure:
    """Failure marker for a node that could not be reached or queried."""

    host: HostAddress
    error: str
    stage: FailureStage
    exception: BaseException | None = field(default=None, compare=False, repr=False)

    @property
    def ok(self) -> bool:
        return False


type FetchOutcome[T] = FetchResult[T] | FetchFailure


@dataclass(frozen=True, slots=True)
class DiscoveryError:
    """A discovery procedure that could not complete."""

    source: str
    message: str
    exception: BaseException | None = field(default=None, compare=False, repr=False)


@dataclass(frozen=True, slots=True)
class DiscoveryOutcome[T]:
    """Result of one discovery procedure: items, or an error value."""

    items: tuple[T, ...] = ()
    error: DiscoveryError | None = None

    @property
    def ok(self) -> bool:
        return self.error is None

    @classmethod
    def success(cls, items: list[T] | tuple[T, ...]) -> DiscoveryOutcome[T]:
        return cls(items=tuple(items))

    @classmethod
    def failure(cls, source: str, exc: BaseException) -> DiscoveryOutcome[T]:
        return cls(error=DiscoveryError(source=source, message=str(exc), exception=exc))
