"""
mtopo - MongoDB topology discovery with directed command execution.

Starting from one open connection, mtopo works out whether it is talking to
a replica set or to a mongos of a sharded cluster, discovers every
participant (mongos routers, shard replica sets and their members, replica
set members including hidden ones when privileges allow) and runs a
caller-supplied command on each of them concurrently.

## Quick Start

```python
from mtopo import PyMongoConnector, PyMongoSession, TopologyRunner
from mtopo.commands import list_databases

session = await PyMongoSession.open("mongodb://localhost:27017/")
runner = TopologyRunner(session, PyMongoConnector())
report = await runner.run(list_databases)
print(report.unreachable_summary())
```

A node that cannot be reached shows up as a ``FetchFailure`` in the report;
it never stops the rest of the run.
"""

from .core import (
    CommandOptions,
    ConnectionOptions,
    Connector,
    DiscoveryConfig,
    FanoutExecutor,
    FetchFailure,
    FetchOutcome,
    FetchResult,
    NodeDescriptor,
    NodeSession,
    PyMongoConnector,
    PyMongoSession,
    ShardDescriptor,
    TopologyKind,
    TopologyReport,
    TopologyRunner,
)

__version__ = "0.2.0"
__license__ = "MIT"

__all__ = [
    "CommandOptions",
    "ConnectionOptions",
    "Connector",
    "DiscoveryConfig",
    "FanoutExecutor",
    "FetchFailure",
    "FetchOutcome",
    "FetchResult",
    "NodeDescriptor",
    "NodeSession",
    "PyMongoConnector",
    "PyMongoSession",
    "ShardDescriptor",
    "TopologyKind",
    "TopologyReport",
    "TopologyRunner",
]
