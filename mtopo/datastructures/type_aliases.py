"""
Semantic type aliases for mtopo.

These aliases keep signatures self-documenting where a raw ``str`` or
``float`` would hide what a value means.
"""

from collections.abc import Mapping
from typing import Any

# Durations
type DurationMilliseconds = int

# Addressing
type HostAddress = str  # a single "host:port" pair
type SeedList = str  # comma-separated "host:port" pairs
type ReplicaSetName = str
type ShardName = str
type MongoUri = str

# Node identity and roles
type ProcessIdentity = str  # what a node reports about itself in hello().me
type MemberState = str  # replSetGetStatus stateStr, e.g. PRIMARY
type ReadPreferenceMode = str

# Raw server documents
type Document = Mapping[str, Any]
