"""Derive reusable connection parameters and per-node URIs from a session."""

from __future__ import annotations

from collections.abc import Iterable
from typing import TYPE_CHECKING
from urllib.parse import quote_plus, urlencode, urlsplit, urlunsplit

from mtopo.datastructures.type_aliases import (
    HostAddress,
    MongoUri,
    ReadPreferenceMode,
    ReplicaSetName,
)

from .model import ConnectionOptions

if TYPE_CHECKING:  # pragma: no cover - typing only
    from .session import NodeSession

NO_COMPRESSION = "none"


def build_connection_options(session: NodeSession) -> ConnectionOptions:
    """Snapshot the session's credentials and transport settings.

    Absent values fall back to defaults: no username means an unauthenticated
    connection, no compressors means ``none``, no tls means disabled.
    """
    settings = session.effective_settings()
    compressors = tuple(settings.compressors) or (NO_COMPRESSION,)
    if settings.username is None:
        return ConnectionOptions(compressors=compressors, tls=bool(settings.tls))
    return ConnectionOptions(
        username=settings.username,
        password=settings.password,
        auth_source=settings.auth_source or "admin",
        auth_mechanism=settings.auth_mechanism or "DEFAULT",
        compressors=compressors,
        tls=bool(settings.tls),
    )


def _credentials(options: ConnectionOptions) -> str:
    if not options.authenticated:
        return ""
    user = quote_plus(options.username or "")
    if options.password is None:
        return f"{user}@"
    return f"{user}:{quote_plus(options.password)}@"


def _query(
    options: ConnectionOptions,
    read_preference: ReadPreferenceMode,
    *,
    replica_set: ReplicaSetName | None = None,
) -> str:
    params: list[tuple[str, str]] = []
    if replica_set is None:
        params.append(("directConnection", "true"))
    else:
        params.append(("replicaSet", replica_set))
    params.append(("tls", "true" if options.tls else "false"))
    if options.authenticated:
        params.append(("authSource", options.auth_source))
        params.append(("authMechanism", options.auth_mechanism))
    compressors = [c for c in options.compressors if c != NO_COMPRESSION]
    if compressors:
        params.append(("compressors", ",".join(compressors)))
    params.append(("readPreference", read_preference))
    return urlencode(params, safe=",")


def direct_node_uri(
    host: HostAddress,
    options: ConnectionOptions,
    read_preference: ReadPreferenceMode,
) -> MongoUri:
    """URI that targets exactly one node, bypassing replica set discovery."""
    return f"mongodb://{_credentials(options)}{host}/?{_query(options, read_preference)}"


def replica_set_uri(
    set_name: ReplicaSetName,
    seeds: Iterable[HostAddress],
    options: ConnectionOptions,
    read_preference: ReadPreferenceMode,
) -> MongoUri:
    """URI that lets the driver select a member of ``set_name`` from ``seeds``."""
    seed_list = ",".join(seeds)
    query = _query(options, read_preference, replica_set=set_name)
    return f"mongodb://{_credentials(options)}{seed_list}/?{query}"


def redact_uri(uri: MongoUri) -> MongoUri:
    parts = urlsplit(uri)
    userinfo, sep, hosts = parts.netloc.rpartition("@")
    if not sep:
        return uri
    user = userinfo.split(":", 1)[0]
    return urlunsplit(parts._replace(netloc=f"{user}:***@{hosts}"))
