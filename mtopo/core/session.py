"""
Session interfaces consumed by discovery and the fan-out executor.

``NodeSession`` is the already-open connection the run starts from (and the
per-node connections the executor opens). ``Connector`` is the primitive that
turns a URI into a new session. The pymongo adapters below implement both
over ``pymongo.AsyncMongoClient``; tests substitute an in-memory cluster.
"""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field
from typing import Any, Protocol
from urllib.parse import unquote, urlsplit

from loguru import logger
from pymongo import AsyncMongoClient
from pymongo.common import validate_compressors
from pymongo.errors import PyMongoError
from pymongo.read_concern import ReadConcern
from pymongo.read_preferences import make_read_preference, read_pref_mode_from_name
from pymongo.uri_parser import parse_uri

from mtopo.datastructures.type_aliases import (
    DurationMilliseconds,
    MongoUri,
    ReadPreferenceMode,
)

from .connection_options import redact_uri
from .errors import NodeConnectionError


@dataclass(frozen=True, slots=True)
class SessionSettings:
    """Negotiated settings of an open session, as far as they are known."""

    username: str | None = None
    password: str | None = None
    auth_source: str | None = None
    auth_mechanism: str | None = None
    compressors: tuple[str, ...] = ()
    tls: bool | None = None
    extra: Mapping[str, Any] = field(default_factory=dict)


class NodeSession(Protocol):
    async def hello(self) -> dict[str, Any]: ...

    async def admin_command(
        self,
        command: Mapping[str, Any],
        *,
        read_preference: ReadPreferenceMode | None = None,
    ) -> dict[str, Any]: ...

    async def find(
        self, database: str, collection: str, query: Mapping[str, Any]
    ) -> list[dict[str, Any]]: ...

    async def aggregate(
        self,
        database: str,
        collection: str,
        pipeline: Sequence[Mapping[str, Any]],
        *,
        read_concern: str | None = None,
        **options: Any,
    ) -> list[dict[str, Any]]: ...

    def effective_settings(self) -> SessionSettings: ...

    async def close(self) -> None: ...


class Connector(Protocol):
    async def connect(
        self, uri: MongoUri, *, timeout_ms: DurationMilliseconds | None = None
    ) -> NodeSession: ...


def _read_preference(mode: ReadPreferenceMode) -> Any:
    return make_read_preference(read_pref_mode_from_name(mode), None)


def _uri_settings(uri: MongoUri, kwargs: Mapping[str, Any]) -> SessionSettings:
    """Settings a client built from ``uri`` and ``kwargs`` connects with.

    Keyword arguments take precedence over URI options, as they do for
    ``AsyncMongoClient``. ``mongodb+srv`` URIs are resolved by the parser and
    default to tls.
    """
    parsed = parse_uri(uri)
    options = parsed["options"]
    overrides = {key.lower(): value for key, value in kwargs.items()}

    if "compressors" in overrides:
        compressors = validate_compressors("compressors", overrides["compressors"])
    else:
        compressors = options.get("compressors") or []

    tls = overrides.get("tls", overrides.get("ssl"))
    if tls is None:
        tls = options.get("tls", options.get("ssl", False))

    username = overrides.get("username", parsed["username"])
    if username is None:
        return SessionSettings(compressors=tuple(compressors), tls=bool(tls))
    return SessionSettings(
        username=username,
        password=overrides.get("password", parsed["password"]),
        auth_source=(
            overrides.get("authsource")
            or options.get("authsource")
            or parsed["database"]
        ),
        auth_mechanism=overrides.get("authmechanism") or options.get("authmechanism"),
        compressors=tuple(compressors),
        tls=bool(tls),
    )


class PyMongoSession:
    """NodeSession over an AsyncMongoClient."""

    def __init__(
        self,
        client: AsyncMongoClient[dict[str, Any]],
        uri: MongoUri,
        client_kwargs: Mapping[str, Any] | None = None,
    ) -> None:
        self._client = client
        self._uri = uri
        self._client_kwargs = dict(client_kwargs or {})

    @classmethod
    async def open(cls, uri: MongoUri, **client_kwargs: Any) -> PyMongoSession:
        client: AsyncMongoClient[dict[str, Any]] = AsyncMongoClient(
            uri, **client_kwargs
        )
        try:
            await client.aconnect()
        except Exception:
            await client.close()
            raise
        return cls(client, uri, client_kwargs)

    @property
    def client(self) -> AsyncMongoClient[dict[str, Any]]:
        return self._client

    async def hello(self) -> dict[str, Any]:
        # Select by the URI's readPreference rather than the driver default of primary.
        return await self._client.admin.command(
            "hello", read_preference=self._client.read_preference
        )

    async def admin_command(
        self,
        command: Mapping[str, Any],
        *,
        read_preference: ReadPreferenceMode | None = None,
    ) -> dict[str, Any]:
        if read_preference is None:
            return await self._client.admin.command(dict(command))
        return await self._client.admin.command(
            dict(command), read_preference=_read_preference(read_preference)
        )

    async def find(
        self, database: str, collection: str, query: Mapping[str, Any]
    ) -> list[dict[str, Any]]:
        cursor = self._client[database][collection].find(dict(query))
        return await cursor.to_list()

    async def aggregate(
        self,
        database: str,
        collection: str,
        pipeline: Sequence[Mapping[str, Any]],
        *,
        read_concern: str | None = None,
        **options: Any,
    ) -> list[dict[str, Any]]:
        coll = self._client[database][collection]
        if read_concern is not None:
            coll = coll.with_options(read_concern=ReadConcern(read_concern))
        cursor = await coll.aggregate([dict(stage) for stage in pipeline], **options)
        return await cursor.to_list()

    def effective_settings(self) -> SessionSettings:
        return _uri_settings(self._uri, self._client_kwargs)

    async def close(self) -> None:
        await self._client.close()


@dataclass(frozen=True, slots=True)
class PyMongoConnector:
    """Opens one AsyncMongoClient per URI and verifies it with ``hello``."""

    app_name: str = "mtopo"

    async def connect(
        self, uri: MongoUri, *, timeout_ms: DurationMilliseconds | None = None
    ) -> PyMongoSession:
        kwargs: dict[str, Any] = {"appname": self.app_name}
        if timeout_ms is not None:
            kwargs["serverSelectionTimeoutMS"] = timeout_ms
            kwargs["connectTimeoutMS"] = timeout_ms

        target = _target_of(uri)
        session: PyMongoSession | None = None
        try:
            session = await PyMongoSession.open(uri, **kwargs)
            await session.hello()
        except PyMongoError as e:
            logger.debug("Connection to {} failed: {}", redact_uri(uri), e)
            if session is not None:
                await session.close()
            raise NodeConnectionError(target, str(e)) from e
        return session


def _target_of(uri: MongoUri) -> str:
    netloc = urlsplit(uri).netloc
    return unquote(netloc.rpartition("@")[2])
