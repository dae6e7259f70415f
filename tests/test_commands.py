import pytest

from mtopo.commands import COMMANDS, banner, list_databases, ping, server_status
from mtopo.core.model import CommandOptions
from tests.conftest import FakeSession, replica_set_node


@pytest.mark.asyncio
async def test_list_databases_honours_read_preference() -> None:
    session = FakeSession(
        replica_set_node("rs1:27017", databases=[{"name": "admin", "sizeOnDisk": 1}])
    )
    result = await list_databases(session, CommandOptions("secondaryPreferred"))
    assert result == [{"name": "admin", "sizeOnDisk": 1}]
    assert session.calls == [("listDatabases", "secondaryPreferred")]


@pytest.mark.asyncio
async def test_ping() -> None:
    session = FakeSession(replica_set_node("rs1:27017"))
    assert await ping(session, CommandOptions("primaryPreferred")) is True


@pytest.mark.asyncio
async def test_server_status_summary() -> None:
    node = replica_set_node("rs1:27017")
    node.commands["serverStatus"] = {
        "host": "rs1",
        "version": "8.0.4",
        "process": "mongod",
        "uptime": 42.0,
        "connections": {"current": 7, "available": 100},
        "ok": 1,
    }
    result = await server_status(FakeSession(node), CommandOptions("nearest"))
    assert result == {
        "host": "rs1",
        "version": "8.0.4",
        "process": "mongod",
        "uptime": 42.0,
        "connections": 7,
    }


def test_banner_does_not_touch_the_session() -> None:
    session = FakeSession(replica_set_node("rs1:27017"))
    assert banner("I am a mongos")(session, CommandOptions("primary")) == "I am a mongos"
    assert session.calls == []


def test_registered_commands() -> None:
    assert set(COMMANDS) == {"list-databases", "hello", "ping", "server-status"}
