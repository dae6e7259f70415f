"""
Ready-made node commands.

Any ``(session, options) -> result`` callable (sync or async) can be handed to
the fan-out executor; these cover the common diagnostic cases.
"""

from __future__ import annotations

from collections.abc import Callable
from typing import Any

from mtopo.core.model import CommandOptions
from mtopo.core.session import NodeSession


async def list_databases(
    session: NodeSession, options: CommandOptions
) -> list[dict[str, Any]]:
    response = await session.admin_command(
        {"listDatabases": 1, "nameOnly": False},
        read_preference=options.read_preference,
    )
    return list(response.get("databases", []))


async def hello(session: NodeSession, options: CommandOptions) -> dict[str, Any]:
    return await session.hello()


async def ping(session: NodeSession, options: CommandOptions) -> bool:
    response = await session.admin_command(
        {"ping": 1}, read_preference=options.read_preference
    )
    return bool(response.get("ok"))


async def server_status(
    session: NodeSession, options: CommandOptions
) -> dict[str, Any]:
    response = await session.admin_command(
        {"serverStatus": 1}, read_preference=options.read_preference
    )
    return {
        "host": response.get("host"),
        "version": response.get("version"),
        "process": response.get("process"),
        "uptime": response.get("uptime"),
        "connections": response.get("connections", {}).get("current"),
    }


def banner(text: str) -> Callable[[NodeSession, CommandOptions], str]:
    """A command that touches nothing and returns ``text``; handy for dry runs."""

    def _banner(session: NodeSession, options: CommandOptions) -> str:
        return text

    return _banner


COMMANDS: dict[str, Callable[[NodeSession, CommandOptions], Any]] = {
    "list-databases": list_databases,
    "hello": hello,
    "ping": ping,
    "server-status": server_status,
}
