#!/usr/bin/env python3
"""
Main CLI entry point for mtopo.

- ``discover``: print the routers, shards and hosts reachable from a URI
- ``run``: execute a diagnostic command on every discovered node
"""

import asyncio
import sys
from typing import Any

import click
from bson import json_util
from loguru import logger
from rich.console import Console
from rich.markup import escape
from rich.table import Table

from mtopo.commands import COMMANDS, banner
from mtopo.config import MTopoSettings
from mtopo.core.model import FetchFailure, FetchOutcome
from mtopo.core.runner import TopologyReport, TopologyRunner, TopologySnapshot
from mtopo.core.session import PyMongoConnector, PyMongoSession

console = Console()


def setup_logging(level: str = "INFO", verbose: bool = False) -> None:
    """Setup logging configuration."""
    logger.remove()
    logger.add(
        sys.stderr,
        level="DEBUG" if verbose else level,
        format="<green>{time:YYYY-MM-DD HH:mm:ss}</green> | <level>{level: <8}</level> | <cyan>{name}</cyan>:<cyan>{function}</cyan>:<cyan>{line}</cyan> - <level>{message}</level>",
        colorize=True,
    )


async def _open_runner(settings: MTopoSettings) -> tuple[PyMongoSession, TopologyRunner]:
    config = settings.discovery_config()
    session = await PyMongoSession.open(
        settings.uri,
        appname=config.app_name,
        serverSelectionTimeoutMS=config.connect_timeout_ms,
    )
    runner = TopologyRunner(session, PyMongoConnector(app_name=config.app_name), config)
    return session, runner


def display_topology(snapshot: TopologySnapshot) -> None:
    table = Table(title=f"Topology: {snapshot.topology.value}")
    table.add_column("Category", style="cyan")
    table.add_column("Host")
    table.add_column("Role / Set", style="magenta")

    for node in snapshot.routers:
        table.add_row("mongos", node.host, "")
    for shard in snapshot.shards:
        table.add_row("shard", shard.host, shard.name)
    for node in snapshot.config_hosts:
        table.add_row("config", node.host, node.name or "")
    for node in snapshot.hosts:
        table.add_row("host", node.host, node.role or node.name or "")
    console.print(table)

    for error in snapshot.errors:
        console.print(
            f"[yellow]discovery of {error.source} failed:[/yellow] {escape(error.message)}"
        )


def display_results(title: str, outcomes: list[FetchOutcome[Any]]) -> None:
    if not outcomes:
        return
    table = Table(title=title)
    table.add_column("Target", style="cyan")
    table.add_column("Process")
    table.add_column("Result")
    for outcome in outcomes:
        if isinstance(outcome, FetchFailure):
            table.add_row(
                outcome.host,
                "",
                f"[red]{outcome.stage.value} failed: {escape(outcome.error)}[/red]",
            )
        else:
            table.add_row(
                outcome.host, outcome.process, escape(json_util.dumps(outcome.results))
            )
    console.print(table)


def _outcome_dict(outcome: FetchOutcome[Any]) -> dict[str, Any]:
    if isinstance(outcome, FetchFailure):
        return {
            "host": outcome.host,
            "failed": outcome.stage.value,
            "error": outcome.error,
        }
    return {"host": outcome.host, "process": outcome.process, "results": outcome.results}


def report_dict(report: TopologyReport) -> dict[str, Any]:
    snapshot = report.snapshot
    return {
        "topology": snapshot.topology.value,
        "routers": [node.host for node in snapshot.routers],
        "shards": [{"name": s.name, "host": s.host} for s in snapshot.shards],
        "hosts": [
            {"host": n.host, "role": n.role, "name": n.name} for n in snapshot.hosts
        ],
        "discovery_errors": [
            {"source": e.source, "message": e.message} for e in snapshot.errors
        ],
        "router_results": [_outcome_dict(o) for o in report.router_results],
        "shard_results": [_outcome_dict(o) for o in report.shard_results],
        "host_results": [_outcome_dict(o) for o in report.host_results],
        "summary": report.unreachable_summary(),
    }


@click.group()
@click.option("--verbose", "-v", is_flag=True, help="Enable verbose logging")
@click.pass_context
def cli(ctx: click.Context, verbose: bool) -> None:
    """
    mtopo - MongoDB topology discovery with directed command execution.

    Settings are read from MTOPO_* environment variables or a .env file;
    command line values take precedence.
    """
    settings = MTopoSettings()
    setup_logging(settings.log_level, verbose)
    ctx.ensure_object(dict)
    ctx.obj["settings"] = settings


def _settings(ctx: click.Context, uri: str | None) -> MTopoSettings:
    settings: MTopoSettings = ctx.obj["settings"]
    if uri:
        settings = settings.model_copy(update={"uri": uri})
    return settings


@cli.command()
@click.argument("uri", required=False)
@click.pass_context
def discover(ctx: click.Context, uri: str | None) -> None:
    """Discover the members of the deployment behind URI."""
    settings = _settings(ctx, uri)

    async def _discover() -> None:
        session, runner = await _open_runner(settings)
        try:
            snapshot = await runner.discover()
        finally:
            await session.close()
        display_topology(snapshot)

    asyncio.run(_discover())


@cli.command()
@click.argument("uri", required=False)
@click.option(
    "--command",
    "-c",
    "command_name",
    type=click.Choice([*COMMANDS, "banner"]),
    default="list-databases",
    help="Command executed on every node",
)
@click.option(
    "--output",
    "-o",
    type=click.Choice(["table", "json"]),
    default="table",
    help="Output format",
)
@click.pass_context
def run(ctx: click.Context, uri: str | None, command_name: str, output: str) -> None:
    """Run a command against every router, shard and host behind URI."""
    settings = _settings(ctx, uri)

    async def _run() -> TopologyReport:
        session, runner = await _open_runner(settings)
        try:
            if command_name == "banner":
                return await runner.run(
                    banner("I am a host"),
                    router_command=banner("I am a mongos"),
                    shard_command=banner("I am a shard primary"),
                )
            return await runner.run(COMMANDS[command_name])
        finally:
            await session.close()

    report = asyncio.run(_run())

    if output == "json":
        console.print_json(json_util.dumps(report_dict(report)))
        return

    display_topology(report.snapshot)
    display_results("mongos results", report.router_results)
    display_results("shard results", report.shard_results)
    display_results("host results", report.host_results)
    style = "red" if report.failures() else "green"
    console.print(f"[{style}]{report.unreachable_summary()}[/{style}]")


def main() -> None:
    cli()


if __name__ == "__main__":
    main()
