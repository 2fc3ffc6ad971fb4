"""
flygate CLI.

Run `flygate serve` to expose the guarded operation set to an MCP client
over stdio. The other commands are for humans: list the operations, call
one directly, scan a fly.toml, or audit a live app.
"""

import json
import logging
import sys
from pathlib import Path
from typing import Optional

import click
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from flygate import __version__
from flygate.commands.builder import CommandExecutor
from flygate.commands.policy import Mode
from flygate.errors import FlyGateError
from flygate.guard.audit import AuditResult, DeployAuditor
from flygate.guard.checks import assert_not_protected
from flygate.guard.preflight import find_descriptor, load_descriptor, scan
from flygate.platform.process import ProcessRunner
from flygate.tools.dispatcher import ToolDispatcher
from flygate.validation.config import Config

console = Console()
err_console = Console(stderr=True)

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"


def setup_logging(level: str) -> None:
    """Log to stderr; stdout belongs to the JSON-RPC channel."""
    logging.basicConfig(level=level.upper(), format=LOG_FORMAT, stream=sys.stderr)


def _fail(message: str) -> None:
    err_console.print(f"[red]Error: {message}[/red]")
    sys.exit(1)


def _dispatcher(ctx: click.Context) -> ToolDispatcher:
    try:
        return ToolDispatcher.create(ctx.obj["mode"], ctx.obj["config"])
    except FlyGateError as exc:
        _fail(exc.message)


def _print_audit(audit: AuditResult) -> None:
    console.print(f"Public IPs released: [bold]{audit.public_ips_released}[/bold]")
    for allocation in audit.flycast_allocations:
        console.print(f"  [green]✓[/green] Flycast {allocation.address} ({allocation.network})")
    for address in audit.unreleased:
        console.print(f"  [red]✗[/red] Could not release {address}")
    for warning in audit.warnings:
        console.print(f"  [yellow]![/yellow] {warning}")


@click.group(invoke_without_command=True)
@click.option("--unsafe", is_flag=True, help="Expose the unrestricted operation set (public IPs, certs)")
@click.option("--log-level", default=None, help="DEBUG, INFO, WARNING or ERROR (default from config)")
@click.option("--version", "-v", is_flag=True, help="Show version")
@click.pass_context
def cli(ctx: click.Context, unsafe: bool, log_level: Optional[str], version: bool) -> None:
    """
    flygate - guarded Fly.io operations for agents.

    Safe mode is the default: deploys are forced onto Flycast with no public
    IPs and audited afterwards.

    \b
    Examples:
        flygate serve                  # MCP server on stdio
        flygate tools                  # List operations
        flygate call fly_app_list      # Run one operation
        flygate scan ./fly.toml        # Pre-flight a descriptor
    """
    if version:
        console.print(f"flygate v{__version__}")
        ctx.exit()

    try:
        config = Config.load()
        level = log_level or config.merged.logging.level
    except FlyGateError as exc:
        _fail(exc.message)
    setup_logging(level)

    ctx.obj = {"mode": Mode.UNSAFE if unsafe else Mode.SAFE, "config": config}
    if ctx.invoked_subcommand is None:
        console.print(ctx.get_help())


@cli.command()
@click.pass_context
def serve(ctx: click.Context) -> None:
    """Serve the operation set over stdio (MCP)."""
    from flygate.server.stdio import StdioServer

    StdioServer(_dispatcher(ctx)).serve()


@cli.command()
@click.option("--info", "info", default=None, metavar="NAME", help="Show the full schema for one operation")
@click.pass_context
def tools(ctx: click.Context, info: Optional[str]) -> None:
    """List the operations available in the current mode."""
    registry = _dispatcher(ctx).registry
    if info:
        if registry.get_tool(info) is None:
            _fail(f"Tool not found: {info}")
        console.print(registry.build_full_schema(info), markup=False)
        return

    table = Table(title=f"Operations ({registry.mode.value} mode)", border_style="blue")
    table.add_column("Name", style="bold cyan", no_wrap=True)
    table.add_column("Effect", width=12)
    table.add_column("Description", style="white")
    styles = {"read_only": "green", "mutating": "yellow", "destructive": "red"}
    for tool in registry.list_tools():
        effect = tool.side_effect.value
        table.add_row(tool.name, f"[{styles[effect]}]{effect}[/{styles[effect]}]", tool.description.split("\n")[0])
    console.print(table)


@cli.command()
@click.argument("name")
@click.option("--args", "raw_args", default="{}", help="Arguments as a JSON object")
@click.pass_context
def call(ctx: click.Context, name: str, raw_args: str) -> None:
    """Run one operation and print its result."""
    try:
        arguments = json.loads(raw_args)
    except json.JSONDecodeError as exc:
        raise click.BadParameter(f"not valid JSON: {exc}", param_hint="--args")
    if not isinstance(arguments, dict):
        raise click.BadParameter("must be a JSON object", param_hint="--args")

    result = _dispatcher(ctx).execute(name, arguments)
    if result.success:
        console.print(f"[green]✓[/green] {result.summary} [dim]({result.duration_ms}ms)[/dim]")
        console.print_json(data=result.data)
        return

    error = result.error
    console.print(Panel(error.message, title=error.kind, border_style="red"))
    if error.details:
        console.print_json(data=error.details, default=str)
    sys.exit(1)


@cli.command("scan")
@click.argument("path", required=False, type=click.Path(dir_okay=False, path_type=Path))
def scan_cmd(path: Optional[Path]) -> None:
    """Pre-flight scan of a fly.toml (default: ./fly.toml)."""
    try:
        descriptor = find_descriptor(str(path) if path else None)
        if descriptor is None:
            _fail("No fly.toml in the current directory.")
        result = scan(load_descriptor(descriptor))
    except FlyGateError as exc:
        _fail(exc.message)

    for error in result.errors:
        console.print(f"  [red]✗[/red] {error}")
    for warning in result.warnings:
        console.print(f"  [yellow]![/yellow] {warning}")
    if not result.ok:
        console.print(f"[red]{descriptor}: rejected[/red]")
        sys.exit(1)
    console.print(f"[green]{descriptor}: ok[/green]")


@cli.command()
@click.argument("app")
@click.pass_context
def audit(ctx: click.Context, app: str) -> None:
    """Audit a deployed app: release public IPs, inspect merged config."""
    if ctx.obj["mode"] is not Mode.SAFE:
        _fail("audit releases public IPs and only runs in safe mode.")
    settings = ctx.obj["config"].merged
    executor = CommandExecutor(Mode.SAFE, ProcessRunner(settings.fly.binary))
    try:
        assert_not_protected(app)
        result = DeployAuditor(executor).audit(app)
    except FlyGateError as exc:
        _fail(exc.message)

    _print_audit(result)
    if result.exposed:
        console.print(f"[red]{app} had public exposure; remediation applied.[/red]")
        sys.exit(1)


def main() -> None:
    """Entry point."""
    cli()


if __name__ == "__main__":
    main()
