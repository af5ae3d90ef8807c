"""Manage command - one-shot operations on existing servers.

Every subcommand takes a server name or numeric id. Names are resolved with
a lookup by name; the first match wins.
"""

import asyncio
from collections.abc import Awaitable, Callable
from pathlib import Path
from typing import Any, TypeVar

import click

from ..client import HetznerClient
from ..decorators import AliasedGroup, handle_errors
from ..fleet import FleetManager
from ..formatters import print_server_status, print_servers
from ..remote import RemoteShell
from .common import load_cli_config

T = TypeVar("T")

ALIASES = {
    "rm": "delete",
    "kill": "delete",
    "info": "status",
    "upload": "sync",
    "push": "sync",
    "pull": "download",
}


def _run(ctx: click.Context, action: Callable[[FleetManager], Awaitable[T]]) -> T:
    """Run ``action`` with a FleetManager bound to a fresh API client."""
    config = load_cli_config(ctx)

    async def _inner() -> T:
        async with HetznerClient(config.token) as client:
            return await action(FleetManager(client, RemoteShell(config.user)))

    return asyncio.run(_inner())


@click.group(cls=AliasedGroup, aliases=ALIASES)
@click.pass_context
def manage(ctx: click.Context) -> None:
    """Manage Hetzner Cloud servers.

    Examples:

        hcprov manage list
        hcprov manage stop demo-devlab
        hcprov manage delete 118007214
        hcprov manage sync demo-devlab ./my-app      # Upload to ~/my-app
        hcprov manage download demo-devlab ~/app ./backup
    """
    ctx.ensure_object(dict)


@manage.command("list")
@click.pass_context
@handle_errors
def list_servers(ctx: click.Context) -> None:
    """List all servers."""
    servers = _run(ctx, lambda fleet: fleet.list_servers())
    print_servers(servers)


@manage.command()
@click.argument("server")
@click.pass_context
@handle_errors
def stop(ctx: click.Context, server: str) -> None:
    """Stop (power off) a server."""
    server_id, status = _run(ctx, lambda fleet: fleet.power(server, on=False))
    click.echo(f"Stopping server {server_id}...")
    click.echo(f"Status: {status}")


@manage.command()
@click.argument("server")
@click.pass_context
@handle_errors
def start(ctx: click.Context, server: str) -> None:
    """Start (power on) a server."""
    server_id, status = _run(ctx, lambda fleet: fleet.power(server, on=True))
    click.echo(f"Starting server {server_id}...")
    click.echo(f"Status: {status}")


@manage.command()
@click.argument("server")
@click.pass_context
@handle_errors
def delete(ctx: click.Context, server: str) -> None:
    """Delete a server permanently."""

    async def _delete(fleet: FleetManager) -> Any:
        instance = await fleet.get(server)
        click.echo(
            f"WARNING: This will permanently delete server '{instance.name}' (ID: {instance.id})"
        )
        confirm = click.prompt("Type 'yes' to confirm", default="", show_default=False)
        if confirm != "yes":
            return None
        click.echo(f"Deleting server {instance.id}...")
        return await fleet.delete(instance)

    status = _run(ctx, _delete)
    if status is None:
        click.echo("Aborted.")
        ctx.exit(1)
    click.echo(f"Status: {status}")


@manage.command()
@click.argument("server")
@click.pass_context
@handle_errors
def ssh(ctx: click.Context, server: str) -> None:
    """SSH into a server."""
    config = load_cli_config(ctx)
    ip = _run(ctx, lambda fleet: fleet.ip(server))
    shell = RemoteShell(config.user)
    click.echo(f"Connecting to {shell.target(ip)}...")
    shell.interactive(ip)


@manage.command()
@click.argument("server")
@click.pass_context
@handle_errors
def ip(ctx: click.Context, server: str) -> None:
    """Get server IP address."""
    click.echo(_run(ctx, lambda fleet: fleet.ip(server)))


@manage.command()
@click.argument("server")
@click.pass_context
@handle_errors
def status(ctx: click.Context, server: str) -> None:
    """Get server status."""
    print_server_status(_run(ctx, lambda fleet: fleet.get(server)))


@manage.command()
@click.argument("server")
@click.argument("local_dir", type=click.Path(path_type=Path))
@click.pass_context
@handle_errors
def sync(ctx: click.Context, server: str, local_dir: Path) -> None:
    """Upload/sync LOCAL_DIR to ~/<name> on the server."""
    click.echo(f"Syncing '{local_dir}' to {server}:~/{local_dir.resolve().name}...")
    _run(ctx, lambda fleet: fleet.sync(server, local_dir))
    click.echo("Done.")


@manage.command()
@click.argument("server")
@click.argument("remote_path")
@click.argument("local_path", type=click.Path(path_type=Path))
@click.pass_context
@handle_errors
def download(ctx: click.Context, server: str, remote_path: str, local_path: Path) -> None:
    """Download REMOTE_PATH from the server to LOCAL_PATH."""
    click.echo(f"Downloading {server}:{remote_path} to {local_path}...")
    _run(ctx, lambda fleet: fleet.download(server, remote_path, local_path))
    click.echo("Done.")


@manage.command("exec")
@click.argument("server")
@click.argument("script", type=click.Path(path_type=Path))
@click.pass_context
@handle_errors
def exec_script(ctx: click.Context, server: str, script: Path) -> None:
    """Upload SCRIPT and run it with sudo on the server."""
    ip = _run(ctx, lambda fleet: fleet.execute(server, script))
    click.echo(f"Ran {script.name} on {ip}.")
