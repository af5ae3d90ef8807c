"""CLI output formatting helpers."""

from typing import Any

import click
import yaml

from .models import ServerInstance


def print_config_yaml(data: dict[str, Any]) -> None:
    """Print config as YAML.

    Args:
        data: Configuration data
    """
    click.echo(yaml.safe_dump(data, default_flow_style=False, sort_keys=False), nl=False)


def print_servers(servers: list[ServerInstance]) -> None:
    """Print servers as aligned columns.

    Args:
        servers: Servers from the API
    """
    click.echo("Servers:")
    click.echo()
    rows = [
        (s.name, s.status, s.public_ip or "-", f"id:{s.id}")
        for s in servers
    ]
    if rows:
        widths = [max(len(row[i]) for row in rows) for i in range(3)]
        for row in rows:
            cells = [row[i].ljust(widths[i]) for i in range(3)]
            click.echo("  " + "  ".join([*cells, row[3]]))
    click.echo()


def print_server_status(server: ServerInstance) -> None:
    """Print the details of one server."""
    click.echo(f"Name: {server.name}")
    click.echo(f"Status: {server.status}")
    click.echo(f"IP: {server.public_ip or '-'}")
    click.echo(f"Type: {server.server_type or '-'}")
    click.echo(f"Image: {server.image or '-'}")
    click.echo(f"Created: {server.created or '-'}")
