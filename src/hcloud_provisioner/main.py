"""CLI main entry point."""

import asyncio
from pathlib import Path

import click

from .client import HetznerClient
from .commands import deploy, manage
from .commands.common import echo_stage, load_cli_config
from .config import DEFAULT_ENV_FILE, DNS_ENV_VARS, ENV_VARS, load_config, load_environment
from .decorators import handle_errors
from .formatters import print_config_yaml
from .models import ProvisionResult
from .orchestrator import ProvisioningOrchestrator
from .shared.logging import configure_logging, verbosity_to_level

__version__ = "0.1.0"  # Defined here to avoid circular import


@click.group()
@click.option(
    "--env-file",
    type=click.Path(path_type=Path),
    default=DEFAULT_ENV_FILE,
    show_default=True,
    help="dotenv file with HC_* settings",
)
@click.option("-v", "--verbose", count=True, help="Increase verbosity")
@click.option("--log-json", is_flag=True, help="Emit logs as JSON")
@click.option(
    "--log-file",
    type=click.Path(dir_okay=False, path_type=Path),
    default=None,
    help="Append logs to this file instead of stderr",
)
@click.pass_context
def cli(
    ctx: click.Context,
    env_file: Path,
    verbose: int,
    log_json: bool,
    log_file: Path | None,
) -> None:
    """Provision hardened Hetzner Cloud servers."""
    ctx.ensure_object(dict)
    ctx.obj["env_file"] = env_file
    ctx.obj["verbose"] = verbose
    configure_logging(verbosity_to_level(verbose), log_file=log_file, json_output=log_json)


@cli.command()
@click.pass_context
@handle_errors
def provision(ctx: click.Context) -> None:
    """Create a server from the HC_* settings.

    Registers the SSH key if needed, creates the server with a hardening
    cloud-init, waits until SSH answers, then optionally registers a DNS
    record, copies HC_COPY_SRC and runs HC_STARTUP_SCRIPT.
    """
    config = load_cli_config(ctx)
    click.echo(f"Provisioning '{config.server_name}' ({config.server_type}, {config.location})")

    async def _provision() -> ProvisionResult:
        async with HetznerClient(config.token) as client:
            orchestrator = ProvisioningOrchestrator(config, client, on_stage=echo_stage)
            return await orchestrator.run()

    result = asyncio.run(_provision())

    for warning in result.warnings:
        click.echo(f"  ⚠ {warning}", err=True)
    click.echo(f"Server ready: {result.server.name} ({result.ip})")


@cli.command("config")
@click.pass_context
@handle_errors
def config_show(ctx: click.Context) -> None:
    """Show the effective configuration and where each value came from."""
    config = load_config(load_environment(ctx.obj.get("env_file")))
    data = {}
    for key, env_name in ENV_VARS.items():
        attr = "ssh_public_key_path" if key == "ssh_public_key" else key
        value = getattr(config, attr)
        if key == "token":
            value = "***" if value else ""
        elif isinstance(value, Path):
            value = str(value)
        elif isinstance(value, tuple):
            value = ",".join(str(v) for v in value)
        data[env_name] = {"value": value, "source": config.get_source(key)}
    for key, env_name in DNS_ENV_VARS.items():
        value = getattr(config.dns, key)
        if key == "auth_password":
            value = "***" if value else ""
        data[env_name] = {"value": value, "source": config.dns.get_source(key)}
    print_config_yaml(data)


@cli.command()
def version() -> None:
    """Show version information."""
    click.echo(f"hcprov version {__version__}")


cli.add_command(deploy)
cli.add_command(manage)


def main() -> None:
    """Main entry point."""
    cli(obj={})


if __name__ == "__main__":
    main()
