"""Deploy command - ship a directory to a new Docker-ready server.

Creates or reuses a cloud firewall for the deploy ports, generates a
startup script that installs Docker CE and starts a compose manifest when
one is present, then runs the normal provisioning flow.
"""

import asyncio
from pathlib import Path

import click

from ..client import HetznerClient
from ..decorators import handle_errors
from ..deploy import DeploymentComposer, DeploymentPlan
from ..errors import InvalidInputError
from ..models import ProvisionResult
from ..orchestrator import ProvisioningOrchestrator
from ..resolver import ResourceResolver
from .common import echo_stage, load_cli_config


@click.command()
@click.argument("directory", type=click.Path(path_type=Path))
@click.argument("server_name", required=False)
@click.pass_context
@handle_errors
def deploy(ctx: click.Context, directory: Path, server_name: str | None) -> None:
    """Deploy DIRECTORY to a new server with Docker CE.

    If a docker-compose file is found, runs 'docker compose up -d'
    automatically. SERVER_NAME defaults to deploy-YYYYMMDD-HHMMSS.

    Examples:

        # Deploy ./my-app with a generated name
        hcprov deploy ./my-app

        # Deploy with an explicit server name
        hcprov deploy ./my-app demo-devlab
    """
    if not directory.is_dir():
        raise InvalidInputError(f"Directory not found: {directory}")

    config = load_cli_config(ctx)
    if config.dns.is_partial:
        raise InvalidInputError(
            "DNS settings are incomplete, missing: " + ", ".join(config.dns.missing())
        )

    plan = DeploymentComposer(config).compose(directory, server_name)
    if plan.manifest:
        click.echo(f"Detected: {plan.manifest}")
    else:
        click.echo("No docker-compose file found - deploying files only")

    result = asyncio.run(_run_deploy(config, plan))

    for warning in result.warnings:
        click.echo(f"  ⚠ {warning}", err=True)
    click.echo(f"\nServer ready: {result.server.name} ({result.ip})")


async def _run_deploy(config, plan: DeploymentPlan) -> ProvisionResult:
    """Resolve the firewall, then provision with the derived inputs."""
    async with HetznerClient(config.token) as client:
        click.echo(f"Setting up Hetzner Cloud Firewall: {plan.firewall_name}")
        firewall = await ResourceResolver(client).resolve_firewall(plan.firewall_name, plan.ports)
        click.echo(f"  Firewall ID: {firewall.id}")

        startup = plan.write_script()
        try:
            deploy_config = plan.provision_config(config, firewall.id, startup)

            click.echo(f"\nDeploying '{plan.directory.name}' to server '{plan.server_name}'...")
            click.echo(f"  Image: {deploy_config.image}")
            click.echo(f"  Firewall: {plan.firewall_name} (ports: {plan.ports})\n")

            orchestrator = ProvisioningOrchestrator(
                deploy_config,
                client,
                require_complete_dns=True,
                on_stage=echo_stage,
            )
            return await orchestrator.run()
        finally:
            startup.path.unlink(missing_ok=True)
