"""Helpers shared by the CLI commands."""

import click

from ..config import ProvisionConfig, load_config, load_environment, require_token
from ..orchestrator import ProvisionStage

STAGE_LABELS = {
    ProvisionStage.KEY_RESOLVED: "SSH key",
    ProvisionStage.CONFIG_BUILT: "Boot config",
    ProvisionStage.SERVER_CREATE_REQUESTED: "Server requested",
    ProvisionStage.ACTION_POLLING: "Waiting for",
    ProvisionStage.SERVER_READY: "Server running",
    ProvisionStage.SSH_REACHABLE: "SSH reachable",
    ProvisionStage.DNS_REGISTERED: "DNS record",
    ProvisionStage.FILES_COPIED: "Files copied",
    ProvisionStage.STARTUP_RAN: "Startup script",
}


def load_cli_config(ctx: click.Context) -> ProvisionConfig:
    """Build the run configuration and check the API token.

    Raises:
        InvalidInputError: If HC_KEY is unset or a value is malformed
    """
    environ = load_environment(ctx.obj.get("env_file"))
    config = load_config(environ)
    require_token(config)
    return config


def echo_stage(stage: ProvisionStage, message: str) -> None:
    """Progress callback for the orchestrator."""
    if stage is ProvisionStage.DONE:
        return
    marker = "…" if stage is ProvisionStage.ACTION_POLLING else "✓"
    click.echo(f"  {marker} {STAGE_LABELS[stage]}: {message}")
