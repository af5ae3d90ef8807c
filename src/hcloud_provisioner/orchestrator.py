"""Provisioning orchestrator.

Drives one provisioning run through a strictly sequential set of stages:

    START -> KEY_RESOLVED -> CONFIG_BUILT -> SERVER_CREATE_REQUESTED
          -> ACTION_POLLING -> SERVER_READY -> SSH_REACHABLE
          -> [DNS_REGISTERED] -> [FILES_COPIED] -> [STARTUP_RAN] -> DONE

Any fatal error aborts the run. Nothing created earlier is rolled back: the
SSH key and firewalls are meant to outlive the run, and a half-provisioned
server is left in place for inspection.
"""

from __future__ import annotations

import asyncio
from collections.abc import Callable
from enum import Enum
from typing import Any

from .client import HetznerClient
from .cloud_init import build_boot_config, read_public_key
from .config import ProvisionConfig
from .dns import DnsRegistrar
from .errors import (
    ApiError,
    DnsRegistrationError,
    InvalidInputError,
    ProvisioningFailedError,
    ResourceCreationFailedError,
    WaitTimeoutError,
)
from .models import Action, ActionStatus, ProvisionResult, ServerInstance, SshKeyRef
from .polling import Poller, PollOutcome, PollStep
from .remote import RemoteShell
from .resolver import ResourceResolver
from .shared.logging import get_logger

ACTION_POLL_INTERVAL = 3.0
SSH_PROBE_INTERVAL = 5.0
SSH_CONNECT_TIMEOUT = 5

logger = get_logger(__name__)


class ProvisionStage(Enum):
    """Stages of a provisioning run, in order."""

    START = "start"
    KEY_RESOLVED = "key_resolved"
    CONFIG_BUILT = "config_built"
    SERVER_CREATE_REQUESTED = "server_create_requested"
    ACTION_POLLING = "action_polling"
    SERVER_READY = "server_ready"
    SSH_REACHABLE = "ssh_reachable"
    DNS_REGISTERED = "dns_registered"
    FILES_COPIED = "files_copied"
    STARTUP_RAN = "startup_ran"
    DONE = "done"


def build_server_payload(
    config: ProvisionConfig,
    ssh_key: SshKeyRef,
    user_data: str,
) -> dict[str, Any]:
    """Request body for server creation."""
    payload: dict[str, Any] = {
        "name": config.server_name,
        "server_type": config.server_type,
        "image": config.image,
        "location": config.location,
        "ssh_keys": [ssh_key.id],
        "user_data": user_data,
    }
    if config.firewall_ids:
        payload["firewalls"] = [{"firewall": fw_id} for fw_id in config.firewall_ids]
    return payload


class ProvisioningOrchestrator:
    """Turn a ProvisionConfig into a running, reachable, hardened server."""

    def __init__(
        self,
        config: ProvisionConfig,
        client: HetznerClient,
        shell: RemoteShell | None = None,
        dns: DnsRegistrar | None = None,
        action_poller: Poller | None = None,
        ssh_poller: Poller | None = None,
        require_complete_dns: bool = False,
        on_stage: Callable[[ProvisionStage, str], None] | None = None,
    ):
        """Initialize orchestrator.

        Args:
            config: Inputs of this run
            client: Entered HetznerClient
            shell: Remote shell for the reachability probe and transfers
            dns: Registrar for the optional CNAME record
            action_poller: Poller for the server creation action
            ssh_poller: Poller for SSH reachability (separate budget)
            require_complete_dns: Treat partially set DNS variables as an error
            on_stage: Optional callback called with (stage, message)
                      for progress reporting
        """
        self.config = config
        self.client = client
        self.resolver = ResourceResolver(client)
        self.shell = shell or RemoteShell(config.user, connect_timeout=SSH_CONNECT_TIMEOUT)
        self.dns = dns
        self.action_poller = action_poller or Poller(ACTION_POLL_INTERVAL, config.wait_timeout)
        self.ssh_poller = ssh_poller or Poller(SSH_PROBE_INTERVAL, config.wait_timeout)
        self.require_complete_dns = require_complete_dns
        self.on_stage = on_stage
        self.stage = ProvisionStage.START

    def _advance(self, stage: ProvisionStage, message: str = "") -> None:
        self.stage = stage
        logger.info("provision_stage", stage=stage.value, detail=message)
        if self.on_stage:
            self.on_stage(stage, message)

    def _validate_inputs(self) -> str:
        """Check local inputs before anything is created remotely.

        Returns:
            The SSH public key
        """
        public_key = read_public_key(self.config.ssh_public_key_path)
        if self.config.copy_source is not None and not self.config.copy_source.exists():
            raise InvalidInputError(f"Copy source not found: {self.config.copy_source}")
        if self.require_complete_dns and self.config.dns.is_partial:
            raise InvalidInputError(
                "DNS settings are incomplete, missing: " + ", ".join(self.config.dns.missing())
            )
        return public_key

    async def run(self) -> ProvisionResult:
        """Execute the full provisioning flow.

        Returns:
            ProvisionResult describing the ready server

        Raises:
            ProvisionError: Any subclass, on the first fatal stage
        """
        public_key = self._validate_inputs()

        ssh_key = await self.resolver.resolve_ssh_key(self.config.ssh_key_name, public_key)
        self._advance(ProvisionStage.KEY_RESOLVED, f"SSH key '{ssh_key.name}' (id {ssh_key.id})")

        boot_config = build_boot_config(
            public_key,
            self.config.user,
            self.config.allowed_ports,
            self.config.extra_packages,
        )
        self._advance(
            ProvisionStage.CONFIG_BUILT,
            f"cloud-init for user '{self.config.user}', ports {','.join(boot_config.ports)}",
        )

        server_id, action_id = await self._create_server(ssh_key, boot_config.render())
        self._advance(
            ProvisionStage.SERVER_CREATE_REQUESTED,
            f"server '{self.config.server_name}' (id {server_id})",
        )

        await self._wait_for_action(action_id, server_id)

        data = await self.client.get_server(server_id)
        if data.get("id") is None:
            raise ProvisioningFailedError(
                f"Server {server_id} is missing from the API response",
                details={"server_id": server_id},
            )
        server = ServerInstance.from_api(data)
        if not server.public_ip:
            raise ProvisioningFailedError(
                f"Server {server_id} has no public IPv4 address",
                details={"server_id": server_id},
            )
        self._advance(ProvisionStage.SERVER_READY, f"IP {server.public_ip}")

        await self._wait_for_ssh(server.public_ip)
        self._advance(ProvisionStage.SSH_REACHABLE, f"{self.shell.target(server.public_ip)}")

        result = ProvisionResult(
            server=server,
            ssh_key=ssh_key,
            firewall_ids=list(self.config.firewall_ids),
        )

        result.dns_registered = await self._register_dns(result)

        if self.config.copy_source is not None:
            tool = await asyncio.to_thread(
                self.shell.copy_to_home, self.config.copy_source, server.public_ip
            )
            result.files_copied = True
            self._advance(
                ProvisionStage.FILES_COPIED, f"{self.config.copy_source} via {tool}"
            )

        script = self.config.startup_script
        if script is not None and script.is_file():
            await asyncio.to_thread(self.shell.run_script, script, server.public_ip)
            result.startup_ran = True
            self._advance(ProvisionStage.STARTUP_RAN, str(script))
        elif script is not None and self.config.get_source("startup_script") != "default":
            logger.warning("startup_script_missing", path=str(script))

        self._advance(ProvisionStage.DONE, f"{server.name} ({server.public_ip})")
        return result

    async def _create_server(self, ssh_key: SshKeyRef, user_data: str) -> tuple[int, int]:
        payload = build_server_payload(self.config, ssh_key, user_data)
        response = await self.client.create_server(payload)
        server_id = (response.get("server") or {}).get("id")
        action_id = (response.get("action") or {}).get("id")
        if server_id is None or action_id is None:
            raise ResourceCreationFailedError(
                f"Server creation returned no server or action id: {response}",
                details={"response": response},
            )
        return int(server_id), int(action_id)

    async def _wait_for_action(self, action_id: int, server_id: int) -> None:
        async def check() -> PollStep:
            try:
                action = Action.from_api(await self.client.get_action(action_id))
            except ApiError as e:
                return PollStep(PollOutcome.PENDING, error=e.message)
            except (KeyError, ValueError) as e:
                return PollStep(PollOutcome.PENDING, error=f"malformed action: {e}")
            if action.status is ActionStatus.SUCCESS:
                return PollStep(PollOutcome.COMPLETED, value=action)
            if action.status is ActionStatus.ERROR:
                return PollStep(PollOutcome.FAILED, value=action, error=action.error)
            return PollStep(PollOutcome.PENDING, value=action)

        def on_attempt(attempt: int, step: PollStep) -> None:
            logger.debug(
                "action_polled",
                action_id=action_id,
                attempt=attempt,
                outcome=step.outcome.value,
                error=step.error,
            )

        self._advance(ProvisionStage.ACTION_POLLING, f"action {action_id}")
        result = await self.action_poller.poll(check, on_attempt)

        if result.failed:
            raise ProvisioningFailedError(
                f"Action {action_id} failed" + (f": {result.error}" if result.error else ""),
                details={"action_id": action_id, "server_id": server_id},
            )
        if result.timed_out:
            raise WaitTimeoutError(
                f"Timed out waiting for action {action_id} (server {server_id}) "
                f"after {result.elapsed_seconds:.0f}s",
                details={"action_id": action_id, "server_id": server_id},
            )

    async def _wait_for_ssh(self, ip: str) -> None:
        async def check() -> PollStep:
            if await asyncio.to_thread(self.shell.probe, ip):
                return PollStep(PollOutcome.COMPLETED)
            return PollStep(PollOutcome.PENDING, error="SSH not accepting connections")

        def on_attempt(attempt: int, step: PollStep) -> None:
            logger.debug("ssh_probe", host=ip, attempt=attempt, outcome=step.outcome.value)

        result = await self.ssh_poller.poll(check, on_attempt)
        if not result.completed:
            raise WaitTimeoutError(
                f"Timed out waiting for SSH on {ip} after {result.attempts} attempts",
                details={"ip": ip, "attempts": result.attempts},
            )

    async def _register_dns(self, result: ProvisionResult) -> bool:
        record = self.config.dns.record()
        if record is None:
            if self.config.dns.is_partial:
                logger.info("dns_skipped", missing=self.config.dns.missing())
            return False
        registrar = self.dns or DnsRegistrar(self.config.dns.auth_password)
        try:
            await registrar.add_record(record)
        except DnsRegistrationError as e:
            logger.warning("dns_registration_failed", error=e.message)
            result.warnings.append(f"DNS registration failed: {e.message}")
            return False
        self._advance(
            ProvisionStage.DNS_REGISTERED,
            f"{record.host}.{record.domain} -> {record.target}",
        )
        return True
