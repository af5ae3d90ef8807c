"""One-shot commands against existing servers.

Servers are referenced by name or numeric id. These commands go straight to
the API client or the remote shell; none of them uses the orchestrator.
"""

from __future__ import annotations

import asyncio
from pathlib import Path

from .client import HetznerClient
from .errors import InvalidInputError
from .models import ServerInstance
from .remote import RemoteShell
from .shared.logging import get_logger

logger = get_logger(__name__)


class FleetManager:
    """Manage servers that were provisioned earlier."""

    def __init__(self, client: HetznerClient, shell: RemoteShell):
        self.client = client
        self.shell = shell

    async def resolve_server_id(self, name_or_id: str) -> int:
        """Return the server id for a name or a numeric id.

        A purely numeric reference is used as the id without a lookup.

        Raises:
            InvalidInputError: If no server has that name
        """
        if name_or_id.isdigit():
            return int(name_or_id)
        servers = await self.client.list_servers(name=name_or_id)
        if not servers:
            raise InvalidInputError(f"Server not found: {name_or_id}")
        return ServerInstance.from_api(servers[0]).id

    async def get(self, name_or_id: str) -> ServerInstance:
        server_id = await self.resolve_server_id(name_or_id)
        return ServerInstance.from_api(await self.client.get_server(server_id))

    async def list_servers(self) -> list[ServerInstance]:
        return [ServerInstance.from_api(s) for s in await self.client.list_servers()]

    async def power(self, name_or_id: str, on: bool) -> tuple[int, str]:
        """Power a server on or off.

        Returns:
            Tuple of (server id, action status)
        """
        server_id = await self.resolve_server_id(name_or_id)
        response = await self.client.server_action(server_id, "poweron" if on else "poweroff")
        status = (response.get("action") or {}).get("status", "unknown")
        logger.info("server_power", server_id=server_id, on=on, status=status)
        return server_id, status

    async def delete(self, server: ServerInstance) -> str:
        """Delete a server. Confirmation is the caller's job.

        Returns:
            Action status, or "deleted" when the API returns no action
        """
        response = await self.client.delete_server(server.id)
        logger.info("server_deleted", server_id=server.id, name=server.name)
        return (response.get("action") or {}).get("status") or "deleted"

    async def ip(self, name_or_id: str) -> str:
        server = await self.get(name_or_id)
        if not server.public_ip:
            raise InvalidInputError(f"Server {server.name} has no public IPv4 address")
        return server.public_ip

    async def sync(self, name_or_id: str, local_dir: Path) -> tuple[str, str]:
        """Upload a local directory to ``~/<basename>/``.

        Returns:
            Tuple of (server ip, transfer tool)
        """
        if not local_dir.is_dir():
            raise InvalidInputError(f"Directory not found: {local_dir}")
        ip = await self.ip(name_or_id)
        return ip, await asyncio.to_thread(self.shell.sync_dir, local_dir, ip)

    async def download(self, name_or_id: str, remote_path: str, local_path: Path) -> tuple[str, str]:
        """Download ``remote_path`` from the server.

        Returns:
            Tuple of (server ip, transfer tool)
        """
        ip = await self.ip(name_or_id)
        return ip, await asyncio.to_thread(self.shell.download, ip, remote_path, local_path)

    async def execute(self, name_or_id: str, script: Path) -> str:
        """Upload a script and run it with sudo on the server.

        Returns:
            Server ip
        """
        if not script.is_file():
            raise InvalidInputError(f"Script not found: {script}")
        ip = await self.ip(name_or_id)
        await asyncio.to_thread(self.shell.run_script, script, ip, f"/tmp/{script.name}")
        return ip
