"""Resource models for the Hetzner Cloud API.

Thin dataclasses over the JSON objects the provider returns, plus the
optional post-boot inputs of a provisioning run.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any

from .errors import ApiError

DEFAULT_SOURCE_IPS = ("0.0.0.0/0", "::/0")


class ActionStatus(Enum):
    """Status of a provider-side asynchronous action."""

    RUNNING = "running"
    SUCCESS = "success"
    ERROR = "error"


@dataclass(frozen=True)
class Action:
    """In-flight provider operation, polled until it settles."""

    id: int
    status: ActionStatus
    error: str | None = None

    @classmethod
    def from_api(cls, data: dict[str, Any]) -> Action:
        error = data.get("error")
        if isinstance(error, dict):
            error = error.get("message") or error.get("code")
        try:
            status = ActionStatus(data.get("status"))
        except ValueError:
            # Unknown states are treated as still in flight
            status = ActionStatus.RUNNING
        return cls(
            id=int(data["id"]),
            status=status,
            error=error,
        )


@dataclass(frozen=True)
class SshKeyRef:
    """A registered SSH key, resolved by name."""

    name: str
    id: int


@dataclass(frozen=True)
class FirewallRule:
    """One inbound TCP rule of a cloud firewall."""

    port: str
    protocol: str = "tcp"
    direction: str = "in"
    source_ips: tuple[str, ...] = DEFAULT_SOURCE_IPS

    def to_api(self) -> dict[str, Any]:
        return {
            "direction": self.direction,
            "protocol": self.protocol,
            "port": self.port,
            "source_ips": list(self.source_ips),
        }


@dataclass(frozen=True)
class FirewallRef:
    """A cloud firewall, resolved by name."""

    name: str
    id: int
    rules: tuple[FirewallRule, ...] = ()


@dataclass
class ServerInstance:
    """A server as reported by the API."""

    id: int
    name: str
    status: str
    server_type: str | None = None
    image: str | None = None
    location: str | None = None
    public_ip: str | None = None
    created: str | None = None

    @classmethod
    def from_api(cls, data: dict[str, Any]) -> ServerInstance:
        """Build from a server object.

        Raises:
            ApiError: If the object carries no server id
        """
        if not isinstance(data, dict) or data.get("id") in (None, ""):
            raise ApiError(f"Server response has no id: {data}", details={"response": data})
        ipv4 = (data.get("public_net") or {}).get("ipv4") or {}
        datacenter = data.get("datacenter") or {}
        return cls(
            id=int(data["id"]),
            name=data.get("name", ""),
            status=data.get("status", "unknown"),
            server_type=(data.get("server_type") or {}).get("name"),
            image=(data.get("image") or {}).get("name"),
            location=(datacenter.get("location") or {}).get("name"),
            public_ip=ipv4.get("ip"),
            created=data.get("created"),
        )


@dataclass(frozen=True)
class CopySpec:
    """Local path copied into the remote user's home directory."""

    local_path: Path


@dataclass(frozen=True)
class StartupScriptSpec:
    """Local script executed once with sudo after the copy step."""

    path: Path


@dataclass(frozen=True)
class DnsRecordSpec:
    """A CNAME record registered with the DNS provider."""

    domain: str
    host: str
    target: str
    ttl: int = 3600
    record_type: str = "CNAME"


@dataclass
class ProvisionResult:
    """Outcome of a successful provisioning run."""

    server: ServerInstance
    ssh_key: SshKeyRef
    firewall_ids: list[int] = field(default_factory=list)
    dns_registered: bool = False
    files_copied: bool = False
    startup_ran: bool = False
    warnings: list[str] = field(default_factory=list)

    @property
    def ip(self) -> str:
        return self.server.public_ip or ""
