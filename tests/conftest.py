"""Shared test fixtures for hcloud-provisioner tests.

This module provides:
- FakeHetzner: an in-memory Hetzner Cloud API served through httpx.MockTransport
- FakeClock: a controllable clock and sleep for the pollers
- provision_config: a ProvisionConfig pointing at a temporary public key
"""

import json
from collections.abc import AsyncGenerator
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any
from unittest.mock import MagicMock

import httpx
import pytest
import pytest_asyncio

from hcloud_provisioner.client import HetznerClient
from hcloud_provisioner.config import ProvisionConfig
from hcloud_provisioner.polling import Poller
from hcloud_provisioner.remote import RemoteShell

PUBLIC_KEY = "ssh-ed25519 AAAAC3NzaC1lZDI1NTE5AAAAIFakeKeyMaterial test@example"

# =============================================================================
# Fake Hetzner API
# =============================================================================


@dataclass
class FakeHetznerState:
    """State for FakeHetzner to track requests and configure responses."""

    # Request tracking
    requests: list[dict[str, Any]] = field(default_factory=list)

    # Resources
    ssh_keys: list[dict[str, Any]] = field(default_factory=list)
    firewalls: list[dict[str, Any]] = field(default_factory=list)
    servers: list[dict[str, Any]] = field(default_factory=list)

    # Statuses returned by successive GET /actions/{id}; the last one repeats
    action_statuses: list[str] = field(default_factory=lambda: ["running", "success"])
    server_ip: str | None = "203.0.113.10"
    next_id: int = 100

    # List endpoints never return more than this many items per page
    max_per_page: int = 25
    # When False, list endpoints ignore the name filter
    honor_name_filter: bool = True

    # Behavior flags
    create_ssh_key_response: dict[str, Any] | None = None
    create_firewall_response: dict[str, Any] | None = None

    def count(self, method: str, path: str) -> int:
        return sum(1 for r in self.requests if r["method"] == method and r["path"] == path)

    def bodies(self, method: str, path: str) -> list[Any]:
        return [r["json"] for r in self.requests if r["method"] == method and r["path"] == path]


class FakeHetzner:
    """Route httpx requests to an in-memory model of the API."""

    def __init__(self, state: FakeHetznerState | None = None):
        self.state = state or FakeHetznerState()

    def _new_id(self) -> int:
        self.state.next_id += 1
        return self.state.next_id

    def _server_view(self, server: dict[str, Any]) -> dict[str, Any]:
        view = dict(server)
        view["public_net"] = {"ipv4": {"ip": self.state.server_ip} if self.state.server_ip else None}
        return view

    def _list_page(self, request: httpx.Request, key: str, items: list[dict[str, Any]]) -> httpx.Response:
        params = request.url.params
        name = params.get("name")
        if name is not None and self.state.honor_name_filter:
            items = [item for item in items if item["name"] == name]
        per_page = min(int(params.get("per_page", 25)), self.state.max_per_page)
        page = int(params.get("page", 1))
        last_page = max(1, -(-len(items) // per_page))
        start = (page - 1) * per_page
        pagination = {
            "page": page,
            "per_page": per_page,
            "previous_page": page - 1 if page > 1 else None,
            "next_page": page + 1 if page < last_page else None,
            "last_page": last_page,
            "total_entries": len(items),
        }
        return httpx.Response(
            200, json={key: items[start : start + per_page], "meta": {"pagination": pagination}}
        )

    def handler(self, request: httpx.Request) -> httpx.Response:
        path = request.url.path.removeprefix("/v1")
        body = json.loads(request.content) if request.content else None
        self.state.requests.append(
            {
                "method": request.method,
                "path": path,
                "params": dict(request.url.params),
                "json": body,
                "headers": dict(request.headers),
            }
        )
        method = request.method
        state = self.state

        if path == "/ssh_keys" and method == "GET":
            return self._list_page(request, "ssh_keys", state.ssh_keys)
        if path == "/ssh_keys" and method == "POST":
            if state.create_ssh_key_response is not None:
                return httpx.Response(201, json=state.create_ssh_key_response)
            key = {"id": self._new_id(), "name": body["name"], "public_key": body["public_key"]}
            state.ssh_keys.append(key)
            return httpx.Response(201, json={"ssh_key": key})

        if path == "/firewalls" and method == "GET":
            return self._list_page(request, "firewalls", state.firewalls)
        if path == "/firewalls" and method == "POST":
            if state.create_firewall_response is not None:
                return httpx.Response(201, json=state.create_firewall_response)
            firewall = {"id": self._new_id(), "name": body["name"], "rules": body["rules"]}
            state.firewalls.append(firewall)
            return httpx.Response(201, json={"firewall": firewall, "actions": []})

        if path == "/servers" and method == "GET":
            return self._list_page(request, "servers", [self._server_view(s) for s in state.servers])
        if path == "/servers" and method == "POST":
            server = {
                "id": self._new_id(),
                "name": body["name"],
                "status": "initializing",
                "server_type": {"name": body["server_type"]},
                "image": {"name": body["image"]},
                "created": "2025-01-01T12:00:00+00:00",
            }
            state.servers.append(server)
            action = {"id": self._new_id(), "command": "create_server", "status": "running"}
            return httpx.Response(
                201,
                json={"server": {**server, "public_net": {"ipv4": None}}, "action": action},
            )

        if path.startswith("/actions/") and method == "GET":
            status = state.action_statuses.pop(0) if len(state.action_statuses) > 1 else state.action_statuses[0]
            action: dict[str, Any] = {"id": int(path.rsplit("/", 1)[1]), "status": status}
            if status == "error":
                action["error"] = {"code": "action_failed", "message": "Action failed"}
            return httpx.Response(200, json={"action": action})

        if path.startswith("/servers/"):
            parts = path.strip("/").split("/")
            server = next((s for s in state.servers if str(s["id"]) == parts[1]), None)
            if server is None:
                return httpx.Response(
                    404, json={"error": {"code": "not_found", "message": "server not found"}}
                )
            if len(parts) == 2 and method == "GET":
                server["status"] = "running"
                return httpx.Response(200, json={"server": self._server_view(server)})
            if len(parts) == 2 and method == "DELETE":
                state.servers.remove(server)
                return httpx.Response(200, json={"action": {"id": self._new_id(), "status": "running"}})
            if len(parts) == 4 and parts[2] == "actions" and method == "POST":
                server["status"] = "off" if parts[3] == "poweroff" else "running"
                return httpx.Response(201, json={"action": {"id": self._new_id(), "status": "running"}})

        return httpx.Response(404, json={"error": {"code": "not_found", "message": f"{method} {path}"}})

    @property
    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self.handler)


@pytest.fixture
def fake_api() -> FakeHetzner:
    """Fresh fake API per test."""
    return FakeHetzner()


@pytest_asyncio.fixture
async def hetzner_client(fake_api: FakeHetzner) -> AsyncGenerator[HetznerClient, None]:
    """HetznerClient wired to the fake API."""
    async with HetznerClient("test-token", transport=fake_api.transport) as client:
        yield client


# =============================================================================
# Clock and shell doubles
# =============================================================================


class FakeClock:
    """Monotonic clock that only moves when the code under test sleeps."""

    def __init__(self, start: float = 1000.0):
        self.now = start
        self.sleeps: list[float] = []

    def __call__(self) -> float:
        return self.now

    async def sleep(self, seconds: float) -> None:
        self.sleeps.append(seconds)
        self.now += seconds

    def poller(self, interval: float, timeout: float) -> Poller:
        return Poller(interval, timeout, clock=self, sleep=self.sleep)


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def shell() -> MagicMock:
    """RemoteShell double whose SSH probe succeeds immediately."""
    mock = MagicMock(spec=RemoteShell)
    mock.probe.return_value = True
    mock.copy_to_home.return_value = "rsync"
    mock.target.side_effect = lambda host: f"ops@{host}"
    return mock


# =============================================================================
# Configuration
# =============================================================================


@pytest.fixture
def public_key() -> str:
    return PUBLIC_KEY


@pytest.fixture
def public_key_file(tmp_path: Path, public_key: str) -> Path:
    path = tmp_path / "id_ed25519.pub"
    path.write_text(public_key + "\n")
    return path


@pytest.fixture
def provision_config(public_key_file: Path) -> ProvisionConfig:
    """Minimal valid configuration with no optional steps enabled."""
    return ProvisionConfig(
        token="test-token",
        server_name="test-server",
        ssh_public_key_path=public_key_file,
        startup_script=None,
        wait_timeout=60,
    )
