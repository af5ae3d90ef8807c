"""Unit tests for FleetManager."""

from pathlib import Path
from unittest.mock import AsyncMock

import pytest

from hcloud_provisioner.errors import ApiError, InvalidInputError
from hcloud_provisioner.fleet import FleetManager


@pytest.fixture
def fleet(fake_api, hetzner_client, shell) -> FleetManager:
    fake_api.state.servers.extend(
        [
            {"id": 11, "name": "web", "status": "running"},
            {"id": 12, "name": "db", "status": "off"},
        ]
    )
    return FleetManager(hetzner_client, shell)


class TestResolveServer:
    """Tests for name and id resolution."""

    @pytest.mark.asyncio
    async def test_numeric_reference_skips_lookup(self, fake_api, fleet):
        assert await fleet.resolve_server_id("12345") == 12345
        assert fake_api.state.requests == []

    @pytest.mark.asyncio
    async def test_name_lookup(self, fake_api, fleet):
        assert await fleet.resolve_server_id("db") == 12
        assert fake_api.state.requests[-1]["params"]["name"] == "db"

    @pytest.mark.asyncio
    async def test_listed_server_without_id(self, fleet, hetzner_client):
        hetzner_client.list_servers = AsyncMock(return_value=[{"name": "web"}])
        with pytest.raises(ApiError, match="no id"):
            await fleet.resolve_server_id("web")

    @pytest.mark.asyncio
    async def test_get_with_empty_response(self, fleet, hetzner_client):
        hetzner_client.get_server = AsyncMock(return_value={})
        with pytest.raises(ApiError, match="no id"):
            await fleet.get("11")

    @pytest.mark.asyncio
    async def test_unknown_name(self, fleet):
        with pytest.raises(InvalidInputError, match="Server not found: cache"):
            await fleet.resolve_server_id("cache")


class TestFleetOperations:
    """Tests for the one-shot fleet operations."""

    @pytest.mark.asyncio
    async def test_list_servers(self, fleet):
        servers = await fleet.list_servers()
        assert [(s.name, s.public_ip) for s in servers] == [
            ("web", "203.0.113.10"),
            ("db", "203.0.113.10"),
        ]

    @pytest.mark.asyncio
    async def test_power_off_and_on(self, fake_api, fleet):
        assert await fleet.power("web", on=False) == (11, "running")
        assert fake_api.state.servers[0]["status"] == "off"
        await fleet.power("11", on=True)
        assert fake_api.state.count("POST", "/servers/11/actions/poweron") == 1

    @pytest.mark.asyncio
    async def test_delete(self, fake_api, fleet):
        server = await fleet.get("db")
        await fleet.delete(server)
        assert [s["name"] for s in fake_api.state.servers] == ["web"]

    @pytest.mark.asyncio
    async def test_ip_without_address(self, fake_api, fleet):
        fake_api.state.server_ip = None
        with pytest.raises(InvalidInputError, match="no public IPv4"):
            await fleet.ip("web")

    @pytest.mark.asyncio
    async def test_sync(self, tmp_path, fleet, shell):
        shell.sync_dir.return_value = "rsync"
        assert await fleet.sync("web", tmp_path) == ("203.0.113.10", "rsync")
        shell.sync_dir.assert_called_once_with(tmp_path, "203.0.113.10")

    @pytest.mark.asyncio
    async def test_sync_missing_directory(self, tmp_path, fake_api, fleet):
        with pytest.raises(InvalidInputError):
            await fleet.sync("web", tmp_path / "missing")
        assert fake_api.state.requests == []

    @pytest.mark.asyncio
    async def test_download(self, fleet, shell):
        shell.download.return_value = "scp"
        result = await fleet.download("web", "~/app/data", Path("./backup"))
        assert result == ("203.0.113.10", "scp")
        shell.download.assert_called_once_with("203.0.113.10", "~/app/data", Path("./backup"))

    @pytest.mark.asyncio
    async def test_execute(self, tmp_path, fleet, shell):
        script = tmp_path / "migrate.sh"
        script.write_text("echo migrate\n")
        assert await fleet.execute("web", script) == "203.0.113.10"
        shell.run_script.assert_called_once_with(script, "203.0.113.10", "/tmp/migrate.sh")
