"""Unit tests for API resource models."""

import dataclasses

import pytest

from hcloud_provisioner.errors import ApiError
from hcloud_provisioner.models import (
    Action,
    ActionStatus,
    ServerInstance,
    StartupScriptSpec,
)


class TestAction:
    """Tests for Action.from_api."""

    def test_fields(self):
        action = Action.from_api({"id": 5, "command": "create_server", "status": "success"})
        assert action == Action(id=5, status=ActionStatus.SUCCESS)
        assert [f.name for f in dataclasses.fields(Action)] == ["id", "status", "error"]

    def test_error_object(self):
        action = Action.from_api(
            {"id": 5, "status": "error", "error": {"code": "action_failed", "message": "disk full"}}
        )
        assert action.status is ActionStatus.ERROR
        assert action.error == "disk full"

    def test_unknown_status_is_running(self):
        assert Action.from_api({"id": 5, "status": "queued"}).status is ActionStatus.RUNNING


class TestServerInstance:
    """Tests for ServerInstance.from_api."""

    def test_parses_nested_fields(self):
        server = ServerInstance.from_api(
            {
                "id": 7,
                "name": "web",
                "status": "running",
                "server_type": {"name": "cx23"},
                "image": {"name": "ubuntu-24.04"},
                "datacenter": {"location": {"name": "fsn1"}},
                "public_net": {"ipv4": {"ip": "203.0.113.10"}},
            }
        )
        assert (server.id, server.server_type, server.location, server.public_ip) == (
            7,
            "cx23",
            "fsn1",
            "203.0.113.10",
        )

    @pytest.mark.parametrize("data", [{}, {"name": "web"}, {"id": None}])
    def test_missing_id(self, data):
        with pytest.raises(ApiError, match="no id"):
            ServerInstance.from_api(data)


class TestStartupScriptSpec:
    """Tests for StartupScriptSpec."""

    def test_only_carries_the_local_path(self):
        assert [f.name for f in dataclasses.fields(StartupScriptSpec)] == ["path"]
