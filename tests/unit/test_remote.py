"""Unit tests for RemoteShell command construction."""

import subprocess
from pathlib import Path
from unittest.mock import MagicMock, patch

import pytest

from hcloud_provisioner.errors import InvalidInputError, TransferFailedError
from hcloud_provisioner.remote import SSH_OPTIONS, RemoteShell


def _completed(returncode: int = 0, stderr: str = "") -> MagicMock:
    result = MagicMock()
    result.returncode = returncode
    result.stderr = stderr
    return result


@pytest.fixture
def remote() -> RemoteShell:
    return RemoteShell("ops", connect_timeout=5)


class TestProbe:
    """Tests for the SSH reachability probe."""

    def test_probe_success(self, remote):
        with patch("subprocess.run", return_value=_completed(0)) as mock_run:
            assert remote.probe("203.0.113.10") is True
        args = mock_run.call_args[0][0]
        assert args[0] == "ssh"
        assert "ConnectTimeout=5" in args
        assert "BatchMode=yes" in args
        assert "StrictHostKeyChecking=accept-new" in args
        assert args[-2:] == ["ops@203.0.113.10", "echo ready"]

    def test_probe_refused(self, remote):
        with patch("subprocess.run", return_value=_completed(255, "Connection refused")):
            assert remote.probe("203.0.113.10") is False

    def test_probe_hang(self, remote):
        with patch("subprocess.run", side_effect=subprocess.TimeoutExpired("ssh", 15)):
            assert remote.probe("203.0.113.10") is False

    def test_ssh_missing(self, remote):
        with patch("subprocess.run", side_effect=FileNotFoundError):
            with pytest.raises(InvalidInputError, match="ssh"):
                remote.probe("203.0.113.10")


class TestTransfers:
    """Tests for copy, sync and download."""

    def test_copy_prefers_rsync(self, remote, tmp_path):
        with (
            patch("shutil.which", return_value="/usr/bin/rsync"),
            patch("subprocess.run", return_value=_completed(0)) as mock_run,
        ):
            assert remote.copy_to_home(tmp_path, "1.2.3.4") == "rsync"
        args = mock_run.call_args[0][0]
        assert args[:3] == ["rsync", "-az", "--delete"]
        assert args[-2:] == [str(tmp_path), "ops@1.2.3.4:~/"]

    def test_copy_falls_back_to_scp(self, remote, tmp_path):
        with (
            patch("shutil.which", return_value=None),
            patch("subprocess.run", return_value=_completed(0)) as mock_run,
        ):
            assert remote.copy_to_home(tmp_path, "1.2.3.4") == "scp"
        assert mock_run.call_args[0][0] == [
            "scp",
            "-r",
            *SSH_OPTIONS,
            str(tmp_path),
            "ops@1.2.3.4:~/",
        ]

    def test_copy_failure(self, remote, tmp_path):
        with (
            patch("shutil.which", return_value=None),
            patch("subprocess.run", return_value=_completed(1)),
        ):
            with pytest.raises(TransferFailedError) as exc_info:
                remote.copy_to_home(tmp_path, "1.2.3.4")
        assert exc_info.value.returncode == 1

    def test_copy_missing_source(self, remote, tmp_path):
        with pytest.raises(InvalidInputError):
            remote.copy_to_home(tmp_path / "missing", "1.2.3.4")

    def test_sync_dir_targets_basename(self, remote, tmp_path):
        app = tmp_path / "my-app"
        app.mkdir()
        with (
            patch("shutil.which", return_value="/usr/bin/rsync"),
            patch("subprocess.run", return_value=_completed(0)) as mock_run,
        ):
            remote.sync_dir(app, "1.2.3.4")
        args = mock_run.call_args[0][0]
        assert args[-2:] == [f"{app.resolve()}/", "ops@1.2.3.4:~/my-app/"]

    def test_download_with_scp(self, remote):
        with (
            patch("shutil.which", return_value=None),
            patch("subprocess.run", return_value=_completed(0)) as mock_run,
        ):
            remote.download("1.2.3.4", "~/data", Path("backup"))
        assert mock_run.call_args[0][0][-2:] == ["ops@1.2.3.4:~/data", "backup"]


class TestRunScript:
    """Tests for remote script execution."""

    def test_uploads_then_runs_with_sudo(self, remote, tmp_path):
        script = tmp_path / "startup.sh"
        script.write_text("echo hi\n")
        with patch("subprocess.run", return_value=_completed(0)) as mock_run:
            remote.run_script(script, "1.2.3.4")
        upload, run = (call[0][0] for call in mock_run.call_args_list)
        assert upload == ["scp", *SSH_OPTIONS, str(script), "ops@1.2.3.4:/tmp/startup.sh"]
        assert run == ["ssh", *SSH_OPTIONS, "ops@1.2.3.4", "sudo bash /tmp/startup.sh"]

    def test_script_failure(self, remote, tmp_path):
        script = tmp_path / "startup.sh"
        script.write_text("exit 3\n")
        with patch("subprocess.run", side_effect=[_completed(0), _completed(3)]):
            with pytest.raises(TransferFailedError, match="exit code 3"):
                remote.run_script(script, "1.2.3.4")

    def test_missing_script(self, remote, tmp_path):
        with pytest.raises(InvalidInputError):
            remote.run_script(tmp_path / "missing.sh", "1.2.3.4")
