"""SSH, rsync and scp wrappers for talking to provisioned servers.

Host keys are accepted on first contact (``StrictHostKeyChecking=accept-new``)
because every provisioned server is new to the operator's known_hosts.
"""

from __future__ import annotations

import os
import shlex
import shutil
import subprocess
from pathlib import Path

from .errors import InvalidInputError, TransferFailedError
from .shared.logging import get_logger

logger = get_logger(__name__)

SSH_OPTIONS = ["-o", "StrictHostKeyChecking=accept-new"]


class RemoteShell:
    """Run remote commands and move files as one login user."""

    def __init__(self, user: str, connect_timeout: int = 5):
        """Initialize remote shell.

        Args:
            user: Login user on the remote host
            connect_timeout: Per-attempt SSH connect timeout in seconds
        """
        self.user = user
        self.connect_timeout = connect_timeout

    def target(self, host: str) -> str:
        return f"{self.user}@{host}"

    def probe(self, host: str) -> bool:
        """Check whether the host accepts SSH logins yet.

        Returns:
            True if a trivial remote command succeeded
        """
        args = [
            "ssh",
            *SSH_OPTIONS,
            "-o",
            f"ConnectTimeout={self.connect_timeout}",
            "-o",
            "BatchMode=yes",
            self.target(host),
            "echo ready",
        ]
        try:
            result = subprocess.run(
                args,
                capture_output=True,
                text=True,
                timeout=self.connect_timeout + 10,
            )
        except subprocess.TimeoutExpired:
            return False
        except FileNotFoundError:
            raise InvalidInputError("Missing required command: ssh")
        if result.returncode != 0:
            logger.debug("ssh_probe_failed", host=host, stderr=result.stderr.strip())
        return result.returncode == 0

    @staticmethod
    def has_rsync() -> bool:
        return shutil.which("rsync") is not None

    def _run(self, args: list[str], what: str) -> None:
        logger.debug("remote_command", args=args)
        try:
            result = subprocess.run(args)
        except FileNotFoundError:
            raise TransferFailedError(f"{what} failed: {args[0]} not found")
        if result.returncode != 0:
            raise TransferFailedError(
                f"{what} failed with exit code {result.returncode}",
                returncode=result.returncode,
            )

    def copy_to_home(self, local_path: Path, host: str) -> str:
        """Copy a file or directory into the remote home directory.

        Returns:
            Name of the transfer tool used ("rsync" or "scp")

        Raises:
            InvalidInputError: If the local path does not exist
            TransferFailedError: If the transfer fails
        """
        if not local_path.exists():
            raise InvalidInputError(f"Copy source not found: {local_path}")
        destination = f"{self.target(host)}:~/"
        if self.has_rsync():
            ssh_command = shlex.join(["ssh", *SSH_OPTIONS])
            self._run(
                ["rsync", "-az", "--delete", "-e", ssh_command, str(local_path), destination],
                f"Copy of {local_path}",
            )
            return "rsync"
        self._run(["scp", "-r", *SSH_OPTIONS, str(local_path), destination], f"Copy of {local_path}")
        return "scp"

    def sync_dir(self, local_dir: Path, host: str) -> str:
        """Mirror a local directory to ``~/<basename>/`` on the host.

        Returns:
            Name of the transfer tool used ("rsync" or "scp")
        """
        if not local_dir.is_dir():
            raise InvalidInputError(f"Directory not found: {local_dir}")
        local_dir = local_dir.resolve()
        if self.has_rsync():
            ssh_command = shlex.join(["ssh", *SSH_OPTIONS])
            self._run(
                [
                    "rsync",
                    "-avz",
                    "--delete",
                    "-e",
                    ssh_command,
                    f"{local_dir}/",
                    f"{self.target(host)}:~/{local_dir.name}/",
                ],
                f"Sync of {local_dir}",
            )
            return "rsync"
        self._run(
            ["scp", "-r", *SSH_OPTIONS, str(local_dir), f"{self.target(host)}:~/"],
            f"Sync of {local_dir}",
        )
        return "scp"

    def download(self, host: str, remote_path: str, local_path: Path) -> str:
        """Copy ``remote_path`` from the host to ``local_path``.

        Returns:
            Name of the transfer tool used ("rsync" or "scp")
        """
        source = f"{self.target(host)}:{remote_path}"
        if self.has_rsync():
            ssh_command = shlex.join(["ssh", *SSH_OPTIONS])
            self._run(
                ["rsync", "-avz", "-e", ssh_command, source, str(local_path)],
                f"Download of {remote_path}",
            )
            return "rsync"
        self._run(["scp", "-r", *SSH_OPTIONS, source, str(local_path)], f"Download of {remote_path}")
        return "scp"

    def run_script(self, script: Path, host: str, remote_path: str = "/tmp/startup.sh") -> None:
        """Upload a script and run it with sudo.

        Raises:
            InvalidInputError: If the script does not exist
            TransferFailedError: If the upload or the script fails
        """
        if not script.is_file():
            raise InvalidInputError(f"Script not found: {script}")
        self._run(
            ["scp", *SSH_OPTIONS, str(script), f"{self.target(host)}:{remote_path}"],
            f"Upload of {script}",
        )
        self._run(
            ["ssh", *SSH_OPTIONS, self.target(host), f"sudo bash {shlex.quote(remote_path)}"],
            f"Script {script.name}",
        )

    def interactive(self, host: str) -> None:
        """Replace the current process with an interactive SSH session."""
        os.execvp("ssh", ["ssh", *SSH_OPTIONS, self.target(host)])
