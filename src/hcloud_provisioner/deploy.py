"""Deployment composer for ``deploy <directory>``.

Turns a local directory into provisioning inputs: the directory is copied to
the server, a generated startup script installs Docker CE and, when a
compose manifest is present, starts it with ``docker compose up -d``. The
composer never talks to the cloud API itself.
"""

from __future__ import annotations

import shlex
import tempfile
from dataclasses import dataclass
from pathlib import Path

from .config import ProvisionConfig, default_server_name
from .errors import InvalidInputError
from .models import CopySpec, StartupScriptSpec
from .utils import parse_ports

# First match wins
MANIFEST_NAMES = (
    "docker-compose.yml",
    "docker-compose.yaml",
    "compose.yml",
    "compose.yaml",
)

DOCKER_INSTALL = """\
#!/usr/bin/env bash
set -euo pipefail

# Install Docker CE and Docker Compose
echo "Installing Docker CE..."
export DEBIAN_FRONTEND=noninteractive
apt-get update -qq
apt-get install -y -qq ca-certificates curl gnupg

install -m 0755 -d /etc/apt/keyrings
curl -fsSL https://download.docker.com/linux/ubuntu/gpg | gpg --dearmor --yes -o /etc/apt/keyrings/docker.gpg
chmod a+r /etc/apt/keyrings/docker.gpg

echo "deb [arch=$(dpkg --print-architecture) signed-by=/etc/apt/keyrings/docker.gpg] \\
https://download.docker.com/linux/ubuntu $(. /etc/os-release && echo "$VERSION_CODENAME") stable" \\
  > /etc/apt/sources.list.d/docker.list

apt-get update -qq
apt-get install -y -qq docker-ce docker-ce-cli containerd.io docker-buildx-plugin docker-compose-plugin

systemctl enable docker
systemctl start docker

# Add user to docker group for non-sudo access
usermod -aG docker "${{SUDO_USER:-{user}}}"
"""

COMPOSE_UP = """
# Start Docker Compose services
DEPLOY_DIR="/home/${{SUDO_USER:-{user}}}/"{dirname}
cd "$DEPLOY_DIR"

echo "Starting Docker Compose services..."
docker compose -f {manifest} up -d

echo ""
echo "Docker services:"
docker compose -f {manifest} ps
"""

FILES_ONLY = """
echo "Files deployed successfully."
echo "No docker-compose file found - skipping Docker Compose."
"""


def detect_manifest(directory: Path) -> str | None:
    """Return the first compose manifest name present in ``directory``."""
    for name in MANIFEST_NAMES:
        if (directory / name).is_file():
            return name
    return None


def build_startup_script(user: str, dirname: str, manifest: str | None) -> str:
    """Generate the post-boot script run with sudo on the new server.

    Args:
        user: Fallback login user when SUDO_USER is unset
        dirname: Name of the copied directory under the user's home
        manifest: Detected compose manifest, or None for a files-only deploy

    Returns:
        Bash script text
    """
    script = DOCKER_INSTALL.format(user=user)
    if manifest:
        script += COMPOSE_UP.format(
            user=user,
            dirname=shlex.quote(dirname),
            manifest=shlex.quote(manifest),
        )
    else:
        script += FILES_ONLY
    return script


@dataclass
class DeploymentPlan:
    """Provisioning inputs derived from a deploy directory."""

    directory: Path
    manifest: str | None
    server_name: str
    ports: str
    firewall_name: str
    image: str
    script: str

    @property
    def copy(self) -> CopySpec:
        return CopySpec(local_path=self.directory)

    def write_script(self, directory: Path | None = None) -> StartupScriptSpec:
        """Write the startup script to a temporary file.

        The caller removes the file once provisioning is over.
        """
        handle = tempfile.NamedTemporaryFile(
            "w",
            prefix="deploy-startup-",
            suffix=".sh",
            dir=directory,
            delete=False,
        )
        with handle:
            handle.write(self.script)
        return StartupScriptSpec(path=Path(handle.name))

    def provision_config(
        self,
        base: ProvisionConfig,
        firewall_id: int,
        startup: StartupScriptSpec,
    ) -> ProvisionConfig:
        """Overlay the deploy inputs on the base configuration."""
        return base.with_overrides(
            image=self.image,
            server_name=self.server_name,
            copy_source=self.copy.local_path,
            startup_script=startup.path,
            firewall_ids=(firewall_id,),
            allowed_ports=self.ports,
        )


class DeploymentComposer:
    """Build a DeploymentPlan for a directory."""

    def __init__(self, config: ProvisionConfig):
        self.config = config

    def compose(self, directory: Path, server_name: str | None = None) -> DeploymentPlan:
        """Inspect ``directory`` and derive the deploy inputs.

        Raises:
            InvalidInputError: If the directory is missing or a port is invalid
        """
        if not directory.is_dir():
            raise InvalidInputError(f"Directory not found: {directory}")
        directory = directory.resolve()
        manifest = detect_manifest(directory)
        ports = ",".join(parse_ports(self.config.deploy_ports))
        return DeploymentPlan(
            directory=directory,
            manifest=manifest,
            server_name=server_name or default_server_name("deploy"),
            ports=ports,
            firewall_name=self.config.firewall_name,
            image=self.config.deploy_image,
            script=build_startup_script(self.config.user, directory.name, manifest),
        )
