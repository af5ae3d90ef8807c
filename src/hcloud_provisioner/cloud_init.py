"""Cloud-init document generation for hardened first boot.

The document is built as a structured mapping and serialized with PyYAML,
so user input never has to be quoted by hand.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from pathlib import Path
from typing import Any

import yaml

from .errors import InvalidInputError
from .utils import parse_ports, split_csv

CLOUD_CONFIG_HEADER = "#cloud-config\n"

# Always installed: host firewall and intrusion prevention
BASE_PACKAGES = ("ufw", "fail2ban")

_USERNAME_RE = re.compile(r"^[a-z_][a-z0-9_-]*$")


@dataclass(frozen=True)
class BootConfig:
    """Immutable cloud-config document for one provisioning run."""

    username: str
    public_key: str
    ports: tuple[str, ...]
    packages: tuple[str, ...] = BASE_PACKAGES

    def user_entry(self) -> dict[str, Any]:
        return {
            "name": self.username,
            "groups": "sudo",
            "shell": "/bin/bash",
            "sudo": ["ALL=(ALL) NOPASSWD:ALL"],
            "ssh_authorized_keys": [self.public_key],
        }

    def firewall_rules(self) -> list[str]:
        """ufw allow rules, one per port, in input order."""
        return [f"ufw allow {port.replace('-', ':')}/tcp" for port in self.ports]

    def runcmd(self) -> list[str]:
        # Defaults first, rules queued, enable last
        return [
            "ufw default deny incoming",
            "ufw default allow outgoing",
            *self.firewall_rules(),
            "ufw --force enable",
            "systemctl enable --now fail2ban",
        ]

    def to_dict(self) -> dict[str, Any]:
        return {
            "package_update": True,
            "package_upgrade": True,
            "packages": list(self.packages),
            "users": [self.user_entry()],
            "disable_root": True,
            "ssh_pwauth": False,
            "runcmd": self.runcmd(),
        }

    def render(self) -> str:
        """Serialize to the user_data string passed to server creation."""
        body = yaml.safe_dump(
            self.to_dict(),
            default_flow_style=False,
            sort_keys=False,
            width=4096,
        )
        return CLOUD_CONFIG_HEADER + body


def build_boot_config(
    public_key: str,
    username: str,
    allowed_ports: str,
    extra_packages: str = "",
) -> BootConfig:
    """Build the cloud-config document.

    Args:
        public_key: SSH public key, the user's only login credential
        username: Non-root login user, gets passwordless sudo
        allowed_ports: Comma-separated TCP ports allowed through ufw
        extra_packages: Comma-separated extra apt packages

    Returns:
        BootConfig document

    Raises:
        InvalidInputError: On an empty key, a bad username or a bad port
    """
    public_key = public_key.strip()
    if not public_key or "\n" in public_key:
        raise InvalidInputError("SSH public key must be a single non-empty line")
    if not _USERNAME_RE.match(username or ""):
        raise InvalidInputError(f"Invalid username: {username!r}")
    if username == "root":
        raise InvalidInputError("The login user must not be root")

    packages = list(BASE_PACKAGES)
    for package in split_csv(extra_packages):
        if package not in packages:
            packages.append(package)

    return BootConfig(
        username=username,
        public_key=public_key,
        ports=tuple(parse_ports(allowed_ports)),
        packages=tuple(packages),
    )


def read_public_key(path: Path) -> str:
    """Read an SSH public key file.

    Raises:
        InvalidInputError: If the file is missing, unreadable or empty
    """
    if not path.is_file():
        raise InvalidInputError(
            f"Public key not found at {path}\nGenerate one with: ssh-keygen -t ed25519"
        )
    try:
        key = path.read_text().strip()
    except OSError as e:
        raise InvalidInputError(f"Cannot read public key {path}: {e}") from e
    if not key:
        raise InvalidInputError(f"Public key file is empty: {path}")
    return key
