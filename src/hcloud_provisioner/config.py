"""Provisioning configuration.

The configuration is read once from environment-style key/value pairs
(the process environment plus an optional ``.env`` file) into an immutable
``ProvisionConfig`` that is passed explicitly to every component.
"""

from __future__ import annotations

import os
from collections.abc import Mapping
from dataclasses import dataclass, field, replace
from datetime import datetime
from pathlib import Path

from dotenv import dotenv_values

from .errors import InvalidInputError
from .models import DnsRecordSpec

# Default values
DEFAULT_SERVER_TYPE = "cx23"
DEFAULT_IMAGE = "ubuntu-24.04"
DEFAULT_LOCATION = "fsn1"
DEFAULT_SSH_KEY_NAME = "hcloud-key"
DEFAULT_SSH_PUBLIC_KEY = Path.home() / ".ssh" / "id_ed25519.pub"
DEFAULT_USER = "ops"
DEFAULT_ALLOWED_PORTS = "22"
DEFAULT_STARTUP_SCRIPT = Path("scripts") / "startup.sh"
DEFAULT_WAIT_TIMEOUT = 420
DEFAULT_DEPLOY_PORTS = "22,80,443"
DEFAULT_FIREWALL_NAME = "deploy-firewall"
DEFAULT_DNS_TTL = 3600
DEFAULT_ENV_FILE = Path(".env")

# Environment variable mappings
ENV_VARS = {
    "token": "HC_KEY",
    "server_type": "HC_SERVER_TYPE",
    "image": "HC_IMAGE",
    "location": "HC_LOCATION",
    "server_name": "HC_SERVER_NAME",
    "ssh_key_name": "HC_SSH_KEY_NAME",
    "ssh_public_key": "HC_SSH_PUBLIC_KEY",
    "user": "HC_USER",
    "allowed_ports": "HC_ALLOWED_PORTS",
    "extra_packages": "HC_EXTRA_PACKAGES",
    "copy_source": "HC_COPY_SRC",
    "startup_script": "HC_STARTUP_SCRIPT",
    "wait_timeout": "HC_WAIT_TIMEOUT",
    "firewall_ids": "HC_FIREWALL_IDS",
    "deploy_ports": "HC_DEPLOY_PORTS",
    "firewall_name": "HC_FIREWALL_NAME",
    "deploy_image": "HC_DEPLOY_IMAGE",
}

DNS_ENV_VARS = {
    "auth_password": "CLOUDNS_AUTH_PASSWORD",
    "domain": "CLOUDNS_DOMAIN",
    "host": "CLOUDNS_CNAME_HOST",
    "target": "CLOUDNS_CNAME_TARGET",
    "ttl": "CLOUDNS_TTL",
}


@dataclass(frozen=True)
class DnsConfig:
    """Credentials and record fields for the optional CNAME registration."""

    auth_password: str = ""
    domain: str = ""
    host: str = ""
    target: str = ""
    ttl: int = DEFAULT_DNS_TTL

    _sources: Mapping[str, str] = field(default_factory=dict, compare=False, repr=False)

    def get_source(self, key: str) -> str:
        """Get the source of a DNS value."""
        return self._sources.get(key, "default")

    def _required(self) -> dict[str, str]:
        return {
            DNS_ENV_VARS["auth_password"]: self.auth_password,
            DNS_ENV_VARS["domain"]: self.domain,
            DNS_ENV_VARS["host"]: self.host,
            DNS_ENV_VARS["target"]: self.target,
        }

    @property
    def is_complete(self) -> bool:
        return all(self._required().values())

    @property
    def is_partial(self) -> bool:
        values = self._required().values()
        return any(values) and not all(values)

    def missing(self) -> list[str]:
        """Names of the required variables that are unset."""
        return [name for name, value in self._required().items() if not value]

    def record(self) -> DnsRecordSpec | None:
        if not self.is_complete:
            return None
        return DnsRecordSpec(domain=self.domain, host=self.host, target=self.target, ttl=self.ttl)


@dataclass(frozen=True)
class ProvisionConfig:
    """Immutable inputs of one provisioning run."""

    token: str = ""
    server_type: str = DEFAULT_SERVER_TYPE
    image: str = DEFAULT_IMAGE
    location: str = DEFAULT_LOCATION
    server_name: str = ""
    ssh_key_name: str = DEFAULT_SSH_KEY_NAME
    ssh_public_key_path: Path = DEFAULT_SSH_PUBLIC_KEY
    user: str = DEFAULT_USER
    allowed_ports: str = DEFAULT_ALLOWED_PORTS
    extra_packages: str = ""
    copy_source: Path | None = None
    startup_script: Path | None = DEFAULT_STARTUP_SCRIPT
    wait_timeout: int = DEFAULT_WAIT_TIMEOUT
    firewall_ids: tuple[int, ...] = ()
    deploy_ports: str = DEFAULT_DEPLOY_PORTS
    firewall_name: str = DEFAULT_FIREWALL_NAME
    deploy_image: str = DEFAULT_IMAGE
    dns: DnsConfig = field(default_factory=DnsConfig)

    # Track where each value came from
    _sources: Mapping[str, str] = field(default_factory=dict, compare=False, repr=False)

    def get_source(self, key: str) -> str:
        """Get the source of a config value."""
        return self._sources.get(key, "default")

    def with_overrides(self, **changes) -> ProvisionConfig:
        """Return a copy with the given fields replaced."""
        sources = dict(self._sources)
        sources.update({key: "override" for key in changes})
        return replace(self, _sources=sources, **changes)


def default_server_name(prefix: str, now: datetime | None = None) -> str:
    """Timestamp-derived server name, e.g. ``cx23-20250101-120000``."""
    now = now or datetime.now()
    return f"{prefix}-{now:%Y%m%d-%H%M%S}"


def load_environment(env_file: str | Path | None = DEFAULT_ENV_FILE) -> dict[str, str]:
    """Merge an optional ``.env`` file with the process environment.

    Process variables take precedence over values from the file.

    Args:
        env_file: Path to a dotenv file; ignored when missing

    Returns:
        Flat mapping of variable names to values
    """
    values: dict[str, str] = {}
    if env_file and Path(env_file).is_file():
        values.update({k: v for k, v in dotenv_values(env_file).items() if v is not None})
    values.update(os.environ)
    return values


def _parse_int(environ: Mapping[str, str], name: str, default: int) -> int:
    raw = environ.get(name, "").strip()
    if not raw:
        return default
    try:
        return int(raw)
    except ValueError:
        raise InvalidInputError(f"{name} must be an integer, got {raw!r}")


def _parse_ids(environ: Mapping[str, str], name: str) -> tuple[int, ...]:
    ids = []
    for item in environ.get(name, "").split(","):
        item = item.strip()
        if not item:
            continue
        if not item.isdigit():
            raise InvalidInputError(f"{name} must be a comma-separated list of ids, got {item!r}")
        ids.append(int(item))
    return tuple(ids)


def load_config(environ: Mapping[str, str], now: datetime | None = None) -> ProvisionConfig:
    """Build the configuration from environment-style values.

    Args:
        environ: Variable mapping, usually the result of ``load_environment``
        now: Clock used for the timestamp-derived server name

    Returns:
        ProvisionConfig with values and sources

    Raises:
        InvalidInputError: If a numeric value cannot be parsed
    """
    sources: dict[str, str] = {}

    def get(key: str, default: str) -> str:
        value = environ.get(ENV_VARS[key], "")
        if value:
            sources[key] = "environment"
            return value
        sources[key] = "default"
        return default

    server_type = get("server_type", DEFAULT_SERVER_TYPE)
    server_name = get("server_name", "") or default_server_name(server_type, now)
    copy_source = get("copy_source", "")
    startup_script = get("startup_script", str(DEFAULT_STARTUP_SCRIPT))

    wait_timeout = _parse_int(environ, ENV_VARS["wait_timeout"], DEFAULT_WAIT_TIMEOUT)
    if wait_timeout <= 0:
        raise InvalidInputError(f"{ENV_VARS['wait_timeout']} must be positive")
    sources["wait_timeout"] = "environment" if environ.get(ENV_VARS["wait_timeout"]) else "default"

    firewall_ids = _parse_ids(environ, ENV_VARS["firewall_ids"])
    sources["firewall_ids"] = "environment" if firewall_ids else "default"

    dns_sources = {
        key: "environment" if environ.get(name) else "default"
        for key, name in DNS_ENV_VARS.items()
    }
    dns = DnsConfig(
        auth_password=environ.get(DNS_ENV_VARS["auth_password"], ""),
        domain=environ.get(DNS_ENV_VARS["domain"], ""),
        host=environ.get(DNS_ENV_VARS["host"], ""),
        target=environ.get(DNS_ENV_VARS["target"], ""),
        ttl=_parse_int(environ, DNS_ENV_VARS["ttl"], DEFAULT_DNS_TTL),
        _sources=dns_sources,
    )

    return ProvisionConfig(
        token=get("token", ""),
        server_type=server_type,
        image=get("image", DEFAULT_IMAGE),
        location=get("location", DEFAULT_LOCATION),
        server_name=server_name,
        ssh_key_name=get("ssh_key_name", DEFAULT_SSH_KEY_NAME),
        ssh_public_key_path=Path(get("ssh_public_key", str(DEFAULT_SSH_PUBLIC_KEY))).expanduser(),
        user=get("user", DEFAULT_USER),
        allowed_ports=get("allowed_ports", DEFAULT_ALLOWED_PORTS),
        extra_packages=get("extra_packages", ""),
        copy_source=Path(copy_source).expanduser() if copy_source else None,
        startup_script=Path(startup_script).expanduser() if startup_script else None,
        wait_timeout=wait_timeout,
        firewall_ids=firewall_ids,
        deploy_ports=get("deploy_ports", DEFAULT_DEPLOY_PORTS),
        firewall_name=get("firewall_name", DEFAULT_FIREWALL_NAME),
        deploy_image=get("deploy_image", DEFAULT_IMAGE),
        dns=dns,
        _sources=sources,
    )


def require_token(config: ProvisionConfig) -> str:
    """Return the API token or fail before any network call is made.

    Raises:
        InvalidInputError: If HC_KEY is unset
    """
    if not config.token:
        raise InvalidInputError(f"Missing required env var: {ENV_VARS['token']}")
    return config.token
