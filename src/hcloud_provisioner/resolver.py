"""Get-or-create resolution of named cloud resources.

The provider has no transactional resource groups, so idempotent reruns rely
on one strategy: list the resources of a kind, take the first whose name
matches, and create one only when nothing matches. The provider does not
enforce unique names; when duplicates exist the first listed one wins.
Concurrent runs against the same name are not protected and may both create.
"""

from __future__ import annotations

from collections.abc import Awaitable, Callable
from typing import Any, TypeVar

from .client import HetznerClient
from .errors import ApiError, ResourceCreationFailedError
from .models import FirewallRef, FirewallRule, SshKeyRef
from .shared.logging import get_logger
from .utils import parse_ports

logger = get_logger(__name__)

T = TypeVar("T")


async def get_or_create(
    list_existing: Callable[[], Awaitable[list[T]]],
    predicate: Callable[[T], bool],
    create_if_absent: Callable[[], Awaitable[T]],
) -> tuple[T, bool]:
    """Return the first listed item matching ``predicate`` or create one.

    Args:
        list_existing: Lists the existing resources of one kind
        predicate: Selects the wanted resource
        create_if_absent: Creates the resource when none matches

    Returns:
        Tuple of (resource, created)
    """
    for item in await list_existing():
        if predicate(item):
            return item, False
    return await create_if_absent(), True


def build_firewall_rules(ports: str) -> list[FirewallRule]:
    """One inbound TCP rule per normalized port, open to all sources."""
    return [FirewallRule(port=port) for port in parse_ports(ports)]


def _created_id(response: dict[str, Any], key: str, name: str) -> dict[str, Any]:
    resource = response.get(key)
    if not isinstance(resource, dict) or resource.get("id") in (None, ""):
        raise ResourceCreationFailedError(
            f"Error creating {key.replace('_', ' ')} '{name}': {response}",
            details={"response": response},
        )
    return resource


def _resource_id(resource: dict[str, Any], kind: str, name: str) -> int:
    try:
        return int(resource["id"])
    except (KeyError, TypeError, ValueError):
        raise ResourceCreationFailedError(
            f"{kind.capitalize()} '{name}' has no usable id: {resource}",
            details={"resource": resource},
        )


class ResourceResolver:
    """Resolve SSH keys and firewalls by name, creating them when absent."""

    def __init__(self, client: HetznerClient):
        self.client = client

    async def resolve_ssh_key(self, name: str, public_key: str) -> SshKeyRef:
        """Find the SSH key called ``name`` or register ``public_key`` under it."""

        async def create() -> dict[str, Any]:
            try:
                response = await self.client.create_ssh_key(name, public_key)
            except ApiError as e:
                raise ResourceCreationFailedError(
                    f"Error creating ssh key '{name}': {e.message}"
                ) from e
            return _created_id(response, "ssh_key", name)

        key, created = await get_or_create(
            lambda: self.client.list_ssh_keys(name),
            lambda item: item.get("name") == name,
            create,
        )
        ref = SshKeyRef(name=name, id=_resource_id(key, "ssh key", name))
        logger.info("ssh_key_created" if created else "ssh_key_reused", name=name, id=ref.id)
        return ref

    async def resolve_firewall(self, name: str, ports: str) -> FirewallRef:
        """Find the firewall called ``name`` or create it with rules for ``ports``.

        An existing firewall is reused as-is; its rules are not reconciled
        against ``ports``.
        """
        rules = build_firewall_rules(ports)

        async def create() -> dict[str, Any]:
            try:
                response = await self.client.create_firewall(name, [r.to_api() for r in rules])
            except ApiError as e:
                raise ResourceCreationFailedError(
                    f"Error creating firewall '{name}': {e.message}"
                ) from e
            return _created_id(response, "firewall", name)

        firewall, created = await get_or_create(
            lambda: self.client.list_firewalls(name),
            lambda item: item.get("name") == name,
            create,
        )
        existing_rules = tuple(
            FirewallRule(
                port=str(rule.get("port", "")),
                protocol=rule.get("protocol", "tcp"),
                direction=rule.get("direction", "in"),
                source_ips=tuple(rule.get("source_ips") or ()),
            )
            for rule in firewall.get("rules") or []
        )
        ref = FirewallRef(
            name=name,
            id=_resource_id(firewall, "firewall", name),
            rules=existing_rules or tuple(rules),
        )
        logger.info("firewall_created" if created else "firewall_reused", name=name, id=ref.id)
        return ref
