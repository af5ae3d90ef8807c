"""Parsing helpers shared by the boot config and firewall builders."""

import re

from .errors import InvalidInputError

_PORT_RE = re.compile(r"^(\d+)(?:-(\d+))?$")


def split_csv(value: str | None) -> list[str]:
    """Split a comma-separated list.

    Entries are trimmed, empty entries dropped and duplicates removed while
    keeping the first occurrence, so ``" 22,,80, 22,"`` becomes
    ``["22", "80"]``.
    """
    items: list[str] = []
    for raw in (value or "").split(","):
        item = raw.strip()
        if item and item not in items:
            items.append(item)
    return items


def parse_ports(value: str | None) -> list[str]:
    """Normalize a comma-separated port list.

    Accepts single ports (``443``) and ranges (``8000-8100``).

    Raises:
        InvalidInputError: If an entry is not a valid port or range
    """
    ports = split_csv(value)
    for port in ports:
        match = _PORT_RE.match(port)
        if not match:
            raise InvalidInputError(f"Invalid port: {port!r}")
        low = int(match.group(1))
        high = int(match.group(2) or low)
        if not 1 <= low <= high <= 65535:
            raise InvalidInputError(f"Invalid port: {port!r}")
    return ports
