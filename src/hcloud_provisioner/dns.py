"""CNAME registration with ClouDNS.

A single best-effort call made after the server is reachable. It is
independent of the cloud resources and never rolled back.
"""

from __future__ import annotations

from typing import Any

import httpx

from .errors import DnsRegistrationError
from .models import DnsRecordSpec
from .shared.logging import get_logger

CLOUDNS_ADD_RECORD_URL = "https://api.cloudns.net/dns/add-record.json"

logger = get_logger(__name__)


class DnsRegistrar:
    """Create DNS records through the ClouDNS HTTP API."""

    def __init__(
        self,
        auth_password: str,
        url: str = CLOUDNS_ADD_RECORD_URL,
        timeout_seconds: float = 15.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self._auth_password = auth_password
        self.url = url
        self.timeout_seconds = timeout_seconds
        self._transport = transport

    async def add_record(self, record: DnsRecordSpec) -> dict[str, Any]:
        """Create a record.

        Args:
            record: Record to create

        Returns:
            Decoded response body

        Raises:
            DnsRegistrationError: If the request fails or the API does not
                report success
        """
        params = {
            "auth-password": self._auth_password,
            "domain-name": record.domain,
            "record-type": record.record_type,
            "host": record.host,
            "record": record.target,
            "ttl": str(record.ttl),
        }
        try:
            async with httpx.AsyncClient(
                timeout=self.timeout_seconds, transport=self._transport
            ) as client:
                response = await client.get(self.url, params=params)
            data = response.json()
        except httpx.HTTPError as e:
            raise DnsRegistrationError(f"CLOUDNS request failed: {e}") from e
        except ValueError:
            raise DnsRegistrationError(f"CLOUDNS returned invalid JSON: {response.text[:200]}")

        if not isinstance(data, dict) or data.get("status") != "Success":
            raise DnsRegistrationError(
                f"CLOUDNS {record.record_type} creation failed: {data}",
                details={"response": data},
            )
        logger.info(
            "dns_record_created",
            host=record.host,
            domain=record.domain,
            target=record.target,
        )
        return data
