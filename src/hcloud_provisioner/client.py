"""HTTP client for the Hetzner Cloud REST API.

Every request carries the bearer token and a JSON content type. The client
does not interpret HTTP status codes on its own: the provider embeds error
objects in the response body, so both the transport result and the body's
``error`` field are checked.
"""

from typing import Any

import httpx

from .errors import ApiError, api_error_from_body
from .shared.logging import get_logger

HC_API = "https://api.hetzner.cloud/v1"

# Largest page size the list endpoints accept
PER_PAGE = 50

logger = get_logger(__name__)


class HetznerClient:
    """Async client for the Hetzner Cloud API.

    Use as an async context manager::

        async with HetznerClient(token) as client:
            servers = await client.list_servers()
    """

    def __init__(
        self,
        token: str,
        base_url: str = HC_API,
        timeout: float = 30.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        """Initialize client.

        Args:
            token: API token (HC_KEY)
            base_url: API base URL
            timeout: Request timeout in seconds
            transport: Optional httpx transport (tests use httpx.MockTransport)
        """
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self._token = token
        self._transport = transport
        self._client: httpx.AsyncClient | None = None

    async def __aenter__(self) -> "HetznerClient":
        """Enter async context."""
        self._client = httpx.AsyncClient(
            base_url=self.base_url,
            timeout=self.timeout,
            headers={
                "Authorization": f"Bearer {self._token}",
                "Content-Type": "application/json",
            },
            transport=self._transport,
        )
        return self

    async def __aexit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        """Exit async context."""
        if self._client:
            await self._client.aclose()
            self._client = None

    def _ensure_client(self) -> httpx.AsyncClient:
        if not self._client:
            raise ApiError("Client not initialized. Use 'async with' context.")
        return self._client

    async def request(
        self,
        method: str,
        path: str,
        json: dict[str, Any] | None = None,
        params: dict[str, Any] | None = None,
    ) -> dict[str, Any]:
        """Make an API request.

        Args:
            method: HTTP method
            path: API path (e.g., /servers)
            json: JSON body for POST/PUT
            params: Query parameters

        Returns:
            Response JSON as dict (empty for bodiless responses)

        Raises:
            ApiError: On transport failure, undecodable body, or an error
                object embedded in the body
        """
        client = self._ensure_client()
        try:
            response = await client.request(method, path, json=json, params=params)
        except httpx.TimeoutException:
            raise ApiError(f"Request timed out after {self.timeout}s: {method} {path}")
        except httpx.HTTPError as e:
            raise ApiError(f"Cannot reach {self.base_url}: {e}")

        logger.debug("api_request", method=method, path=path, status=response.status_code)

        if not response.content:
            if response.is_error:
                raise ApiError(
                    f"{method} {path} failed with HTTP {response.status_code}",
                    status_code=response.status_code,
                )
            return {}

        try:
            body = response.json()
        except ValueError:
            raise ApiError(
                f"Invalid JSON from {method} {path} (HTTP {response.status_code})",
                status_code=response.status_code,
            )

        error = api_error_from_body(body, response.status_code)
        if error is not None:
            raise error
        if response.is_error:
            raise ApiError(
                f"{method} {path} failed with HTTP {response.status_code}",
                status_code=response.status_code,
            )
        return body

    async def list_all(
        self,
        path: str,
        key: str,
        params: dict[str, Any] | None = None,
    ) -> list[dict[str, Any]]:
        """Collect every page of a list endpoint.

        Follows ``meta.pagination.next_page`` until the provider reports no
        further page.

        Args:
            path: List endpoint (e.g., /servers)
            key: Response key holding the items (e.g., servers)
            params: Filters sent with every page request

        Returns:
            Items from all pages, in provider order
        """
        items: list[dict[str, Any]] = []
        page: int | None = 1
        while page is not None:
            response = await self.request(
                "GET", path, params={**(params or {}), "page": page, "per_page": PER_PAGE}
            )
            items.extend(response.get(key) or [])
            pagination = (response.get("meta") or {}).get("pagination") or {}
            next_page = pagination.get("next_page")
            page = int(next_page) if next_page and int(next_page) > page else None
        return items

    # -------------------------------------------------------------------------
    # SSH keys
    # -------------------------------------------------------------------------

    async def list_ssh_keys(self, name: str | None = None) -> list[dict[str, Any]]:
        """List SSH keys, optionally filtered by exact name."""
        return await self.list_all("/ssh_keys", "ssh_keys", {"name": name} if name else None)

    async def create_ssh_key(self, name: str, public_key: str) -> dict[str, Any]:
        return await self.request("POST", "/ssh_keys", json={"name": name, "public_key": public_key})

    # -------------------------------------------------------------------------
    # Firewalls
    # -------------------------------------------------------------------------

    async def list_firewalls(self, name: str | None = None) -> list[dict[str, Any]]:
        """List firewalls, optionally filtered by exact name."""
        return await self.list_all("/firewalls", "firewalls", {"name": name} if name else None)

    async def create_firewall(self, name: str, rules: list[dict[str, Any]]) -> dict[str, Any]:
        return await self.request("POST", "/firewalls", json={"name": name, "rules": rules})

    # -------------------------------------------------------------------------
    # Servers
    # -------------------------------------------------------------------------

    async def create_server(self, payload: dict[str, Any]) -> dict[str, Any]:
        """Create a server.

        Returns:
            Response with ``server`` and the creation ``action``
        """
        return await self.request("POST", "/servers", json=payload)

    async def get_server(self, server_id: int | str) -> dict[str, Any]:
        response = await self.request("GET", f"/servers/{server_id}")
        return response.get("server") or {}

    async def list_servers(self, name: str | None = None) -> list[dict[str, Any]]:
        """List servers, optionally filtered by exact name."""
        return await self.list_all("/servers", "servers", {"name": name} if name else None)

    async def delete_server(self, server_id: int | str) -> dict[str, Any]:
        return await self.request("DELETE", f"/servers/{server_id}")

    async def server_action(self, server_id: int | str, action: str) -> dict[str, Any]:
        """Run a server action such as ``poweroff`` or ``poweron``."""
        return await self.request("POST", f"/servers/{server_id}/actions/{action}")

    # -------------------------------------------------------------------------
    # Actions
    # -------------------------------------------------------------------------

    async def get_action(self, action_id: int | str) -> dict[str, Any]:
        response = await self.request("GET", f"/actions/{action_id}")
        return response.get("action") or {}
