"""
Cloudflare API client.

Thin async wrapper over the v4 tunnel endpoints. Every call is keyed by
an account id and authenticated with the email + global API key drawn
from resolved config. Failures surface as ExternalCallFailedError naming
the call.
"""

import logging
from dataclasses import dataclass
from typing import Any, Dict, List, Optional

import httpx

from ..api import ExternalCallFailedError, Value

logger = logging.getLogger("wingman.cloudflare")

DEFAULT_BASE_URL = "https://api.cloudflare.com/client/v4"


@dataclass(frozen=True)
class CloudflareCredentials:
    """Email and global API key for the Cloudflare API."""

    email: str
    api_key: Value

    def headers(self) -> Dict[str, str]:
        return {
            "X-Auth-Email": self.email,
            "X-Auth-Key": self.api_key.reveal(),
        }


class CloudflareClient:
    """Client for the account-scoped Cloudflare tunnel API."""

    def __init__(
        self,
        account_id: str,
        credentials: CloudflareCredentials,
        base_url: str = DEFAULT_BASE_URL,
        timeout: float = 10.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        """
        Initialize client.

        Args:
            account_id: Cloudflare account identifier
            credentials: Email and API key
            base_url: API root, overridable for testing
            timeout: Per-request timeout in seconds
            transport: Optional httpx transport (mocking)
        """
        self.account_id = account_id
        self._client = httpx.AsyncClient(
            base_url=base_url.rstrip("/"),
            headers=credentials.headers(),
            timeout=timeout,
            transport=transport,
        )

    async def __aenter__(self) -> "CloudflareClient":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.close()

    async def close(self) -> None:
        await self._client.aclose()

    async def _request(self, call: str, method: str, path: str, **kwargs) -> Any:
        url = f"/accounts/{self.account_id}{path}"
        try:
            response = await self._client.request(method, url, **kwargs)
        except httpx.HTTPError as e:
            logger.error(f"Cloudflare {call} transport error: {e}")
            raise ExternalCallFailedError(call, str(e) or type(e).__name__) from e

        try:
            body = response.json()
        except ValueError:
            body = {}

        if response.status_code >= 400 or not body.get("success", False):
            errors = body.get("errors") or []
            message = "; ".join(
                f"[{err.get('code')}] {err.get('message')}" for err in errors
            ) or f"HTTP {response.status_code}"
            logger.error(f"Cloudflare {call} failed: {message}")
            raise ExternalCallFailedError(call, message)

        return body.get("result")

    async def list_tunnels(self, name: Optional[str] = None) -> List[Dict[str, Any]]:
        """List active tunnels, optionally filtered by name."""
        params = {"is_deleted": "false"}
        if name:
            params["name"] = name
        return await self._request("list_tunnels", "GET", "/cfd_tunnel", params=params) or []

    async def create_tunnel(self, name: str) -> Dict[str, Any]:
        """Create a remotely managed tunnel."""
        logger.info(f"Creating Cloudflare tunnel {name}")
        return await self._request(
            "create_tunnel",
            "POST",
            "/cfd_tunnel",
            json={"name": name, "config_src": "cloudflare"},
        )

    async def get_tunnel_token(self, tunnel_id: str) -> str:
        """Fetch the connector token cloudflared runs with."""
        token = await self._request("get_tunnel_token", "GET", f"/cfd_tunnel/{tunnel_id}/token")
        if not isinstance(token, str) or not token:
            raise ExternalCallFailedError("get_tunnel_token", "empty token in response")
        return token
