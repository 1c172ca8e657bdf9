"""Cloudflared module: provisions a tunnel token as a secret."""

import logging
from typing import Callable, Dict, List, Optional

from ..api import ConfigPoint, StateConfigEntry, Value, ValueKind
from ..deploy import Deployer, new_secret
from ..engine import Evaluation, ExpressionFunction
from ..module import ModuleDeps
from .client import DEFAULT_BASE_URL, CloudflareClient, CloudflareCredentials

logger = logging.getLogger("wingman.cloudflare")

ClientFactory = Callable[[str, CloudflareCredentials], CloudflareClient]

API_KEY = "api_key"
EMAIL = "email"
TOKEN = "cloudflared_token"

CREDENTIAL_POINTS = [
    ConfigPoint(
        identifier=API_KEY,
        name="Cloudflare API key",
        description="Global API key of the account owning the tunnel.",
        kind=ValueKind.SECRET,
    ),
    ConfigPoint(
        identifier=EMAIL,
        name="Cloudflare email",
        description="Email address the API key belongs to.",
        kind=ValueKind.STRING,
    ),
]


class CloudflaredModule:
    """
    Declares Cloudflare credentials and exposes `cloudflared_token`.

    The account and tunnel are registration-time configuration. The token
    function looks for its own cached entry first, so re-evaluation after
    a success never touches the API again.
    """

    def __init__(
        self,
        account_id: str,
        tunnel_name: str,
        deployer: Optional[Deployer] = None,
        namespace: str = "default",
        base_url: str = DEFAULT_BASE_URL,
        timeout: float = 10.0,
        client_factory: Optional[ClientFactory] = None,
    ):
        """
        Initialize module.

        Args:
            account_id: Cloudflare account identifier
            tunnel_name: Tunnel used when the function gets no argument
            deployer: Optional deployer; when set the token is applied as a Secret
            namespace: Namespace for the deployed Secret
            base_url: Cloudflare API root
            timeout: API timeout in seconds
            client_factory: Builds the API client (override for testing)
        """
        self.account_id = account_id
        self.tunnel_name = tunnel_name
        self.deployer = deployer
        self.namespace = namespace
        self.client_factory = client_factory or (
            lambda account_id, credentials: CloudflareClient(
                account_id, credentials, base_url=base_url, timeout=timeout
            )
        )

    def _missing_credentials(self, deps: ModuleDeps) -> List[ConfigPoint]:
        return [
            point
            for point in CREDENTIAL_POINTS
            if deps.state.find_config(deps.module_name, point.identifier) is None
        ]

    async def get_config_points(self, deps: ModuleDeps) -> List[ConfigPoint]:
        return self._missing_credentials(deps)

    async def get_functions(self, deps: ModuleDeps) -> Dict[str, ExpressionFunction]:
        return {
            TOKEN: ExpressionFunction(
                name=TOKEN,
                min_args=0,
                max_args=1,
                evaluate=self.cloudflared_token,
                description="Connector token for a Cloudflare tunnel (created if missing)",
            )
        }

    def entry_name(self, tunnel_name: str) -> str:
        if tunnel_name == self.tunnel_name:
            return TOKEN
        return f"{TOKEN}.{tunnel_name}"

    async def cloudflared_token(self, deps: ModuleDeps, args: List[Value]) -> Evaluation:
        tunnel_name = args[0].reveal() if args else self.tunnel_name
        entry_name = self.entry_name(tunnel_name)

        cached = deps.state.find_config(deps.module_name, entry_name)
        if cached is not None:
            logger.debug(f"Using cached token for tunnel {tunnel_name}")
            return Evaluation.done(cached.to_value())

        missing = self._missing_credentials(deps)
        if missing:
            return Evaluation.deferred(missing)

        credentials = CloudflareCredentials(
            email=deps.state.require(deps.module_name, EMAIL).value.decode("utf-8"),
            api_key=deps.state.require(deps.module_name, API_KEY).to_value(),
        )

        async with self.client_factory(self.account_id, credentials) as client:
            tunnels = await client.list_tunnels(tunnel_name)
            tunnel = next((t for t in tunnels if t.get("name") == tunnel_name), None)
            deps.raise_if_cancelled()

            if tunnel is None:
                tunnel = await client.create_tunnel(tunnel_name)
                deps.raise_if_cancelled()

            token = Value.secret(await client.get_tunnel_token(tunnel["id"]))

        if self.deployer is not None:
            ref = new_secret(deps, entry_name, {"token": token.to_bytes()}, self.namespace)
            await self.deployer.deploy(deps, ref)

        await deps.state.append(StateConfigEntry.from_value(deps.module_name, entry_name, token))
        logger.info(f"Provisioned token for tunnel {tunnel_name} ({tunnel['id']})")
        return Evaluation.done(token)
