"""
Negotiation host and its factory.

The factory is the composition root: it picks the state backend, the
value supplier and the pass budget from configuration and wires them
into a Host. Callers only see the Host facade.
"""

import asyncio
import logging
from typing import Iterable, Optional

import redis.asyncio as redis

from wingman.config.provider import ConfigProvider
from wingman.modules.engine import Evaluation, ExpressionEngine, FunctionCall
from wingman.modules.module import Closeable, Module, ModuleRegistry, RegisteredModule
from wingman.modules.negotiation import (
    EnvValueSupplier,
    NegotiationLoop,
    NegotiationResult,
    ValueSupplier,
)
from wingman.modules.state import RedisStateStore, StateStore

logger = logging.getLogger("wingman.host")


class Host:
    """Facade over the registry, the engine and the negotiation loop."""

    def __init__(
        self,
        state: StateStore,
        supplier: ValueSupplier,
        max_passes: int = NegotiationLoop.DEFAULT_MAX_PASSES,
        redis_client: Optional[redis.Redis] = None,
    ):
        """
        Initialize host.

        Args:
            state: Store resolved configuration is appended to
            supplier: Resolves outstanding config points
            max_passes: Negotiation pass budget
            redis_client: Redis client owned by this host, closed by aclose()
        """
        self.state = state
        self.redis_client = redis_client
        self.registry = ModuleRegistry()
        self.engine = ExpressionEngine(self.registry, state)
        self.loop = NegotiationLoop(
            self.registry, state, supplier, max_passes=max_passes, engine=self.engine
        )

    def register(self, name: str, module: Module) -> RegisteredModule:
        return self.registry.register(name, module)

    async def negotiate(
        self,
        calls: Iterable[FunctionCall] = (),
        cancel_event: Optional[asyncio.Event] = None,
    ) -> NegotiationResult:
        """Run the negotiation loop to its fixpoint."""
        logger.info(f"Negotiating configuration for {len(self.registry)} modules")
        return await self.loop.run(calls, cancel_event)

    async def evaluate(
        self, call: FunctionCall, cancel_event: Optional[asyncio.Event] = None
    ) -> Evaluation:
        """Evaluate a single function call without negotiating."""
        return await self.engine.evaluate(call, cancel_event)

    async def aclose(self) -> None:
        """Release module resources and the owned Redis connection."""
        for registered in self.registry:
            if isinstance(registered.module, Closeable):
                await registered.module.close()
        if self.redis_client is not None:
            await self.redis_client.aclose()
            self.redis_client = None
        logger.info("Host closed")

    async def __aenter__(self) -> "Host":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.aclose()


class HostFactory:
    """Builds a Host from configuration."""

    @staticmethod
    async def build(
        config_provider: ConfigProvider,
        supplier: Optional[ValueSupplier] = None,
        redis_client: Optional[redis.Redis] = None,
    ) -> Host:
        """
        Build a ready-to-use host.

        Args:
            config_provider: Configuration provider
            supplier: Value supplier (defaults to environment variables)
            redis_client: Optional Redis client, used when the store backend is redis

        Returns:
            Host with its state loaded
        """
        host_config = config_provider.get_host_config()
        store_config = config_provider.get_store_config()

        owned_client = None
        if store_config.uses_redis:
            # A caller-supplied client stays owned by the caller
            if redis_client is None:
                owned_client = redis.from_url(store_config.redis_url, decode_responses=True)
            client = redis_client or owned_client
            state = RedisStateStore(client, key=store_config.state_key)
            await state.load()
            logger.info(f"Using Redis state store ({store_config.state_key})")
        else:
            state = StateStore()
            logger.info("Using in-memory state store")

        return Host(
            state,
            supplier or EnvValueSupplier(prefix=host_config.value_prefix),
            max_passes=host_config.max_passes,
            redis_client=owned_client,
        )
