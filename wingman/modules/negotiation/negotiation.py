"""
Negotiation loop.

Drives the fixpoint: ask every module for missing config, evaluate the
requested function calls once modules are satisfied, hand whatever is
still missing to a value supplier, append what it returns, repeat.
"""

import asyncio
import logging
import os
import re
from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Mapping, Optional, Protocol, Union

from ..api import (
    ConfigPoint,
    NegotiationStalledError,
    PointKey,
    StateConfigEntry,
    Value,
)
from ..engine import ExpressionEngine, FunctionCall
from ..module import ModuleRegistry, RegisteredModule
from ..state import StateStore

logger = logging.getLogger("wingman.negotiation")


@dataclass(frozen=True)
class PendingPoint:
    """A config point tagged with the module that asked for it."""

    module_name: str
    point: ConfigPoint

    @property
    def key(self) -> PointKey:
        return self.point.key(self.module_name)


class ValueSupplier(Protocol):
    """Protocol for whatever supplies values for outstanding points."""

    async def supply(self, points: List[PendingPoint]) -> Dict[PointKey, Value]:
        """
        Resolve as many of the points as possible.

        Returns:
            Values keyed by (module_name, identifier); missing keys stay outstanding
        """
        ...


class MappingValueSupplier:
    """Supplies values from a fixed mapping. Records every request it gets."""

    def __init__(self, values: Mapping[PointKey, Union[str, Value]]):
        self.values = {PointKey(*key): value for key, value in values.items()}
        self.requests: List[List[PendingPoint]] = []

    async def supply(self, points: List[PendingPoint]) -> Dict[PointKey, Value]:
        self.requests.append(list(points))

        supplied = {}
        for pending in points:
            value = self.values.get(pending.key)
            if value is None:
                continue
            if isinstance(value, str):
                value = Value.of(pending.point.kind, value)
            supplied[pending.key] = value
        return supplied


class EnvValueSupplier:
    """
    Supplies values from environment variables.

    The variable for module "cloudflare" and point "api_key" is
    WINGMAN_CLOUDFLARE_API_KEY.
    """

    def __init__(self, prefix: str = "WINGMAN_", environ: Optional[Mapping[str, str]] = None):
        self.prefix = prefix
        self.environ = environ if environ is not None else os.environ

    def variable_name(self, key: PointKey) -> str:
        raw = f"{key.module_name}_{key.identifier}"
        return self.prefix + re.sub(r"[^A-Za-z0-9]", "_", raw).upper()

    async def supply(self, points: List[PendingPoint]) -> Dict[PointKey, Value]:
        supplied = {}
        for pending in points:
            text = self.environ.get(self.variable_name(pending.key))
            if text is not None:
                supplied[pending.key] = Value.of(pending.point.kind, text)
        return supplied


@dataclass
class NegotiationResult:
    """Outcome of a converged negotiation run."""

    passes: int
    values: Dict[FunctionCall, Value] = field(default_factory=dict)
    surfaced: List[List[PendingPoint]] = field(default_factory=list)


class NegotiationLoop:
    """Fixpoint driver over a set of registered modules."""

    DEFAULT_MAX_PASSES = 10

    def __init__(
        self,
        registry: ModuleRegistry,
        state: StateStore,
        supplier: ValueSupplier,
        max_passes: int = DEFAULT_MAX_PASSES,
        engine: Optional[ExpressionEngine] = None,
    ):
        """
        Initialize negotiation loop.

        Args:
            registry: Participating modules
            state: Store supplied values are appended to
            supplier: Resolves outstanding points (operator, vault, env...)
            max_passes: Pass budget before NegotiationStalledError
            engine: Expression engine (defaults to one over the same state)
        """
        if max_passes < 1:
            raise ValueError("max_passes must be at least 1")
        self.registry = registry
        self.state = state
        self.supplier = supplier
        self.max_passes = max_passes
        self.engine = engine or ExpressionEngine(registry, state)

    async def collect_points(self, cancel_event: Optional[asyncio.Event] = None) -> List[PendingPoint]:
        """Query every module concurrently and return the outstanding points."""
        cancel_event = cancel_event or asyncio.Event()
        batches = await asyncio.gather(
            *(self._module_points(registered, cancel_event) for registered in self.registry)
        )
        return self._outstanding(pending for batch in batches for pending in batch)

    async def _module_points(
        self, registered: RegisteredModule, cancel_event: asyncio.Event
    ) -> List[PendingPoint]:
        deps = registered.deps(self.state, cancel_event)
        points = await registered.module.get_config_points(deps)
        return [PendingPoint(registered.name, point) for point in points or []]

    def _outstanding(self, pending: Iterable[PendingPoint]) -> List[PendingPoint]:
        """Dedup by (module, identifier) and drop anything already resolved."""
        seen = set()
        outstanding = []
        for item in pending:
            if item.key in seen:
                continue
            seen.add(item.key)

            if self.state.is_resolved(item.key):
                logger.warning(
                    f"Module {item.module_name} re-requested resolved config "
                    f"'{item.point.identifier}'; ignoring"
                )
                continue
            outstanding.append(item)
        return outstanding

    async def run(
        self,
        calls: Iterable[FunctionCall] = (),
        cancel_event: Optional[asyncio.Event] = None,
    ) -> NegotiationResult:
        """
        Negotiate until no module or function needs anything new.

        Args:
            calls: Function calls whose values the host needs
            cancel_event: Host cancellation signal

        Returns:
            NegotiationResult with the pass count and call values

        Raises:
            NegotiationStalledError: Budget exceeded or no progress possible
            WingmanError: Hard failures from modules or functions
        """
        cancel_event = cancel_event or asyncio.Event()
        calls = list(dict.fromkeys(calls))
        result = NegotiationResult(passes=0)
        pending: List[PendingPoint] = []

        for pass_number in range(1, self.max_passes + 1):
            if cancel_event.is_set():
                raise asyncio.CancelledError("Negotiation was cancelled")

            result.passes = pass_number
            pending = await self.collect_points(cancel_event)

            if not pending:
                deferred = await self._evaluate_calls(calls, result, cancel_event)
                pending = self._outstanding(deferred)

                waiting = [call for call in calls if call not in result.values]
                if not pending and waiting:
                    raise NegotiationStalledError(
                        pass_number,
                        [],
                        f"{', '.join(c.label for c in waiting)} deferred only on resolved config",
                    )

            if not pending:
                logger.info(f"Negotiation stable after {pass_number} passes")
                return result

            result.surfaced.append(pending)
            logger.info(
                f"Pass {pass_number}: {len(pending)} config points outstanding "
                f"({', '.join(f'{p.module_name}/{p.point.identifier}' for p in pending)})"
            )
            await self._supply(pending, pass_number)

        raise NegotiationStalledError(
            self.max_passes, [p.key for p in pending], "pass budget exhausted"
        )

    async def _evaluate_calls(
        self,
        calls: List[FunctionCall],
        result: NegotiationResult,
        cancel_event: asyncio.Event,
    ) -> List[PendingPoint]:
        deferred = []
        for call in calls:
            if call in result.values:
                continue

            evaluation = await self.engine.evaluate(call, cancel_event)
            if evaluation.is_deferred:
                deferred.extend(PendingPoint(call.module_name, p) for p in evaluation.points)
            else:
                result.values[call] = evaluation.value
        return deferred

    async def _supply(self, pending: List[PendingPoint], pass_number: int) -> None:
        supplied = await self.supplier.supply(pending)

        resolved = 0
        for item in pending:
            value = supplied.get(item.key)
            if value is None:
                continue
            if value.kind != item.point.kind:
                value = Value.of(item.point.kind, value.reveal())

            await self.state.append(
                StateConfigEntry.from_value(item.module_name, item.point.identifier, value)
            )
            resolved += 1

        if resolved == 0:
            raise NegotiationStalledError(
                pass_number, [p.key for p in pending], "no values were supplied"
            )
        logger.info(f"Pass {pass_number}: {resolved}/{len(pending)} config points supplied")
