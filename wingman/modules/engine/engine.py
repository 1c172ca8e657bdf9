"""
Expression engine.

Evaluates named functions exposed by modules. Arity is checked before a
function runs; a function either produces a value, defers by returning
the config points it still needs, or raises a hard error.
"""

import asyncio
import contextlib
import logging
from dataclasses import dataclass
from typing import AsyncIterator, Awaitable, Callable, Dict, Iterable, List, NamedTuple, Optional, Tuple

from ..api import (
    ArityMismatchError,
    ConfigPoint,
    ExternalCallFailedError,
    InvalidStateError,
    Value,
    WingmanError,
)
from ..module import ModuleDeps, ModuleRegistry
from ..state import StagedState, State

logger = logging.getLogger("wingman.engine")


@dataclass(frozen=True)
class Evaluation:
    """Outcome of one evaluation: a final value, or the points still needed."""

    value: Optional[Value] = None
    points: Tuple[ConfigPoint, ...] = ()

    @classmethod
    def done(cls, value: Value) -> "Evaluation":
        return cls(value=value)

    @classmethod
    def deferred(cls, points: Iterable[ConfigPoint]) -> "Evaluation":
        points = tuple(points)
        if not points:
            raise ValueError("A deferred evaluation needs at least one config point")
        return cls(points=points)

    @property
    def is_deferred(self) -> bool:
        return self.value is None


EvaluateFn = Callable[[ModuleDeps, List[Value]], Awaitable[Evaluation]]


@dataclass(frozen=True)
class ExpressionFunction:
    """A named, arity-checked function a module exposes to host expressions."""

    name: str
    min_args: int
    max_args: int
    evaluate: EvaluateFn
    description: Optional[str] = None

    def __post_init__(self):
        if self.min_args < 0 or self.max_args < self.min_args:
            raise ValueError(
                f"Invalid arity for '{self.name}': {self.min_args}..{self.max_args}"
            )

    def accepts(self, count: int) -> bool:
        return self.min_args <= count <= self.max_args

    def check_arity(self, count: int) -> None:
        if not self.accepts(count):
            raise ArityMismatchError(self.name, count, self.min_args, self.max_args)


class FunctionCall(NamedTuple):
    """A reference to a module function with positional arguments."""

    module_name: str
    function: str
    args: Tuple[Value, ...] = ()

    @property
    def label(self) -> str:
        return f"{self.module_name}.{self.function}/{len(self.args)}"


class ExpressionEngine:
    """
    Evaluates function calls against a state store.

    Appends a function makes are staged and committed only after it
    returns normally. Calls with the same key never run concurrently.
    """

    def __init__(self, registry: ModuleRegistry, state: State):
        """
        Initialize engine.

        Args:
            registry: Modules whose functions can be called
            state: Store the committed appends go to
        """
        self.registry = registry
        self.state = state
        self._locks: Dict[FunctionCall, asyncio.Lock] = {}
        self._waiters: Dict[FunctionCall, int] = {}

    @contextlib.asynccontextmanager
    async def _single_flight(self, call: FunctionCall) -> AsyncIterator[None]:
        """Hold the lock for one call key; the lock is dropped with its last user."""
        lock = self._locks.setdefault(call, asyncio.Lock())
        self._waiters[call] = self._waiters.get(call, 0) + 1
        try:
            async with lock:
                yield
        finally:
            self._waiters[call] -= 1
            if not self._waiters[call]:
                del self._waiters[call]
                del self._locks[call]

    async def functions(
        self, module_name: str, cancel_event: Optional[asyncio.Event] = None
    ) -> Dict[str, ExpressionFunction]:
        """Return the functions a module exposes (empty without the capability)."""
        registered = self.registry.get(module_name)
        if not registered.provides_functions:
            return {}

        deps = registered.deps(self.state, cancel_event or asyncio.Event())
        return await registered.module.get_functions(deps)

    async def evaluate(
        self, call: FunctionCall, cancel_event: Optional[asyncio.Event] = None
    ) -> Evaluation:
        """
        Evaluate one function call.

        Args:
            call: Module, function name and positional arguments
            cancel_event: Host cancellation signal

        Returns:
            Evaluation with either a value or deferred config points

        Raises:
            InvalidStateError: Unknown module or function
            ArityMismatchError: Argument count outside min_args..max_args
            WingmanError: Any hard failure raised by the function
            ExternalCallFailedError: Any other exception escaping the function
            asyncio.CancelledError: The host cancelled the evaluation
        """
        cancel_event = cancel_event or asyncio.Event()
        registered = self.registry.get(call.module_name)

        function = (await self.functions(call.module_name, cancel_event)).get(call.function)
        if function is None:
            raise InvalidStateError(
                f"Module '{call.module_name}' has no function '{call.function}'",
                module_name=call.module_name,
            )
        function.check_arity(len(call.args))

        async with self._single_flight(call):
            staged = StagedState(self.state)
            deps = registered.deps(staged, cancel_event)

            try:
                result = await function.evaluate(deps, list(call.args))
            except (WingmanError, asyncio.CancelledError):
                staged.discard()
                raise
            except Exception as e:
                staged.discard()
                logger.error(f"Function {call.label} failed: {e}")
                raise ExternalCallFailedError(call.label, str(e)) from e

            if not isinstance(result, Evaluation):
                staged.discard()
                raise TypeError(f"Function {call.label} returned {type(result).__name__}")

            if deps.cancelled:
                staged.discard()
                raise asyncio.CancelledError(f"Evaluation of {call.label} was cancelled")

            try:
                committed = await staged.commit()
            except WingmanError:
                staged.discard()
                raise
            except Exception as e:
                staged.discard()
                logger.error(f"Committing {call.label} failed: {e}")
                raise ExternalCallFailedError("state.append", str(e)) from e

        if result.is_deferred:
            logger.info(
                f"Function {call.label} deferred on "
                f"{', '.join(p.identifier for p in result.points)}"
            )
        else:
            logger.info(f"Function {call.label} evaluated ({len(committed)} entries committed)")
        return result
