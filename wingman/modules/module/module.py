"""Module contract and registration following Black Box Design principles."""

import asyncio
import logging
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Dict, Iterator, List, Protocol, runtime_checkable

from ..api import ConfigPoint, InvalidStateError
from ..state import State

if TYPE_CHECKING:
    from ..engine import ExpressionFunction

logger = logging.getLogger("wingman.module")


@dataclass(frozen=True)
class ModuleDeps:
    """
    Request-scoped context handed to every module and function call.

    Carries the owning module's name, the state to read (and append to),
    and the host's cancellation signal. Never shared between modules.
    """

    module_name: str
    state: State
    cancel_event: asyncio.Event = field(default_factory=asyncio.Event)

    def get_state(self) -> State:
        return self.state

    def get_module_name(self) -> str:
        return self.module_name

    @property
    def cancelled(self) -> bool:
        return self.cancel_event.is_set()

    def raise_if_cancelled(self) -> None:
        if self.cancel_event.is_set():
            raise asyncio.CancelledError(f"Evaluation for module '{self.module_name}' was cancelled")


@runtime_checkable
class Module(Protocol):
    """Protocol every module implements."""

    async def get_config_points(self, deps: ModuleDeps) -> List[ConfigPoint]:
        """
        Declare the config this module still needs.

        A conforming module checks deps.state first and never declares a
        point whose identifier is already resolved.
        """
        ...


@runtime_checkable
class FunctionProvider(Protocol):
    """Optional capability: expose expression functions."""

    async def get_functions(self, deps: ModuleDeps) -> Dict[str, "ExpressionFunction"]:
        ...


@runtime_checkable
class Closeable(Protocol):
    """Optional capability: hold resources the host releases on shutdown."""

    async def close(self) -> None:
        ...


@dataclass
class RegisteredModule:
    """A module with its capabilities resolved at registration time."""

    name: str
    module: Module
    provides_functions: bool

    def deps(self, state: State, cancel_event: asyncio.Event) -> ModuleDeps:
        return ModuleDeps(module_name=self.name, state=state, cancel_event=cancel_event)


class ModuleRegistry:
    """Registry of the modules taking part in a negotiation."""

    def __init__(self):
        self._modules: Dict[str, RegisteredModule] = {}

    def register(self, name: str, module: Module) -> RegisteredModule:
        """
        Register a module under a unique name.

        Args:
            name: Module name, used to scope its config entries
            module: Object implementing Module, optionally FunctionProvider

        Returns:
            The registration record

        Raises:
            ValueError: If the name is already taken
            TypeError: If the object does not implement Module
        """
        if name in self._modules:
            raise ValueError(f"Module '{name}' is already registered")
        if not isinstance(module, Module):
            raise TypeError(f"{type(module).__name__} does not implement get_config_points")

        registered = RegisteredModule(
            name=name,
            module=module,
            provides_functions=isinstance(module, FunctionProvider),
        )
        self._modules[name] = registered

        logger.info(
            f"Registered module {name} "
            f"({'with' if registered.provides_functions else 'without'} functions)"
        )
        return registered

    def get(self, name: str) -> RegisteredModule:
        try:
            return self._modules[name]
        except KeyError:
            raise InvalidStateError(f"Module '{name}' is not registered", module_name=name) from None

    def __iter__(self) -> Iterator[RegisteredModule]:
        return iter(list(self._modules.values()))

    def __len__(self) -> int:
        return len(self._modules)

    def __contains__(self, name: object) -> bool:
        return name in self._modules
