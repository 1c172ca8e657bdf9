"""Minimal module: asks for a single secret until it has one."""

from typing import Dict, List

from ..api import ConfigPoint, Value, ValueKind
from ..engine import Evaluation, ExpressionFunction
from ..module import ModuleDeps


class SampleModule:
    def __init__(self, identifier: str = "test", display_name: str = "Testing"):
        self.identifier = identifier
        self.display_name = display_name

    async def get_config_points(self, deps: ModuleDeps) -> List[ConfigPoint]:
        if deps.get_state().find_config(deps.get_module_name(), self.identifier) is not None:
            return []

        return [
            ConfigPoint(
                identifier=self.identifier,
                name=self.display_name,
                kind=ValueKind.SECRET,
            )
        ]

    async def get_functions(self, deps: ModuleDeps) -> Dict[str, ExpressionFunction]:
        return {
            f"{self.identifier}_value": ExpressionFunction(
                name=f"{self.identifier}_value",
                min_args=0,
                max_args=0,
                evaluate=self._value,
                description=f"The resolved '{self.identifier}' secret",
            )
        }

    async def _value(self, deps: ModuleDeps, args: List[Value]) -> Evaluation:
        # The point is declared above, so by now it must be resolved.
        entry = deps.get_state().require(deps.get_module_name(), self.identifier)
        return Evaluation.done(entry.to_value())
