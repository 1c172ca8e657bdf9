"""
Host-side proxy for a module served by wingman.main.

RemoteModule implements both Module and FunctionProvider, so the host
registers it like any in-process module.
"""

import logging
from typing import Any, Dict, List, Optional

import httpx
from pydantic import BaseModel, ValidationError

from ..api import ConfigPoint, ExternalCallFailedError, Value, error_from_dict
from ..engine import EvaluateFn, Evaluation, ExpressionFunction
from ..module import ModuleDeps
from .protocol import (
    ConfigPointsResponse,
    ErrorResponse,
    EvaluateRequest,
    EvaluateResponse,
    FunctionsResponse,
    StateRequest,
    ValuePayload,
)

logger = logging.getLogger("wingman.remote")


class RemoteModule:
    """Module whose implementation lives behind an HTTP endpoint."""

    def __init__(
        self,
        base_url: str,
        timeout: float = 30.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        """
        Initialize remote module proxy.

        Args:
            base_url: Root URL of the module server
            timeout: Request timeout in seconds
            transport: Optional httpx transport (e.g. ASGITransport in tests)
        """
        self.base_url = base_url
        self._client = httpx.AsyncClient(base_url=base_url, timeout=timeout, transport=transport)

    async def close(self) -> None:
        await self._client.aclose()

    async def _post(self, call: str, path: str, payload: BaseModel) -> Dict[str, Any]:
        try:
            response = await self._client.post(
                path,
                content=payload.model_dump_json(),
                headers={"Content-Type": "application/json"},
            )
        except httpx.HTTPError as e:
            logger.error(f"Remote module {self.base_url} {call} failed: {e}")
            raise ExternalCallFailedError(f"remote {call}", str(e) or type(e).__name__) from e

        if response.status_code >= 400:
            try:
                body = response.json()
            except ValueError:
                body = {}
            try:
                error = ErrorResponse.model_validate(body)
            except ValidationError:
                raise ExternalCallFailedError(
                    f"remote {call}", f"HTTP {response.status_code}"
                ) from None
            raise error_from_dict(error.model_dump())

        return response.json()

    def _state_request(self, deps: ModuleDeps) -> StateRequest:
        return StateRequest.snapshot(deps.module_name, deps.state.entries())

    async def get_config_points(self, deps: ModuleDeps) -> List[ConfigPoint]:
        body = await self._post("get_config_points", "/config-points", self._state_request(deps))
        return ConfigPointsResponse.model_validate(body).points

    async def get_functions(self, deps: ModuleDeps) -> Dict[str, ExpressionFunction]:
        body = await self._post("get_functions", "/functions", self._state_request(deps))
        return {
            info.name: ExpressionFunction(
                name=info.name,
                min_args=info.min_args,
                max_args=info.max_args,
                evaluate=self._evaluator(info.name),
                description=info.description,
            )
            for info in FunctionsResponse.model_validate(body).functions
        }

    def _evaluator(self, name: str) -> EvaluateFn:
        async def evaluate(deps: ModuleDeps, args: List[Value]) -> Evaluation:
            request = EvaluateRequest.snapshot(
                deps.module_name,
                deps.state.entries(),
                args=[ValuePayload.from_value(arg) for arg in args],
            )
            body = await self._post(name, f"/functions/{name}/evaluate", request)
            response = EvaluateResponse.model_validate(body)

            # Replay the remote appends so the host engine commits them
            for payload in response.appended:
                await deps.state.append(payload.to_entry())

            if response.value is not None:
                return Evaluation.done(response.value.to_value())
            return Evaluation.deferred(response.points)

        return evaluate
