#!/usr/bin/env python3
"""
Wingman - Module Server Entry Point

This is the thin layer that serves one module over HTTP so a host can:
1. Ask it for config points
2. List its expression functions
3. Evaluate a function against a state snapshot

All negotiation logic is in the modules, following black box principles.
"""

import logging
import sys
from typing import Optional

import uvicorn
from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from wingman import __version__
from wingman.config.provider import ConfigProvider, EnvConfigProvider
from wingman.logging_config import configure_logging, get_logging_config
from wingman.modules.api import ErrorKind, WingmanError
from wingman.modules.engine import ExpressionEngine, FunctionCall
from wingman.modules.module import Module, ModuleDeps, ModuleRegistry
from wingman.modules.remote.protocol import (
    ConfigPointsResponse,
    EvaluateRequest,
    EntryPayload,
    ErrorResponse,
    EvaluateResponse,
    FunctionInfo,
    FunctionsResponse,
    StateRequest,
    ValuePayload,
)
from wingman.modules.state import StateStore

logger = logging.getLogger("wingman.main")

STATUS_BY_KIND = {
    ErrorKind.INVALID_STATE: 409,
    ErrorKind.ARITY_MISMATCH: 400,
    ErrorKind.EXTERNAL_CALL_FAILED: 502,
    ErrorKind.NEGOTIATION_STALLED: 409,
    ErrorKind.DEPLOY_FAILED: 502,
}


def create_app(module: Module) -> FastAPI:
    """
    Build the HTTP surface for a single module.

    Each request registers the module under the caller's name against a
    fresh store built from the caller's state snapshot.
    """
    # Fail fast on objects that are not modules
    ModuleRegistry().register("module", module)

    app = FastAPI(title=f"Wingman module ({type(module).__name__})", version=__version__)
    app.state.module = module

    def engine_for(request: StateRequest) -> ExpressionEngine:
        registry = ModuleRegistry()
        registry.register(request.module_name, module)
        return ExpressionEngine(registry, StateStore(request.state_entries()))

    @app.get("/health")
    async def health_check():
        return {"status": "healthy", "module": type(module).__name__, "version": __version__}

    @app.post("/config-points", response_model=ConfigPointsResponse)
    async def config_points(request: StateRequest):
        deps = ModuleDeps(module_name=request.module_name, state=StateStore(request.state_entries()))
        points = await module.get_config_points(deps)
        return ConfigPointsResponse(points=points or [])

    @app.post("/functions", response_model=FunctionsResponse)
    async def list_functions(request: StateRequest):
        functions = await engine_for(request).functions(request.module_name)
        return FunctionsResponse(
            functions=[
                FunctionInfo(
                    name=name,
                    min_args=fn.min_args,
                    max_args=fn.max_args,
                    description=fn.description,
                )
                for name, fn in sorted(functions.items())
            ]
        )

    @app.post("/functions/{name}/evaluate", response_model=EvaluateResponse)
    async def evaluate_function(name: str, request: EvaluateRequest):
        engine = engine_for(request)
        before = len(engine.state.entries())

        call = FunctionCall(
            request.module_name, name, tuple(arg.to_value() for arg in request.args)
        )
        result = await engine.evaluate(call)

        return EvaluateResponse(
            value=ValuePayload.from_value(result.value) if result.value is not None else None,
            points=list(result.points),
            appended=[EntryPayload.from_entry(entry) for entry in engine.state.entries()[before:]],
        )

    @app.exception_handler(WingmanError)
    async def wingman_error_handler(request: Request, exc: WingmanError):
        """Map hard failures to HTTP errors the remote client can rebuild."""
        logger.error(f"{exc.kind.value}: {exc.message}")
        return JSONResponse(
            status_code=STATUS_BY_KIND[exc.kind],
            content=ErrorResponse.model_validate(exc.to_dict()).model_dump(mode="json")
        )

    return app


def start(module: Module, config_provider: Optional[ConfigProvider] = None) -> None:
    """Serve a module until the process is stopped."""
    provider = config_provider or EnvConfigProvider()
    server = provider.get_server_config()

    logger.info(f"Starting Wingman module server on {server.host}:{server.port}")
    uvicorn.run(
        create_app(module),
        host=server.host,
        port=server.port,
        log_level=server.log_level.lower(),
        log_config=get_logging_config(server.log_level),
    )


def build_module(kind: str, config_provider: ConfigProvider) -> Module:
    """Build one of the bundled modules from configuration."""
    from wingman.modules.cloudflare import CloudflaredModule
    from wingman.modules.deploy import KubectlDeployer
    from wingman.modules.sample import SampleModule

    if kind == "sample":
        return SampleModule()

    if kind == "cloudflared":
        cloudflare = config_provider.get_cloudflare_config()
        if not cloudflare.is_configured:
            raise ValueError(
                "CLOUDFLARE_ACCOUNT_ID and CLOUDFLARE_TUNNEL_NAME are required for the cloudflared module"
            )
        deploy = config_provider.get_deploy_config()
        deployer = (
            KubectlDeployer(kubectl_path=deploy.kubectl_path, timeout=deploy.timeout)
            if deploy.enabled
            else None
        )
        return CloudflaredModule(
            account_id=cloudflare.account_id,
            tunnel_name=cloudflare.tunnel_name,
            deployer=deployer,
            namespace=deploy.namespace,
            base_url=cloudflare.api_url,
            timeout=cloudflare.timeout,
        )

    raise ValueError(f"Unknown module '{kind}' (expected 'sample' or 'cloudflared')")


def run() -> None:
    """Console entry point: `wingman-module [sample|cloudflared]`."""
    provider = EnvConfigProvider()
    configure_logging(provider.get_server_config().log_level)
    start(build_module(sys.argv[1] if len(sys.argv) > 1 else "sample", provider), provider)


if __name__ == "__main__":
    run()
