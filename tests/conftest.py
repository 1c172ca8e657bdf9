"""
Shared pytest fixtures for Wingman tests.

This module provides common fixtures including:
- In-memory state stores and module registries
- ScriptedModule: a module whose config points are scripted per pass
- CloudflareAPIMock: httpx.MockTransport standing in for the Cloudflare API
"""

import json
import os
import sys
from typing import Callable, Dict, List, Optional, Set
from unittest.mock import AsyncMock

import httpx
import pytest

# Add parent directory to path for imports
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from wingman.modules.api import ConfigPoint, StateConfigEntry, ValueKind
from wingman.modules.cloudflare import CloudflareClient, CloudflareCredentials
from wingman.modules.module import ModuleDeps, ModuleRegistry
from wingman.modules.state import StateStore


# =============================================================================
# State and module helpers
# =============================================================================


def make_entry(module_name: str, name: str, text: str, kind: ValueKind = ValueKind.STRING):
    """Create a StateConfigEntry from text."""
    return StateConfigEntry(module_name=module_name, name=name, kind=kind, value=text.encode())


class ScriptedModule:
    """
    Module that declares every identifier in `wants` not yet in state.

    With `observe_state=False` it ignores state and keeps asking, which is
    how a buggy module behaves.
    """

    def __init__(self, wants: List[str], observe_state: bool = True, kind=ValueKind.STRING):
        self.wants = wants
        self.observe_state = observe_state
        self.kind = kind
        self.calls = 0

    async def get_config_points(self, deps: ModuleDeps) -> List[ConfigPoint]:
        self.calls += 1
        return [
            ConfigPoint(identifier=ident, name=ident.title(), kind=self.kind)
            for ident in self.wants
            if not self.observe_state or deps.state.find_config(deps.module_name, ident) is None
        ]


@pytest.fixture
def state():
    """Create an empty in-memory state store."""
    return StateStore()


@pytest.fixture
def registry():
    """Create an empty module registry."""
    return ModuleRegistry()


@pytest.fixture
def mock_deployer():
    """Create a deployer whose deploy() succeeds."""
    deployer = AsyncMock()
    deployer.deploy = AsyncMock(return_value=None)
    return deployer


# =============================================================================
# Cloudflare API mocking
# =============================================================================


class CloudflareAPIMock:
    """
    In-memory Cloudflare tunnel API.

    Usage:
        def test_token(cloudflare_api):
            cloudflare_api.tunnels.append({"id": "t-1", "name": "home"})
            module = CloudflaredModule("acc", "home", client_factory=cloudflare_api.factory())
            ...
            assert cloudflare_api.count("GET", "/cfd_tunnel") == 1
    """

    BASE_URL = "https://api.cloudflare.test/client/v4"

    def __init__(self, token: str = "eyJ-tunnel-token"):
        self.tunnels: List[Dict] = []
        self.token = token
        self.requests: List[httpx.Request] = []
        self.failing: Set[str] = set()

    @staticmethod
    def _ok(result) -> httpx.Response:
        return httpx.Response(200, json={"success": True, "errors": [], "result": result})

    @staticmethod
    def _error(status: int, code: int, message: str) -> httpx.Response:
        return httpx.Response(
            status, json={"success": False, "errors": [{"code": code, "message": message}], "result": None}
        )

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        path = request.url.path

        if request.method == "GET" and path.endswith("/cfd_tunnel"):
            if "list" in self.failing:
                return self._error(403, 10000, "Authentication error")
            name = request.url.params.get("name")
            return self._ok([t for t in self.tunnels if not name or t["name"] == name])

        if request.method == "POST" and path.endswith("/cfd_tunnel"):
            if "create" in self.failing:
                return self._error(400, 1013, "Tunnel quota exceeded")
            body = json.loads(request.content)
            tunnel = {"id": f"tunnel-{len(self.tunnels) + 1}", "name": body["name"]}
            self.tunnels.append(tunnel)
            return self._ok(tunnel)

        if request.method == "GET" and path.endswith("/token"):
            if "token" in self.failing:
                return httpx.Response(500, text="upstream exploded")
            return self._ok(self.token)

        return self._error(404, 7003, "No route for that URI")

    @property
    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self.handler)

    def factory(self) -> Callable[[str, CloudflareCredentials], CloudflareClient]:
        return lambda account_id, credentials: CloudflareClient(
            account_id, credentials, base_url=self.BASE_URL, transport=self.transport
        )

    def count(self, method: str, suffix: Optional[str] = None) -> int:
        return sum(
            1
            for r in self.requests
            if r.method == method and (suffix is None or r.url.path.endswith(suffix))
        )


@pytest.fixture
def cloudflare_api():
    """Create a fresh Cloudflare API mock."""
    return CloudflareAPIMock()
