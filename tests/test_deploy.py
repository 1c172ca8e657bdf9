"""
Tests for the secret deployment adapter.

kubectl is never executed: asyncio.create_subprocess_exec is patched with
a fake process so the manifest piped to it can be inspected.
"""

import asyncio
import base64
from unittest.mock import AsyncMock, MagicMock, patch

import pytest
import yaml

from wingman.modules.api import DeployFailedError
from wingman.modules.deploy import MODULE_LABEL, KubectlDeployer, SecretRef, new_secret
from wingman.modules.module import ModuleDeps


def fake_process(returncode: int = 0, stdout: bytes = b"", stderr: bytes = b""):
    """Create a mock asyncio subprocess."""
    process = MagicMock()
    process.returncode = returncode
    process.communicate = AsyncMock(return_value=(stdout, stderr))
    process.wait = AsyncMock(return_value=returncode)
    process.kill = MagicMock()
    return process


@pytest.fixture
def deps(state):
    return ModuleDeps(module_name="cloudflare", state=state)


class TestNewSecret:
    def test_name_is_module_scoped_dns_label(self, deps):
        ref = new_secret(deps, "cloudflared_token", {"token": b"t"})

        assert ref.name == "cloudflare-cloudflared-token"
        assert ref.namespace == "default"
        assert ref.module_name == "cloudflare"

    def test_construction_is_pure(self, deps, state):
        new_secret(deps, "x", {"k": b"v"}, namespace="edge")

        assert state.entries() == []

    def test_manifest(self, deps):
        ref = new_secret(deps, "cloudflared_token", {"token": b"abc"}, namespace="edge")

        manifest = ref.to_manifest()

        assert manifest["kind"] == "Secret"
        assert manifest["metadata"]["namespace"] == "edge"
        assert manifest["metadata"]["labels"] == {MODULE_LABEL: "cloudflare"}
        assert base64.b64decode(manifest["data"]["token"]) == b"abc"

    def test_repr_hides_data(self):
        ref = SecretRef(name="s", namespace="default", module_name="m", data={"token": b"abc"})

        assert "abc" not in repr(ref)
        assert "token" in repr(ref)


class TestKubectlDeployer:
    @pytest.mark.asyncio
    async def test_pipes_manifest_to_kubectl_apply(self, deps):
        process = fake_process(stdout=b"secret/cloudflare-x configured")
        ref = new_secret(deps, "x", {"token": b"abc"})

        with patch("asyncio.create_subprocess_exec", AsyncMock(return_value=process)) as spawn:
            await KubectlDeployer(kubectl_path="/usr/bin/kubectl", context="prod").deploy(deps, ref)

        assert spawn.call_args[0] == (
            "/usr/bin/kubectl", "--context", "prod", "apply", "-f", "-"
        )
        manifest = yaml.safe_load(process.communicate.call_args[0][0])
        assert manifest["metadata"]["name"] == "cloudflare-x"
        assert manifest["data"]["token"] == base64.b64encode(b"abc").decode()

    @pytest.mark.asyncio
    async def test_non_zero_exit_raises(self, deps):
        process = fake_process(returncode=1, stderr=b"Error from server (Forbidden)")

        with patch("asyncio.create_subprocess_exec", AsyncMock(return_value=process)):
            with pytest.raises(DeployFailedError) as exc_info:
                await KubectlDeployer().deploy(deps, new_secret(deps, "x", {}))

        assert "Forbidden" in exc_info.value.message
        assert exc_info.value.ref_name == "cloudflare-x"

    @pytest.mark.asyncio
    async def test_timeout_kills_process(self, deps):
        process = fake_process()

        async def hang(_input):
            await asyncio.sleep(10)

        process.communicate = AsyncMock(side_effect=hang)

        with patch("asyncio.create_subprocess_exec", AsyncMock(return_value=process)):
            with pytest.raises(DeployFailedError) as exc_info:
                await KubectlDeployer(timeout=0.01).deploy(deps, new_secret(deps, "x", {}))

        process.kill.assert_called_once()
        assert "timed out" in exc_info.value.message

    @pytest.mark.asyncio
    async def test_missing_binary(self, deps):
        spawn = AsyncMock(side_effect=FileNotFoundError("kubectl"))

        with patch("asyncio.create_subprocess_exec", spawn):
            with pytest.raises(DeployFailedError):
                await KubectlDeployer().deploy(deps, new_secret(deps, "x", {}))

    @pytest.mark.asyncio
    async def test_cancelled_deps_never_spawn(self, state):
        deps = ModuleDeps(module_name="m", state=state)
        deps.cancel_event.set()
        spawn = AsyncMock()

        with patch("asyncio.create_subprocess_exec", spawn):
            with pytest.raises(asyncio.CancelledError):
                await KubectlDeployer().deploy(deps, new_secret(deps, "x", {}))

        spawn.assert_not_called()
