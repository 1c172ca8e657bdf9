"""
Secret materialization into the cluster.

new_secret() only builds a reference; deploy() is the side effect, and a
function must not append state until deploy() has returned.
"""

import asyncio
import base64
import logging
import re
from dataclasses import dataclass, field
from typing import Dict, Optional, Protocol

import yaml

from ..api import DeployFailedError
from ..module import ModuleDeps

logger = logging.getLogger("wingman.deploy")

MODULE_LABEL = "wingman.io/module"


@dataclass(frozen=True)
class SecretRef:
    """A Kubernetes Secret ready to be applied."""

    name: str
    namespace: str
    module_name: str
    data: Dict[str, bytes] = field(default_factory=dict)

    def to_manifest(self) -> dict:
        """Render as a v1/Secret manifest with base64 data."""
        return {
            "apiVersion": "v1",
            "kind": "Secret",
            "type": "Opaque",
            "metadata": {
                "name": self.name,
                "namespace": self.namespace,
                "labels": {MODULE_LABEL: self.module_name},
            },
            "data": {
                key: base64.b64encode(value).decode("ascii")
                for key, value in sorted(self.data.items())
            },
        }

    def __repr__(self) -> str:
        return (
            f"SecretRef(name={self.name!r}, namespace={self.namespace!r}, "
            f"keys={sorted(self.data)!r})"
        )


def _dns_name(raw: str) -> str:
    name = re.sub(r"[^a-z0-9-]+", "-", raw.lower().replace("_", "-")).strip("-")
    return name[:253] or "secret"


def new_secret(
    deps: ModuleDeps,
    name: str,
    data: Dict[str, bytes],
    namespace: str = "default",
) -> SecretRef:
    """
    Build a secret reference scoped to the calling module. Pure construction.

    Example:
        >>> new_secret(deps, "cloudflared_token", {"token": b"..."}).name
        'cloudflare-cloudflared-token'
    """
    return SecretRef(
        name=_dns_name(f"{deps.module_name}-{name}"),
        namespace=namespace,
        module_name=deps.module_name,
        data=dict(data),
    )


class Deployer(Protocol):
    """Protocol for the deployment collaborator."""

    async def deploy(self, deps: ModuleDeps, ref: SecretRef) -> None:
        """
        Apply the secret. Returns only once the change is confirmed.

        Raises:
            DeployFailedError: The change was not applied
        """
        ...


class KubectlDeployer:
    """Applies secrets by piping manifests into `kubectl apply -f -`."""

    def __init__(
        self,
        kubectl_path: str = "kubectl",
        timeout: float = 30.0,
        context: Optional[str] = None,
    ):
        """
        Initialize deployer.

        Args:
            kubectl_path: kubectl binary
            timeout: Seconds before the apply is killed
            context: Optional kubeconfig context
        """
        self.kubectl_path = kubectl_path
        self.timeout = timeout
        self.context = context

    def _command(self) -> list:
        cmd = [self.kubectl_path]
        if self.context:
            cmd += ["--context", self.context]
        return cmd + ["apply", "-f", "-"]

    async def deploy(self, deps: ModuleDeps, ref: SecretRef) -> None:
        deps.raise_if_cancelled()
        manifest = yaml.safe_dump(ref.to_manifest(), sort_keys=False).encode("utf-8")

        logger.debug(f"Applying secret {ref.namespace}/{ref.name} for module {deps.module_name}")

        try:
            process = await asyncio.create_subprocess_exec(
                *self._command(),
                stdin=asyncio.subprocess.PIPE,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
            )
        except OSError as e:
            raise DeployFailedError(ref.name, f"cannot start kubectl: {e}") from e

        try:
            stdout, stderr = await asyncio.wait_for(
                process.communicate(manifest), timeout=self.timeout
            )
        except asyncio.TimeoutError:
            process.kill()
            await process.wait()
            raise DeployFailedError(ref.name, f"kubectl apply timed out after {self.timeout}s")
        except asyncio.CancelledError:
            process.kill()
            await process.wait()
            raise

        if process.returncode != 0:
            message = stderr.decode("utf-8", "replace").strip() or f"exit code {process.returncode}"
            logger.error(f"kubectl apply failed for {ref.name}: {message}")
            raise DeployFailedError(ref.name, message)

        logger.info(f"Deployed secret {ref.namespace}/{ref.name}: {stdout.decode().strip()}")
