"""
Deploy Module - Black Box Interface

Purpose: Materialize secrets produced by expression functions
Interface: new_secret(), Deployer.deploy()
Hidden: Manifest rendering, kubectl invocation, timeouts

Can be replaced with any deployer (Kubernetes API client, Vault, ...)
that only returns once the change is confirmed.
"""

from .deploy import MODULE_LABEL, Deployer, KubectlDeployer, SecretRef, new_secret

__all__ = ["SecretRef", "new_secret", "Deployer", "KubectlDeployer", "MODULE_LABEL"]
