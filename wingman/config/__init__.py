"""Configuration for the Wingman host and module server."""

from .provider import (
    CloudflareConfig,
    ConfigProvider,
    DeployConfig,
    EnvConfigProvider,
    HostConfig,
    ServerConfig,
    StoreConfig,
)

__all__ = [
    "ConfigProvider",
    "EnvConfigProvider",
    "HostConfig",
    "StoreConfig",
    "ServerConfig",
    "CloudflareConfig",
    "DeployConfig",
]
