"""Configuration provider following Black Box Design principles."""
import os
from dataclasses import dataclass
from typing import Optional, Protocol


def _int_env(name: str, default: str) -> int:
    raw = os.getenv(name, default)
    try:
        return int(raw)
    except ValueError:
        raise ValueError(f"{name} must be an integer, got {raw!r}") from None


def _float_env(name: str, default: str) -> float:
    raw = os.getenv(name, default)
    try:
        return float(raw)
    except ValueError:
        raise ValueError(f"{name} must be a number, got {raw!r}") from None


@dataclass
class HostConfig:
    """Negotiation host configuration."""
    max_passes: int
    value_prefix: str


@dataclass
class StoreConfig:
    """State store configuration."""
    backend: str
    redis_url: str
    state_key: str

    @property
    def uses_redis(self) -> bool:
        return self.backend == "redis"


@dataclass
class ServerConfig:
    """Module server configuration."""
    host: str
    port: int
    log_level: str


@dataclass
class CloudflareConfig:
    """Cloudflare API configuration."""
    api_url: str
    timeout: float
    account_id: Optional[str]
    tunnel_name: Optional[str]

    @property
    def is_configured(self) -> bool:
        return bool(self.account_id and self.tunnel_name)


@dataclass
class DeployConfig:
    """Secret deployment configuration."""
    namespace: str
    kubectl_path: str
    timeout: float
    enabled: bool


class ConfigProvider(Protocol):
    """Protocol for configuration providers."""

    def get_host_config(self) -> HostConfig:
        ...

    def get_store_config(self) -> StoreConfig:
        ...

    def get_server_config(self) -> ServerConfig:
        ...

    def get_cloudflare_config(self) -> CloudflareConfig:
        ...

    def get_deploy_config(self) -> DeployConfig:
        ...


class EnvConfigProvider:
    """Environment-based configuration provider."""

    def get_host_config(self) -> HostConfig:
        max_passes = _int_env("WINGMAN_MAX_PASSES", "10")
        if max_passes < 1:
            raise ValueError("WINGMAN_MAX_PASSES must be at least 1")

        return HostConfig(
            max_passes=max_passes,
            value_prefix=os.getenv("WINGMAN_VALUE_PREFIX", "WINGMAN_"),
        )

    def get_store_config(self) -> StoreConfig:
        backend = os.getenv("WINGMAN_STORE", "memory").lower()
        if backend not in ("memory", "redis"):
            raise ValueError(f"WINGMAN_STORE must be 'memory' or 'redis', got {backend!r}")

        return StoreConfig(
            backend=backend,
            redis_url=os.getenv("REDIS_URL", "redis://localhost:6379/0"),
            state_key=os.getenv("WINGMAN_STATE_KEY", "wingman:state"),
        )

    def get_server_config(self) -> ServerConfig:
        return ServerConfig(
            host=os.getenv("API_HOST", "0.0.0.0"),
            port=_int_env("API_PORT", "8080"),
            log_level=os.getenv("LOG_LEVEL", "INFO").upper(),
        )

    def get_cloudflare_config(self) -> CloudflareConfig:
        return CloudflareConfig(
            api_url=os.getenv("CLOUDFLARE_API_URL", "https://api.cloudflare.com/client/v4"),
            timeout=_float_env("CLOUDFLARE_TIMEOUT", "10"),
            account_id=os.getenv("CLOUDFLARE_ACCOUNT_ID"),
            tunnel_name=os.getenv("CLOUDFLARE_TUNNEL_NAME"),
        )

    def get_deploy_config(self) -> DeployConfig:
        return DeployConfig(
            namespace=os.getenv("WINGMAN_NAMESPACE", "default"),
            kubectl_path=os.getenv("KUBECTL_PATH", "kubectl"),
            timeout=_float_env("DEPLOY_TIMEOUT", "30"),
            enabled=os.getenv("WINGMAN_DEPLOY_ENABLED", "true").lower() == "true",
        )
