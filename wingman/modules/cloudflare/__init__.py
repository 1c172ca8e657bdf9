"""
Cloudflare Module - Black Box Interface

Purpose: Provision Cloudflare tunnel tokens from resolved credentials
Interface: CloudflaredModule (config points + cloudflared_token), CloudflareClient
Hidden: HTTP details, tunnel lookup/creation, response envelopes
"""

from .client import DEFAULT_BASE_URL, CloudflareClient, CloudflareCredentials
from .module import API_KEY, EMAIL, TOKEN, CloudflaredModule

__all__ = [
    "CloudflareClient",
    "CloudflareCredentials",
    "CloudflaredModule",
    "DEFAULT_BASE_URL",
    "API_KEY",
    "EMAIL",
    "TOKEN",
]
