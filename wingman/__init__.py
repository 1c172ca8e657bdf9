"""
Wingman - Module Configuration Negotiation

A host and SDK for pluggable modules that declare configuration needs
and expose expression functions with side effects.

Architecture:
- Each module is self-contained with clear interfaces
- Modules are completely replaceable
- No module knows the internals of another
- All communication through defined interfaces

Modules:
- api: Values, config points, state entries and the error taxonomy
- state: Append-only configuration history
- module: Module contract and registration
- engine: Expression function evaluation
- negotiation: Fixpoint driver collecting missing configuration
- deploy: Secret materialization into the cluster
- cloudflare: Cloudflare tunnel API client and module
- sample: Minimal example module
- remote: Host-side client for modules served over HTTP
"""

__version__ = "0.1.0"
