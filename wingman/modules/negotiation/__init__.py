"""
Negotiation Module - Black Box Interface

Purpose: Drive modules and functions to a configuration fixpoint
Interface: NegotiationLoop.run(), ValueSupplier
Hidden: Pass bookkeeping, dedup, concurrent module queries
"""

from .negotiation import (
    EnvValueSupplier,
    MappingValueSupplier,
    NegotiationLoop,
    NegotiationResult,
    PendingPoint,
    ValueSupplier,
)

__all__ = [
    "NegotiationLoop",
    "NegotiationResult",
    "PendingPoint",
    "ValueSupplier",
    "MappingValueSupplier",
    "EnvValueSupplier",
]
