"""
State Module - Black Box Interface

Purpose: Keep the append-only history of resolved configuration
Interface: find_config(), require(), append(), entries()
Hidden: Log layout, indexing, Redis persistence

Replaceable with any backend that keeps last-inserted-wins lookups.
"""

from .store import RedisStateStore, StagedState, State, StateStore, StateView

__all__ = ["State", "StateView", "StateStore", "RedisStateStore", "StagedState"]
