"""
State store for resolved configuration.

The store is an ordered append log of StateConfigEntry records with an
index on (module_name, name). When a pair has been resolved more than
once, the last-inserted entry is the current one; earlier entries stay in
the log as the audit trail.
"""

import asyncio
import logging
from typing import Dict, Iterable, List, Optional, Protocol

from redis.exceptions import RedisError

from ..api import ExternalCallFailedError, InvalidStateError, PointKey, StateConfigEntry, Value

logger = logging.getLogger("wingman.state")


class State(Protocol):
    """Protocol for anything modules read configuration from."""

    def find_config(self, module_name: str, name: str) -> Optional[StateConfigEntry]:
        """Return the current entry for (module_name, name), or None. Never mutates."""
        ...

    def require(self, module_name: str, name: str) -> StateConfigEntry:
        """Like find_config, but a missing entry raises InvalidStateError."""
        ...

    async def append(self, entry: StateConfigEntry) -> None:
        """Add a new authoritative resolution."""
        ...

    async def extend(self, entries: List[StateConfigEntry]) -> None:
        """Add several resolutions at once: all of them, or none on failure."""
        ...

    def entries(self) -> List[StateConfigEntry]:
        """Return the full log, oldest first."""
        ...


class StateView:
    """Lookup helpers shared by every State implementation."""

    def find_config(self, module_name: str, name: str) -> Optional[StateConfigEntry]:
        raise NotImplementedError

    def require(self, module_name: str, name: str) -> StateConfigEntry:
        entry = self.find_config(module_name, name)
        if entry is None:
            raise InvalidStateError(
                f"Config '{name}' for module '{module_name}' is not resolved",
                module_name=module_name,
                name=name,
            )
        return entry

    def find_value(self, module_name: str, name: str) -> Optional[Value]:
        entry = self.find_config(module_name, name)
        return entry.to_value() if entry else None

    def is_resolved(self, key: PointKey) -> bool:
        return self.find_config(key.module_name, key.identifier) is not None


class StateStore(StateView):
    """
    In-memory append log.

    Appends are serialized with an asyncio lock (single writer), and every
    append is visible to lookups as soon as it returns.
    """

    def __init__(self, entries: Optional[Iterable[StateConfigEntry]] = None):
        self._log: List[StateConfigEntry] = []
        self._index: Dict[PointKey, int] = {}
        self._lock = asyncio.Lock()
        for entry in entries or []:
            self._record(entry)

    def _record(self, entry: StateConfigEntry) -> None:
        self._log.append(entry)
        self._index[entry.key] = len(self._log) - 1

    def find_config(self, module_name: str, name: str) -> Optional[StateConfigEntry]:
        position = self._index.get(PointKey(module_name, name))
        if position is None:
            return None
        return self._log[position]

    def history(self, module_name: str, name: str) -> List[StateConfigEntry]:
        """All entries ever appended for (module_name, name), oldest first."""
        key = PointKey(module_name, name)
        return [entry for entry in self._log if entry.key == key]

    def entries(self) -> List[StateConfigEntry]:
        return list(self._log)

    async def append(self, entry: StateConfigEntry) -> None:
        await self.extend([entry])

    async def extend(self, entries: List[StateConfigEntry]) -> None:
        entries = list(entries)
        if not entries:
            return

        async with self._lock:
            await self._persist(entries)
            for entry in entries:
                self._record(entry)

        for entry in entries:
            logger.debug(f"Appended {entry.module_name}/{entry.name} ({entry.kind.value})")

    async def _persist(self, entries: List[StateConfigEntry]) -> None:
        """Write-through hook for durable subclasses. Must write all entries or none."""

    def __len__(self) -> int:
        return len(self._log)


class RedisStateStore(StateStore):
    """
    Append log persisted in a Redis list.

    The list is loaded once with load(); after that lookups are served from
    memory and appends write through with RPUSH before becoming visible.
    """

    DEFAULT_KEY = "wingman:state"

    def __init__(self, redis_client, key: str = DEFAULT_KEY):
        """
        Initialize Redis-backed store.

        Args:
            redis_client: Async Redis client
            key: Redis list holding the JSON encoded log
        """
        super().__init__()
        self.redis = redis_client
        self.key = key

    async def load(self) -> int:
        """
        Replace the in-memory log with the persisted one.

        Returns:
            Number of entries loaded
        """
        raw_entries = await self.redis.lrange(self.key, 0, -1)

        self._log = []
        self._index = {}
        for raw in raw_entries:
            if isinstance(raw, bytes):
                raw = raw.decode("utf-8")
            self._record(StateConfigEntry.model_validate_json(raw))

        logger.info(f"Loaded {len(self._log)} state entries from {self.key}")
        return len(self._log)

    async def _persist(self, entries: List[StateConfigEntry]) -> None:
        # One RPUSH carries the whole batch
        try:
            await self.redis.rpush(self.key, *(entry.model_dump_json() for entry in entries))
        except (RedisError, OSError) as e:
            logger.error(f"Persisting {len(entries)} state entries to {self.key} failed: {e}")
            raise ExternalCallFailedError("state.append", str(e) or type(e).__name__) from e


class StagedState(StateView):
    """
    Buffers appends made during one expression evaluation.

    Lookups see staged entries first (read-your-writes), then the base
    state. Nothing reaches the base until commit() is called.
    """

    def __init__(self, base: State):
        self.base = base
        self._staged: List[StateConfigEntry] = []

    @property
    def staged(self) -> List[StateConfigEntry]:
        return list(self._staged)

    def find_config(self, module_name: str, name: str) -> Optional[StateConfigEntry]:
        key = PointKey(module_name, name)
        for entry in reversed(self._staged):
            if entry.key == key:
                return entry
        return self.base.find_config(module_name, name)

    def entries(self) -> List[StateConfigEntry]:
        return self.base.entries() + self._staged

    async def append(self, entry: StateConfigEntry) -> None:
        self._staged.append(entry)

    async def extend(self, entries: List[StateConfigEntry]) -> None:
        self._staged.extend(entries)

    async def commit(self) -> List[StateConfigEntry]:
        """Append every staged entry to the base state in one write, in order."""
        committed = list(self._staged)
        if committed:
            await self.base.extend(committed)
        self._staged.clear()
        return committed

    def discard(self) -> None:
        if self._staged:
            logger.debug(f"Discarding {len(self._staged)} staged entries")
        self._staged.clear()
