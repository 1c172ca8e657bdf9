"""
Unit tests for the state stores.

Tests cover:
- Last-inserted-wins lookups and audit history
- Read-your-writes after append
- StagedState buffering, commit and discard
- RedisStateStore load and write-through
"""

from unittest.mock import AsyncMock

import pytest
from redis.exceptions import ConnectionError as RedisConnectionError

from conftest import make_entry
from wingman.modules.api import ExternalCallFailedError, InvalidStateError, PointKey, Value, ValueKind
from wingman.modules.state import RedisStateStore, StagedState, StateStore


class TestStateStore:
    def test_find_config_missing(self, state):
        assert state.find_config("m", "test") is None

    @pytest.mark.asyncio
    async def test_read_your_writes(self, state):
        await state.append(make_entry("m", "test", "v1"))

        entry = state.find_config("m", "test")
        assert entry is not None
        assert entry.value == b"v1"

    @pytest.mark.asyncio
    async def test_lookup_is_module_scoped(self, state):
        await state.append(make_entry("a", "test", "v1"))

        assert state.find_config("b", "test") is None

    @pytest.mark.asyncio
    async def test_last_inserted_wins(self, state):
        await state.append(make_entry("m", "test", "old"))
        await state.append(make_entry("m", "other", "x"))
        await state.append(make_entry("m", "test", "new"))

        assert state.find_config("m", "test").value == b"new"
        assert [e.value for e in state.history("m", "test")] == [b"old", b"new"]
        assert len(state) == 3

    def test_initial_entries(self):
        store = StateStore([make_entry("m", "a", "1"), make_entry("m", "a", "2")])

        assert store.find_config("m", "a").value == b"2"
        assert len(store.entries()) == 2

    def test_find_config_has_no_side_effects(self, state):
        state.find_config("m", "a")
        state.find_config("m", "a")

        assert state.entries() == []

    def test_require_raises_invalid_state(self, state):
        with pytest.raises(InvalidStateError) as exc_info:
            state.require("m", "api_key")

        assert exc_info.value.module_name == "m"
        assert exc_info.value.name == "api_key"

    @pytest.mark.asyncio
    async def test_find_value_and_is_resolved(self, state):
        await state.append(make_entry("m", "key", "s3cr3t", ValueKind.SECRET))

        assert state.find_value("m", "key") == Value.secret("s3cr3t")
        assert state.is_resolved(PointKey("m", "key"))
        assert not state.is_resolved(PointKey("m", "nope"))


class TestStagedState:
    @pytest.mark.asyncio
    async def test_staged_appends_are_visible_only_to_stage(self, state):
        staged = StagedState(state)
        await staged.append(make_entry("m", "token", "t"))

        assert staged.find_config("m", "token").value == b"t"
        assert state.find_config("m", "token") is None

    @pytest.mark.asyncio
    async def test_stage_falls_back_to_base(self, state):
        await state.append(make_entry("m", "email", "ops@example.com"))
        staged = StagedState(state)

        assert staged.find_config("m", "email").value == b"ops@example.com"
        assert len(staged.entries()) == 1

    @pytest.mark.asyncio
    async def test_commit_appends_in_order(self, state):
        staged = StagedState(state)
        await staged.append(make_entry("m", "a", "1"))
        await staged.append(make_entry("m", "b", "2"))

        committed = await staged.commit()

        assert [e.name for e in committed] == ["a", "b"]
        assert [e.name for e in state.entries()] == ["a", "b"]
        assert staged.staged == []

    @pytest.mark.asyncio
    async def test_discard_drops_everything(self, state):
        staged = StagedState(state)
        await staged.append(make_entry("m", "a", "1"))

        staged.discard()
        await staged.commit()

        assert state.entries() == []


@pytest.fixture
def mock_redis():
    """Create a mock Redis client."""
    redis = AsyncMock()
    redis.lrange = AsyncMock(return_value=[])
    redis.rpush = AsyncMock(return_value=1)
    return redis


class TestRedisStateStore:
    @pytest.mark.asyncio
    async def test_load_rebuilds_index(self, mock_redis):
        mock_redis.lrange.return_value = [
            make_entry("m", "test", "first").model_dump_json(),
            make_entry("m", "test", "second").model_dump_json().encode(),
        ]
        store = RedisStateStore(mock_redis, key="wingman:test")

        loaded = await store.load()

        assert loaded == 2
        assert store.find_config("m", "test").value == b"second"
        mock_redis.lrange.assert_called_once_with("wingman:test", 0, -1)

    @pytest.mark.asyncio
    async def test_append_writes_through(self, mock_redis):
        store = RedisStateStore(mock_redis)
        entry = make_entry("m", "token", "t", ValueKind.SECRET)

        await store.append(entry)

        mock_redis.rpush.assert_called_once_with("wingman:state", entry.model_dump_json())
        assert store.find_config("m", "token") == entry

    @pytest.mark.asyncio
    async def test_failed_write_is_not_visible(self, mock_redis):
        mock_redis.rpush.side_effect = RedisConnectionError("redis down")
        store = RedisStateStore(mock_redis)

        with pytest.raises(ExternalCallFailedError) as exc_info:
            await store.append(make_entry("m", "token", "t"))

        assert exc_info.value.call == "state.append"
        assert isinstance(exc_info.value.__cause__, RedisConnectionError)
        assert store.find_config("m", "token") is None

    @pytest.mark.asyncio
    async def test_extend_writes_one_batch(self, mock_redis):
        store = RedisStateStore(mock_redis)
        first, second = make_entry("m", "a", "1"), make_entry("m", "b", "2")

        await store.extend([first, second])

        mock_redis.rpush.assert_called_once_with(
            "wingman:state", first.model_dump_json(), second.model_dump_json()
        )
        assert len(store) == 2

    @pytest.mark.asyncio
    async def test_failed_batch_records_nothing(self, mock_redis):
        mock_redis.rpush.side_effect = OSError("broken pipe")
        store = RedisStateStore(mock_redis)

        with pytest.raises(ExternalCallFailedError):
            await store.extend([make_entry("m", "a", "1"), make_entry("m", "b", "2")])

        assert store.entries() == []
