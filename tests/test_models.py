"""
Unit tests for the shared data models and error taxonomy.
"""

import json

import pytest
from pydantic import ValidationError

from wingman.modules.api import (
    REDACTED,
    ArityMismatchError,
    ConfigPoint,
    ErrorKind,
    ExternalCallFailedError,
    NegotiationStalledError,
    PointKey,
    StateConfigEntry,
    Value,
    ValueKind,
    error_from_dict,
)


class TestValue:
    def test_secret_is_never_rendered(self):
        value = Value.secret("hunter2")

        assert "hunter2" not in repr(value)
        assert "hunter2" not in str(value)
        assert str(value) == REDACTED
        assert "hunter2" not in f"{value!r} {value}"

    def test_string_value_renders(self):
        value = Value.string("example.com")

        assert str(value) == "example.com"
        assert repr(value) == "Value.string('example.com')"

    def test_reveal_returns_raw_text(self):
        assert Value.secret("hunter2").reveal() == "hunter2"
        assert Value.secret("hunter2").to_bytes() == b"hunter2"

    def test_equality_uses_kind_and_content(self):
        assert Value.secret("a") == Value.secret("a")
        assert Value.secret("a") != Value.secret("b")
        assert Value.secret("a") != Value.string("a")
        assert hash(Value.secret("a")) == hash(Value.secret("a"))

    def test_value_is_immutable(self):
        value = Value.string("x")

        with pytest.raises(ValidationError):
            value.kind = ValueKind.SECRET

    def test_from_entry(self):
        entry = StateConfigEntry(
            module_name="m", name="token", kind=ValueKind.SECRET, value=b"abc"
        )

        assert entry.to_value() == Value.secret("abc")


class TestConfigPoint:
    def test_defaults_to_string_kind(self):
        point = ConfigPoint(identifier="host", name="Host")

        assert point.kind == ValueKind.STRING
        assert point.description is None

    def test_key_is_module_scoped(self):
        point = ConfigPoint(identifier="test", name="Testing")

        assert point.key("a") == PointKey("a", "test")
        assert point.key("a") != point.key("b")

    def test_identifier_required(self):
        with pytest.raises(ValidationError):
            ConfigPoint(identifier="", name="Empty")


class TestStateConfigEntry:
    def test_json_uses_base64_bytes(self):
        entry = StateConfigEntry(module_name="m", name="n", kind=ValueKind.SECRET, value=b"\x00secret")

        data = json.loads(entry.model_dump_json())
        assert data["value"] == "AHNlY3JldA=="

        restored = StateConfigEntry.model_validate_json(entry.model_dump_json())
        assert restored == entry

    def test_text_built_in_python_keeps_its_bytes(self):
        entry = StateConfigEntry(module_name="m", name="n", value="test")

        assert entry.value == b"test"

    def test_json_round_trip_through_base64(self):
        entry = StateConfigEntry(module_name="m", name="n", value="test")

        assert json.loads(entry.model_dump_json())["value"] == "dGVzdA=="
        assert StateConfigEntry.model_validate_json(entry.model_dump_json()).value == b"test"

    def test_value_must_be_utf8(self):
        with pytest.raises(ValidationError):
            StateConfigEntry(module_name="m", name="n", value=b"\xff\xfe")

    def test_repr_hides_secret_bytes(self):
        entry = StateConfigEntry.from_value("m", "api_key", Value.secret("topsecret"))

        assert "topsecret" not in repr(entry)
        assert REDACTED in repr(entry)

    def test_repr_shows_string_bytes(self):
        entry = StateConfigEntry.from_value("m", "email", Value.string("ops@example.com"))

        assert "ops@example.com" in repr(entry)

    def test_key(self):
        entry = StateConfigEntry.from_value("m", "n", Value.string("v"))

        assert entry.key == PointKey("m", "n")


class TestErrors:
    def test_arity_message(self):
        error = ArityMismatchError("fn", 3, 0, 1)

        assert error.kind == ErrorKind.ARITY_MISMATCH
        assert "0..1" in str(error)
        assert error.got == 3

    def test_external_call_carries_call(self):
        error = ExternalCallFailedError("list_tunnels", "HTTP 403")

        assert error.to_dict() == {
            "kind": "external_call_failed",
            "message": "list_tunnels failed: HTTP 403",
            "call": "list_tunnels",
        }

    def test_stalled_lists_outstanding(self):
        error = NegotiationStalledError(3, [PointKey("m", "a")], "pass budget exhausted")

        assert "m/a" in str(error)
        assert error.passes == 3

    def test_error_round_trip_by_kind(self):
        rebuilt = error_from_dict(ExternalCallFailedError("create_tunnel", "quota").to_dict())

        assert isinstance(rebuilt, ExternalCallFailedError)
        assert rebuilt.call == "create_tunnel"
        assert "quota" in rebuilt.message

    def test_stalled_round_trip_keeps_fields(self):
        error = NegotiationStalledError(4, [PointKey("cf", "api_key")], "no values were supplied")

        rebuilt = error_from_dict(json.loads(json.dumps(error.to_dict())))

        assert isinstance(rebuilt, NegotiationStalledError)
        assert rebuilt.passes == 4
        assert rebuilt.outstanding == [PointKey("cf", "api_key")]
        assert rebuilt.message == error.message

    def test_arity_round_trip_keeps_fields(self):
        rebuilt = error_from_dict(ArityMismatchError("join", 4, 1, 3).to_dict())

        assert (rebuilt.function, rebuilt.got, rebuilt.min_args, rebuilt.max_args) == ("join", 4, 1, 3)

    def test_missing_fields_get_defaults(self):
        rebuilt = error_from_dict({"kind": "negotiation_stalled", "message": "stalled"})

        assert rebuilt.passes == 0
        assert rebuilt.outstanding == []
        assert str(rebuilt) == "stalled"
