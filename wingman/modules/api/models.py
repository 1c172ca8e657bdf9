"""
Wingman shared data models.

These models define the structure of all data passed between
modules, the expression engine and the negotiation loop.
"""

import hashlib
import hmac
from enum import Enum
from typing import NamedTuple, Optional

from pydantic import BaseModel, ConfigDict, Field, SecretStr, field_validator

REDACTED = "**********"

# Enums


class ValueKind(str, Enum):
    """Kind of a configuration value."""

    STRING = "string"
    SECRET = "secret"


class PointKey(NamedTuple):
    """Dedup key for config points and lookup key for state entries."""

    module_name: str
    identifier: str


# Values


class Value(BaseModel):
    """
    An immutable, possibly secret configuration value.

    Secret text never appears in repr/str output, and equality is
    decided on a digest rather than on the raw text.
    """

    model_config = ConfigDict(frozen=True)

    kind: ValueKind
    text: SecretStr

    @classmethod
    def string(cls, text: str) -> "Value":
        return cls(kind=ValueKind.STRING, text=SecretStr(text))

    @classmethod
    def secret(cls, text: str) -> "Value":
        return cls(kind=ValueKind.SECRET, text=SecretStr(text))

    @classmethod
    def of(cls, kind: ValueKind, text: str) -> "Value":
        return cls(kind=ValueKind(kind), text=SecretStr(text))

    @classmethod
    def from_entry(cls, entry: "StateConfigEntry") -> "Value":
        """Build a value from a resolved state entry."""
        return cls.of(entry.kind, entry.value.decode("utf-8"))

    @property
    def is_secret(self) -> bool:
        return self.kind == ValueKind.SECRET

    def reveal(self) -> str:
        """Return the raw text. Only the store and adapters should call this."""
        return self.text.get_secret_value()

    def to_bytes(self) -> bytes:
        return self.reveal().encode("utf-8")

    def digest(self) -> str:
        return hashlib.sha256(self.to_bytes()).hexdigest()

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Value):
            return NotImplemented
        return self.kind == other.kind and hmac.compare_digest(self.digest(), other.digest())

    def __hash__(self) -> int:
        return hash((self.kind, self.digest()))

    def __repr__(self) -> str:
        if self.is_secret:
            return f"Value.secret('{REDACTED}')"
        return f"Value.string({self.reveal()!r})"

    def __str__(self) -> str:
        return REDACTED if self.is_secret else self.reveal()


# Requests and resolutions


class ConfigPoint(BaseModel):
    """A request for a configuration value, never the value itself."""

    model_config = ConfigDict(frozen=True)

    identifier: str = Field(..., description="Unique within a module", min_length=1)
    name: str = Field(..., description="Display name shown to whoever supplies the value")
    description: Optional[str] = Field(None, description="Optional rich text help")
    kind: ValueKind = Field(default=ValueKind.STRING, description="Kind of value requested")

    def key(self, module_name: str) -> PointKey:
        return PointKey(module_name, self.identifier)


class StateConfigEntry(BaseModel):
    """A resolved configuration value owned by a module."""

    model_config = ConfigDict(frozen=True, ser_json_bytes="base64", val_json_bytes="base64")

    module_name: str = Field(..., min_length=1)
    name: str = Field(..., min_length=1)
    kind: ValueKind = ValueKind.STRING
    value: bytes

    @field_validator("value")
    @classmethod
    def _require_text(cls, value: bytes) -> bytes:
        # Entries always hold the UTF-8 text of a Value
        try:
            value.decode("utf-8")
        except UnicodeDecodeError as e:
            raise ValueError(f"value must be UTF-8 text: {e}") from e
        return value

    @classmethod
    def from_value(cls, module_name: str, name: str, value: Value) -> "StateConfigEntry":
        return cls(module_name=module_name, name=name, kind=value.kind, value=value.to_bytes())

    @property
    def key(self) -> PointKey:
        return PointKey(self.module_name, self.name)

    def to_value(self) -> Value:
        return Value.from_entry(self)

    def __repr__(self) -> str:
        shown = REDACTED if self.kind == ValueKind.SECRET else self.value.decode("utf-8", "replace")
        return (
            f"StateConfigEntry(module_name={self.module_name!r}, name={self.name!r}, "
            f"kind={self.kind.value!r}, value={shown!r})"
        )

    __str__ = __repr__
