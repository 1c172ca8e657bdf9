"""
Wire models for serving a module over HTTP.

Requests carry a snapshot of the caller's state. Evaluate responses
carry back the entries the function appended, so the caller commits them
through its own single writer.
"""

import base64
import binascii
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from ..api import ConfigPoint, ErrorKind, StateConfigEntry, Value, ValueKind


class ValuePayload(BaseModel):
    """A Value in transit. Only ever sent between host and module."""

    kind: ValueKind
    text: str

    @classmethod
    def from_value(cls, value: Value) -> "ValuePayload":
        return cls(kind=value.kind, text=value.reveal())

    def to_value(self) -> Value:
        return Value.of(self.kind, self.text)


class EntryPayload(BaseModel):
    """A StateConfigEntry in transit, value as base64 text."""

    module_name: str
    name: str
    kind: ValueKind = ValueKind.STRING
    value: str

    @field_validator("value")
    @classmethod
    def _check_base64(cls, value: str) -> str:
        try:
            base64.b64decode(value, validate=True)
        except binascii.Error as e:
            raise ValueError(f"value must be base64: {e}") from e
        return value

    @classmethod
    def from_entry(cls, entry: StateConfigEntry) -> "EntryPayload":
        return cls(
            module_name=entry.module_name,
            name=entry.name,
            kind=entry.kind,
            value=base64.b64encode(entry.value).decode("ascii"),
        )

    def to_entry(self) -> StateConfigEntry:
        return StateConfigEntry(
            module_name=self.module_name,
            name=self.name,
            kind=self.kind,
            value=base64.b64decode(self.value),
        )


class StateRequest(BaseModel):
    """Request carrying the caller's module name and state snapshot."""

    module_name: str = Field(..., min_length=1, description="Name the host registered the module under")
    entries: List[EntryPayload] = Field(default_factory=list)

    @classmethod
    def snapshot(cls, module_name: str, entries: List[StateConfigEntry], **fields) -> "StateRequest":
        return cls(
            module_name=module_name,
            entries=[EntryPayload.from_entry(entry) for entry in entries],
            **fields,
        )

    def state_entries(self) -> List[StateConfigEntry]:
        return [payload.to_entry() for payload in self.entries]


class EvaluateRequest(StateRequest):
    args: List[ValuePayload] = Field(default_factory=list)


class ConfigPointsResponse(BaseModel):
    points: List[ConfigPoint]


class FunctionInfo(BaseModel):
    name: str
    min_args: int = Field(..., ge=0)
    max_args: int = Field(..., ge=0)
    description: Optional[str] = None


class FunctionsResponse(BaseModel):
    functions: List[FunctionInfo]


class EvaluateResponse(BaseModel):
    value: Optional[ValuePayload] = None
    points: List[ConfigPoint] = Field(default_factory=list)
    appended: List[EntryPayload] = Field(default_factory=list)


class ErrorResponse(BaseModel):
    """JSON body of a failed request. Structured error fields ride along as extras."""

    model_config = ConfigDict(extra="allow")

    kind: ErrorKind
    message: str
