"""
Error taxonomy for the negotiation host.

An unresolved config point is not an error. Only these kinds are true
failures, and none of them is retried by the host.
"""

from enum import Enum
from typing import Any, Dict, Iterable, List, Optional, Tuple

from .models import PointKey


class ErrorKind(str, Enum):
    """Kinds of hard failure surfaced to the host."""

    INVALID_STATE = "invalid_state"
    ARITY_MISMATCH = "arity_mismatch"
    EXTERNAL_CALL_FAILED = "external_call_failed"
    NEGOTIATION_STALLED = "negotiation_stalled"
    DEPLOY_FAILED = "deploy_failed"


class WingmanError(Exception):
    """Base class for all hard failures."""

    kind: ErrorKind = ErrorKind.INVALID_STATE
    # Structured attributes carried in to_dict() and restored by error_from_dict()
    fields: Tuple[str, ...] = ()

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message

    def to_dict(self) -> dict:
        """Convert to dictionary for JSON error bodies."""
        data = {"kind": self.kind.value, "message": self.message}
        for name in self.fields:
            data[name] = getattr(self, name)
        return data

    @classmethod
    def _restore(cls, data: Dict[str, Any]) -> Dict[str, Any]:
        """Field values to set on an error rebuilt from to_dict() output."""
        return {name: data.get(name) for name in cls.fields}


class InvalidStateError(WingmanError):
    """A config entry a function assumed present is missing."""

    kind = ErrorKind.INVALID_STATE
    fields = ("module_name", "name")

    def __init__(self, message: str, module_name: Optional[str] = None, name: Optional[str] = None):
        super().__init__(message)
        self.module_name = module_name
        self.name = name


class ArityMismatchError(WingmanError):
    kind = ErrorKind.ARITY_MISMATCH
    fields = ("function", "got", "min_args", "max_args")

    def __init__(self, function: str, got: int, min_args: int, max_args: int):
        super().__init__(
            f"Function '{function}' takes {min_args}..{max_args} arguments, got {got}"
        )
        self.function = function
        self.got = got
        self.min_args = min_args
        self.max_args = max_args

    @classmethod
    def _restore(cls, data: Dict[str, Any]) -> Dict[str, Any]:
        return {
            "function": data.get("function", ""),
            "got": int(data.get("got", 0)),
            "min_args": int(data.get("min_args", 0)),
            "max_args": int(data.get("max_args", 0)),
        }


class ExternalCallFailedError(WingmanError):
    """Wraps a transport or API error together with the call that failed."""

    kind = ErrorKind.EXTERNAL_CALL_FAILED
    fields = ("call",)

    def __init__(self, call: str, message: str):
        super().__init__(f"{call} failed: {message}")
        self.call = call

    @classmethod
    def _restore(cls, data: Dict[str, Any]) -> Dict[str, Any]:
        return {"call": data.get("call") or "remote"}


class NegotiationStalledError(WingmanError):
    kind = ErrorKind.NEGOTIATION_STALLED
    fields = ("passes", "outstanding")

    def __init__(self, passes: int, outstanding: Iterable[PointKey], reason: str = ""):
        self.passes = passes
        self.outstanding: List[PointKey] = list(outstanding)
        missing = ", ".join(f"{k.module_name}/{k.identifier}" for k in self.outstanding)
        message = f"Negotiation did not converge after {passes} passes"
        if reason:
            message += f" ({reason})"
        if missing:
            message += f"; outstanding: {missing}"
        super().__init__(message)

    def to_dict(self) -> dict:
        data = super().to_dict()
        data["outstanding"] = [list(key) for key in self.outstanding]
        return data

    @classmethod
    def _restore(cls, data: Dict[str, Any]) -> Dict[str, Any]:
        return {
            "passes": int(data.get("passes", 0)),
            "outstanding": [PointKey(*key) for key in data.get("outstanding") or []],
        }


class DeployFailedError(WingmanError):
    """The deployment collaborator confirmed the change was not applied."""

    kind = ErrorKind.DEPLOY_FAILED
    fields = ("ref_name",)

    def __init__(self, ref_name: str, message: str):
        super().__init__(f"Deploy of '{ref_name}' failed: {message}")
        self.ref_name = ref_name


ERRORS_BY_KIND = {
    ErrorKind.INVALID_STATE: InvalidStateError,
    ErrorKind.ARITY_MISMATCH: ArityMismatchError,
    ErrorKind.EXTERNAL_CALL_FAILED: ExternalCallFailedError,
    ErrorKind.NEGOTIATION_STALLED: NegotiationStalledError,
    ErrorKind.DEPLOY_FAILED: DeployFailedError,
}


def error_from_dict(data: dict) -> WingmanError:
    """
    Rebuild an error received over the module transport.

    The message is kept verbatim; structured attributes come from the
    fields to_dict() emitted, with neutral defaults when missing.
    """
    kind = ErrorKind(data.get("kind", ErrorKind.INVALID_STATE.value))
    error_class = ERRORS_BY_KIND[kind]

    error = error_class.__new__(error_class)
    WingmanError.__init__(error, data.get("message", ""))
    for name, value in error_class._restore(data).items():
        setattr(error, name, value)
    return error
