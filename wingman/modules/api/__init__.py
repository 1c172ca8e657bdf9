"""
API Module - Shared Data Models

Purpose: Define values, config points, state entries and error kinds
Interface: Pydantic models and the WingmanError hierarchy
Hidden: Nothing - these are the shared contracts every module speaks
"""

from .errors import (
    ArityMismatchError,
    DeployFailedError,
    ErrorKind,
    ExternalCallFailedError,
    InvalidStateError,
    NegotiationStalledError,
    WingmanError,
    error_from_dict,
)
from .models import REDACTED, ConfigPoint, PointKey, StateConfigEntry, Value, ValueKind

__all__ = [
    # Models
    "ValueKind",
    "Value",
    "ConfigPoint",
    "PointKey",
    "StateConfigEntry",
    "REDACTED",
    # Errors
    "ErrorKind",
    "WingmanError",
    "InvalidStateError",
    "ArityMismatchError",
    "ExternalCallFailedError",
    "NegotiationStalledError",
    "DeployFailedError",
    "error_from_dict",
]
