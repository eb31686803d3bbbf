"""
Error taxonomy for the runtime bootstrap.

InitError is fatal and reported once before the event loop starts.
InvocationError is reported per event and never stops the loop.
TransportError covers every HTTP-level failure against the control plane.
"""

from enum import Enum
from typing import Optional

from .constants import RUNTIME_ERROR_TYPE


class BootstrapError(Exception):
    """Base class for all bootstrap errors."""


class ConfigError(BootstrapError):
    """Required runtime configuration is missing or invalid."""


class InitErrorKind(str, Enum):
    MALFORMED_HANDLER_REFERENCE = "MalformedHandlerReference"
    ENTRY_POINT_NOT_FOUND = "EntryPointNotFound"
    METHOD_NOT_FOUND = "MethodNotFound"


class InitError(BootstrapError):
    """The handler could not be resolved."""

    def __init__(self, kind: InitErrorKind, message: str):
        super().__init__(f"{kind.value}: {message}")
        self.kind = kind
        self.message = message


class InvocationError(BootstrapError):
    """The handler raised or returned something that cannot be reported."""

    def __init__(self, message: str, error_type: str = RUNTIME_ERROR_TYPE):
        super().__init__(message)
        self.message = message
        self.error_type = error_type


class TransportError(BootstrapError):
    """An HTTP round trip to the control plane failed."""

    def __init__(self, url: str, message: str, status_code: Optional[int] = None):
        detail = f"{message} (url={url}"
        if status_code is not None:
            detail += f", status={status_code}"
        super().__init__(detail + ")")
        self.url = url
        self.message = message
        self.status_code = status_code
