"""
Data model shared by the resolver, the runtime API client and the loop.

The control plane hands out one InvocationEvent at a time; the loop feeds
its body to a ResolvedHandler and reports back either raw bytes or an
ErrorEnvelope.
"""

from typing import Dict, List, Optional, Protocol

from pydantic import BaseModel, Field, field_validator

from .constants import (
    DEADLINE_HEADER,
    FUNCTION_ARN_HEADER,
    HANDLER_DELIMITER,
    HEADER_VALUE_SEPARATOR,
    TRACE_ID_HEADER,
)
from .errors import InitError, InitErrorKind


class HandlerReference(BaseModel):
    """
    Parsed form of an ``entry::method`` handler reference.

    Example:
        ``app.handlers.Greeter::handle`` names the ``handle`` method of the
        ``Greeter`` class in module ``app.handlers``.
    """

    entry_path: str
    method_name: str

    model_config = {"frozen": True}

    @classmethod
    def parse(cls, raw: Optional[str]) -> "HandlerReference":
        """
        Split a reference on the first delimiter.

        Raises:
            InitError: MALFORMED_HANDLER_REFERENCE if the delimiter is absent
                or either side is empty
        """
        raw = (raw or "").strip()
        entry_path, delimiter, method_name = raw.partition(HANDLER_DELIMITER)
        entry_path = entry_path.strip()
        method_name = method_name.strip()

        if not delimiter or not entry_path or not method_name:
            raise InitError(
                InitErrorKind.MALFORMED_HANDLER_REFERENCE,
                f"expected '<entry>{HANDLER_DELIMITER}<method>', got {raw!r}",
            )

        return cls(entry_path=entry_path, method_name=method_name)

    def __str__(self) -> str:
        return f"{self.entry_path}{HANDLER_DELIMITER}{self.method_name}"


class InvocationEvent(BaseModel):
    """One unit of work fetched from the control plane."""

    request_id: str
    headers: Dict[str, List[str]] = Field(default_factory=dict)
    body: bytes = b""

    def header(self, name: str) -> Optional[str]:
        """Case-insensitive header lookup; repeated values are joined with ','."""
        wanted = name.lower()
        for key, values in self.headers.items():
            if key.lower() == wanted:
                return HEADER_VALUE_SEPARATOR.join(values)
        return None

    @property
    def deadline_ms(self) -> Optional[int]:
        value = self.header(DEADLINE_HEADER)
        if value is None or not value.isdigit():
            return None
        return int(value)

    @property
    def invoked_function_arn(self) -> Optional[str]:
        return self.header(FUNCTION_ARN_HEADER)

    @property
    def trace_id(self) -> Optional[str]:
        return self.header(TRACE_ID_HEADER)


class ErrorEnvelope(BaseModel):
    """Error record posted for init and invocation failures."""

    errorMessage: str
    errorType: str

    @field_validator("errorMessage", "errorType")
    @classmethod
    def _encodable(cls, value: str) -> str:
        # Lone surrogates (surrogateescape, os.fsdecode) cannot be written as UTF-8
        return value.encode("utf-8", "backslashreplace").decode("utf-8")

    def to_json(self) -> str:
        return self.model_dump_json()


class ResolvedHandler(Protocol):
    """Invocable capability produced once by the handler resolver."""

    def invoke(self, payload: bytes) -> bytes:
        """
        Run the handler on one payload.

        Raises:
            InvocationError: If the handler raised or returned a non-text value
        """
        ...
