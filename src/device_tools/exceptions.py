"""Error kinds and exceptions shared by every tool."""

from __future__ import annotations

from enum import Enum


class ErrorKind(str, Enum):
    """Base for the closed, per-tool failure enumerations.

    Members are declared as ``(code, description)`` pairs. The code is the
    camelCase value rendered into ``errorKind``; the description is the
    human-readable message.
    """

    def __new__(cls, code: str, description: str) -> "ErrorKind":
        obj = str.__new__(cls, code)
        obj._value_ = code
        obj.description = description
        return obj

    def __str__(self) -> str:
        return self.value


class ArgumentErrorKind(str, Enum):
    """Failure kinds raised by the argument validator."""

    MISSING_REQUIRED_FIELD = "missingRequiredField"
    INVALID_FIELD_VALUE = "invalidFieldValue"


class ArgumentError(Exception):
    """Raised when raw arguments do not satisfy a tool's schema."""

    def __init__(self, kind: ArgumentErrorKind, field: str, detail: str = "") -> None:
        self.kind = kind
        self.field = field
        self.detail = detail
        text = f"{kind.value}: '{field}'"
        if detail:
            text = f"{text} ({detail})"
        super().__init__(text)


class ToolError(Exception):
    """A tool failure carrying a named error kind.

    Attributes:
        kind: The member of the tool's error enumeration.
        cause: Optional underlying exception (rendered as text only).
    """

    def __init__(self, kind: ErrorKind, cause: BaseException | str | None = None) -> None:
        self.kind = kind
        self.cause = cause
        super().__init__(self.message)

    @property
    def message(self) -> str:
        if self.cause is None or str(self.cause) == "":
            return self.kind.description
        return f"{self.kind.description}: {self.cause}"
