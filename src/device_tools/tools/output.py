"""Flat tool output payloads and the result encoder."""

from __future__ import annotations

from enum import Enum
from typing import Any, ClassVar, Mapping

from pydantic import BaseModel, ConfigDict, model_validator
from pydantic.alias_generators import to_camel

from device_tools.exceptions import ToolError

PRIMITIVE_TYPES = (str, int, float, bool)


class ToolStatus(str, Enum):
    """The only field a programmatic caller should branch on."""

    SUCCESS = "success"
    ERROR = "error"


class ToolOutput(BaseModel):
    """Universal flat payload returned for both success and error.

    Tool-specific keys are carried as extra fields. Every value must be a
    primitive; composite data is flattened before it gets here.
    """

    model_config = ConfigDict(extra="allow", frozen=True)

    status: ToolStatus
    message: str = ""

    @model_validator(mode="after")
    def _check_flat(self) -> "ToolOutput":
        for key, value in (self.model_extra or {}).items():
            if not isinstance(value, PRIMITIVE_TYPES):
                raise ValueError(
                    f"Output field '{key}' must be a primitive, got {type(value).__name__}"
                )
        return self

    @property
    def is_success(self) -> bool:
        return self.status is ToolStatus.SUCCESS

    def __getitem__(self, key: str) -> Any:
        return self.to_payload()[key]

    def get(self, key: str, default: Any = None) -> Any:
        return self.to_payload().get(key, default)

    def to_payload(self) -> dict[str, Any]:
        """Return the plain dict the caller consumes."""
        return self.model_dump(mode="json")


class DomainResult(BaseModel):
    """Typed per-tool outcome before flattening.

    Field aliases are the output keys. Every field declares a neutral
    default, which doubles as the error-payload value and as the
    substitute for a missing value.
    """

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        frozen=True,
        extra="ignore",
    )

    # Separator used to flatten list fields into a single string
    list_separator: ClassVar[str] = " "

    def flatten(self) -> dict[str, Any]:
        """Flatten into output keys, substituting defaults for missing values."""
        payload: dict[str, Any] = {}
        for name, field in type(self).model_fields.items():
            value = getattr(self, name)
            if value is None:
                value = field.get_default(call_default_factory=True)
            payload[field.alias or name] = self._flat_value(value)
        return payload

    @classmethod
    def neutral_payload(cls) -> dict[str, Any]:
        """Output keys mapped to their neutral defaults."""
        return {
            field.alias or name: cls._flat_value(field.get_default(call_default_factory=True))
            for name, field in cls.model_fields.items()
        }

    @classmethod
    def from_payload(cls, payload: Mapping[str, Any]) -> "DomainResult":
        """Rebuild a result from a flat payload, splitting joined list fields."""
        data = dict(payload)
        for name, field in cls.model_fields.items():
            key = field.alias or name
            default = field.get_default(call_default_factory=True)
            if isinstance(default, list) and isinstance(data.get(key), str):
                joined = data[key]
                data[key] = joined.split(cls.list_separator) if joined else []
        return cls.model_validate(data)

    @classmethod
    def _flat_value(cls, value: Any) -> Any:
        if value is None:
            return ""
        if isinstance(value, (list, tuple)):
            return cls.list_separator.join(str(item) for item in value)
        return value


def encode_success(result: DomainResult, message: str) -> ToolOutput:
    """Build a success payload from a domain result."""
    return ToolOutput(status=ToolStatus.SUCCESS, message=message, **result.flatten())


def encode_error(
    error: ToolError,
    result_type: type[DomainResult],
    message: str,
    echo: Mapping[str, Any] | None = None,
    error_prefix: str = "",
) -> ToolOutput:
    """Build an error payload with the same key set as the tool's success payload.

    Args:
        error: The failure to render.
        result_type: Domain result whose neutral defaults fill the payload.
        message: Human-readable sentence for display.
        echo: Caller inputs echoed back for context (city, query, url).
        error_prefix: Text placed before the error description.
    """
    payload = result_type.neutral_payload()
    for key, value in (echo or {}).items():
        payload[key] = result_type._flat_value(value)
    return ToolOutput(
        status=ToolStatus.ERROR,
        message=message,
        error=f"{error_prefix}{error.message}",
        errorKind=error.kind.value,
        **payload,
    )
