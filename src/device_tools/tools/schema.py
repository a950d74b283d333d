"""Explicit argument schemas and the argument validator."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime
from enum import Enum
from typing import Any, Mapping

from device_tools.exceptions import ArgumentError, ArgumentErrorKind


class FieldType(str, Enum):
    """Primitive argument types a tool may declare."""

    STRING = "string"
    INTEGER = "integer"
    NUMBER = "number"
    BOOLEAN = "boolean"
    DATE = "date"


_JSON_TYPES = {
    FieldType.STRING: "string",
    FieldType.INTEGER: "integer",
    FieldType.NUMBER: "number",
    FieldType.BOOLEAN: "boolean",
    FieldType.DATE: "string",
}


@dataclass(frozen=True)
class FieldSpec:
    """Declaration of one argument.

    Attributes:
        name: Argument key as the caller sends it.
        type: Primitive type of the value.
        description: Guidance shown to the planner.
        required: Whether an empty or missing value is rejected.
        default: Value used when the argument is absent.
        choices: Allowed values for enumerated strings, matched case-insensitively.
        minimum: Lower clamp for integers.
        maximum: Upper clamp for integers.
    """

    name: str
    type: FieldType
    description: str
    required: bool = False
    default: Any = None
    choices: tuple[str, ...] | None = None
    minimum: int | None = None
    maximum: int | None = None

    def to_json_schema(self) -> dict[str, Any]:
        schema: dict[str, Any] = {
            "type": _JSON_TYPES[self.type],
            "description": self.description,
        }
        if self.type is FieldType.DATE:
            schema["format"] = "date"
        if self.choices:
            schema["enum"] = list(self.choices)
        if self.default is not None:
            schema["default"] = self.default
        if self.minimum is not None:
            schema["minimum"] = self.minimum
        if self.maximum is not None:
            schema["maximum"] = self.maximum
        return schema


class ArgumentSchema:
    """Ordered collection of field declarations for one tool."""

    def __init__(self, *fields: FieldSpec) -> None:
        names = [f.name for f in fields]
        if len(names) != len(set(names)):
            raise ValueError(f"Duplicate field names in schema: {names}")
        self._fields: tuple[FieldSpec, ...] = fields

    @property
    def fields(self) -> tuple[FieldSpec, ...]:
        return self._fields

    def __getitem__(self, name: str) -> FieldSpec:
        for spec in self._fields:
            if spec.name == name:
                return spec
        raise KeyError(name)

    def __contains__(self, name: object) -> bool:
        return any(spec.name == name for spec in self._fields)

    def to_json_schema(self) -> dict[str, Any]:
        """Render the schema as a JSON Schema object for a planner."""
        return {
            "type": "object",
            "properties": {spec.name: spec.to_json_schema() for spec in self._fields},
            "required": [spec.name for spec in self._fields if spec.required],
        }

    def validate(self, raw: Mapping[str, Any] | None) -> dict[str, Any]:
        """Normalize raw arguments.

        Args:
            raw: Caller-supplied arguments. Unknown keys are ignored.

        Returns:
            A new dict holding every declared field, defaults applied.

        Raises:
            ArgumentError: If a required field is missing or a value is invalid.
        """
        raw = raw or {}
        arguments: dict[str, Any] = {}
        for spec in self._fields:
            value = raw.get(spec.name)
            if isinstance(value, str):
                value = value.strip()
                if value == "":
                    value = None
            if value is None:
                if spec.required:
                    raise ArgumentError(ArgumentErrorKind.MISSING_REQUIRED_FIELD, spec.name)
                arguments[spec.name] = spec.default
                continue
            arguments[spec.name] = _coerce(spec, value)
        return arguments


def _invalid(spec: FieldSpec, detail: str) -> ArgumentError:
    return ArgumentError(ArgumentErrorKind.INVALID_FIELD_VALUE, spec.name, detail)


def _coerce(spec: FieldSpec, value: Any) -> Any:
    if spec.type is FieldType.STRING:
        if not isinstance(value, str):
            raise _invalid(spec, "expected a string")
        if spec.choices:
            for choice in spec.choices:
                if choice.lower() == value.lower():
                    return choice
            raise _invalid(spec, f"expected one of {', '.join(spec.choices)}")
        return value

    if spec.type is FieldType.BOOLEAN:
        if not isinstance(value, bool):
            raise _invalid(spec, "expected a boolean")
        return value

    if spec.type is FieldType.INTEGER:
        # bool is an int subclass but never a valid count
        if isinstance(value, bool) or not isinstance(value, (int, float)):
            raise _invalid(spec, "expected an integer")
        if isinstance(value, float):
            if not value.is_integer():
                raise _invalid(spec, "expected an integer")
            value = int(value)
        if spec.minimum is not None:
            value = max(spec.minimum, value)
        if spec.maximum is not None:
            value = min(spec.maximum, value)
        return value

    if spec.type is FieldType.NUMBER:
        if isinstance(value, bool) or not isinstance(value, (int, float)):
            raise _invalid(spec, "expected a number")
        return float(value)

    if spec.type is FieldType.DATE:
        if isinstance(value, datetime):
            return value.date()
        if isinstance(value, date):
            return value
        if not isinstance(value, str):
            raise _invalid(spec, "expected a YYYY-MM-DD date")
        try:
            return datetime.strptime(value, "%Y-%m-%d").date()
        except ValueError:
            raise _invalid(spec, "expected a YYYY-MM-DD date") from None

    raise _invalid(spec, f"unsupported type {spec.type}")
