"""Tool protocol, descriptor and the shared adapter pipeline."""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Mapping, Protocol, runtime_checkable

from device_tools.exceptions import ArgumentError, ErrorKind, ToolError
from device_tools.tools.output import DomainResult, ToolOutput, encode_error, encode_success
from device_tools.tools.schema import ArgumentSchema

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ToolDescriptor:
    """Immutable identity of a tool, read by the planner.

    Attributes:
        name: Stable unique identifier (e.g. "getWeather").
        description: Human-readable summary of when to use the tool.
        schema: Declared arguments.
        capabilities: What this tool provides (e.g. "weather", "web_search").
    """

    name: str
    description: str
    schema: ArgumentSchema
    capabilities: frozenset[str] = frozenset()

    def to_dict(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "description": self.description,
            "capabilities": sorted(self.capabilities),
            "arguments": self.schema.to_json_schema(),
        }


@runtime_checkable
class Tool(Protocol):
    """Protocol that every tool must satisfy."""

    @property
    def name(self) -> str: ...

    @property
    def capabilities(self) -> frozenset[str]: ...

    def descriptor(self) -> ToolDescriptor: ...

    async def call(self, arguments: Mapping[str, Any] | None = None) -> ToolOutput: ...


class AdapterTool(ABC):
    """Base class running validate -> execute -> encode for one invocation.

    Subclasses declare their identity and schema, implement ``execute`` and
    the error mapping hooks. ``call`` never raises except on cancellation.
    """

    name: str
    description: str
    capabilities: frozenset[str] = frozenset()
    schema: ArgumentSchema
    result_type: type[DomainResult]

    # Kind used when execute() raises something other than ToolError
    fallback_error: ErrorKind

    def descriptor(self) -> ToolDescriptor:
        """Return static metadata about this tool."""
        return ToolDescriptor(
            name=self.name,
            description=self.description,
            schema=self.schema,
            capabilities=self.capabilities,
        )

    async def call(self, arguments: Mapping[str, Any] | None = None) -> ToolOutput:
        """Invoke the tool with raw caller arguments."""
        raw = dict(arguments or {})
        try:
            args = self.validate(raw)
            result, message = await self.execute(args)
        except ArgumentError as e:
            error = self.map_argument_error(e)
            logger.warning(f"{self.name}: rejected arguments: {e}")
            return self.encode_error(error, raw)
        except ToolError as e:
            logger.warning(f"{self.name}: {e.kind.value}: {e.message}")
            return self.encode_error(e, raw)
        except Exception as e:
            logger.error(f"{self.name}: unexpected failure: {e}")
            return self.encode_error(ToolError(self.fallback_error, e), raw)

        logger.debug(f"{self.name}: success")
        return encode_success(result, message)

    def validate(self, raw: Mapping[str, Any]) -> dict[str, Any]:
        """Normalize raw arguments; overridden where checks precede the schema."""
        return self.schema.validate(raw)

    @abstractmethod
    async def execute(self, args: dict[str, Any]) -> tuple[DomainResult, str]:
        """Perform the external call.

        Args:
            args: Normalized arguments.

        Returns:
            The domain result and the human-readable success message.

        Raises:
            ToolError: On any mapped failure.
        """
        ...

    @abstractmethod
    def map_argument_error(self, error: ArgumentError) -> ToolError:
        """Translate a validator failure into this tool's taxonomy."""
        ...

    @abstractmethod
    def encode_error(self, error: ToolError, raw: Mapping[str, Any]) -> ToolOutput:
        """Build the error payload, echoing caller context from raw arguments."""
        ...


def echo_text(raw: Mapping[str, Any], key: str) -> str:
    """Caller input echoed into an error payload, trimmed when it is text."""
    value = raw.get(key)
    if value is None:
        return ""
    return value.strip() if isinstance(value, str) else str(value)


__all__ = [
    "AdapterTool",
    "Tool",
    "ToolDescriptor",
    "echo_text",
    "encode_error",
]
