"""Lookup of adapter tools by name or capability."""

import logging
from typing import Any, Iterable, Mapping

from device_tools.tools.base import Tool, ToolDescriptor
from device_tools.tools.output import ToolOutput

logger = logging.getLogger(__name__)


class CapabilityError(Exception):
    """No registered tool provides a capability the caller requires."""

    def __init__(self, missing: Iterable[str]) -> None:
        self.missing = sorted(missing)
        super().__init__(f"Missing required capabilities: {self.missing}")


class ToolRegistry:
    """Tools keyed by their stable name, in registration order.

    A capability resolves to the first registered tool that declares it.
    """

    def __init__(self, tools: Iterable[Tool] = ()) -> None:
        self._tools: dict[str, Tool] = {}
        for tool in tools:
            self.register(tool)

    def register(self, tool: Tool) -> None:
        if tool.name in self._tools:
            raise ValueError(f"Tool '{tool.name}' already registered")
        self._tools[tool.name] = tool
        logger.debug(f"Registered {tool.name} ({', '.join(sorted(tool.capabilities))})")

    def get_by_name(self, name: str) -> Tool | None:
        return self._tools.get(name)

    def get_by_capability(self, capability: str) -> Tool | None:
        return next(
            (tool for tool in self._tools.values() if capability in tool.capabilities),
            None,
        )

    def get_all(self) -> list[Tool]:
        return list(self._tools.values())

    def descriptors(self) -> list[ToolDescriptor]:
        """Descriptors of every tool, for a planner choosing what to call."""
        return [tool.descriptor() for tool in self._tools.values()]

    def resolve(
        self,
        required: frozenset[str],
        optional: frozenset[str] = frozenset(),
    ) -> dict[str, Tool]:
        """Map each capability to the tool that provides it.

        Raises:
            CapabilityError: If any required capability has no provider.
        """
        found = {cap: self.get_by_capability(cap) for cap in required | optional}

        missing = [cap for cap in required if found[cap] is None]
        if missing:
            raise CapabilityError(missing)

        for cap in sorted(optional):
            if found[cap] is None:
                logger.warning(f"Optional capability '{cap}' not available")

        return {cap: tool for cap, tool in found.items() if tool is not None}

    async def invoke(self, name: str, arguments: Mapping[str, Any] | None = None) -> ToolOutput:
        """Invoke a registered tool by name.

        Raises:
            KeyError: If no tool with that name is registered.
        """
        tool = self._tools.get(name)
        if tool is None:
            raise KeyError(name)
        return await tool.call(arguments)

    def __len__(self) -> int:
        return len(self._tools)

    def __contains__(self, name: object) -> bool:
        return name in self._tools
