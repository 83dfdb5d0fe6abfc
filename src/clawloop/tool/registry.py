"""Tool registry — name to tool lookup, built once at startup."""

from __future__ import annotations

import logging

from clawloop.llm.provider import ToolSpec
from clawloop.tool.base import Tool

logger = logging.getLogger(__name__)


class ToolRegistry:
    """Registry of available tools.

    The agent loop only reads from it (``get`` and ``get_specs``); tools are
    registered by the caller before any run starts.
    """

    def __init__(self) -> None:
        self._tools: dict[str, Tool] = {}

    def register(self, tool: Tool) -> None:
        """Register a tool instance.

        Raises:
            ValueError: If a tool with the same name is already registered.
        """
        if tool.name in self._tools:
            raise ValueError(
                f"Tool '{tool.name}' is already registered. "
                "Use get() to check if a tool exists before registering."
            )
        self._tools[tool.name] = tool
        logger.debug("Registered tool %s", tool.name)

    def register_many(self, tools: list[Tool]) -> None:
        for tool in tools:
            self.register(tool)

    def get(self, name: str) -> Tool | None:
        """Get a tool by name."""
        return self._tools.get(name)

    def get_specs(self, names: list[str] | None = None) -> list[ToolSpec]:
        """Get tool specs, optionally filtered by name.

        Args:
            names: If provided, only return specs for these tools.
                   If None, return all.
        """
        tools = list(self._tools.values())
        if names is not None:
            tools = [t for t in tools if t.name in names]
        return [t.spec() for t in tools]

    def __len__(self) -> int:
        return len(self._tools)

    def __contains__(self, name: str) -> bool:
        return name in self._tools
