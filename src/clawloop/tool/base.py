"""Base tool classes with Pydantic parameter validation."""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, ClassVar, Generic, Protocol, TypeVar, runtime_checkable

from pydantic import BaseModel, ValidationError

from clawloop.cancel import CancellationToken
from clawloop.llm.provider import ToolSpec
from clawloop.tool.truncation import truncate_output

logger = logging.getLogger(__name__)

T = TypeVar("T", bound=BaseModel)


@dataclass(frozen=True)
class ToolResult:
    """Result of a tool execution."""

    success: bool
    output: str = ""
    error: str | None = None

    @classmethod
    def ok(cls, output: str) -> ToolResult:
        return cls(success=True, output=output)

    @classmethod
    def fail(cls, error: str, output: str = "") -> ToolResult:
        return cls(success=False, output=output, error=error)

    def as_message_content(self) -> str:
        """Text fed back to the model in the tool-role message."""
        if self.success:
            return self.output
        return f"Error: {self.error}"


@runtime_checkable
class Tool(Protocol):
    """Anything the agent loop can execute."""

    name: str
    description: str

    def spec(self) -> ToolSpec: ...

    async def execute(
        self, arguments: dict[str, Any], cancel: CancellationToken
    ) -> ToolResult: ...


class BaseTool(ABC, Generic[T]):
    """Base class for built-in tools.

    Each tool declares its parameters as a Pydantic model (the type
    parameter T). ``execute`` validates the raw arguments, calls ``run``,
    truncates the output and turns any exception into a failed result.

    Usage:
        class MyParams(BaseModel):
            path: str
            offset: int = 0

        class MyTool(BaseTool[MyParams]):
            name = "my_tool"
            description = "Does something useful"
            param_model = MyParams

            async def run(self, params: MyParams, cancel: CancellationToken) -> ToolResult:
                return ToolResult.ok("done")
    """

    name: ClassVar[str]
    description: ClassVar[str]
    param_model: ClassVar[type[BaseModel]]

    # Directory for the full text of truncated output; None keeps nothing
    overflow_dir: str | None = None

    async def execute(
        self, arguments: dict[str, Any], cancel: CancellationToken
    ) -> ToolResult:
        try:
            params = self.param_model.model_validate(arguments)
        except ValidationError as e:
            return ToolResult.fail(f"Invalid parameters: {e}")

        cancel.raise_if_cancelled()
        try:
            result = await self.run(params, cancel)  # type: ignore[arg-type]
        except Exception as e:
            logger.error("Tool %s execution error: %s", self.name, e, exc_info=True)
            return ToolResult.fail(f"Error executing {self.name}: {e}")

        return ToolResult(
            success=result.success,
            output=truncate_output(result.output, overflow_dir=self.overflow_dir),
            error=result.error,
        )

    @abstractmethod
    async def run(self, params: T, cancel: CancellationToken) -> ToolResult:
        """Execute the tool with validated parameters."""
        ...

    def spec(self) -> ToolSpec:
        schema = self.param_model.model_json_schema()
        # Pydantic adds a title the model does not need
        schema.pop("title", None)
        return ToolSpec(name=self.name, description=self.description, parameters=schema)
