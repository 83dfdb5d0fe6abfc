"""Message types for the LLM abstraction."""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from typing import Any, Literal

logger = logging.getLogger(__name__)

Role = Literal["system", "user", "assistant", "tool"]


@dataclass(frozen=True)
class ToolCallRequest:
    """A tool call requested by the model."""

    id: str
    name: str
    arguments_json: str = ""  # JSON string, exactly as the model produced it

    def arguments(self) -> dict[str, Any]:
        """Decode the JSON arguments.

        Raises:
            ValueError: If the text is not valid JSON or not a JSON object.
        """
        if not self.arguments_json.strip():
            return {}
        try:
            args = json.loads(self.arguments_json)
        except json.JSONDecodeError as e:
            logger.warning(
                "Failed to parse tool call arguments for %s: %s",
                self.name,
                self.arguments_json[:200],
            )
            raise ValueError(f"arguments are not valid JSON: {e}") from e
        if not isinstance(args, dict):
            raise ValueError(
                f"arguments must be a JSON object, got {type(args).__name__}"
            )
        return args


@dataclass
class TokenUsage:
    """Token usage stats from an LLM call."""

    input_tokens: int = 0
    output_tokens: int = 0
    total_tokens: int = 0

    def __add__(self, other: TokenUsage) -> TokenUsage:
        return TokenUsage(
            input_tokens=self.input_tokens + other.input_tokens,
            output_tokens=self.output_tokens + other.output_tokens,
            total_tokens=self.total_tokens + other.total_tokens,
        )


@dataclass
class Message:
    """A single conversation message (system, user, assistant, or tool)."""

    role: Role
    content: str = ""
    tool_calls: list[ToolCallRequest] = field(default_factory=list)
    tool_call_id: str | None = None  # Set on tool-role messages
    name: str | None = None

    # --- Convenience constructors ---

    @classmethod
    def system(cls, text: str) -> Message:
        return cls(role="system", content=text)

    @classmethod
    def user(cls, text: str) -> Message:
        return cls(role="user", content=text)

    @classmethod
    def assistant(
        cls, text: str = "", tool_calls: list[ToolCallRequest] | None = None
    ) -> Message:
        return cls(role="assistant", content=text, tool_calls=list(tool_calls or []))

    @classmethod
    def tool_result(
        cls, tool_call_id: str, content: str, name: str | None = None
    ) -> Message:
        return cls(role="tool", content=content, tool_call_id=tool_call_id, name=name)

    def to_openai_dict(self) -> dict[str, Any]:
        """Convert to OpenAI chat API format (what litellm accepts)."""
        if self.role == "tool":
            result: dict[str, Any] = {
                "role": "tool",
                "tool_call_id": self.tool_call_id or "",
                "content": self.content,
            }
            if self.name:
                result["name"] = self.name
            return result

        if self.role == "assistant":
            result = {"role": "assistant", "content": self.content or None}
            if self.tool_calls:
                result["tool_calls"] = [
                    {
                        "id": tc.id,
                        "type": "function",
                        "function": {
                            "name": tc.name,
                            "arguments": tc.arguments_json or "{}",
                        },
                    }
                    for tc in self.tool_calls
                ]
            return result

        # system or user
        result = {"role": self.role, "content": self.content}
        if self.name:
            result["name"] = self.name
        return result
