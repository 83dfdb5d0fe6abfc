"""Tests for clawloop.llm.message."""

from __future__ import annotations

import pytest

from clawloop.llm.message import Message, TokenUsage, ToolCallRequest


# ---------------------------------------------------------------------------
# ToolCallRequest
# ---------------------------------------------------------------------------


class TestToolCallRequest:
    def test_arguments_decoded(self) -> None:
        tc = ToolCallRequest(id="tc1", name="shell", arguments_json='{"command": "ls"}')
        assert tc.arguments() == {"command": "ls"}

    def test_empty_arguments(self) -> None:
        assert ToolCallRequest(id="tc1", name="think").arguments() == {}
        assert ToolCallRequest(id="tc1", name="think", arguments_json="  ").arguments() == {}

    def test_invalid_json(self) -> None:
        tc = ToolCallRequest(id="tc1", name="shell", arguments_json="{broken")
        with pytest.raises(ValueError, match="not valid JSON"):
            tc.arguments()

    def test_non_object(self) -> None:
        tc = ToolCallRequest(id="tc1", name="shell", arguments_json='"just a string"')
        with pytest.raises(ValueError, match="JSON object"):
            tc.arguments()

    def test_frozen(self) -> None:
        tc = ToolCallRequest(id="tc1", name="shell")
        with pytest.raises(AttributeError):
            tc.name = "other"  # type: ignore[misc]


# ---------------------------------------------------------------------------
# TokenUsage
# ---------------------------------------------------------------------------


class TestTokenUsage:
    def test_defaults(self) -> None:
        u = TokenUsage()
        assert u.input_tokens == 0
        assert u.output_tokens == 0
        assert u.total_tokens == 0

    def test_add(self) -> None:
        total = TokenUsage(1, 2, 3) + TokenUsage(10, 20, 30)
        assert total == TokenUsage(11, 22, 33)


# ---------------------------------------------------------------------------
# Message constructors
# ---------------------------------------------------------------------------


class TestMessageConstructors:
    def test_system(self) -> None:
        m = Message.system("You are helpful.")
        assert m.role == "system"
        assert m.content == "You are helpful."

    def test_user(self) -> None:
        m = Message.user("Hello")
        assert m.role == "user"
        assert m.tool_calls == []

    def test_assistant_with_tool_calls(self) -> None:
        calls = [ToolCallRequest(id="tc1", name="shell", arguments_json="{}")]
        m = Message.assistant("Running", calls)
        assert m.role == "assistant"
        assert m.tool_calls == calls
        assert m.tool_calls is not calls

    def test_tool_result(self) -> None:
        m = Message.tool_result("tc1", "output", name="shell")
        assert m.role == "tool"
        assert m.tool_call_id == "tc1"
        assert m.content == "output"
        assert m.name == "shell"


# ---------------------------------------------------------------------------
# OpenAI wire format
# ---------------------------------------------------------------------------


class TestToOpenAIDict:
    def test_user(self) -> None:
        assert Message.user("Hi").to_openai_dict() == {"role": "user", "content": "Hi"}

    def test_system(self) -> None:
        d = Message.system("Be brief").to_openai_dict()
        assert d == {"role": "system", "content": "Be brief"}

    def test_assistant_text_only(self) -> None:
        d = Message.assistant("Hello").to_openai_dict()
        assert d == {"role": "assistant", "content": "Hello"}

    def test_assistant_empty_content_is_none(self) -> None:
        calls = [ToolCallRequest(id="tc1", name="shell", arguments_json='{"c": 1}')]
        d = Message.assistant("", calls).to_openai_dict()
        assert d["content"] is None
        assert d["tool_calls"] == [
            {
                "id": "tc1",
                "type": "function",
                "function": {"name": "shell", "arguments": '{"c": 1}'},
            }
        ]

    def test_assistant_missing_arguments_sent_as_empty_object(self) -> None:
        calls = [ToolCallRequest(id="tc1", name="think")]
        d = Message.assistant("", calls).to_openai_dict()
        assert d["tool_calls"][0]["function"]["arguments"] == "{}"

    def test_tool(self) -> None:
        d = Message.tool_result("tc1", "done", name="shell").to_openai_dict()
        assert d == {"role": "tool", "tool_call_id": "tc1", "content": "done", "name": "shell"}

    def test_tool_without_name(self) -> None:
        d = Message.tool_result("tc1", "done").to_openai_dict()
        assert "name" not in d
