"""Tests for the shared wire types."""

from __future__ import annotations

import pytest

from llmsfree.errors import StreamDecodeError
from llmsfree.types import (
    ChatCompletion,
    ChatCompletionChunk,
    ChatCompletionRequest,
    ChatModel,
    ChatResponse,
    Generation,
    Message,
    Prompt,
    Role,
    ToolCall,
    document_message,
    image_message,
    tool_choice_function,
    user_message,
)


class TestMessage:
    def test_to_dict_drops_none(self):
        assert user_message("hi").to_dict() == {"content": "hi", "role": "user"}

    def test_from_dict_with_tool_calls(self):
        msg = Message.from_dict({
            "role": "assistant",
            "content": None,
            "tool_calls": [{
                "id": "call_1",
                "type": "function",
                "function": {"name": "add", "arguments": "{}"},
            }],
        })

        assert msg.role is Role.ASSISTANT
        assert msg.has_tool_calls
        assert msg.tool_calls[0].name == "add"

    def test_unknown_role(self):
        with pytest.raises(StreamDecodeError):
            Message.from_dict({"role": "narrator", "content": "x"})

    def test_image_message(self):
        msg = image_message(Role.USER, "https://example.com/cat.png", "What is this?")
        assert msg.content[0] == {"type": "text", "text": "What is this?"}
        assert msg.content[1] == {
            "type": "image_url",
            "image_url": {"url": "https://example.com/cat.png"},
        }

    def test_document_message(self):
        msg = document_message(Role.USER, "https://example.com/a.pdf", "Summarize")
        assert msg.content[1] == {"type": "file", "file_url": {"url": "https://example.com/a.pdf"}}

    def test_is_immutable(self):
        with pytest.raises(AttributeError):
            user_message("hi").content = "changed"


class TestToolCall:
    def test_arguments_default_to_empty_text(self):
        assert ToolCall().arguments == ""

    def test_index_only_serialized_when_present(self):
        assert "index" not in ToolCall(id="call_1").to_dict()
        assert ToolCall(id="call_1", index=0).to_dict()["index"] == 0


class TestCompletions:
    def test_tool_call_message(self):
        completion = ChatCompletion.from_dict({
            "id": "c1",
            "choices": [{
                "index": 0,
                "message": {
                    "role": "assistant",
                    "tool_calls": [{"id": "call_1", "function": {"name": "f", "arguments": "{}"}}],
                },
                "finish_reason": "tool_calls",
            }],
        })
        assert completion.tool_call_message is completion.choices[0].message

    def test_no_tool_call_message(self):
        assert ChatCompletion().tool_call_message is None

    def test_from_chunk(self):
        chunk = ChatCompletionChunk.from_dict({
            "id": "c1",
            "model": "kimi",
            "choices": [{"index": 0, "delta": {"content": "hi"}, "finish_reason": "stop"}],
        })
        completion = ChatCompletion.from_chunk(chunk)

        assert completion.id == "c1"
        assert completion.model == "kimi"
        assert completion.choices[0].message.content == "hi"
        assert completion.choices[0].finish_reason == chunk.choices[0].finish_reason


class TestRequest:
    def test_with_messages_keeps_other_fields(self):
        request = ChatCompletionRequest(
            model=ChatModel.GLM_4.value,
            messages=(user_message("a"),),
            stream=True,
            use_search=True,
            tools=({"type": "function"},),
            tool_choice=tool_choice_function("add"),
        )
        clone = request.with_messages([user_message("b")], stream=False)

        assert clone.messages == (user_message("b"),)
        assert clone.stream is False
        assert clone.model == "glm-4"
        assert clone.use_search is True
        assert clone.tools == request.tools
        assert clone.tool_choice == {"type": "function", "function": {"name": "add"}}
        assert request.stream is True

    def test_to_dict_omits_none(self):
        body = ChatCompletionRequest(model="kimi", messages=()).to_dict()
        assert body == {"model": "kimi", "messages": [], "stream": False, "use_search": False}


class TestCallerShapes:
    def test_prompt_of_string(self):
        prompt = Prompt.of("hi")
        assert prompt.messages == [user_message("hi")]
        assert Prompt.of(prompt) is prompt

    def test_chat_response_result(self):
        assert ChatResponse().result is None
        gen = Generation(content="x")
        assert ChatResponse([gen]).result is gen
