"""Request building and response interpretation — pure functions, no network."""
from __future__ import annotations

import json

import pytest

from toolchat.errors import ConversationError, ResponseFormatError
from toolchat.models import (
    CallParameters,
    Message,
    ModelReply,
    TextBlock,
    ToolFailure,
    ToolInvocation,
    ToolResult,
    ToolSuccess,
    UnknownBlock,
)
from toolchat.protocol import build_request, interpret, parse_messages, serialize_messages
from toolchat.tools import ToolRegistry


def _history() -> list[Message]:
    return [
        Message.user("What is the postal code of Atlanta and Denver?"),
        Message.assistant((
            TextBlock(text="Let me look those up."),
            ToolInvocation(id="t1", name="lookup_postal_code", arguments={"city": "Atlanta"}),
            ToolInvocation(id="t2", name="lookup_postal_code", arguments={"city": "Denver"}),
        )),
        Message.tool_result(ToolResult(
            invocation_id="t1",
            tool_name="lookup_postal_code",
            outcome=ToolSuccess(value={"postal_codes": ["30301"]}),
        )),
        Message.tool_result(ToolResult(
            invocation_id="t2",
            tool_name="lookup_postal_code",
            outcome=ToolFailure(message="service unavailable"),
        )),
        Message.assistant("Atlanta is 30301; Denver could not be looked up."),
    ]


# ---------------------------------------------------------------------------
# Request builder
# ---------------------------------------------------------------------------

def test_build_request_embeds_everything(registry, params):
    history = _history()
    req = build_request(history, registry, params)
    payload = req.to_payload()

    assert payload["model"] == "claude-3-haiku-20240307"
    assert payload["max_tokens"] == 256
    assert payload["system"] == "Be brief."
    assert payload["tools"] == [{
        "name": "lookup_postal_code",
        "description": "Look up the postal codes of a city.",
        "input_schema": {
            "type": "object",
            "properties": {"city": {"type": "string"}},
            "required": ["city"],
        },
    }]
    assert payload["messages"] == serialize_messages(history)


def test_empty_registry_omits_tools(params):
    req = build_request([Message.user("What is the postal code tool for?")], ToolRegistry(), params)
    assert "tools" not in req.to_payload()


def test_empty_system_prompt_omitted(registry):
    params = CallParameters(model="opus", system="", max_tokens=10)
    req = build_request([Message.user("hi")], registry, params)
    assert "system" not in req.to_payload()


def test_build_request_rejects_empty_conversation(registry, params):
    with pytest.raises(ConversationError):
        build_request([], registry, params)


def test_build_request_is_pure(registry, params):
    history = _history()
    first = build_request(history, registry, params).to_payload()
    second = build_request(history, registry, params).to_payload()
    assert first == second
    assert history == _history()


def test_tool_results_grouped_into_one_user_message():
    wire = serialize_messages(_history())
    assert [m["role"] for m in wire] == ["user", "assistant", "user", "assistant"]
    results = wire[2]["content"]
    assert [b["tool_use_id"] for b in results] == ["t1", "t2"]
    assert json.loads(results[0]["content"]) == {"postal_codes": ["30301"]}
    assert results[1] == {
        "type": "tool_result",
        "tool_use_id": "t2",
        "content": "service unavailable",
        "is_error": True,
    }


def test_assistant_tool_request_on_the_wire():
    wire = serialize_messages(_history())
    assert wire[1]["content"] == [
        {"type": "text", "text": "Let me look those up."},
        {"type": "tool_use", "id": "t1", "name": "lookup_postal_code", "input": {"city": "Atlanta"}},
        {"type": "tool_use", "id": "t2", "name": "lookup_postal_code", "input": {"city": "Denver"}},
    ]


def test_serialized_messages_parse_back():
    history = _history()
    assert parse_messages(serialize_messages(history)) == history


# ---------------------------------------------------------------------------
# Response interpreter
# ---------------------------------------------------------------------------

def _reply(*content: dict) -> ModelReply:
    return ModelReply.model_validate({
        "content": list(content),
        "stop_reason": "tool_use",
        "usage": {"input_tokens": 42, "output_tokens": 7},
    })


def test_interpret_preserves_order_and_kinds():
    interp = interpret(_reply(
        {"type": "text", "text": "Checking."},
        {"type": "tool_use", "id": "t1", "name": "lookup_postal_code", "input": {"city": "Atlanta"}},
        {"type": "text", "text": "Done soon."},
    ))
    assert [type(b) for b in interp.blocks] == [TextBlock, ToolInvocation, TextBlock]
    assert interp.first_text == "Checking."
    assert interp.invocations[0].arguments == {"city": "Atlanta"}
    assert interp.usage.input_tokens == 42
    assert interp.usage.output_tokens == 7
    assert interp.stop_reason == "tool_use"


def test_interpret_tolerates_unknown_blocks():
    interp = interpret(_reply(
        {"type": "thinking", "thinking": "hmm"},
        {"type": "text", "text": "Hello"},
    ))
    assert isinstance(interp.blocks[0], UnknownBlock)
    assert interp.blocks[0].type == "thinking"
    assert interp.texts == ["Hello"]
    assert interp.assistant_blocks() == (TextBlock(text="Hello"),)


def test_interpret_empty_content():
    interp = interpret(_reply())
    assert interp.blocks == ()
    assert interp.first_text is None
    assert interp.invocations == []


def test_interpret_malformed_tool_use_raises():
    with pytest.raises(ResponseFormatError):
        interpret(_reply({"type": "tool_use", "name": "lookup_postal_code"}))
