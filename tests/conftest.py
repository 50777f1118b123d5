from __future__ import annotations

from typing import Any

import pytest

from toolchat.connectors.base import LLMConnector
from toolchat.models import CallParameters, InputSchema, ModelReply, Request, ToolDeclaration
from toolchat.session import ChatSession
from toolchat.tools import ToolRegistry


class ScriptedConnector(LLMConnector):
    """Replays canned replies (or raises canned errors) and records every request."""

    def __init__(self, replies: list[ModelReply | Exception]) -> None:
        self.replies = list(replies)
        self.requests: list[Request] = []

    def send(self, request: Request) -> ModelReply:
        self.requests.append(request)
        if not self.replies:
            raise AssertionError("model called more times than scripted")
        item = self.replies.pop(0)
        if isinstance(item, Exception):
            raise item
        return item


def _text_reply(text: str, input_tokens: int = 10, output_tokens: int = 5) -> ModelReply:
    return ModelReply.model_validate({
        "id": "msg_text",
        "content": [{"type": "text", "text": text}],
        "stop_reason": "end_turn",
        "usage": {"input_tokens": input_tokens, "output_tokens": output_tokens},
    })


def _tool_reply(
    *calls: tuple[str, str, Any],
    text: str | None = None,
) -> ModelReply:
    content: list[dict[str, Any]] = []
    if text:
        content.append({"type": "text", "text": text})
    for call_id, name, arguments in calls:
        content.append({"type": "tool_use", "id": call_id, "name": name, "input": arguments})
    return ModelReply.model_validate({
        "id": "msg_tool",
        "content": content,
        "stop_reason": "tool_use",
        "usage": {"input_tokens": 20, "output_tokens": 8},
    })


@pytest.fixture
def text_reply():
    return _text_reply


@pytest.fixture
def tool_reply():
    return _tool_reply


@pytest.fixture
def postal_tool() -> ToolDeclaration:
    return ToolDeclaration(
        name="lookup_postal_code",
        description="Look up the postal codes of a city.",
        input_schema=InputSchema(
            properties={"city": {"type": "string"}},
            required=["city"],
        ),
    )


@pytest.fixture
def registry(postal_tool) -> ToolRegistry:
    return ToolRegistry([postal_tool])


@pytest.fixture
def params() -> CallParameters:
    return CallParameters(model="haiku", system="Be brief.", max_tokens=256)


@pytest.fixture
def postal_calls() -> list[dict[str, Any]]:
    return []


@pytest.fixture
def executors(postal_calls):
    def lookup_postal_code(arguments: dict[str, Any]) -> dict[str, Any]:
        postal_calls.append(arguments)
        return {"city": arguments["city"], "postal_codes": ["30301", "30302"]}

    return {"lookup_postal_code": lookup_postal_code}


@pytest.fixture
def make_session(registry, params, executors):
    """Build a ChatSession around a ScriptedConnector."""
    def _make(replies, **kwargs) -> tuple[ChatSession, ScriptedConnector]:
        connector = ScriptedConnector(replies)
        kwargs.setdefault("registry", registry)
        kwargs.setdefault("executors", executors)
        session = ChatSession(connector=connector, params=params, **kwargs)
        return session, connector

    return _make
