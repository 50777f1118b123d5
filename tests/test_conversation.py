"""Unit tests for the message store — ordering rules, no model."""
from __future__ import annotations

import pytest
from pydantic import ValidationError

from toolchat.conversation import Conversation
from toolchat.errors import ConversationError
from toolchat.models import (
    Message,
    Role,
    TextBlock,
    ToolFailure,
    ToolInvocation,
    ToolResult,
    ToolSuccess,
)


def _result(invocation_id: str, value="ok") -> Message:
    return Message.tool_result(ToolResult(
        invocation_id=invocation_id,
        tool_name="lookup_postal_code",
        outcome=ToolSuccess(value=value),
    ))


def _tool_request(*ids: str) -> Message:
    return Message.assistant(tuple(
        ToolInvocation(id=i, name="lookup_postal_code", arguments={"city": "Atlanta"})
        for i in ids
    ))


# ---------------------------------------------------------------------------
# Ordering
# ---------------------------------------------------------------------------

def test_snapshot_preserves_append_order():
    conv = Conversation()
    messages = [
        Message.user("hi"),
        Message.assistant("hello"),
        Message.user("postal code of Atlanta?"),
        _tool_request("t1"),
        _result("t1"),
        Message.assistant("30301"),
    ]
    for m in messages:
        conv.append(m)
    assert list(conv.snapshot()) == messages
    assert len(conv) == 6
    assert conv.last == messages[-1]


def test_snapshot_is_not_affected_by_later_appends():
    conv = Conversation()
    conv.append(Message.user("one"))
    snap = conv.snapshot()
    conv.append(Message.assistant("two"))
    assert len(snap) == 1
    assert isinstance(snap, tuple)


def test_messages_are_frozen():
    msg = Message.user("hi")
    with pytest.raises(ValidationError):
        msg.content = "changed"


def test_first_message_must_be_user():
    conv = Conversation()
    with pytest.raises(ConversationError):
        conv.append(Message.assistant("hello"))
    assert len(conv) == 0


def test_consecutive_user_messages_allowed():
    conv = Conversation()
    conv.append(Message.user("first try"))
    conv.append(Message.user("second try"))
    assert [m.role for m in conv] == [Role.USER, Role.USER]


def test_two_assistant_messages_rejected():
    conv = Conversation()
    conv.append(Message.user("hi"))
    conv.append(Message.assistant("a"))
    with pytest.raises(ConversationError):
        conv.append(Message.assistant("b"))
    assert len(conv) == 2


# ---------------------------------------------------------------------------
# Tool results
# ---------------------------------------------------------------------------

def test_tool_result_must_follow_matching_invocation():
    conv = Conversation()
    conv.append(Message.user("hi"))
    conv.append(_tool_request("t1"))
    with pytest.raises(ConversationError):
        conv.append(_result("other"))
    conv.append(_result("t1"))
    assert conv.last.result.invocation_id == "t1"


def test_tool_result_after_user_rejected():
    conv = Conversation()
    conv.append(Message.user("hi"))
    with pytest.raises(ConversationError):
        conv.append(_result("t1"))


def test_duplicate_tool_result_rejected():
    conv = Conversation()
    conv.append(Message.user("hi"))
    conv.append(_tool_request("t1"))
    conv.append(_result("t1"))
    with pytest.raises(ConversationError):
        conv.append(_result("t1"))


def test_sibling_results_follow_each_other():
    conv = Conversation()
    conv.append(Message.user("two cities"))
    conv.append(_tool_request("t1", "t2"))
    conv.append(_result("t1"))
    assert [i.id for i in conv.pending_invocations()] == ["t2"]
    conv.append(_result("t2"))
    assert conv.pending_invocations() == []


def test_user_message_blocked_while_results_pending():
    conv = Conversation()
    conv.append(Message.user("hi"))
    conv.append(_tool_request("t1"))
    with pytest.raises(ConversationError):
        conv.append(Message.user("never mind"))


def test_reused_invocation_id_rejected():
    conv = Conversation()
    conv.append(Message.user("hi"))
    conv.append(_tool_request("t1"))
    conv.append(_result("t1"))
    with pytest.raises(ConversationError):
        conv.append(_tool_request("t1"))


def test_failed_result_counts_as_answer():
    conv = Conversation()
    conv.append(Message.user("hi"))
    conv.append(_tool_request("t1"))
    conv.append(Message.tool_result(ToolResult(
        invocation_id="t1", tool_name="x", outcome=ToolFailure(message="boom"),
    )))
    assert conv.pending_invocations() == []
    assert not conv.last.result.ok


def test_message_text_joins_text_blocks():
    msg = Message.assistant((
        TextBlock(text="Let me check."),
        ToolInvocation(id="t1", name="lookup_postal_code", arguments={}),
    ))
    assert msg.text == "Let me check."
    assert [i.id for i in msg.invocations] == ["t1"]
    assert msg.result is None
