"""Wire format of the Messages API: request building and response interpretation."""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from typing import Any, Sequence

from pydantic import BaseModel, ValidationError

from toolchat.errors import ConversationError, ResponseFormatError
from toolchat.models import (
    CallParameters,
    ContentBlock,
    Message,
    ModelReply,
    Request,
    Role,
    TextBlock,
    ToolDeclaration,
    ToolFailure,
    ToolInvocation,
    ToolResult,
    ToolSuccess,
    UnknownBlock,
    Usage,
)
from toolchat.tools import ToolRegistry

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Request side
# ---------------------------------------------------------------------------

def serialize_tool(tool: ToolDeclaration) -> dict[str, Any]:
    return {
        "name": tool.name,
        "description": tool.description,
        "input_schema": {
            "type": tool.input_schema.type,
            "properties": tool.input_schema.properties,
            "required": list(tool.input_schema.required),
        },
    }


def _block_to_dict(block: TextBlock | ToolInvocation) -> dict[str, Any]:
    if isinstance(block, ToolInvocation):
        return {"type": "tool_use", "id": block.id, "name": block.name, "input": block.arguments}
    return {"type": "text", "text": block.text}


def _result_to_dict(result: ToolResult) -> dict[str, Any]:
    if isinstance(result.outcome, ToolFailure):
        return {
            "type": "tool_result",
            "tool_use_id": result.invocation_id,
            "content": result.outcome.message,
            "is_error": True,
        }
    return {
        "type": "tool_result",
        "tool_use_id": result.invocation_id,
        "content": json.dumps(result.outcome.value, default=str),
    }


def serialize_messages(messages: Sequence[Message]) -> list[dict[str, Any]]:
    """Convert messages to wire dicts.

    Consecutive tool results are grouped into one user message, which is how
    the API expects the answers to a multi-invocation assistant message.
    """
    wire: list[dict[str, Any]] = []
    for msg in messages:
        if msg.role == Role.TOOL_RESULT:
            block = _result_to_dict(msg.result)
            prev = wire[-1] if wire else None
            if (
                prev is not None
                and prev["role"] == "user"
                and isinstance(prev["content"], list)
                and all(b.get("type") == "tool_result" for b in prev["content"])
            ):
                prev["content"].append(block)
            else:
                wire.append({"role": "user", "content": [block]})
        elif isinstance(msg.content, tuple):
            wire.append({
                "role": msg.role.value,
                "content": [_block_to_dict(b) for b in msg.content],
            })
        else:
            wire.append({"role": msg.role.value, "content": msg.content})
    return wire


def parse_messages(wire: Sequence[dict[str, Any]]) -> list[Message]:
    """Inverse of serialize_messages."""
    messages: list[Message] = []
    tool_names: dict[str, str] = {}
    for item in wire:
        role, content = item["role"], item["content"]
        if isinstance(content, str):
            messages.append(Message(role=Role(role), content=content))
        elif role == "assistant":
            blocks = tuple(
                ToolInvocation.model_validate(b) if b["type"] == "tool_use" else TextBlock.model_validate(b)
                for b in content
            )
            for b in blocks:
                if isinstance(b, ToolInvocation):
                    tool_names[b.id] = b.name
            messages.append(Message.assistant(blocks))
        else:
            for b in content:
                outcome: ToolSuccess | ToolFailure
                if b.get("is_error"):
                    outcome = ToolFailure(message=b["content"])
                else:
                    outcome = ToolSuccess(value=json.loads(b["content"]))
                messages.append(Message.tool_result(ToolResult(
                    invocation_id=b["tool_use_id"],
                    tool_name=tool_names.get(b["tool_use_id"], ""),
                    outcome=outcome,
                )))
    return messages


def build_request(
    messages: Sequence[Message],
    registry: ToolRegistry,
    params: CallParameters,
) -> Request:
    """Assemble the request body for one model call. No side effects."""
    if not messages:
        raise ConversationError("cannot build a request from an empty conversation")
    return Request(
        model=params.model,
        messages=serialize_messages(messages),
        max_tokens=params.max_tokens,
        system=params.system or None,
        tools=[serialize_tool(t) for t in registry],
    )


# ---------------------------------------------------------------------------
# Response side
# ---------------------------------------------------------------------------

_BLOCK_TYPES: dict[str, type[BaseModel]] = {
    "text": TextBlock,
    "tool_use": ToolInvocation,
}


@dataclass(frozen=True)
class Interpretation:
    blocks: tuple[ContentBlock, ...]
    usage: Usage = field(default_factory=Usage)
    stop_reason: str | None = None

    @property
    def texts(self) -> list[str]:
        return [b.text for b in self.blocks if isinstance(b, TextBlock)]

    @property
    def invocations(self) -> list[ToolInvocation]:
        return [b for b in self.blocks if isinstance(b, ToolInvocation)]

    @property
    def first_text(self) -> str | None:
        texts = self.texts
        return texts[0] if texts else None

    def assistant_blocks(self) -> tuple[TextBlock | ToolInvocation, ...]:
        """Known blocks in order, for recording the assistant turn."""
        return tuple(
            b for b in self.blocks
            if isinstance(b, ToolInvocation) or (isinstance(b, TextBlock) and b.text)
        )


def interpret(reply: ModelReply) -> Interpretation:
    """Classify each content item of a reply, preserving order."""
    blocks: list[ContentBlock] = []
    for raw in reply.content:
        kind = raw.get("type")
        block_type = _BLOCK_TYPES.get(kind) if isinstance(kind, str) else None
        if block_type is None:
            logger.debug("ignoring content block of unknown type %r", kind)
            blocks.append(UnknownBlock(type=str(kind), raw=raw))
            continue
        try:
            blocks.append(block_type.model_validate(raw))
        except ValidationError as e:
            raise ResponseFormatError(f"malformed {kind} block in response: {e}") from e

    logger.debug(
        "interpreted %d block(s), stop_reason=%s, tokens in %d out %d",
        len(blocks), reply.stop_reason, reply.usage.input_tokens, reply.usage.output_tokens,
    )
    return Interpretation(blocks=tuple(blocks), usage=reply.usage, stop_reason=reply.stop_reason)
