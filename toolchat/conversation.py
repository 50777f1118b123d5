from __future__ import annotations

import logging
from typing import Iterator

from toolchat.errors import ConversationError
from toolchat.models import Message, Role, ToolInvocation

logger = logging.getLogger(__name__)


class Conversation:
    """Append-only, ordered log of messages.

    Appends that would produce a history the API rejects raise
    ConversationError and leave the log untouched.
    """

    def __init__(self) -> None:
        self._messages: list[Message] = []
        self._answered: set[str] = set()

    def __len__(self) -> int:
        return len(self._messages)

    def __iter__(self) -> Iterator[Message]:
        return iter(self.snapshot())

    @property
    def last(self) -> Message | None:
        return self._messages[-1] if self._messages else None

    def snapshot(self) -> tuple[Message, ...]:
        return tuple(self._messages)

    def pending_invocations(self) -> list[ToolInvocation]:
        """Invocations of the latest assistant message that have no result yet."""
        for msg in reversed(self._messages):
            if msg.role == Role.ASSISTANT:
                return [inv for inv in msg.invocations if inv.id not in self._answered]
        return []

    def append(self, message: Message) -> None:
        self._check(message)
        self._messages.append(message)
        if message.result is not None:
            self._answered.add(message.result.invocation_id)
        logger.debug("appended %s message (%d total)", message.role.value, len(self._messages))

    def _check(self, message: Message) -> None:
        last = self.last
        if last is None:
            if message.role != Role.USER:
                raise ConversationError(
                    f"conversation must start with a user message, got {message.role.value}"
                )
            return

        pending = self.pending_invocations()

        if message.role == Role.TOOL_RESULT:
            result = message.result
            if result is None:
                raise ConversationError("tool_result message carries no tool result")
            if last.role not in (Role.ASSISTANT, Role.TOOL_RESULT):
                raise ConversationError(
                    "a tool result must follow the assistant message that requested it"
                )
            if result.invocation_id in self._answered:
                raise ConversationError(
                    f"invocation '{result.invocation_id}' already has a tool result"
                )
            if result.invocation_id not in {inv.id for inv in pending}:
                raise ConversationError(
                    f"no pending invocation '{result.invocation_id}' in the preceding assistant message"
                )
            return

        if pending:
            ids = ", ".join(inv.id for inv in pending)
            raise ConversationError(f"tool results still missing for: {ids}")

        if message.role == Role.ASSISTANT:
            if last.role == Role.ASSISTANT:
                raise ConversationError("two assistant messages in a row")
            ids = [inv.id for inv in message.invocations]
            reused = {i for i in ids if ids.count(i) > 1 or i in self._answered}
            if reused:
                raise ConversationError(f"invocation id(s) reused: {', '.join(sorted(reused))}")
