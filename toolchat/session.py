from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Mapping

from rich.console import Console
from rich.markup import escape

from toolchat.connectors.base import LLMConnector
from toolchat.conversation import Conversation
from toolchat.errors import ConversationError, TransportError
from toolchat.models import CallParameters, Message, ToolResult, Usage
from toolchat.protocol import build_request, interpret
from toolchat.tools import Executor, ToolRegistry, dispatch

logger = logging.getLogger(__name__)

console = Console()

MAX_TOOL_ROUNDS = 10


class TurnState(str, Enum):
    AWAITING_INPUT = "awaiting_input"
    REQUEST_PENDING = "request_pending"
    INTERPRETING = "interpreting"
    TOOL_DISPATCH = "tool_dispatch"
    COMPLETE = "complete"
    FAILED = "failed"


@dataclass
class TurnResult:
    state: TurnState
    reply: str | None = None
    error: str | None = None
    usage: Usage = field(default_factory=Usage)
    tool_results: list[ToolResult] = field(default_factory=list)
    rounds: int = 0

    @property
    def ok(self) -> bool:
        return self.state == TurnState.COMPLETE


class ChatSession:
    """Runs turns against the model, dispatching tool calls until a final answer."""

    def __init__(
        self,
        connector: LLMConnector,
        registry: ToolRegistry,
        params: CallParameters,
        executors: Mapping[str, Executor] | None = None,
        max_tool_rounds: int = MAX_TOOL_ROUNDS,
    ) -> None:
        if max_tool_rounds < 0:
            raise ValueError("max_tool_rounds must be >= 0")
        self.connector = connector
        self.registry = registry
        self.params = params
        self.executors: Mapping[str, Executor] = executors or {}
        self.max_tool_rounds = max_tool_rounds
        self.conversation = Conversation()
        self.state = TurnState.AWAITING_INPUT
        self.usage = Usage()
        self.start_time = datetime.now()
        self.turns = 0
        self.failed_turns = 0
        self.tool_calls = 0

    def send(self, text: str) -> TurnResult:
        """Run one full turn for a line of user input."""
        self.conversation.append(Message.user(text))
        self.turns += 1
        result = self._run_tool_loop()
        if not result.ok:
            self.failed_turns += 1
        self.state = TurnState.AWAITING_INPUT
        return result

    def _run_tool_loop(self) -> TurnResult:
        """Agentic loop: call the model, execute tool calls, loop until a text answer."""
        result = TurnResult(state=TurnState.REQUEST_PENDING)

        # One request per tool round plus the one that produces the answer.
        for round_no in range(self.max_tool_rounds + 1):
            self.state = TurnState.REQUEST_PENDING
            request = build_request(self.conversation.snapshot(), self.registry, self.params)
            result.rounds += 1
            try:
                with console.status("[dim]thinking...[/dim]", spinner="dots"):
                    reply = self.connector.send(request)
                self.state = TurnState.INTERPRETING
                interpretation = interpret(reply)
            except TransportError as e:
                logger.warning("turn failed: %s", e)
                return self._finish(result, TurnState.FAILED, error=str(e))

            result.usage = result.usage + interpretation.usage
            self.usage = self.usage + interpretation.usage

            invocations = interpretation.invocations
            if not invocations:
                text = interpretation.first_text
                if text:
                    self.conversation.append(Message.assistant(text))
                return self._finish(result, TurnState.COMPLETE, reply=text)
            if round_no == self.max_tool_rounds:
                logger.warning("dropping %d invocation(s) past the round limit", len(invocations))
                break

            self.state = TurnState.TOOL_DISPATCH
            try:
                self.conversation.append(Message.assistant(interpretation.assistant_blocks()))
            except ConversationError as e:
                logger.warning("rejected tool request: %s", e)
                return self._finish(result, TurnState.FAILED, error=str(e))
            for text in interpretation.texts:
                if text:
                    console.print(f"[dim]{escape(text)}[/dim]")
            for inv in invocations:
                console.print(f"[dim]  tool: {escape(inv.name)}({escape(_fmt_args(inv.arguments))})[/dim]")
                tool_result = dispatch(inv, self.registry, self.executors)
                self.conversation.append(Message.tool_result(tool_result))
                result.tool_results.append(tool_result)
                self.tool_calls += 1

        return self._finish(
            result,
            TurnState.FAILED,
            error=f"tool round limit ({self.max_tool_rounds}) reached without a final answer",
        )

    def _finish(
        self,
        result: TurnResult,
        state: TurnState,
        reply: str | None = None,
        error: str | None = None,
    ) -> TurnResult:
        self.state = state
        result.state = state
        result.reply = reply
        result.error = error
        logger.info(
            "turn %s after %d request(s), tokens in %d out %d",
            state.value, result.rounds, result.usage.input_tokens, result.usage.output_tokens,
        )
        return result

    def get_summary(self) -> dict[str, Any]:
        elapsed = datetime.now() - self.start_time
        minutes, seconds = divmod(int(elapsed.total_seconds()), 60)
        return {
            "model": self.params.model,
            "duration": f"{minutes}m {seconds}s",
            "turns": self.turns,
            "failed_turns": self.failed_turns,
            "tool_calls": self.tool_calls,
            "messages": len(self.conversation),
            "input_tokens": self.usage.input_tokens,
            "output_tokens": self.usage.output_tokens,
        }


def _fmt_args(args: Any) -> str:
    """Format tool arguments for display (truncated)."""
    if not isinstance(args, dict):
        return repr(args)
    parts = []
    for k, v in args.items():
        sv = str(v)
        if len(sv) > 40:
            sv = sv[:37] + "..."
        parts.append(f"{k}={sv!r}")
    return ", ".join(parts)
