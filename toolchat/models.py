from __future__ import annotations

from enum import Enum
from typing import Annotated, Any, Literal, Union

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator

SYSTEM_PROMPT = """\
You are Super Claude, an AI assistant designed to help employees and developers work with \
Super-Sod's backend microservices. We will start off by working with the 'go-postal' REST API. \
Use the tools provided to fulfil user requests.

Give brief responses - we are in dev mode and many conversations are for testing purposes.
"""

MODELS: dict[str, str] = {
    "opus": "claude-3-opus-20240229",
    "sonnet": "claude-3-sonnet-20240229",
    "haiku": "claude-3-haiku-20240307",
}


class Role(str, Enum):
    USER = "user"
    ASSISTANT = "assistant"
    TOOL_RESULT = "tool_result"


# ---------------------------------------------------------------------------
# Content blocks (model output)
# ---------------------------------------------------------------------------

class TextBlock(BaseModel):
    model_config = ConfigDict(frozen=True)

    type: Literal["text"] = "text"
    text: str = ""


class ToolInvocation(BaseModel):
    model_config = ConfigDict(frozen=True, populate_by_name=True)

    type: Literal["tool_use"] = "tool_use"
    id: str
    name: str
    arguments: Any = Field(default_factory=dict, alias="input")


class UnknownBlock(BaseModel):
    """A content kind this client does not understand. Kept, never acted on."""

    model_config = ConfigDict(frozen=True)

    type: str
    raw: dict[str, Any] = Field(default_factory=dict)


ContentBlock = Union[TextBlock, ToolInvocation, UnknownBlock]

AssistantBlock = Annotated[Union[TextBlock, ToolInvocation], Field(discriminator="type")]


# ---------------------------------------------------------------------------
# Tool results
# ---------------------------------------------------------------------------

class ToolSuccess(BaseModel):
    model_config = ConfigDict(frozen=True)

    kind: Literal["success"] = "success"
    value: Any = None


class ToolFailure(BaseModel):
    model_config = ConfigDict(frozen=True)

    kind: Literal["failure"] = "failure"
    message: str


class ToolResult(BaseModel):
    model_config = ConfigDict(frozen=True)

    invocation_id: str
    tool_name: str
    outcome: Annotated[Union[ToolSuccess, ToolFailure], Field(discriminator="kind")]

    @property
    def ok(self) -> bool:
        return isinstance(self.outcome, ToolSuccess)


# ---------------------------------------------------------------------------
# Conversation messages
# ---------------------------------------------------------------------------

class Message(BaseModel):
    """One entry of the conversation.

    ``content`` is plain text for user messages and final assistant answers,
    a tuple of text/tool-use blocks for an assistant message that requested
    tools, and a ToolResult for role ``tool_result``.
    """

    model_config = ConfigDict(frozen=True)

    role: Role
    content: Union[str, tuple[AssistantBlock, ...], ToolResult]

    @classmethod
    def user(cls, text: str) -> Message:
        return cls(role=Role.USER, content=text)

    @classmethod
    def assistant(cls, content: str | tuple[TextBlock | ToolInvocation, ...]) -> Message:
        return cls(role=Role.ASSISTANT, content=content)

    @classmethod
    def tool_result(cls, result: ToolResult) -> Message:
        return cls(role=Role.TOOL_RESULT, content=result)

    @property
    def text(self) -> str:
        if isinstance(self.content, str):
            return self.content
        if isinstance(self.content, tuple):
            return "\n\n".join(b.text for b in self.content if isinstance(b, TextBlock) and b.text)
        return ""

    @property
    def invocations(self) -> tuple[ToolInvocation, ...]:
        if isinstance(self.content, tuple):
            return tuple(b for b in self.content if isinstance(b, ToolInvocation))
        return ()

    @property
    def result(self) -> ToolResult | None:
        return self.content if isinstance(self.content, ToolResult) else None


# ---------------------------------------------------------------------------
# Tool declarations
# ---------------------------------------------------------------------------

class InputSchema(BaseModel):
    model_config = ConfigDict(frozen=True, populate_by_name=True)

    type: str = "object"
    properties: dict[str, Any] = Field(default_factory=dict)
    # go-postal tool files spell it "requires".
    required: list[str] = Field(
        default_factory=list,
        validation_alias=AliasChoices("required", "requires"),
    )


class ToolDeclaration(BaseModel):
    model_config = ConfigDict(frozen=True)

    name: str = Field(min_length=1)
    description: str
    input_schema: InputSchema


# ---------------------------------------------------------------------------
# Model call
# ---------------------------------------------------------------------------

class Usage(BaseModel):
    input_tokens: int = 0
    output_tokens: int = 0

    def __add__(self, other: Usage) -> Usage:
        return Usage(
            input_tokens=self.input_tokens + other.input_tokens,
            output_tokens=self.output_tokens + other.output_tokens,
        )


class ModelReply(BaseModel):
    """Decoded response body. ``content`` stays raw until interpreted."""

    id: str = ""
    type: str = "message"
    role: str = "assistant"
    model: str = ""
    content: list[dict[str, Any]] = Field(default_factory=list)
    stop_reason: str | None = None  # "end_turn" | "max_tokens" | "stop_sequence" | "tool_use"
    stop_sequence: str | None = None
    usage: Usage = Field(default_factory=Usage)


class CallParameters(BaseModel):
    model_config = ConfigDict(frozen=True)

    model: str = MODELS["opus"]
    system: str = SYSTEM_PROMPT
    max_tokens: int = Field(default=2048, gt=0)

    @field_validator("model")
    @classmethod
    def _resolve_model(cls, value: str) -> str:
        value = MODELS.get(value, value)
        if value not in MODELS.values():
            raise ValueError(
                f"Unsupported model '{value}'. Available: {list(MODELS)} or {list(MODELS.values())}"
            )
        return value


class SessionLimits(BaseModel):
    model_config = ConfigDict(frozen=True)

    max_tool_rounds: int = Field(default=10, ge=0)
    timeout: float = Field(default=120.0, gt=0)


class Request(BaseModel):
    model: str
    messages: list[dict[str, Any]]
    max_tokens: int
    system: str | None = None
    tools: list[dict[str, Any]] = Field(default_factory=list)

    def to_payload(self) -> dict[str, Any]:
        payload: dict[str, Any] = {
            "model": self.model,
            "messages": self.messages,
            "max_tokens": self.max_tokens,
        }
        if self.system:
            payload["system"] = self.system
        if self.tools:
            payload["tools"] = self.tools
        return payload
