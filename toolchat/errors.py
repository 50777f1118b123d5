"""Error hierarchy.

Startup-fatal errors (ConfigError, ToolSchemaError) stop the CLI before the
conversation loop starts. TransportError and its subclasses end a single turn.
ExecutorError is raised by tool executors and turned into a failed tool result.
"""

from __future__ import annotations


class ToolchatError(Exception):
    """Base for all toolchat errors."""


class ConfigError(ToolchatError):
    """Missing or invalid configuration (e.g., no API key)."""


class ToolSchemaError(ToolchatError):
    """A tool declaration file could not be read or validated."""


class ConversationError(ToolchatError):
    """An append would break the ordering rules of the conversation."""


class TransportError(ToolchatError):
    """The model call failed: network failure, bad status, or bad body."""


class APIStatusError(TransportError):
    """The API answered with a non-success status code.

    Attributes:
        status_code: HTTP status code of the response.
        body: Raw response body, kept for diagnostics.
    """

    def __init__(self, status_code: int, body: str) -> None:
        self.status_code = status_code
        self.body = body
        super().__init__(
            f"API request failed with status code: {status_code}, response body: {body}"
        )


class ResponseFormatError(TransportError):
    """The response body could not be decoded into a model reply."""


class ExecutorError(ToolchatError):
    """A tool executor could not complete the call."""
