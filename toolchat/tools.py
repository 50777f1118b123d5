from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any, Callable, Iterable, Iterator, Mapping

from pydantic import ValidationError

from toolchat.errors import ToolSchemaError
from toolchat.models import ToolDeclaration, ToolFailure, ToolInvocation, ToolResult, ToolSuccess

logger = logging.getLogger(__name__)

Executor = Callable[[dict[str, Any]], Any]

# ---------------------------------------------------------------------------
# Registry
# ---------------------------------------------------------------------------

class ToolRegistry:
    """Tool declarations available to the model, keyed by name. Read-only."""

    def __init__(self, tools: Iterable[ToolDeclaration] = ()) -> None:
        self._tools: dict[str, ToolDeclaration] = {}
        for tool in tools:
            if tool.name in self._tools:
                raise ToolSchemaError(f"duplicate tool name '{tool.name}'")
            self._tools[tool.name] = tool

    def get(self, name: str) -> ToolDeclaration | None:
        return self._tools.get(name)

    def names(self) -> list[str]:
        return list(self._tools)

    def __contains__(self, name: object) -> bool:
        return name in self._tools

    def __iter__(self) -> Iterator[ToolDeclaration]:
        return iter(self._tools.values())

    def __len__(self) -> int:
        return len(self._tools)


def load_tool_file(path: str | Path) -> ToolDeclaration:
    """Read a single tool declaration from a JSON file."""
    path = Path(path).expanduser()
    try:
        data = json.loads(path.read_text())
    except OSError as e:
        raise ToolSchemaError(f"failed to read tool file {path}: {e}") from e
    except json.JSONDecodeError as e:
        raise ToolSchemaError(f"failed to parse tool file {path}: {e}") from e
    try:
        return ToolDeclaration.model_validate(data)
    except ValidationError as e:
        raise ToolSchemaError(f"invalid tool declaration in {path}: {e}") from e


def load_registry(paths: Iterable[str | Path]) -> ToolRegistry:
    return ToolRegistry(load_tool_file(p) for p in paths)


# ---------------------------------------------------------------------------
# Dispatcher
# ---------------------------------------------------------------------------

def _failure(invocation: ToolInvocation, message: str) -> ToolResult:
    logger.warning("tool %s (%s) failed: %s", invocation.name, invocation.id, message)
    return ToolResult(
        invocation_id=invocation.id,
        tool_name=invocation.name,
        outcome=ToolFailure(message=message),
    )


def dispatch(
    invocation: ToolInvocation,
    registry: ToolRegistry,
    executors: Mapping[str, Executor],
) -> ToolResult:
    """Run one tool invocation. Every failure is returned, never raised."""
    tool = registry.get(invocation.name)
    if tool is None:
        return _failure(invocation, f"unknown tool '{invocation.name}'")

    arguments = invocation.arguments
    if not isinstance(arguments, dict):
        return _failure(
            invocation,
            f"arguments for '{tool.name}' must be an object, got {type(arguments).__name__}",
        )
    missing = [p for p in tool.input_schema.required if p not in arguments]
    if missing:
        return _failure(
            invocation,
            f"missing required argument(s) for '{tool.name}': {', '.join(missing)}",
        )

    executor = executors.get(tool.name)
    if executor is None:
        return _failure(invocation, f"no executor bound to tool '{tool.name}'")

    logger.info("dispatching %s (%s) with %s", tool.name, invocation.id, arguments)
    try:
        value = executor(dict(arguments))
    except Exception as e:
        logger.exception("executor for %s raised", tool.name)
        return _failure(invocation, f"Error executing {tool.name}: {e}")

    return ToolResult(
        invocation_id=invocation.id,
        tool_name=tool.name,
        outcome=ToolSuccess(value=value),
    )
