from __future__ import annotations

from typing import Any

from toolchat.connectors.base import LLMConnector
from toolchat.errors import ConfigError

CONNECTOR_MAP: dict[str, str] = {
    "anthropic": "toolchat.connectors.anthropic.AnthropicConnector",
}


def get_connector(name: str, **kwargs: Any) -> LLMConnector:
    """Factory: resolve connector name to class and instantiate."""
    if name not in CONNECTOR_MAP:
        raise ConfigError(f"Unknown connector '{name}'. Available: {list(CONNECTOR_MAP)}")
    module_path, class_name = CONNECTOR_MAP[name].rsplit(".", 1)
    import importlib
    module = importlib.import_module(module_path)
    cls = getattr(module, class_name)
    return cls(**kwargs)
