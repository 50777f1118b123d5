from __future__ import annotations

import os
import tomllib
from pathlib import Path
from typing import Any

from dotenv import find_dotenv, load_dotenv
from pydantic import ValidationError

from toolchat.errors import ConfigError
from toolchat.models import SYSTEM_PROMPT, CallParameters, SessionLimits

CONFIG_DIR = Path("~/.toolchat").expanduser()
CONFIG_FILE = CONFIG_DIR / "config.toml"
API_KEY_ENV = "ANTHROPIC_API_KEY"

DEFAULTS: dict[str, Any] = {
    "llm": {
        "connector": "anthropic",
        "model": "opus",
        "max_tokens": 2048,
        "max_tool_rounds": 10,
        "timeout": 120.0,
        "system_prompt": SYSTEM_PROMPT,
    },
    "tools": {
        "files": ["tools/postal_codes.json"],
    },
    "executors": {
        "lookup_postal_code": {
            "url": "http://localhost:8080/postal-codes",
        },
    },
}


def config_file() -> Path:
    """Config path, overridable with TOOLCHAT_CONFIG."""
    override = os.environ.get("TOOLCHAT_CONFIG")
    return Path(override).expanduser() if override else CONFIG_FILE


def load(path: Path | None = None) -> dict[str, Any]:
    """Load config from ~/.toolchat/config.toml, merging with defaults."""
    path = path or config_file()
    config = _deep_merge({}, DEFAULTS)
    if path.exists():
        try:
            with open(path, "rb") as f:
                on_disk = tomllib.load(f)
        except tomllib.TOMLDecodeError as e:
            raise ConfigError(f"invalid config file {path}: {e}") from e
        config = _deep_merge(config, on_disk)
    return config


def save(config: dict[str, Any], path: Path | None = None) -> None:
    """Save config dict as TOML (manual serialization)."""
    path = path or config_file()
    path.parent.mkdir(parents=True, exist_ok=True)
    lines = _dict_to_toml(config)
    path.write_text("\n".join(lines).lstrip("\n") + "\n")


def load_api_key(require_dotenv: bool = False) -> str:
    """Read the API key, loading a .env file from the working directory first if there is one."""
    dotenv_path = find_dotenv(usecwd=True)
    if dotenv_path:
        load_dotenv(dotenv_path)
    elif require_dotenv:
        raise ConfigError("Could not load .env")
    api_key = os.environ.get(API_KEY_ENV, "")
    if not api_key:
        raise ConfigError(f"could not find {API_KEY_ENV}")
    return api_key


def call_parameters(config: dict[str, Any]) -> CallParameters:
    llm = config["llm"]
    try:
        return CallParameters(
            model=llm["model"],
            system=llm.get("system_prompt", ""),
            max_tokens=llm["max_tokens"],
        )
    except ValidationError as e:
        raise ConfigError(f"invalid [llm] settings: {e}") from e


def session_limits(config: dict[str, Any]) -> SessionLimits:
    """Tool round bound and request timeout from the [llm] table."""
    llm = config["llm"]
    try:
        return SessionLimits(
            max_tool_rounds=llm["max_tool_rounds"],
            timeout=llm["timeout"],
        )
    except ValidationError as e:
        raise ConfigError(f"invalid [llm] settings: {e}") from e


def _deep_merge(base: dict, override: dict) -> dict:
    result = dict(base)
    for k, v in override.items():
        if k in result and isinstance(result[k], dict) and isinstance(v, dict):
            result[k] = _deep_merge(result[k], v)
        else:
            result[k] = v
    return result


def _dict_to_toml(d: dict[str, Any], prefix: str = "") -> list[str]:
    """Minimal TOML serializer for nested dicts of scalars and lists."""
    lines: list[str] = []
    sections: list[tuple[str, dict]] = []

    for k, v in d.items():
        if isinstance(v, dict):
            sections.append((k, v))
        else:
            lines.append(f"{k} = {_toml_value(v)}")

    for section_key, section_val in sections:
        name = f"{prefix}.{section_key}" if prefix else section_key
        body = _dict_to_toml(section_val, name)
        # Tables holding only sub-tables need no header of their own.
        if any(not isinstance(v, dict) for v in section_val.values()) or not section_val:
            lines.append("")
            lines.append(f"[{name}]")
        lines.extend(body)

    return lines


def _toml_value(v: Any) -> str:
    if isinstance(v, bool):
        return "true" if v else "false"
    if isinstance(v, (int, float)):
        return str(v)
    if isinstance(v, str):
        if "\n" in v:
            return '"""\n' + v.replace("\\", "\\\\").replace('"""', '\\"""') + '"""'
        return '"' + v.replace("\\", "\\\\").replace('"', '\\"') + '"'
    if isinstance(v, list):
        return "[" + ", ".join(_toml_value(x) for x in v) + "]"
    raise ValueError(f"Unsupported TOML value type: {type(v)}")
