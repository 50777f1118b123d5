"""Bind tool names to the callables that actually run them.

Executors are configured per tool under ``[executors.<tool name>]`` and are
either an HTTP endpoint (``url``) or an importable function (``callable``).
"""

from __future__ import annotations

import importlib
import logging
from typing import Any, Mapping

import httpx

from toolchat.errors import ConfigError, ExecutorError
from toolchat.tools import Executor, ToolRegistry

logger = logging.getLogger(__name__)

_TIMEOUT = 30.0


class HttpExecutor:
    """Call a backend service with the tool arguments.

    GET requests send the arguments as query parameters, any other method
    sends them as a JSON body. Returns decoded JSON when the service answers
    with JSON, the raw text otherwise.
    """

    def __init__(
        self,
        url: str,
        method: str = "GET",
        timeout: float = _TIMEOUT,
        client: httpx.Client | None = None,
    ) -> None:
        self.url = url
        self.method = method.upper()
        self._client = client or httpx.Client(
            timeout=timeout,
            headers={"Accept": "application/json"},
        )

    def __call__(self, arguments: dict[str, Any]) -> Any:
        try:
            if self.method == "GET":
                resp = self._client.request(self.method, self.url, params=arguments)
            else:
                resp = self._client.request(self.method, self.url, json=arguments)
        except httpx.HTTPError as e:
            raise ExecutorError(f"request to {self.url} failed: {e}") from e

        if resp.is_error:
            raise ExecutorError(
                f"{self.method} {self.url} returned {resp.status_code}: {resp.text}"
            )

        ctype = resp.headers.get("content-type", "")
        if "application/json" in ctype:
            return resp.json()
        return resp.text

    def close(self) -> None:
        self._client.close()


def resolve_callable(path: str) -> Executor:
    """Resolve ``'package.module:function'`` to the function object."""
    module_path, sep, attr = path.partition(":")
    if not sep or not module_path or not attr:
        raise ConfigError(f"callable '{path}' must look like 'package.module:function'")
    try:
        module = importlib.import_module(module_path)
    except ImportError as e:
        raise ConfigError(f"cannot import '{module_path}': {e}") from e
    func = getattr(module, attr, None)
    if not callable(func):
        raise ConfigError(f"'{path}' is not a callable")
    return func


def _timeout(name: str, value: Any) -> float:
    try:
        timeout = float(value)
    except (TypeError, ValueError):
        raise ConfigError(f"executor for '{name}' has a non-numeric timeout: {value!r}") from None
    if timeout <= 0:
        raise ConfigError(f"executor for '{name}' needs a positive timeout, got {value!r}")
    return timeout


def build_executors(
    config: Mapping[str, Mapping[str, Any]],
    registry: ToolRegistry,
) -> dict[str, Executor]:
    """Build executors from the ``executors`` config table.

    Entries for tools that are not declared are an error; declared tools
    without an entry are left unbound and fail at dispatch time.
    """
    executors: dict[str, Executor] = {}
    try:
        for name, entry in config.items():
            executors[name] = _build_one(name, entry, registry)
            logger.debug("bound executor for %s", name)
    except ConfigError:
        close_executors(executors)
        raise
    return executors


def _build_one(name: str, entry: Mapping[str, Any], registry: ToolRegistry) -> Executor:
    if name not in registry:
        raise ConfigError(
            f"executor configured for undeclared tool '{name}'. Declared: {registry.names()}"
        )
    if "callable" in entry:
        return resolve_callable(entry["callable"])
    if "url" in entry:
        return HttpExecutor(
            url=entry["url"],
            method=entry.get("method", "GET"),
            timeout=_timeout(name, entry.get("timeout", _TIMEOUT)),
        )
    raise ConfigError(f"executor for '{name}' needs either 'url' or 'callable'")


def close_executors(executors: Mapping[str, Executor]) -> None:
    """Release the HTTP clients held by executors. Plain callables are left alone."""
    for executor in executors.values():
        close = getattr(executor, "close", None)
        if callable(close):
            close()
