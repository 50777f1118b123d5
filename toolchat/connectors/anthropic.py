"""Anthropic Messages API connector over httpx."""

from __future__ import annotations

import logging

import httpx
from pydantic import ValidationError

from toolchat.connectors.base import LLMConnector
from toolchat.errors import APIStatusError, ConfigError, ResponseFormatError, TransportError
from toolchat.models import ModelReply, Request

logger = logging.getLogger(__name__)

MESSAGES_URL = "https://api.anthropic.com/v1/messages"
API_VERSION = "2023-06-01"
TOOLS_BETA = "tools-2024-04-04"


class AnthropicConnector(LLMConnector):
    """Sync client for the Messages API.

    All configuration is passed in; nothing is read from the environment
    here, so several connectors with different keys can coexist.

    Usage::

        with AnthropicConnector(api_key="sk-ant-...") as connector:
            reply = connector.send(request)
    """

    def __init__(
        self,
        api_key: str,
        url: str = MESSAGES_URL,
        timeout: float = 120.0,
        client: httpx.Client | None = None,
    ) -> None:
        if not api_key:
            raise ConfigError("AnthropicConnector needs an API key.")
        self.url = url
        self._client = client or httpx.Client(timeout=timeout)
        self._headers = {
            "Content-Type": "application/json",
            "x-api-key": api_key,
            "anthropic-version": API_VERSION,
            "anthropic-beta": TOOLS_BETA,
        }

    def send(self, request: Request) -> ModelReply:
        payload = request.to_payload()
        logger.debug(
            "POST %s model=%s messages=%d tools=%d",
            self.url, request.model, len(request.messages), len(request.tools),
        )
        try:
            resp = self._client.post(self.url, json=payload, headers=self._headers)
        except httpx.HTTPError as e:
            raise TransportError(f"failed to send request: {e}") from e

        if resp.status_code != httpx.codes.OK:
            raise APIStatusError(resp.status_code, resp.text)

        try:
            data = resp.json()
        except ValueError as e:
            raise ResponseFormatError(f"failed to decode response: {e}") from e
        if not isinstance(data, dict):
            raise ResponseFormatError(
                f"failed to decode response: expected an object, got {type(data).__name__}"
            )
        try:
            return ModelReply.model_validate(data)
        except ValidationError as e:
            raise ResponseFormatError(f"failed to decode response: {e}") from e

    def close(self) -> None:
        self._client.close()
