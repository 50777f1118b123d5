from __future__ import annotations

from abc import ABC, abstractmethod

from toolchat.models import ModelReply, Request


class LLMConnector(ABC):
    @abstractmethod
    def send(self, request: Request) -> ModelReply:
        """Blocking model call. Raises TransportError on any failure; never retries."""
        ...

    def close(self) -> None:
        """Release network resources. Default: nothing to release."""

    def __enter__(self) -> LLMConnector:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()
