"""Abstract base class for chat inference providers."""

import logging
from abc import ABC, abstractmethod
from contextlib import contextmanager
from typing import Iterable, Iterator

import httpx

from .core import Message

logger = logging.getLogger(__name__)


class ProviderError(Exception):
    """The chat request failed: transport error or non-2xx response."""

    def __init__(self, message: str, status_code: int | None = None):
        super().__init__(message)
        self.status_code = status_code


class SetupError(Exception):
    """The environment cannot serve any request (no credential, daemon down)."""


class ChatProvider(ABC):
    """Base class for inference backends.

    Each backend (OpenRouter, Ollama) implements this interface so the
    conversation manager can drive either one the same way.
    """

    name: str  # "openrouter", "ollama"
    default_model: str

    def __init__(self, client: httpx.Client | None = None):
        # No timeout: a streamed answer may take as long as the model needs.
        self.client = client or httpx.Client(timeout=None)

    @abstractmethod
    def chat_url(self) -> str:
        """Return the URL chat requests are POSTed to."""
        ...

    def headers(self) -> dict[str, str]:
        """Return extra request headers (auth, attribution)."""
        return {}

    @abstractmethod
    def ping(self) -> bool:
        """Return True if the backend is reachable."""
        ...

    @abstractmethod
    def decode(self, chunks: Iterable[bytes]) -> Iterator[str]:
        """Turn a streamed response body into text fragments."""
        ...

    @abstractmethod
    def extract_content(self, payload) -> str | None:
        """Return the assistant text of a non-streamed response payload."""
        ...

    @contextmanager
    def request(self, messages: list[Message], model: str, stream: bool) -> Iterator[httpx.Response]:
        """POST one chat request and yield the open response.

        Raises ProviderError for transport failures and non-2xx statuses,
        with the response body in the message.
        """
        body = {
            "model": model,
            "messages": [m.to_dict() for m in messages],
            "stream": stream,
        }
        request = self.client.build_request("POST", self.chat_url(), json=body, headers=self.headers())
        logger.debug("POST %s model=%s stream=%s messages=%d", request.url, model, stream, len(messages))

        try:
            response = self.client.send(request, stream=True)
        except httpx.HTTPError as e:
            raise ProviderError(f"Request to {self.name} failed: {e}") from e

        try:
            if not response.is_success:
                try:
                    response.read()
                    detail = response.text
                except httpx.HTTPError:
                    detail = ""
                raise ProviderError(
                    f"HTTP error! status: {response.status_code}, message: {detail}",
                    status_code=response.status_code,
                )
            yield response
        finally:
            response.close()
