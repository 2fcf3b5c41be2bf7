"""Ollama local daemon backend.

Talks to ``/api/chat`` on the configured base URL. Streamed responses are
newline-delimited JSON; see ``decoder.decode_ndjson``. ``/api/tags`` doubles
as the liveness check.
"""

import logging

import httpx

from ..config import DEFAULT_OLLAMA_MODEL, DEFAULT_OLLAMA_URL
from ..decoder import decode_ndjson, dig
from ..provider import ChatProvider

logger = logging.getLogger(__name__)


class OllamaProvider(ChatProvider):
    """Provider for a locally running Ollama daemon."""

    name = "ollama"
    default_model = DEFAULT_OLLAMA_MODEL

    def __init__(self, base_url: str = DEFAULT_OLLAMA_URL, client: httpx.Client | None = None):
        super().__init__(client)
        self.base_url = base_url.rstrip("/")

    def chat_url(self) -> str:
        return f"{self.base_url}/api/chat"

    def tags_url(self) -> str:
        return f"{self.base_url}/api/tags"

    def ping(self) -> bool:
        try:
            response = self.client.get(self.tags_url())
        except httpx.HTTPError as e:
            logger.debug("Ollama liveness check failed: %s", e)
            return False
        return response.is_success

    def decode(self, chunks):
        return decode_ndjson(chunks)

    def extract_content(self, payload) -> str | None:
        return dig(payload, "message", "content")
