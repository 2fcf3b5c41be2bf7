"""OpenRouter chat completions backend.

OpenRouter exposes the OpenAI-compatible ``/chat/completions`` endpoint.
Streamed responses are Server-Sent Events; see ``decoder.decode_sse``.
"""

import httpx

from ..config import DEFAULT_MODEL
from ..decoder import decode_sse, dig
from ..provider import ChatProvider

CHAT_COMPLETIONS_URL = "https://openrouter.ai/api/v1/chat/completions"
APP_TITLE = "AI CLI"


class OpenRouterProvider(ChatProvider):
    """Provider for the OpenRouter cloud API."""

    name = "openrouter"
    default_model = DEFAULT_MODEL

    def __init__(self, api_key: str, client: httpx.Client | None = None):
        super().__init__(client)
        self.api_key = api_key

    def chat_url(self) -> str:
        return CHAT_COMPLETIONS_URL

    def headers(self) -> dict[str, str]:
        return {
            "Authorization": f"Bearer {self.api_key}",
            "HTTP-Referer": APP_TITLE,
            "X-Title": APP_TITLE,
        }

    def ping(self) -> bool:
        # There is no liveness endpoint; failures surface on the chat request.
        return True

    def decode(self, chunks):
        return decode_sse(chunks)

    def extract_content(self, payload) -> str | None:
        return dig(payload, "choices", 0, "message", "content")
