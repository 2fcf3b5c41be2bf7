"""Send queries within a named context and persist the exchange.

A call to ``ConversationManager.send`` is all-or-nothing with respect to the
stored transcript: the context is only rewritten once assistant text has been
obtained. Failed requests leave the stored record untouched.
"""

import json
import logging
from typing import Callable, Iterable

import click
import httpx

from .config import DEFAULT_MODEL, DEFAULT_OLLAMA_MODEL, Config
from .core import Message, assistant, user
from .provider import ChatProvider, ProviderError, SetupError
from .providers import get_provider
from .store import ContextStore

logger = logging.getLogger(__name__)

TEMP_CONTEXT = "temp"


class InvalidTranscriptError(ValueError):
    """The transcript cannot be sent: empty, or not framed by user turns."""


def check_transcript(messages: list[Message]) -> None:
    """Reject transcripts providers would refuse.

    The transcript must be non-empty, open with a user message and end with
    the new user turn.
    """
    if not messages:
        raise InvalidTranscriptError("Cannot send an empty transcript")
    if messages[0].role != "user":
        raise InvalidTranscriptError("Transcript must start with a user message")
    if messages[-1].role != "user":
        raise InvalidTranscriptError("Transcript must end with the new user message")


class ConversationManager:
    """Turns a new user message plus a context name into a persisted exchange."""

    def __init__(
        self,
        config: Config,
        store: ContextStore,
        obtain_api_key: Callable[[], str | None] | None = None,
        client: httpx.Client | None = None,
        echo: Callable[..., None] = click.echo,
    ):
        self.config = config
        self.store = store
        self._obtain_api_key = obtain_api_key
        self.client = client or httpx.Client(timeout=None)
        self._echo = echo

    def close(self) -> None:
        self.client.close()

    def resolve_model(self, provider_name: str, model_override: str | None = None) -> str:
        """Pick the model: explicit override, configured default, then built-in fallback."""
        if model_override:
            return model_override
        if provider_name == "ollama":
            return self.config.ollama_model or DEFAULT_OLLAMA_MODEL
        return self.config.model or DEFAULT_MODEL

    def select_provider(self, model_override: str | None = None) -> ChatProvider:
        """Build the provider for this call, checking its preconditions.

        A model override always routes to OpenRouter. Raises SetupError when
        Ollama is unreachable or no OpenRouter key can be obtained. The key
        hook may switch ``config.provider`` to Ollama instead of returning a key.
        """
        if self.config.provider == "ollama" and not model_override:
            return self._local_provider()

        api_key = self.config.api_key
        if not api_key and self._obtain_api_key is not None:
            api_key = self._obtain_api_key()
            if not api_key and self.config.provider == "ollama" and not model_override:
                return self._local_provider()
        if not api_key:
            raise SetupError("OpenRouter API Key is required to use this CLI tool.")
        return get_provider("openrouter", self.config, client=self.client, api_key=api_key)

    def _local_provider(self) -> ChatProvider:
        provider = get_provider("ollama", self.config, client=self.client)
        if not provider.ping():
            raise SetupError("Ollama is not running. Please start Ollama first.")
        return provider

    def send(
        self,
        messages: list[Message],
        context_name: str,
        stream: bool = True,
        model_override: str | None = None,
    ) -> str | None:
        """Send ``messages`` and save the completed exchange under ``context_name``.

        Returns the assistant text, or None if nothing was produced (in which
        case the stored context is unchanged). SetupError propagates.
        """
        messages = list(messages)
        check_transcript(messages)

        provider = self.select_provider(model_override)
        model = self.resolve_model(provider.name, model_override)
        self._echo(f"Sending query to {provider.name} {model} (context: \"{context_name}\")", err=True)

        try:
            with provider.request(messages, model, stream) as response:
                if stream:
                    self._echo("Streaming response...\n", err=True)
                    text = self._drain(provider.decode(response.iter_bytes()))
                else:
                    text = self._complete(provider, response)
        except ProviderError as e:
            logger.info("Query to %s failed: %s", provider.name, e)
            self._echo("❌ Failed to send query", err=True)
            self._echo(f"Error: {e}", err=True)
            return None

        if not text:
            return None

        transcript = messages + [assistant(text)]
        if not self.store.save(context_name, transcript):
            self._echo(f"❌ Failed to save context \"{context_name}\"", err=True)
        return text

    def ask(self, query: str, stream: bool = True, model_override: str | None = None) -> str | None:
        """One-off query without history, recorded in the scratch context."""
        return self.send([user(query)], TEMP_CONTEXT, stream=stream, model_override=model_override)

    # ── Private helpers ──────────────────────────────────────────────

    def _drain(self, fragments: Iterable[str]) -> str:
        """Write each fragment as it arrives and return the accumulated text.

        A read failure ends the stream early; whatever arrived is kept.
        """
        parts: list[str] = []
        try:
            for fragment in fragments:
                self._echo(fragment, nl=False)
                parts.append(fragment)
        except httpx.HTTPError as e:
            logger.warning("Stream interrupted after %d fragments: %s", len(parts), e)
            self._echo(f"\n❌ Error reading stream: {e}", err=True)
        self._echo("\n")
        return "".join(parts)

    def _complete(self, provider: ChatProvider, response: httpx.Response) -> str | None:
        try:
            response.read()
            payload = response.json()
        except (httpx.HTTPError, ValueError) as e:
            raise ProviderError(f"Invalid response from {provider.name}: {e}") from e

        text = provider.extract_content(payload)
        if not isinstance(text, str) or not text:
            self._echo("Response: " + json.dumps(payload, indent=2))
            return None

        self._echo("\n" + text)
        return text
