"""CLI entry point for aichat-cli."""

import logging
import sys

import click
import uvicorn

from .config import (
    PROVIDERS,
    Config,
    get_config_path,
    get_contexts_dir,
    load_config,
    reset_config,
    resolve_api_key,
    save_config,
)
from .conversation import TEMP_CONTEXT, ConversationManager, InvalidTranscriptError
from .core import Message, user
from .export import context_to_json, context_to_markdown
from .provider import SetupError
from .store import ContextStore

POPULAR_MODELS = {
    "OpenRouter": [
        "openai/gpt-4o",
        "openai/gpt-4o-mini",
        "anthropic/claude-3.5-sonnet",
        "anthropic/claude-3-haiku",
        "google/gemini-pro-1.5",
        "meta-llama/llama-3.1-70b-instruct",
    ],
    "Ollama (must be pulled first)": ["llama3.1", "llama3", "mistral", "gemma2"],
}

PREVIEW_MESSAGES = 4
PREVIEW_CHARS = 100


@click.group()
@click.option("-v", "--verbose", is_flag=True, help="Enable debug logging.")
def main(verbose: bool):
    """Chat with OpenRouter or Ollama models, keeping named conversation contexts."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
    )


def _store() -> ContextStore:
    return ContextStore(get_contexts_dir())


def _first_time_setup(config: Config) -> str | None:
    """Credential hook: ask which provider to use and persist the answer.

    Returns an OpenRouter key, or None. Choosing Ollama switches
    ``config.provider`` and returns None.
    """
    api_key = resolve_api_key(config)
    if api_key:
        return api_key

    click.echo("\n🔧 First time setup required!", err=True)
    click.echo("Choose your AI provider:", err=True)
    click.echo("  1. OpenRouter (cloud, needs an API key from https://openrouter.ai)", err=True)
    click.echo("  2. Ollama (local, needs a running Ollama daemon)", err=True)

    choice = click.prompt("\nEnter your choice (1 or 2)", default="", show_default=False, err=True).strip()
    if choice == "2":
        _setup_ollama(config)
        return None
    if choice != "1":
        click.echo("Invalid choice. Defaulting to OpenRouter.", err=True)

    api_key = click.prompt(
        "Enter your OpenRouter API Key", default="", show_default=False, hide_input=True, err=True
    ).strip()
    if not api_key:
        return None

    config.api_key = api_key
    config.provider = "openrouter"
    if save_config(config):
        click.echo("✅ OpenRouter API Key saved successfully!\n", err=True)
    else:
        click.echo("❌ Failed to save OpenRouter API Key. You'll need to enter it again next time.\n", err=True)
    return api_key


def _setup_ollama(config: Config) -> None:
    click.echo("Popular models: " + ", ".join(POPULAR_MODELS["Ollama (must be pulled first)"]), err=True)
    model = click.prompt(
        "Enter your Ollama model ID (e.g., llama3.1)", default="", show_default=False, err=True
    ).strip()
    if not model:
        raise SetupError("Ollama model ID is required to use Ollama with this CLI tool.")

    config.provider = "ollama"
    config.ollama_model = model
    if save_config(config):
        click.echo(f"✅ Ollama model ID \"{model}\" saved successfully!\n", err=True)
    else:
        click.echo("❌ Failed to save Ollama model ID. You'll need to enter it again next time.\n", err=True)


def _run(messages: list[Message], context: str, stream: bool, model: str | None) -> None:
    """Send a query; setup problems end the process with status 1."""
    config = load_config()
    manager = ConversationManager(config, _store(), obtain_api_key=lambda: _first_time_setup(config))
    try:
        manager.send(messages, context, stream=stream, model_override=model)
    except SetupError as e:
        click.echo(f"❌ {e}", err=True)
        sys.exit(1)
    except InvalidTranscriptError as e:
        click.echo(f"❌ {e}", err=True)
    finally:
        manager.close()


# ── Queries ──────────────────────────────────────────────────────


@main.command()
@click.argument("query")
@click.option("--model", default=None, help="Override the default model for this query.")
@click.option("--stream/--no-stream", default=True, help="Stream the response as it arrives.")
def ask(query: str, model: str | None, stream: bool):
    """Send a single query without conversation history."""
    _run([user(query)], TEMP_CONTEXT, stream, model)


@main.command()
@click.argument("message")
@click.option("--context", "context_name", default="default", help="Conversation context name.")
@click.option("--model", default=None, help="Override the default model for this query.")
@click.option("--new", is_flag=True, help="Start a new conversation (discard the context's history).")
@click.option("--stream/--no-stream", default=True, help="Stream the response as it arrives.")
def chat(message: str, context_name: str, model: str | None, new: bool, stream: bool):
    """Start or continue a conversation in a named context."""
    messages: list[Message] = []
    if new:
        click.echo(f"💬 Starting fresh conversation in context \"{context_name}\"", err=True)
    else:
        context = _store().load(context_name)
        if context:
            messages = context.messages
            click.echo(
                f"💬 Continuing conversation in context \"{context_name}\" ({len(messages)} messages)",
                err=True,
            )
        else:
            click.echo(f"💬 Starting new conversation in context \"{context_name}\"", err=True)

    _run(messages + [user(message)], context_name, stream, model)


@main.command("+")
@click.argument("message")
@click.option("--model", default=None, help="Override the default model for this query.")
@click.option("--stream/--no-stream", default=True, help="Stream the response as it arrives.")
def quick_continue(message: str, model: str | None, stream: bool):
    """Quickly continue the default conversation."""
    context = _store().load("default")
    messages: list[Message] = []
    if context:
        messages = context.messages
        click.echo(f"⚡ Quick continue ({len(messages)} messages in context)", err=True)
    else:
        click.echo("⚡ Quick start (no previous context)", err=True)

    _run(messages + [user(message)], "default", stream, model)


# ── Contexts ─────────────────────────────────────────────────────


@main.group("context")
def context_group():
    """Manage conversation contexts."""
    pass


@context_group.command("list")
def context_list():
    """List all contexts, most recently updated first."""
    contexts = _store().list()
    if not contexts:
        click.echo("📭 No contexts found")
        return

    click.echo("📚 Available contexts:")
    for ctx in contexts:
        updated = ctx.updated_at.astimezone().strftime("%Y-%m-%d") if ctx.updated_at else "unknown"
        click.echo(f"  • {ctx.name} ({ctx.message_count} messages, updated {updated})")


@context_group.command("show")
@click.argument("name")
def context_show(name: str):
    """Show a context's details and its latest messages."""
    context = _store().load(name)
    if not context:
        click.echo(f"❌ Context \"{name}\" not found")
        return

    click.echo(f"📖 Context: {context.name}")
    click.echo(f"Created: {_format_time(context.created_at)}")
    click.echo(f"Updated: {_format_time(context.updated_at)}")
    click.echo(f"Messages: {len(context.messages)}")
    click.echo("\n💬 Conversation preview:")

    for msg in context.messages[-PREVIEW_MESSAGES:]:
        icon = "👤" if msg.role == "user" else "🤖"
        preview = msg.content
        if len(preview) > PREVIEW_CHARS:
            preview = preview[:PREVIEW_CHARS] + "..."
        click.echo(f"  {icon} {preview}")


@context_group.command("delete")
@click.argument("name")
def context_delete(name: str):
    """Delete a context."""
    if _store().delete(name):
        click.echo(f"✅ Context \"{name}\" deleted successfully")
    else:
        click.echo(f"❌ Context \"{name}\" not found")


@context_group.command("clear")
@click.argument("name")
def context_clear(name: str):
    """Clear a context (keep its name and creation time, remove messages)."""
    if _store().clear(name):
        click.echo(f"✅ Context \"{name}\" cleared successfully")
    else:
        click.echo(f"❌ Failed to clear context \"{name}\"")


@context_group.command("export")
@click.argument("name")
@click.option("--format", "fmt", type=click.Choice(["md", "json"]), default="md", help="Export format.")
def context_export(name: str, fmt: str):
    """Print a context as Markdown or JSON."""
    context = _store().load(name)
    if not context:
        click.echo(f"❌ Context \"{name}\" not found", err=True)
        return
    click.echo(context_to_json(context) if fmt == "json" else context_to_markdown(context))


# ── Configuration ────────────────────────────────────────────────


@main.group("config")
def config_group():
    """Manage configuration."""
    pass


def _update_config(field_name: str, value: str, success: str) -> None:
    config = load_config()
    setattr(config, field_name, value)
    if save_config(config):
        click.echo(success)
    else:
        click.echo("❌ Failed to save configuration.", err=True)


@config_group.command("show")
def config_show():
    """Show the current configuration."""
    config = load_config()
    click.echo("📋 Current configuration:")
    click.echo(f"AI Provider: {config.provider}")
    click.echo(f"OpenRouter API Key: {_mask(config.api_key)}")
    click.echo(f"Default Model: {config.model}")
    click.echo(f"Ollama Model: {config.ollama_model}")
    click.echo(f"Ollama URL: {config.ollama_url}")
    click.echo(f"Config file: {get_config_path()}")
    click.echo(f"Contexts directory: {get_contexts_dir()}")
    click.echo("\n💡 Popular models:")
    for group, models in POPULAR_MODELS.items():
        click.echo(f"{group}:")
        for model in models:
            click.echo(f"  • {model}")


@config_group.command("set-api-key")
@click.argument("api_key")
def config_set_api_key(api_key: str):
    """Set your OpenRouter API key."""
    _update_config("api_key", api_key, "✅ OpenRouter API Key updated successfully!")


@config_group.command("set-model")
@click.argument("model")
def config_set_model(model: str):
    """Set the default OpenRouter model (e.g. openai/gpt-4o)."""
    _update_config("model", model, f"✅ Default model set to: {model}")


@config_group.command("set-provider")
@click.argument("provider", type=click.Choice(PROVIDERS, case_sensitive=False))
def config_set_provider(provider: str):
    """Set the AI provider (openrouter or ollama)."""
    provider = provider.lower()
    _update_config("provider", provider, f"✅ AI provider set to: {provider}")
    if provider == "ollama":
        click.echo("💡 Don't forget to set your Ollama model with: aichat config set-ollama-model")


@config_group.command("set-ollama-model")
@click.argument("model")
def config_set_ollama_model(model: str):
    """Set the Ollama model ID (e.g. llama3.1)."""
    _update_config("ollama_model", model, f"✅ Ollama model set to: {model}")


@config_group.command("set-ollama-url")
@click.argument("url")
def config_set_ollama_url(url: str):
    """Set the Ollama base URL (default http://localhost:11434)."""
    _update_config("ollama_url", url, f"✅ Ollama URL set to: {url}")


@config_group.command("reset")
@click.confirmation_option(prompt="Are you sure you want to reset all configuration?")
def config_reset():
    """Reset all configuration to defaults."""
    if reset_config():
        click.echo("✅ Configuration reset successfully!")
    else:
        click.echo("❌ Failed to reset configuration.", err=True)


# ── Server ───────────────────────────────────────────────────────


@main.command()
@click.option("--port", default=8080, help="Port to serve on.")
@click.option("--host", default="127.0.0.1", help="Host to bind to.")
def serve(port: int, host: str):
    """Start the context browser API."""
    click.echo(f"Starting aichat-cli context browser on http://{host}:{port}")
    uvicorn.run("aichat_cli.server:app", host=host, port=port, reload=False)


def _format_time(value) -> str:
    return value.astimezone().strftime("%Y-%m-%d %H:%M:%S") if value else "unknown"


def _mask(api_key: str | None) -> str:
    if not api_key:
        return "Not set"
    return "*" * max(len(api_key) - 4, 0) + api_key[-4:]
