"""Tests for the command-line interface."""

import json

import httpx
import pytest
from click.testing import CliRunner

import aichat_cli.cli as cli_module
from aichat_cli.cli import main
from aichat_cli.config import Config, get_config_path, get_contexts_dir, load_config, save_config
from aichat_cli.core import assistant, user
from aichat_cli.store import ContextStore

from helpers import mock_client, sse_body


@pytest.fixture
def runner():
    return CliRunner()


@pytest.fixture
def upstream(monkeypatch):
    """Answer the CLI's provider requests with a mock handler.

    Returns the list of JSON bodies POSTed; set ``upstream.handler`` to
    change the response.
    """

    class Upstream:
        def __init__(self):
            self.requests = []
            self.handler = lambda request: httpx.Response(200, json={
                "choices": [{"message": {"content": "Hi there"}}],
            })

        def __call__(self, request):
            if request.method == "POST":
                self.requests.append(json.loads(request.content))
            return self.handler(request)

    up = Upstream()
    real = cli_module.ConversationManager

    def build(*args, **kwargs):
        kwargs["client"] = mock_client(up)
        return real(*args, **kwargs)

    monkeypatch.setattr(cli_module, "ConversationManager", build)
    return up


@pytest.fixture
def api_key(monkeypatch):
    monkeypatch.setenv("OPENROUTER_API_KEY", "sk-or-env")


def contexts() -> ContextStore:
    return ContextStore(get_contexts_dir())


class TestChat:
    def test_new_context(self, runner, upstream, api_key):
        result = runner.invoke(main, ["chat", "Hello", "--context", "demo", "--no-stream"])
        assert result.exit_code == 0, result.output
        assert "Starting new conversation" in result.output
        assert "Hi there" in result.output
        assert contexts().load("demo").messages == [user("Hello"), assistant("Hi there")]

    def test_continues_context(self, runner, upstream, api_key):
        contexts().save("demo", [user("Hello"), assistant("Hi there")])
        upstream.handler = lambda r: httpx.Response(200, content=sse_body("Fine", ", thanks"))

        result = runner.invoke(main, ["chat", "How are you?", "--context", "demo"])
        assert result.exit_code == 0, result.output
        assert "Continuing conversation" in result.output
        assert "Fine, thanks" in result.output
        assert [m["content"] for m in upstream.requests[0]["messages"]] == ["Hello", "Hi there", "How are you?"]
        assert upstream.requests[0]["stream"] is True
        assert len(contexts().load("demo").messages) == 4

    def test_new_flag_discards_history(self, runner, upstream, api_key):
        contexts().save("demo", [user("Old"), assistant("Stuff")])
        result = runner.invoke(main, ["chat", "Fresh start", "--context", "demo", "--new", "--no-stream"])
        assert result.exit_code == 0, result.output
        assert [m["content"] for m in upstream.requests[0]["messages"]] == ["Fresh start"]
        assert contexts().load("demo").messages == [user("Fresh start"), assistant("Hi there")]

    def test_model_override(self, runner, upstream, api_key):
        runner.invoke(main, ["chat", "Hello", "--model", "anthropic/claude-3-haiku", "--no-stream"])
        assert upstream.requests[0]["model"] == "anthropic/claude-3-haiku"

    def test_quick_continue(self, runner, upstream, api_key):
        contexts().save("default", [user("Hello"), assistant("Hi there")])
        result = runner.invoke(main, ["+", "And then?", "--no-stream"])
        assert result.exit_code == 0, result.output
        assert "Quick continue (2 messages in context)" in result.output
        assert len(contexts().load("default").messages) == 4

    def test_ask_uses_temp(self, runner, upstream, api_key):
        result = runner.invoke(main, ["ask", "What is 2+2?", "--no-stream"])
        assert result.exit_code == 0, result.output
        assert contexts().load("temp").messages == [user("What is 2+2?"), assistant("Hi there")]

    def test_upstream_error_is_not_fatal(self, runner, upstream, api_key):
        contexts().save("demo", [user("Hello"), assistant("Hi there")])
        before = contexts().path_for("demo").read_bytes()
        upstream.handler = lambda r: httpx.Response(500, text="Internal Server Error")

        result = runner.invoke(main, ["chat", "Again", "--context", "demo", "--no-stream"])
        assert result.exit_code == 0
        assert "Failed to send query" in result.output
        assert contexts().path_for("demo").read_bytes() == before


class TestSetup:
    def test_prompts_for_missing_key_and_saves_it(self, runner, upstream):
        result = runner.invoke(main, ["chat", "Hello", "--no-stream"], input="1\nsk-or-typed\n")
        assert result.exit_code == 0, result.output
        assert "First time setup required" in result.output
        assert load_config().api_key == "sk-or-typed"
        assert contexts().exists("default")

    def test_empty_key_is_fatal(self, runner, upstream):
        result = runner.invoke(main, ["chat", "Hello", "--no-stream"], input="1\n\n")
        assert result.exit_code == 1
        assert "API Key is required" in result.output
        assert upstream.requests == []
        assert not contexts().exists("default")

    def test_invalid_choice_defaults_to_openrouter(self, runner, upstream):
        result = runner.invoke(main, ["chat", "Hello", "--no-stream"], input="7\nsk-or-typed\n")
        assert result.exit_code == 0, result.output
        assert "Invalid choice. Defaulting to OpenRouter." in result.output
        assert load_config().api_key == "sk-or-typed"

    def test_choosing_ollama_saves_provider_and_model(self, runner, upstream):
        def handler(request):
            if request.url.path == "/api/tags":
                return httpx.Response(200, json={"models": []})
            return httpx.Response(200, json={"message": {"role": "assistant", "content": "Local hi"}})

        upstream.handler = handler
        result = runner.invoke(main, ["chat", "Hello", "--no-stream"], input="2\nmistral\n")
        assert result.exit_code == 0, result.output
        assert "Local hi" in result.output

        config = load_config()
        assert config.provider == "ollama"
        assert config.ollama_model == "mistral"
        assert config.api_key is None
        assert upstream.requests[0]["model"] == "mistral"
        assert contexts().load("default").messages == [user("Hello"), assistant("Local hi")]

    def test_empty_ollama_model_is_fatal(self, runner, upstream):
        result = runner.invoke(main, ["chat", "Hello", "--no-stream"], input="2\n\n")
        assert result.exit_code == 1
        assert "Ollama model ID is required" in result.output
        assert upstream.requests == []
        assert load_config().provider == "openrouter"

    def test_chosen_ollama_must_be_running(self, runner, upstream):
        def handler(request):
            raise httpx.ConnectError("connection refused")

        upstream.handler = handler
        result = runner.invoke(main, ["chat", "Hello"], input="2\nmistral\n")
        assert result.exit_code == 1
        assert "Ollama is not running" in result.output

    def test_env_key_skips_setup_and_is_not_saved(self, runner, upstream, api_key):
        result = runner.invoke(main, ["chat", "Hello", "--no-stream"])
        assert result.exit_code == 0, result.output
        assert "First time setup required" not in result.output
        assert not get_config_path().exists()

    def test_ollama_down_is_fatal(self, runner, upstream):
        save_config(Config(provider="ollama"))

        def handler(request):
            raise httpx.ConnectError("connection refused")

        upstream.handler = handler
        result = runner.invoke(main, ["chat", "Hello"])
        assert result.exit_code == 1
        assert "Ollama is not running" in result.output


class TestContextCommands:
    def test_list_empty(self, runner):
        result = runner.invoke(main, ["context", "list"])
        assert "No contexts found" in result.output

    def test_list(self, runner, clock):
        store = ContextStore(get_contexts_dir(), now=clock)
        store.save("older", [user("1")])
        store.save("newer", [user("1"), assistant("2")])
        result = runner.invoke(main, ["context", "list"])
        assert result.exit_code == 0
        assert "newer (2 messages" in result.output
        assert result.output.index("newer") < result.output.index("older")

    def test_show(self, runner):
        messages = [user(f"question {i}") for i in range(3)] + [assistant("x" * 150), user("last")]
        contexts().save("demo", messages)

        result = runner.invoke(main, ["context", "show", "demo"])
        assert result.exit_code == 0
        assert "📖 Context: demo" in result.output
        assert "Messages: 5" in result.output
        assert "question 0" not in result.output
        assert "x" * 100 + "..." in result.output
        assert "last" in result.output

    def test_show_missing(self, runner):
        result = runner.invoke(main, ["context", "show", "ghost"])
        assert 'Context "ghost" not found' in result.output

    def test_delete(self, runner):
        contexts().save("demo", [user("x")])
        result = runner.invoke(main, ["context", "delete", "demo"])
        assert "deleted successfully" in result.output
        assert not contexts().exists("demo")

    def test_delete_missing(self, runner):
        result = runner.invoke(main, ["context", "delete", "ghost"])
        assert result.exit_code == 0
        assert 'Context "ghost" not found' in result.output

    def test_clear_keeps_created_at(self, runner):
        contexts().save("demo", [user("x"), assistant("y")])
        created = contexts().load("demo").created_at

        result = runner.invoke(main, ["context", "clear", "demo"])
        assert "cleared successfully" in result.output
        context = contexts().load("demo")
        assert context.messages == []
        assert context.created_at == created

    def test_export_json(self, runner):
        contexts().save("demo", [user("Hello")])
        result = runner.invoke(main, ["context", "export", "demo", "--format", "json"])
        assert json.loads(result.output)["messages"] == [{"role": "user", "content": "Hello"}]


class TestConfigCommands:
    def test_set_and_show(self, runner):
        runner.invoke(main, ["config", "set-api-key", "sk-or-abcdef1234"])
        runner.invoke(main, ["config", "set-model", "openai/gpt-4o-mini"])
        runner.invoke(main, ["config", "set-ollama-url", "http://gpu-box:11434"])

        result = runner.invoke(main, ["config", "show"])
        assert result.exit_code == 0
        assert "Default Model: openai/gpt-4o-mini" in result.output
        assert "Ollama URL: http://gpu-box:11434" in result.output
        assert "sk-or-abcdef1234" not in result.output
        assert "1234" in result.output

    def test_set_provider(self, runner):
        result = runner.invoke(main, ["config", "set-provider", "Ollama"])
        assert result.exit_code == 0
        assert "set-ollama-model" in result.output
        assert load_config().provider == "ollama"

    def test_set_provider_rejects_unknown(self, runner):
        result = runner.invoke(main, ["config", "set-provider", "bedrock"])
        assert result.exit_code == 2
        assert load_config().provider == "openrouter"

    def test_set_ollama_model(self, runner):
        runner.invoke(main, ["config", "set-ollama-model", "gemma2"])
        assert load_config().ollama_model == "gemma2"

    def test_reset_confirmed(self, runner):
        save_config(Config(api_key="sk-or-1"))
        result = runner.invoke(main, ["config", "reset"], input="y\n")
        assert "reset successfully" in result.output
        assert load_config().api_key is None

    def test_reset_cancelled(self, runner):
        save_config(Config(api_key="sk-or-1"))
        result = runner.invoke(main, ["config", "reset"], input="n\n")
        assert result.exit_code == 1
        assert load_config().api_key == "sk-or-1"
