"""Shared test fixtures for aichat-cli."""

from datetime import datetime, timezone

import pytest

from aichat_cli.config import Config
from aichat_cli.store import ContextStore

from helpers import Clock, EchoRecorder


@pytest.fixture(autouse=True)
def isolated_home(tmp_path, monkeypatch):
    """Keep config and contexts out of the real home directory."""
    home = tmp_path / "home"
    monkeypatch.setenv("AICHAT_CLI_HOME", str(home))
    monkeypatch.delenv("OPENROUTER_API_KEY", raising=False)
    return home


@pytest.fixture
def clock():
    return Clock(datetime(2025, 1, 15, 10, 0, 0, tzinfo=timezone.utc))


@pytest.fixture
def store(tmp_path, clock):
    return ContextStore(tmp_path / "contexts", now=clock)


@pytest.fixture
def echo():
    return EchoRecorder()


@pytest.fixture
def cloud_config():
    return Config(provider="openrouter", model="openai/gpt-4o", api_key="sk-or-test")


@pytest.fixture
def local_config():
    return Config(provider="ollama", ollama_model="llama3.1", ollama_url="http://localhost:11434")
