"""Configuration file and data directory resolution."""

import json
import logging
import os
from dataclasses import asdict, dataclass, fields
from pathlib import Path
from typing import Optional

logger = logging.getLogger(__name__)

PROVIDERS = ("openrouter", "ollama")

DEFAULT_PROVIDER = "openrouter"
DEFAULT_MODEL = "openai/gpt-4o"
DEFAULT_OLLAMA_MODEL = "llama3.1"
DEFAULT_OLLAMA_URL = "http://localhost:11434"


@dataclass
class Config:
    """User settings consumed by the conversation manager."""

    provider: str = DEFAULT_PROVIDER
    model: str = DEFAULT_MODEL
    ollama_model: str = DEFAULT_OLLAMA_MODEL
    ollama_url: str = DEFAULT_OLLAMA_URL
    api_key: Optional[str] = None


# Config field -> key in config.json.
_FILE_KEYS = {
    "provider": "provider",
    "model": "model",
    "ollama_model": "ollamaModel",
    "ollama_url": "ollamaUrl",
    "api_key": "apiKey",
}


def get_config_dir() -> Path:
    """Return the directory holding config.json and saved contexts."""
    env = os.environ.get("AICHAT_CLI_HOME")
    if env:
        return Path(env)

    return Path.home() / ".ai-cli"


def get_config_path() -> Path:
    """Return the path to config.json."""
    return get_config_dir() / "config.json"


def get_contexts_dir() -> Path:
    """Return the directory where context records are stored."""
    return get_config_dir() / "contexts"


def load_config(path: Path | None = None) -> Config:
    """Read the config file, falling back to defaults for anything missing.

    Keys are read in the camelCase form the file uses (``apiKey``,
    ``ollamaModel``, ``ollamaUrl``); snake_case keys are accepted too.
    """
    data = _read_file(path or get_config_path())

    values = {}
    for f in fields(Config):
        value = data.get(_FILE_KEYS[f.name]) or data.get(f.name)
        if value:
            values[f.name] = value
    return Config(**values)


def save_config(config: Config, path: Path | None = None) -> bool:
    """Write the config file. Returns False if it could not be written.

    Keys this tool does not know about are kept as they are in the file.
    """
    path = path or get_config_path()
    data = _read_file(path)
    for name, value in asdict(config).items():
        data.pop(name, None)
        file_key = _FILE_KEYS[name]
        if value is None:
            data.pop(file_key, None)
        else:
            data[file_key] = value

    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(json.dumps(data, indent=2), encoding="utf-8")
    except OSError as e:
        logger.error("Error saving config file %s: %s", path, e)
        return False
    return True


def resolve_api_key(config: Config) -> str | None:
    """Return the configured OpenRouter key, else ``OPENROUTER_API_KEY``.

    The environment value is never written back to the config file.
    """
    return config.api_key or os.environ.get("OPENROUTER_API_KEY") or None


def reset_config(path: Path | None = None) -> bool:
    """Delete the config file so defaults apply again."""
    path = path or get_config_path()
    try:
        path.unlink(missing_ok=True)
    except OSError as e:
        logger.error("Failed to reset configuration %s: %s", path, e)
        return False
    return True


def _read_file(path: Path) -> dict:
    if not path.is_file():
        return {}
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
    except (json.JSONDecodeError, OSError) as e:
        logger.error("Error reading config file %s: %s", path, e)
        return {}
    if not isinstance(data, dict):
        logger.error("Ignoring config file %s: expected a JSON object", path)
        return {}
    return data
