"""Command-line client for OpenRouter and Ollama with named conversation contexts."""

__version__ = "0.1.0"
