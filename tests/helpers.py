"""Test helpers shared across modules."""

import json
from datetime import datetime, timedelta

import httpx


class Clock:
    """Deterministic clock: each call is one minute after the previous one."""

    def __init__(self, start: datetime):
        self.current = start

    def __call__(self) -> datetime:
        value = self.current
        self.current += timedelta(minutes=1)
        return value


class EchoRecorder:
    """Stand-in for click.echo that records what the terminal would show."""

    def __init__(self):
        self.calls = []

    def __call__(self, message=None, nl=True, err=False, **kwargs):
        self.calls.append((message, nl, err))

    @property
    def fragments(self) -> list[str]:
        """Text written without a trailing newline (streamed fragments)."""
        return [m for m, nl, err in self.calls if not nl and not err]

    @property
    def stdout(self) -> str:
        return "".join(f"{m}{chr(10) if nl else ''}" for m, nl, err in self.calls if not err and m is not None)

    @property
    def stderr(self) -> str:
        return "".join(f"{m}\n" for m, nl, err in self.calls if err and m is not None)


def mock_client(handler) -> httpx.Client:
    """Build an httpx client whose requests are answered by ``handler``."""
    return httpx.Client(transport=httpx.MockTransport(handler), timeout=None)


def sse_body(*contents: str, done: bool = True) -> bytes:
    """Encode delta contents as an OpenRouter event stream."""
    lines = [
        "data: " + json.dumps({"choices": [{"delta": {"content": c}}]}) + "\n"
        for c in contents
    ]
    if done:
        lines.append("data: [DONE]\n")
    return "".join(lines).encode("utf-8")


def ndjson_body(*contents: str) -> bytes:
    """Encode message contents as an Ollama NDJSON stream ending with done."""
    lines = [
        json.dumps({"message": {"role": "assistant", "content": c}, "done": False}) + "\n"
        for c in contents
    ]
    lines.append(json.dumps({"message": {"role": "assistant", "content": ""}, "done": True}) + "\n")
    return "".join(lines).encode("utf-8")


def split_every(data: bytes, size: int) -> list[bytes]:
    return [data[i:i + size] for i in range(0, len(data), size)]
