"""Core data models for aichat-cli."""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Optional

ROLES = ("user", "assistant")


@dataclass(frozen=True)
class Message:
    """A single turn in a transcript."""

    role: str  # "user" | "assistant"
    content: str

    def to_dict(self) -> dict:
        return {"role": self.role, "content": self.content}

    @classmethod
    def from_dict(cls, data: dict) -> "Message":
        role = data["role"]
        content = data["content"]
        if role not in ROLES or not isinstance(content, str):
            raise ValueError(f"Invalid message: {data!r}")
        return cls(role=role, content=content)


def user(content: str) -> Message:
    return Message(role="user", content=content)


def assistant(content: str) -> Message:
    return Message(role="assistant", content=content)


@dataclass
class Context:
    """A named, persisted conversation transcript."""

    name: str
    messages: list[Message] = field(default_factory=list)
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


@dataclass
class ContextSummary:
    """Listing entry for a stored context."""

    name: str
    message_count: int
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
