"""Schemas for the chat module."""

from dataclasses import dataclass, field
from typing import Literal

Role = Literal["user", "assistant"]


@dataclass(frozen=True)
class ConversationTurn:
    """A single turn of a conversation, from the user or the assistant."""

    role: Role
    content: str

    def to_message(self) -> dict[str, str]:
        """Render as a chat-completions message."""
        return {"role": self.role, "content": self.content}


@dataclass(frozen=True)
class TokenUsage:
    """Token accounting reported by the completion backend."""

    input_tokens: int = 0
    output_tokens: int = 0
    model: str = ""


@dataclass
class ChatResult:
    """Outcome of answering one query."""

    answer: str
    cached: bool
    suggestions: list[str]
    usage: TokenUsage
    timestamp: str
    cache_key: str
    bypassed_cache: bool = False
    conversation: list[ConversationTurn] = field(default_factory=list)
