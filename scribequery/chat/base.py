from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, Iterator, Optional, Protocol


@dataclass
class ChatMessage:
    role: str
    content: str


@dataclass
class ChatResponse:
    content: str
    model: str = ""
    finish_reason: Optional[str] = None
    usage: Optional[Dict[str, Any]] = None


@dataclass
class ChatStreamDelta:
    content: str
    done: bool = False


class ChatProvider(Protocol):
    def is_enabled(self) -> bool:
        ...

    def complete(self, messages: list[ChatMessage]) -> ChatResponse:
        ...

    def stream(self, messages: list[ChatMessage]) -> Iterator[str]:
        """Yield text fragments in arrival order."""
        ...
