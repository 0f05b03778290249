"""Conversation data model: message roles, messages, and the ordered history."""

from __future__ import annotations

from enum import Enum
from typing import Iterable, Iterator

from pydantic import BaseModel, ConfigDict


class Role(str, Enum):
    USER = "user"
    # The reply side of a turn; serialized with the completion service's reply role.
    SYSTEM = "assistant"


class Message(BaseModel):
    model_config = ConfigDict(frozen=True)

    role: Role
    content: str

    def to_openai(self) -> dict[str, str]:
        return {"role": self.role.value, "content": self.content}


class History:
    """Ordered log of exchanged messages, oldest first.

    Messages are only ever appended; the log is never reordered, trimmed,
    or deduplicated. ``snapshot()`` is what gets sent on every call, so the
    full conversation is resent each turn.
    """

    def __init__(self, messages: Iterable[Message] = ()) -> None:
        self._messages: list[Message] = list(messages)

    def append(self, message: Message) -> None:
        self._messages.append(message)

    def snapshot(self) -> tuple[Message, ...]:
        """Point-in-time copy of the log; later appends do not show up in it."""
        return tuple(self._messages)

    def __len__(self) -> int:
        return len(self._messages)

    def __iter__(self) -> Iterator[Message]:
        return iter(self.snapshot())

    def __repr__(self) -> str:
        return f"History({len(self._messages)} messages)"
