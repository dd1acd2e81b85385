from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

DEFAULT_SESSION_PREFIX = "pi-tg"


@dataclass(frozen=True)
class ConversationId:
    """A chat plus an optional forum thread."""

    chat_id: int
    thread_id: Optional[int] = None

    @classmethod
    def from_raw(cls, chat_id: object, thread_id: object = None) -> "ConversationId":
        """Build from transport values; Telegram's thread id 0 means "no thread"."""
        tid = int(thread_id) if thread_id not in (None, "") else 0  # type: ignore[arg-type]
        return cls(chat_id=int(chat_id), thread_id=tid or None)  # type: ignore[arg-type]


def conversation_key(conv: ConversationId) -> str:
    if conv.thread_id is None:
        return f"{conv.chat_id}"
    return f"{conv.chat_id}-{conv.thread_id}"


def derive_key(conv: ConversationId, prefix: str = DEFAULT_SESSION_PREFIX) -> str:
    """Session name for a conversation: "<prefix>-<chat>[-<thread>]".

    Injective: an int's decimal form only carries "-" as its first character,
    so the first "-" after the chat id always separates chat from thread.
    """
    return f"{prefix}-{conversation_key(conv)}"
