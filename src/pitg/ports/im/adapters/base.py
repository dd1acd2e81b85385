"""
Base class for IM platform adapters.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import List, Optional

from ....contracts.v1.message import InboundMessage


def split_message(text: str, limit: int) -> List[str]:
    """
    Split text into chunks of at most `limit` characters.

    Prefers breaking at the last newline inside the window; falls back to a
    hard cut for lines longer than the limit.
    """
    if limit < 1:
        raise ValueError("limit must be >= 1")
    t = text or ""
    if not t:
        return []

    chunks: List[str] = []
    while len(t) > limit:
        cut = t.rfind("\n", 0, limit + 1)
        if cut <= 0:
            chunks.append(t[:limit])
            t = t[limit:]
        else:
            chunks.append(t[:cut])
            t = t[cut + 1:]
    if t:
        chunks.append(t)
    return chunks


class IMAdapter(ABC):
    """
    Abstract base class for IM platform adapters.

    Each adapter handles:
    - Connecting to the platform
    - Receiving messages (inbound)
    - Sending messages (outbound), including length-limited chunking
    """

    platform: str = "unknown"
    max_message_length: int = 4096

    @abstractmethod
    def connect(self) -> bool:
        """
        Initialize connection to the platform.
        Returns True if successful.
        """

    @abstractmethod
    def disconnect(self) -> None:
        """Disconnect from the platform."""

    @abstractmethod
    def poll(self) -> List[InboundMessage]:
        """Poll for new text messages."""

    @abstractmethod
    def send_message(self, chat_id: int, text: str, thread_id: Optional[int] = None) -> bool:
        """
        Send a message to a chat, splitting it if needed.
        Returns True if every part was delivered.
        """

    def send_typing(self, chat_id: int, thread_id: Optional[int] = None) -> None:
        """Show a "typing" indicator where the platform supports one."""
        _ = chat_id
        _ = thread_id

    def split(self, text: str) -> List[str]:
        return split_message(text, self.max_message_length)
