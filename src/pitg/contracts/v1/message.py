from __future__ import annotations

from typing import Optional

from pydantic import BaseModel, ConfigDict

from ...kernel.keys import ConversationId


class InboundMessage(BaseModel):
    """A text message normalized from a chat platform update."""

    chat_id: int
    thread_id: Optional[int] = None  # None: not in a forum topic
    text: str
    chat_type: str = ""
    chat_title: str = ""
    user_id: int = 0
    from_user: str = "user"
    message_id: int = 0
    update_id: int = 0

    model_config = ConfigDict(extra="ignore")

    @property
    def conversation(self) -> ConversationId:
        return ConversationId.from_raw(self.chat_id, self.thread_id)
