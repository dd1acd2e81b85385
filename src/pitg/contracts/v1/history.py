from __future__ import annotations

import uuid
from datetime import datetime, timezone
from typing import List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field

Role = Literal["user", "assistant"]


def _new_id() -> str:
    return uuid.uuid4().hex


def utc_now_iso() -> str:
    return datetime.now(timezone.utc).isoformat().replace("+00:00", "Z")


class HistoryMessage(BaseModel):
    id: str = Field(default_factory=_new_id)
    role: Role
    content: str
    timestamp: str = Field(default_factory=utc_now_iso)

    model_config = ConfigDict(extra="ignore")


class HistorySession(BaseModel):
    id: str = Field(default_factory=_new_id)
    chat_id: int
    thread_id: Optional[int] = None
    messages: List[HistoryMessage] = Field(default_factory=list)
    created_at: str = Field(default_factory=utc_now_iso)
    updated_at: str = Field(default_factory=utc_now_iso)

    model_config = ConfigDict(extra="ignore")

    def touch(self) -> None:
        self.updated_at = utc_now_iso()
