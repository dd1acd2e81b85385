from __future__ import annotations

import enum
from typing import Optional

from pydantic import BaseModel, ConfigDict

BUSY_NOTICE = "⏳ Already processing. Please wait..."
NO_OUTPUT_NOTICE = "⚠️ No output received from pi"


class Outcome(str, enum.Enum):
    REPLY = "reply"
    BUSY = "busy"
    NO_OUTPUT = "no_output"
    ERROR = "error"


class ExchangeResult(BaseModel):
    """What one inbound message produced. Exactly one outcome per message."""

    outcome: Outcome
    session: str
    reply: Optional[str] = None
    error: Optional[str] = None

    model_config = ConfigDict(extra="forbid", frozen=True)

    @classmethod
    def replied(cls, session: str, text: str) -> "ExchangeResult":
        return cls(outcome=Outcome.REPLY, session=session, reply=text)

    @classmethod
    def busy(cls, session: str) -> "ExchangeResult":
        return cls(outcome=Outcome.BUSY, session=session)

    @classmethod
    def no_output(cls, session: str) -> "ExchangeResult":
        return cls(outcome=Outcome.NO_OUTPUT, session=session)

    @classmethod
    def failed(cls, session: str, reason: str) -> "ExchangeResult":
        return cls(outcome=Outcome.ERROR, session=session, error=reason or "Unknown error")

    @property
    def text(self) -> str:
        """User-visible text for the chat."""
        if self.outcome is Outcome.REPLY:
            return self.reply or ""
        if self.outcome is Outcome.BUSY:
            return BUSY_NOTICE
        if self.outcome is Outcome.NO_OUTPUT:
            return NO_OUTPUT_NOTICE
        return f"❌ Error: {self.error}"
