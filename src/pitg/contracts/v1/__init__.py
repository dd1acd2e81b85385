from __future__ import annotations

from .exchange import ExchangeResult, Outcome
from .history import HistoryMessage, HistorySession, Role
from .message import InboundMessage

__all__ = [
    "ExchangeResult",
    "HistoryMessage",
    "HistorySession",
    "InboundMessage",
    "Outcome",
    "Role",
]
