"""Conversation history per chat/thread.

In-memory by default; with `persist_path` the whole store is mirrored to a
JSON file (atomic rewrite on every change) and reloaded on start.
"""
from __future__ import annotations

import logging
import threading
from pathlib import Path
from typing import Dict, List, Optional

from pydantic import ValidationError

from ..contracts.v1.history import HistoryMessage, HistorySession, Role
from ..util.fs import atomic_write_json, read_json
from .keys import ConversationId, conversation_key

logger = logging.getLogger("pitg.history")

DEFAULT_MAX_HISTORY = 50


class ConversationHistory:
    def __init__(self, *, max_history: int = DEFAULT_MAX_HISTORY, persist_path: Optional[Path] = None):
        self.max_history = max(1, int(max_history))
        self.persist_path = persist_path
        self._lock = threading.Lock()
        self._sessions: Dict[str, HistorySession] = {}
        self._load()

    def _load(self) -> None:
        if self.persist_path is None:
            return
        data = read_json(self.persist_path)
        for key, raw in data.items():
            try:
                self._sessions[str(key)] = HistorySession.model_validate(raw)
            except ValidationError as e:
                logger.warning("dropping unreadable history entry %s: %s", key, e)
        if self._sessions:
            logger.info("history loaded (%d conversations)", len(self._sessions))

    def _save(self) -> None:
        if self.persist_path is None:
            return
        data = {k: s.model_dump(mode="json") for k, s in self._sessions.items()}
        atomic_write_json(self.persist_path, data)

    def _get_or_create(self, conv: ConversationId) -> HistorySession:
        key = conversation_key(conv)
        sess = self._sessions.get(key)
        if sess is None:
            sess = HistorySession(chat_id=conv.chat_id, thread_id=conv.thread_id)
            self._sessions[key] = sess
            logger.info("history session created", extra={"chat_id": conv.chat_id, "thread_id": conv.thread_id})
        return sess

    def add_message(self, conv: ConversationId, role: Role, content: str) -> HistoryMessage:
        msg = HistoryMessage(role=role, content=content)
        with self._lock:
            sess = self._get_or_create(conv)
            sess.messages.append(msg)
            sess.touch()

            overflow = len(sess.messages) - self.max_history
            if overflow > 0:
                del sess.messages[:overflow]
                logger.info(
                    "old messages trimmed (%d)",
                    overflow,
                    extra={"chat_id": conv.chat_id, "thread_id": conv.thread_id},
                )
            self._save()
        return msg

    def get_history(self, conv: ConversationId) -> List[HistoryMessage]:
        with self._lock:
            sess = self._sessions.get(conversation_key(conv))
            return list(sess.messages) if sess is not None else []

    def get_session(self, conv: ConversationId) -> Optional[HistorySession]:
        with self._lock:
            sess = self._sessions.get(conversation_key(conv))
            return sess.model_copy(deep=True) if sess is not None else None

    def clear(self, conv: ConversationId) -> bool:
        with self._lock:
            removed = self._sessions.pop(conversation_key(conv), None) is not None
            if removed:
                self._save()
        logger.info("history cleared", extra={"chat_id": conv.chat_id, "thread_id": conv.thread_id})
        return removed

    def clear_all(self) -> int:
        with self._lock:
            count = len(self._sessions)
            self._sessions.clear()
            self._save()
        logger.info("all history cleared (%d conversations)", count)
        return count

    def count(self) -> int:
        with self._lock:
            return len(self._sessions)
