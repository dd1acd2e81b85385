"""
Telegram Bot API adapter for the pitg bridge.

- _api(): API call wrapper with JSON encoding, timeout, error handling
- poll(): long-poll getUpdates with offset tracking
- per-chat rate limiting, message chunking and one retry on send
"""

from __future__ import annotations

import json
import logging
import threading
import time
import urllib.error
import urllib.request
from typing import Any, Callable, Dict, List, Optional

from pydantic import ValidationError

from ....contracts.v1.message import InboundMessage
from .base import IMAdapter

logger = logging.getLogger("pitg.telegram")

# Telegram API limits
TELEGRAM_MAX_MESSAGE_LENGTH = 4096
API_BASE = "https://api.telegram.org"


class RateLimiter:
    """Per-chat send spacing.

    Telegram allows roughly one message per second into the same chat (about
    thirty per second overall); long replies are split into several messages,
    so consecutive parts to one chat are spaced out here.
    """

    def __init__(
        self,
        min_interval_s: float = 1.0,
        *,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self.min_interval_s = float(min_interval_s)
        self._clock = clock
        self._sleep = sleep
        self._next_slot: Dict[int, float] = {}
        self._lock = threading.Lock()

    def reserve(self, chat_id: int) -> float:
        """Claim the next free slot for `chat_id`; returns how long to wait for it."""
        with self._lock:
            now = self._clock()
            # Only chats with a slot still ahead of now are kept.
            for stale in [c for c, t in self._next_slot.items() if t <= now]:
                del self._next_slot[stale]
            slot = max(now, self._next_slot.get(chat_id, now))
            self._next_slot[chat_id] = slot + self.min_interval_s
            return slot - now

    def wait(self, chat_id: int) -> None:
        delay = self.reserve(chat_id)
        if delay > 0:
            self._sleep(delay)


def parse_update(update: Dict[str, Any]) -> Optional[InboundMessage]:
    """Normalize one getUpdates item; None for anything that is not a text message."""
    msg = update.get("message") or update.get("channel_post")
    if not isinstance(msg, dict):
        return None

    text = msg.get("text") or ""
    if not text:
        return None

    chat = msg.get("chat") or {}
    sender = msg.get("from") or {}
    return InboundMessage(
        chat_id=int(chat.get("id", 0)),
        thread_id=int(msg.get("message_thread_id") or 0) or None,
        text=text,
        chat_type=str(chat.get("type") or "").strip(),
        chat_title=str(chat.get("title") or chat.get("first_name") or chat.get("id") or ""),
        user_id=int(sender.get("id") or 0),
        from_user=str(sender.get("username") or sender.get("first_name") or "user"),
        message_id=int(msg.get("message_id") or 0),
        update_id=int(update.get("update_id") or 0),
    )


class TelegramAdapter(IMAdapter):
    """
    Telegram Bot API adapter using long-poll getUpdates.
    """

    platform = "telegram"
    max_message_length = TELEGRAM_MAX_MESSAGE_LENGTH

    def __init__(self, token: str, *, poll_timeout: int = 25, api_base: str = API_BASE):
        self.token = token
        self.poll_timeout = int(poll_timeout)
        self.api_base = api_base.rstrip("/")

        self._offset = 0
        self._rate_limiter = RateLimiter()
        self._connected = False
        self._bot_username = ""

    @property
    def bot_username(self) -> str:
        return self._bot_username

    def _api(
        self,
        method: str,
        params: Optional[Dict[str, Any]] = None,
        timeout: int = 35,
    ) -> Dict[str, Any]:
        """
        Call Telegram Bot API.

        Uses JSON body for consistent encoding (handles non-ASCII text).
        Transport failures come back as {"ok": False, "error": ...}.
        """
        url = f"{self.api_base}/bot{self.token}/{method}"
        data = json.dumps(params or {}, ensure_ascii=False).encode("utf-8")

        req = urllib.request.Request(url, data=data, method="POST")
        req.add_header("Content-Type", "application/json; charset=utf-8")
        req.add_header("Accept", "application/json")

        try:
            with urllib.request.urlopen(req, timeout=timeout) as resp:
                body = resp.read().decode("utf-8", errors="replace")
                return json.loads(body)
        except urllib.error.HTTPError as e:
            err_text = e.read().decode("utf-8", "ignore")[:300]
            logger.error("api %s: HTTP %s - %s", method, e.code, err_text, extra={"platform": self.platform})
            return {"ok": False, "error": str(e), "http_status": e.code}
        except (urllib.error.URLError, OSError, ValueError) as e:
            logger.error("api %s: %s", method, e, extra={"platform": self.platform})
            return {"ok": False, "error": str(e)}

    def connect(self) -> bool:
        """Verify token and get bot info."""
        resp = self._api("getMe", timeout=10)
        if resp.get("ok"):
            info = resp.get("result") or {}
            self._bot_username = str(info.get("username") or "").strip()
            self._connected = True
            logger.info("connected as @%s", self._bot_username or "unknown", extra={"platform": self.platform})
            return True
        logger.error("connect failed: %s", resp.get("error", "unknown error"), extra={"platform": self.platform})
        return False

    def disconnect(self) -> None:
        """Disconnect (no-op for Telegram, just mark as disconnected)."""
        self._connected = False
        logger.info("disconnected", extra={"platform": self.platform})

    def poll(self) -> List[InboundMessage]:
        """
        Long-poll for new messages using getUpdates.

        Edited messages are not requested, so an edit never re-runs a prompt.
        """
        if not self._connected:
            return []

        resp = self._api(
            "getUpdates",
            {
                "offset": self._offset,
                "timeout": self.poll_timeout,
                "allowed_updates": ["message", "channel_post"],
            },
            timeout=self.poll_timeout + 10,
        )

        messages: List[InboundMessage] = []
        if not (resp.get("ok") and isinstance(resp.get("result"), list)):
            return messages

        for update in resp["result"]:
            try:
                update_id = int(update.get("update_id", 0))
            except (TypeError, ValueError):
                continue
            self._offset = max(self._offset, update_id + 1)
            try:
                parsed = parse_update(update)
            except (TypeError, ValueError, ValidationError) as e:
                logger.warning("error parsing update %s: %s", update_id, e, extra={"platform": self.platform})
                continue
            if parsed is not None:
                messages.append(parsed)
        return messages

    def send_message(self, chat_id: int, text: str, thread_id: Optional[int] = None) -> bool:
        """
        Send a message to a chat.

        Handles:
        - Message length limits (split into several messages)
        - Rate limiting
        - Retry on failure
        """
        if not text:
            return True

        ok = True
        for part in self.split(text):
            self._rate_limiter.wait(int(chat_id))
            ok = self._send_with_retry(chat_id, part, thread_id=thread_id) and ok
        return ok

    def _send_with_retry(self, chat_id: int, text: str, thread_id: Optional[int] = None, retries: int = 1) -> bool:
        """Send message with retry on failure."""
        # Plain text: agent output is full of characters Markdown would choke on.
        params: Dict[str, Any] = {
            "chat_id": chat_id,
            "text": text,
            "disable_web_page_preview": True,
        }
        if thread_id:
            params["message_thread_id"] = int(thread_id)

        resp = self._api("sendMessage", params, timeout=15)
        if resp.get("ok"):
            return True

        if retries > 0:
            time.sleep(1.0)
            return self._send_with_retry(chat_id, text, thread_id=thread_id, retries=retries - 1)

        logger.error(
            "failed to send to chat %s: %s",
            chat_id,
            resp.get("error", "unknown"),
            extra={"platform": self.platform, "chat_id": chat_id, "thread_id": thread_id},
        )
        return False

    def send_typing(self, chat_id: int, thread_id: Optional[int] = None) -> None:
        params: Dict[str, Any] = {"chat_id": chat_id, "action": "typing"}
        if thread_id:
            params["message_thread_id"] = int(thread_id)
        self._api("sendChatAction", params, timeout=10)
