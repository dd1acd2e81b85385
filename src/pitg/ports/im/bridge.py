"""
pitg IM Bridge - Core logic.

Handles:
- Inbound: chat messages -> commands or agent session exchanges
- Outbound: exchange outcome (reply / busy / no output / error) -> chat
- Worker pool: exchanges for different conversations run concurrently
"""

from __future__ import annotations

import logging
import os
import signal
import time
from concurrent.futures import ThreadPoolExecutor
from pathlib import Path
from typing import Any, Optional

from ...contracts.v1.exchange import BUSY_NOTICE
from ...contracts.v1.message import InboundMessage
from ...kernel.errors import BridgeError, ConfigError
from ...kernel.exchange import SessionBridge
from ...kernel.history import ConversationHistory
from ...kernel.keys import ConversationId
from ...kernel.settings import BridgeSettings
from ...paths import bridge_lock_path, bridge_pid_path, history_path
from ...runners.tmux import TmuxHost
from .adapters.base import IMAdapter
from .adapters.telegram import TelegramAdapter
from .commands import (
    CommandType,
    format_about,
    format_help,
    format_start,
    format_status,
    parse_message,
)

logger = logging.getLogger("pitg.bridge")


def _acquire_singleton_lock(lock_path: Path) -> Optional[Any]:
    """
    Acquire singleton lock to prevent multiple bridge instances polling one bot.
    Returns file handle on success, None on failure.
    """
    try:
        import fcntl
    except ImportError:
        fcntl = None  # type: ignore

    lock_path.parent.mkdir(parents=True, exist_ok=True)
    f = open(lock_path, "w")

    try:
        if fcntl is not None:
            fcntl.flock(f, fcntl.LOCK_EX | fcntl.LOCK_NB)
        f.write(str(os.getpid()))
        f.flush()
        return f
    except OSError:
        f.close()
        return None


class IMBridge:
    """
    Main IM Bridge class.

    Coordinates:
    - Adapter (platform-specific communication)
    - Command processing
    - Session bridge (one agent session per conversation)
    """

    def __init__(
        self,
        adapter: IMAdapter,
        sessions: SessionBridge,
        *,
        settings: Optional[BridgeSettings] = None,
        executor: Optional[ThreadPoolExecutor] = None,
    ):
        self.adapter = adapter
        self.sessions = sessions
        self.settings = settings or BridgeSettings()
        self.executor = executor or ThreadPoolExecutor(
            max_workers=self.settings.max_workers,
            thread_name_prefix="pitg-exchange",
        )

        self._running = False

    def _ctx(self, msg: InboundMessage, op: str) -> dict:
        return {"chat_id": msg.chat_id, "thread_id": msg.thread_id, "user_id": msg.user_id, "op": op}

    def _reply(self, msg: InboundMessage, text: str) -> None:
        self.adapter.send_message(msg.chat_id, text, thread_id=msg.thread_id)

    @property
    def running(self) -> bool:
        return self._running

    def start(self) -> bool:
        """Start the bridge."""
        if not self.adapter.connect():
            logger.error("failed to connect adapter", extra={"platform": self.adapter.platform})
            return False

        self._running = True
        logger.info("bridge started", extra={"platform": self.adapter.platform})
        return True

    def stop(self) -> None:
        """Ask the loop to exit after the current poll."""
        self._running = False

    def shutdown(self) -> None:
        """Stop polling, let in-flight exchanges finish, then kill every session."""
        self._running = False
        self.executor.shutdown(wait=True)
        self.sessions.shutdown()
        self.adapter.disconnect()
        logger.info("bridge shutdown complete")

    def run_once(self) -> None:
        """Run one iteration of the bridge loop."""
        for msg in self.adapter.poll():
            self.handle_message(msg)

    def run_forever(self, poll_interval: float = 0.1) -> None:
        """Run the bridge loop until stop()."""
        while self._running:
            try:
                self.run_once()
            except Exception:
                logger.exception("loop error")
                time.sleep(1.0)

            time.sleep(poll_interval)

    def handle_message(self, msg: InboundMessage) -> None:
        """Route one inbound message."""
        if not msg.text.strip():
            return

        if not self.settings.is_user_allowed(msg.user_id):
            logger.warning("message from unauthorized user dropped", extra=self._ctx(msg, "auth"))
            if msg.chat_type == "private":
                self._reply(msg, "🚫 You are not allowed to use this bot.")
            return

        parsed = parse_message(msg.text, bot_username=self.settings.bot_username or self._adapter_username())

        if parsed.type == CommandType.HELP:
            self._reply(msg, format_help())
        elif parsed.type == CommandType.START:
            self._reply(msg, format_start())
        elif parsed.type == CommandType.ABOUT:
            self._reply(msg, format_about())
        elif parsed.type == CommandType.STATUS:
            self._handle_status(msg)
        elif parsed.type == CommandType.CLEAR:
            self._handle_clear(msg)
        elif parsed.type == CommandType.UNKNOWN:
            # Groups may carry other bots' commands; only answer in private chats.
            if msg.chat_type == "private":
                self._reply(msg, "❓ Unknown command. Use /help.")
        elif parsed.type == CommandType.MESSAGE:
            self._submit(msg)

    def _adapter_username(self) -> str:
        return str(getattr(self.adapter, "bot_username", "") or "")

    # =========================================================================
    # Command Handlers
    # =========================================================================

    def _handle_status(self, msg: InboundMessage) -> None:
        conv = msg.conversation
        text = format_status(
            running=self.sessions.is_running(conv),
            busy=self.sessions.is_busy(conv),
            active_sessions=len(self.sessions.lifecycle.tracked()),
        )
        self._reply(msg, text)

    def _handle_clear(self, msg: InboundMessage) -> None:
        try:
            self.sessions.reset(msg.conversation)
        except BridgeError as e:
            logger.error("clear failed: %s", e, extra=self._ctx(msg, "clear"))
            self._reply(msg, f"❌ Error: {e}")
            return
        self._reply(msg, "✅ Session cleared. Send a message to create a new one!")

    # =========================================================================
    # Exchanges
    # =========================================================================

    def _submit(self, msg: InboundMessage) -> None:
        conv = msg.conversation
        # Fast path so a busy conversation hears back even when every worker is occupied.
        # The guard inside exchange() remains the authority.
        if self.sessions.is_busy(conv):
            self._reply(msg, BUSY_NOTICE)
            return
        self.executor.submit(self._run_exchange, msg, conv)

    def _run_exchange(self, msg: InboundMessage, conv: ConversationId) -> None:
        # Typing is an HTTP round trip; it runs here, off the poll thread.
        self.adapter.send_typing(msg.chat_id, thread_id=msg.thread_id)
        try:
            result = self.sessions.exchange(conv, msg.text)
        except Exception as e:
            logger.exception("error handling message", extra=self._ctx(msg, "exchange"))
            self._reply(msg, f"❌ Error: {str(e) or 'Unknown error'}")
            return
        self._reply(msg, result.text)
        logger.info("response sent (%s)", result.outcome.value, extra=self._ctx(msg, "exchange"))


def build_bridge(settings: BridgeSettings) -> IMBridge:
    """Wire adapter, tmux host, history and session bridge from settings."""
    adapter = TelegramAdapter(token=settings.require_token())
    history = None
    if settings.enable_history:
        persist = history_path() if settings.persist_history else None
        history = ConversationHistory(max_history=settings.max_history, persist_path=persist)
    sessions = SessionBridge.from_settings(
        settings,
        TmuxHost(timeout_s=settings.tmux_timeout_s),
        history=history,
    )
    return IMBridge(adapter, sessions, settings=settings)


def start_bridge(settings: BridgeSettings) -> int:
    """
    Start the Telegram bridge and block until SIGINT/SIGTERM.

    This is the main entry point called by the CLI. Returns a process exit code.
    """
    try:
        bridge = build_bridge(settings)
    except ConfigError as e:
        print(f"[error] {e}")
        return 1

    lock_path = bridge_lock_path()
    pid_path = bridge_pid_path()

    lock_file = _acquire_singleton_lock(lock_path)
    if lock_file is None:
        print("[error] Another bridge instance is already running")
        return 1

    pid_path.write_text(str(os.getpid()), encoding="utf-8")

    def handle_signal(signum: int, frame: Any) -> None:
        logger.info("received signal %s, stopping", signum)
        bridge.stop()

    signal.signal(signal.SIGTERM, handle_signal)
    signal.signal(signal.SIGINT, handle_signal)

    try:
        if not bridge.start():
            print("[error] Failed to start bridge")
            return 1

        print("[info] Pi Telegram bridge started")
        if bridge.adapter.platform == "telegram" and settings.bot_username:
            print(f"[info] Find the bot at: @{settings.bot_username}")
        print("[info] Press Ctrl+C to stop")

        bridge.run_forever()
    finally:
        bridge.shutdown()
        pid_path.unlink(missing_ok=True)
        lock_file.close()

    print("[info] Bridge stopped")
    return 0
