"""Session bridge: one chat conversation <-> one persistent agent session.

An exchange is:
    derive name -> admit (busy? reply with notice) -> create if absent and wait
    for the first prompt -> type the text -> wait for the prompt again ->
    capture -> release.

The guard entry is released on every exit path, including errors.
"""
from __future__ import annotations

import logging
from typing import Optional

from ..contracts.v1.exchange import ExchangeResult
from ..runners.host import SessionHost
from .errors import BridgeError
from .guard import InFlightGuard
from .history import ConversationHistory
from .keys import DEFAULT_SESSION_PREFIX, ConversationId, derive_key
from .lifecycle import SessionLifecycle
from .readiness import ReadinessDetector
from .settings import BridgeSettings
from .terminal_io import TerminalIO

logger = logging.getLogger("pitg.exchange")

DEFAULT_START_TIMEOUT_S = 5.0
DEFAULT_RESPONSE_TIMEOUT_S = 10.0
DEFAULT_CAPTURE_LINES = 100


class SessionBridge:
    def __init__(
        self,
        *,
        lifecycle: SessionLifecycle,
        io: TerminalIO,
        readiness: ReadinessDetector,
        guard: Optional[InFlightGuard] = None,
        history: Optional[ConversationHistory] = None,
        prefix: str = DEFAULT_SESSION_PREFIX,
        start_timeout_s: float = DEFAULT_START_TIMEOUT_S,
        response_timeout_s: float = DEFAULT_RESPONSE_TIMEOUT_S,
        capture_lines: int = DEFAULT_CAPTURE_LINES,
    ):
        self.lifecycle = lifecycle
        self.io = io
        self.readiness = readiness
        self.guard = guard or InFlightGuard()
        self.history = history
        self.prefix = prefix
        self.start_timeout_s = float(start_timeout_s)
        self.response_timeout_s = float(response_timeout_s)
        self.capture_lines = int(capture_lines)

    @classmethod
    def from_settings(
        cls,
        settings: BridgeSettings,
        host: SessionHost,
        *,
        history: Optional[ConversationHistory] = None,
    ) -> "SessionBridge":
        io = TerminalIO(host)
        return cls(
            lifecycle=SessionLifecycle(
                host,
                command=settings.agent_command,
                cwd=settings.cwd,
                settle_delay_s=settings.settle_delay_s,
            ),
            io=io,
            readiness=ReadinessDetector(
                io,
                signature=settings.readiness_signature,
                poll_interval_s=settings.poll_interval_s,
                window_lines=settings.readiness_window_lines,
            ),
            history=history,
            prefix=settings.session_prefix,
            start_timeout_s=settings.start_timeout_s,
            response_timeout_s=settings.response_timeout_s,
            capture_lines=settings.capture_lines,
        )

    def session_name(self, conv: ConversationId) -> str:
        return derive_key(conv, self.prefix)

    def exchange(self, conv: ConversationId, text: str) -> ExchangeResult:
        name = self.session_name(conv)
        ctx = {"session": name, "chat_id": conv.chat_id, "thread_id": conv.thread_id, "op": "exchange"}

        with self.guard.admission(name) as admitted:
            if not admitted:
                logger.info("rejected: exchange already in flight", extra=ctx)
                return ExchangeResult.busy(name)

            logger.info("message received (%d chars)", len(text), extra=ctx)
            try:
                if not self.lifecycle.exists(name):
                    self.lifecycle.create(name)
                    self.readiness.await_ready(name, self.start_timeout_s)

                self.io.write(name, text)
                self.readiness.await_ready(name, self.response_timeout_s)
                output = self.io.read(name, self.capture_lines)
            except BridgeError as e:
                logger.error("exchange failed: %s", e, extra=ctx)
                return ExchangeResult.failed(name, str(e))

            if not output:
                logger.warning("no output captured", extra=ctx)
                return ExchangeResult.no_output(name)

            if self.history is not None:
                self.history.add_message(conv, "user", text)
                self.history.add_message(conv, "assistant", output)

            logger.info("response captured (%d chars)", len(output), extra=ctx)
            return ExchangeResult.replied(name, output)

    def is_running(self, conv: ConversationId) -> bool:
        return self.lifecycle.exists(self.session_name(conv))

    def is_busy(self, conv: ConversationId) -> bool:
        return self.guard.is_busy(self.session_name(conv))

    def reset(self, conv: ConversationId) -> None:
        """Kill the conversation's session and forget its history."""
        self.lifecycle.destroy(self.session_name(conv))
        if self.history is not None:
            self.history.clear(conv)

    def shutdown(self) -> None:
        self.lifecycle.destroy_all()
