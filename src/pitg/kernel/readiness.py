from __future__ import annotations

import enum
import logging
import time
from typing import Callable

from .terminal_io import TerminalIO

logger = logging.getLogger("pitg.readiness")

DEFAULT_SIGNATURE = ">"
DEFAULT_POLL_INTERVAL_S = 0.1
DEFAULT_WINDOW_LINES = 5


class ReadinessState(str, enum.Enum):
    AWAITING = "awaiting"
    READY = "ready"
    TIMED_OUT = "timed_out"


class ReadinessDetector:
    """Polls the pane until the agent's prompt marker shows up.

    The marker is a loose heuristic (pi draws "> " when idle), so a timeout is
    not an error: the caller reads whatever is on screen. A small window keeps
    older echoed input from matching.
    """

    def __init__(
        self,
        io: TerminalIO,
        *,
        signature: str = DEFAULT_SIGNATURE,
        poll_interval_s: float = DEFAULT_POLL_INTERVAL_S,
        window_lines: int = DEFAULT_WINDOW_LINES,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], None] = time.sleep,
    ):
        if not signature:
            raise ValueError("readiness signature must not be empty")
        self.io = io
        self.signature = signature
        self.poll_interval_s = float(poll_interval_s)
        self.window_lines = int(window_lines)
        self._clock = clock
        self._sleep = sleep

    def is_ready(self, name: str) -> bool:
        return self.signature in self.io.read(name, self.window_lines)

    def await_ready(self, name: str, timeout_s: float) -> ReadinessState:
        deadline = self._clock() + max(0.0, float(timeout_s))
        state = ReadinessState.AWAITING
        while state is ReadinessState.AWAITING:
            if self.is_ready(name):
                state = ReadinessState.READY
            elif self._clock() >= deadline:
                state = ReadinessState.TIMED_OUT
            else:
                self._sleep(min(self.poll_interval_s, max(0.0, deadline - self._clock())))

        if state is ReadinessState.TIMED_OUT:
            logger.warning("timeout waiting for prompt after %.1fs", timeout_s, extra={"session": name, "op": "await_ready"})
        return state
