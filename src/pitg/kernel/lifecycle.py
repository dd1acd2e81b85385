from __future__ import annotations

import logging
import threading
import time
from pathlib import Path
from typing import Callable, List, Optional, Set

from ..runners.host import SessionHost, SessionHostError
from .errors import LifecycleError

logger = logging.getLogger("pitg.lifecycle")

DEFAULT_AGENT_COMMAND = ["pi"]
DEFAULT_SETTLE_DELAY_S = 1.0


class SessionLifecycle:
    """Creates, checks for and destroys backing sessions.

    Owns the registry of session names created by this process; nothing else
    mutates it. The registry is in-memory only and starts empty after a restart.
    """

    def __init__(
        self,
        host: SessionHost,
        *,
        command: Optional[List[str]] = None,
        cwd: Optional[Path] = None,
        settle_delay_s: float = DEFAULT_SETTLE_DELAY_S,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self.host = host
        self.command = list(command or DEFAULT_AGENT_COMMAND)
        self.cwd = Path(cwd).expanduser() if cwd is not None else Path.home()
        self.settle_delay_s = float(settle_delay_s)
        self._sleep = sleep
        self._lock = threading.Lock()
        self._tracked: Set[str] = set()

    def exists(self, name: str) -> bool:
        return self.host.has_session(name)

    def create(self, name: str) -> None:
        if self.exists(name):
            logger.debug("session already exists", extra={"session": name, "op": "create"})
            return

        logger.info("creating session", extra={"session": name, "op": "create"})
        try:
            self.host.new_session(name, command=self.command, cwd=self.cwd)
        except SessionHostError as e:
            logger.error("failed to create session: %s", e, extra={"session": name, "op": "create"})
            raise LifecycleError(f"could not start session {name}: {e}") from e

        with self._lock:
            self._tracked.add(name)

        # Give the agent a moment to draw its first screen.
        if self.settle_delay_s > 0:
            self._sleep(self.settle_delay_s)
        logger.info("session created", extra={"session": name, "op": "create"})

    def destroy(self, name: str) -> None:
        try:
            killed = self.host.kill_session(name)
        except SessionHostError as e:
            raise LifecycleError(f"could not stop session {name}: {e}") from e
        finally:
            # Untrack regardless: a session we failed to kill is no longer ours to manage.
            with self._lock:
                self._tracked.discard(name)

        if killed:
            logger.info("session killed", extra={"session": name, "op": "destroy"})
        else:
            logger.debug("session already gone", extra={"session": name, "op": "destroy"})

    def destroy_all(self) -> None:
        for name in self.tracked():
            try:
                self.destroy(name)
            except Exception as e:
                # Logged and skipped per session; shutdown continues.
                logger.warning("cleanup failed: %s", e, extra={"session": name, "op": "destroy_all"})
        logger.info("all sessions cleaned up", extra={"op": "destroy_all"})

    def tracked(self) -> List[str]:
        with self._lock:
            return sorted(self._tracked)
