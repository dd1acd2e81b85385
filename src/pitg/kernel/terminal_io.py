from __future__ import annotations

import logging
import re

from ..runners.host import SessionHost, SessionHostError
from .errors import SessionIOError

logger = logging.getLogger("pitg.io")

# CSI (colors, cursor moves), OSC (titles, hyperlinks) and two-byte escapes.
_ANSI_RE = re.compile(
    r"\x1b\[[0-?]*[ -/]*[@-~]"
    r"|\x1b\][^\x07\x1b]*(?:\x07|\x1b\\)"
    r"|\x1b[@-Z\\-_]"
)


def strip_ansi(text: str) -> str:
    return _ANSI_RE.sub("", text or "")


class TerminalIO:
    """Keystroke writes and screen captures against a named session."""

    def __init__(self, host: SessionHost):
        self.host = host

    def write(self, name: str, text: str) -> None:
        if not self.host.has_session(name):
            raise SessionIOError(f"session {name} does not exist")
        try:
            self.host.send_text(name, text)
        except SessionHostError as e:
            logger.error("failed to send message: %s", e, extra={"session": name, "op": "write"})
            raise SessionIOError(f"could not write to session {name}: {e}") from e
        logger.debug("message sent (%d chars)", len(text), extra={"session": name, "op": "write"})

    def read(self, name: str, max_lines: int) -> str:
        """Last `max_lines` lines, escape-free and trimmed.

        "" means no output was available (absent session or failed capture).
        """
        try:
            raw = self.host.capture(name, max_lines)
        except SessionHostError as e:
            logger.debug("capture failed: %s", e, extra={"session": name, "op": "read"})
            return ""
        return strip_ansi(raw).strip()
