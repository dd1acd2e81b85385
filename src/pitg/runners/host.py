from __future__ import annotations

from pathlib import Path
from typing import List, Protocol


class SessionHostError(RuntimeError):
    """A host operation failed, e.g. the multiplexer is missing or timed out."""


class SessionHost(Protocol):
    """Narrow capability interface over the terminal multiplexer.

    Implementations raise `SessionHostError` (or a subclass, such as
    `TmuxError`) on infrastructure failure; the kernel translates those into
    bridge errors.
    """

    def has_session(self, name: str) -> bool:
        ...

    def new_session(self, name: str, *, command: List[str], cwd: Path) -> None:
        ...

    def send_text(self, name: str, text: str) -> None:
        """Type `text` literally into the session, then press Enter."""
        ...

    def capture(self, name: str, lines: int) -> str:
        """Return the last `lines` rendered lines (may contain escape sequences)."""
        ...

    def kill_session(self, name: str) -> bool:
        """Destroy the session. Returns False if it did not exist."""
        ...

    def list_sessions(self, prefix: str = "") -> List[str]:
        ...
