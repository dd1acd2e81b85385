from __future__ import annotations

from .host import SessionHost, SessionHostError
from .tmux import TmuxError, TmuxHost

__all__ = ["SessionHost", "SessionHostError", "TmuxError", "TmuxHost"]
