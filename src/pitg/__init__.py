"""pitg: Telegram conversations bridged to persistent pi agent sessions in tmux."""
from __future__ import annotations

from importlib.metadata import PackageNotFoundError, version

try:
    __version__ = version("pi-tg-bridge")
except PackageNotFoundError:
    # Running from a source checkout without an install.
    __version__ = "0.0.0"
