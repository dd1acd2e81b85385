"""
pitg IM Bridge Port

Connects a chat platform (Telegram) to persistent agent sessions in tmux.
Each chat, or forum topic, owns one session.

Architecture:
- Inbound: chat message -> command handler, or exchange with the agent session
- Outbound: agent reply (or a busy / no-output / error notice) -> chat

Usage:
    pitg run
    python -m pitg.ports.im
"""

from .bridge import IMBridge, build_bridge, start_bridge

__all__ = ["IMBridge", "build_bridge", "start_bridge"]
