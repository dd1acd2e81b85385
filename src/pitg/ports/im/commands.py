"""
Chat command parser for the pitg bridge.

Parses commands from chat messages:
- /help, /start, /about
- /status
- /clear
Anything else is forwarded to the agent session.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from enum import Enum
from typing import List

from ... import __version__


class CommandType(str, Enum):
    HELP = "help"
    START = "start"
    ABOUT = "about"
    STATUS = "status"
    CLEAR = "clear"

    # Slash command we do not know
    UNKNOWN = "unknown"

    # Slash command addressed to a different bot in the same group
    IGNORED = "ignored"

    # Not a command - regular message for the agent
    MESSAGE = "message"


@dataclass
class ParsedCommand:
    """Result of parsing a chat message."""

    type: CommandType
    text: str  # Original text (MESSAGE) or the arguments (commands)
    args: List[str]


_COMMAND_RE = re.compile(r"^/(\w+)(?:@(\S+))?(?:\s+(.*))?$", re.IGNORECASE | re.DOTALL)


def parse_message(text: str, bot_username: str = "") -> ParsedCommand:
    """
    Parse a chat message into a command or regular message.

    Commands start with / and are case-insensitive. "/cmd@OtherBot" is
    ignored when we know our own username and it does not match.

    Examples:
        "/status" -> CommandType.STATUS
        "/help@pi_tg_bot" -> CommandType.HELP
        "hello world" -> CommandType.MESSAGE
    """
    stripped = (text or "").strip()
    if not stripped:
        return ParsedCommand(type=CommandType.MESSAGE, text="", args=[])

    m = _COMMAND_RE.match(stripped)
    if not m:
        # Leading "/" without a command word (e.g. "/ tmp path") is a message.
        return ParsedCommand(type=CommandType.MESSAGE, text=text, args=[])

    name = m.group(1).lower()
    target = (m.group(2) or "").strip()
    rest = (m.group(3) or "").strip()
    args = rest.split() if rest else []

    ours = bot_username.lstrip("@").lower()
    if target and ours and target.lower() != ours:
        return ParsedCommand(type=CommandType.IGNORED, text=rest, args=args)

    return ParsedCommand(type=_map_command(name), text=rest, args=args)


def _map_command(name: str) -> CommandType:
    mapping = {
        "help": CommandType.HELP,
        "h": CommandType.HELP,
        "start": CommandType.START,
        "about": CommandType.ABOUT,
        "status": CommandType.STATUS,
        "s": CommandType.STATUS,
        "clear": CommandType.CLEAR,
        "reset": CommandType.CLEAR,  # Alias
    }
    return mapping.get(name, CommandType.UNKNOWN)


def format_help() -> str:
    return (
        "🤖 Pi Telegram Bot\n"
        "\n"
        "Each chat (and each forum topic) gets its own persistent pi session.\n"
        "\n"
        "How to use:\n"
        "Just send any message and it goes to your pi session:\n"
        '- tap "Add feature"\n'
        '- rawr "Complex task"\n'
        "- Normal pi prompts work too!\n"
        "\n"
        "Commands:\n"
        "/help - This message\n"
        "/status - Check your session\n"
        "/clear - Stop your session and clear its history\n"
        "/about - About this bot\n"
        "\n"
        "Your pi session stays alive between messages."
    )


def format_start() -> str:
    return "👋 Welcome to Pi Telegram Bot!\n\nSend /help to see what I can do."


def format_about() -> str:
    return (
        "🤖 Pi Telegram Bot\n"
        "\n"
        "Bridges Telegram conversations to persistent pi coding-agent sessions running in tmux.\n"
        "\n"
        "Features:\n"
        "- One pi session per chat / forum topic\n"
        "- Sessions survive between messages\n"
        "- Per-conversation request locking\n"
        "\n"
        f"Version: {__version__}"
    )


def format_status(*, running: bool, busy: bool, active_sessions: int) -> str:
    if running:
        head = "✅ Session Active\n\nYour pi session is running and ready!"
        if busy:
            head = "⏳ Session Busy\n\nYour pi session is working on a message."
    else:
        head = "❌ No Active Session\n\nSend a message to create your pi session!"
    return f"{head}\n\nActive sessions: {active_sessions}"
