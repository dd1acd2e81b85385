from __future__ import annotations

import argparse
import json
import sys
from typing import Any, List, Optional

from . import __version__
from .contracts.v1.exchange import Outcome
from .kernel.errors import BridgeError, ConfigError
from .kernel.exchange import SessionBridge
from .kernel.keys import ConversationId
from .kernel.lifecycle import SessionLifecycle
from .kernel.settings import BridgeSettings, load_settings
from .runners.tmux import TmuxHost
from .util.obslog import setup_root_json_logging


def _print_json(obj: Any) -> None:
    print(json.dumps(obj, ensure_ascii=False, indent=2))


def _host(settings: BridgeSettings) -> TmuxHost:
    return TmuxHost(timeout_s=settings.tmux_timeout_s)


def _conversation(args: argparse.Namespace) -> ConversationId:
    return ConversationId.from_raw(args.chat, args.thread)


def cmd_run(args: argparse.Namespace, settings: BridgeSettings) -> int:
    from .ports.im.bridge import start_bridge

    return start_bridge(settings)


def cmd_sessions(args: argparse.Namespace, settings: BridgeSettings) -> int:
    names = _host(settings).list_sessions(prefix=f"{settings.session_prefix}-")
    if args.json:
        _print_json({"sessions": names})
        return 0
    if not names:
        print("no sessions")
        return 0
    for name in names:
        print(name)
    return 0


def cmd_status(args: argparse.Namespace, settings: BridgeSettings) -> int:
    bridge = SessionBridge.from_settings(settings, _host(settings))
    conv = _conversation(args)
    running = bridge.is_running(conv)
    _print_json({"session": bridge.session_name(conv), "running": running})
    return 0 if running else 1


def cmd_kill(args: argparse.Namespace, settings: BridgeSettings) -> int:
    host = _host(settings)
    lifecycle = SessionLifecycle(host)
    if args.all:
        names = host.list_sessions(prefix=f"{settings.session_prefix}-")
    elif args.chat is not None:
        names = [SessionBridge.from_settings(settings, host).session_name(_conversation(args))]
    else:
        print("[error] pass --chat ID or --all", file=sys.stderr)
        return 2

    failed = 0
    for name in names:
        try:
            lifecycle.destroy(name)
            print(f"killed {name}")
        except BridgeError as e:
            failed += 1
            print(f"[error] {e}", file=sys.stderr)
    return 1 if failed else 0


def cmd_send(args: argparse.Namespace, settings: BridgeSettings) -> int:
    text = " ".join(args.text).strip()
    if not text:
        print("[error] empty message", file=sys.stderr)
        return 2
    bridge = SessionBridge.from_settings(settings, _host(settings))
    result = bridge.exchange(_conversation(args), text)
    if args.json:
        _print_json(result.model_dump(mode="json"))
    else:
        print(result.text)
    return 0 if result.outcome in (Outcome.REPLY, Outcome.NO_OUTPUT) else 1


def cmd_version(args: argparse.Namespace, settings: BridgeSettings) -> int:
    print(f"pitg {__version__}")
    return 0


def _add_conversation_args(p: argparse.ArgumentParser, *, required: bool = True) -> None:
    p.add_argument("--chat", type=int, required=required, help="Telegram chat id")
    p.add_argument("--thread", type=int, default=None, help="Forum topic (message_thread_id)")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="pitg", description="Telegram <-> tmux pi session bridge")
    sub = parser.add_subparsers(dest="cmd", required=True)

    p = sub.add_parser("run", help="Run the Telegram bridge in the foreground")
    p.set_defaults(func=cmd_run)

    p = sub.add_parser("sessions", help="List running bridge sessions")
    p.add_argument("--json", action="store_true", help="JSON output")
    p.set_defaults(func=cmd_sessions)

    p = sub.add_parser("status", help="Is a conversation's session running?")
    _add_conversation_args(p)
    p.set_defaults(func=cmd_status)

    p = sub.add_parser("kill", help="Kill a conversation's session (or all of them)")
    _add_conversation_args(p, required=False)
    p.add_argument("--all", action="store_true", help="Kill every session with the configured prefix")
    p.set_defaults(func=cmd_kill)

    p = sub.add_parser("send", help="Run one exchange from the terminal and print the outcome")
    _add_conversation_args(p)
    p.add_argument("--json", action="store_true", help="JSON output")
    p.add_argument("text", nargs="+", help="Message text")
    p.set_defaults(func=cmd_send)

    p = sub.add_parser("version", help="Show version")
    p.set_defaults(func=cmd_version)

    return parser


def main(argv: Optional[List[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    try:
        settings = load_settings()
    except ConfigError as e:
        print(f"[error] {e}", file=sys.stderr)
        return 1

    setup_root_json_logging(component="cli" if args.cmd != "run" else "bridge", level=settings.log_level)
    return int(args.func(args, settings))


if __name__ == "__main__":
    raise SystemExit(main())
