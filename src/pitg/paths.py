"""Where pitg keeps its files.

    $PITG_HOME (default ~/.pitg)/
        settings.yaml
        state/
            bridge.lock     singleton lock held by the running bridge
            bridge.pid
            history.json    only with persist_history
"""
from __future__ import annotations

import os
from pathlib import Path


def pitg_home() -> Path:
    env = os.environ.get("PITG_HOME", "").strip()
    if env:
        return Path(env).expanduser().resolve()
    return (Path.home() / ".pitg").resolve()


def ensure_home() -> Path:
    home = pitg_home()
    home.mkdir(parents=True, exist_ok=True)
    return home


def settings_path() -> Path:
    return ensure_home() / "settings.yaml"


def state_dir() -> Path:
    p = ensure_home() / "state"
    p.mkdir(parents=True, exist_ok=True)
    return p


def bridge_lock_path() -> Path:
    return state_dir() / "bridge.lock"


def bridge_pid_path() -> Path:
    return state_dir() / "bridge.pid"


def history_path() -> Path:
    return state_dir() / "history.json"
