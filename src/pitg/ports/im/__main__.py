"""
Entry point for running the IM bridge as a module.

Usage:
    python -m pitg.ports.im
"""

from __future__ import annotations

from ...kernel.errors import ConfigError
from ...kernel.settings import load_settings
from ...util.obslog import setup_root_json_logging
from .bridge import start_bridge


def main() -> int:
    try:
        settings = load_settings()
    except ConfigError as e:
        print(f"[error] {e}")
        return 1

    setup_root_json_logging(component="im", level=settings.log_level)
    return start_bridge(settings)


if __name__ == "__main__":
    raise SystemExit(main())
