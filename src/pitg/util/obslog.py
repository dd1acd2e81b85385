"""JSON-lines logging for the bridge.

Every record becomes one JSON object on stderr. Correlation fields passed via
`extra={...}` are lifted to the top level, so one conversation can be
followed with e.g. `jq 'select(.session == "pi-tg-42")'`.
"""
from __future__ import annotations

import json
import logging
import sys
import time
from typing import Any, Dict, Optional, TextIO

CONTEXT_FIELDS = ("op", "session", "chat_id", "thread_id", "user_id", "platform")

_handler: Optional[logging.Handler] = None


def _iso_utc(created: float, msecs: float) -> str:
    return time.strftime("%Y-%m-%dT%H:%M:%S", time.gmtime(created)) + f".{int(msecs):03d}Z"


class JsonlFormatter(logging.Formatter):
    def __init__(self, *, component: str):
        super().__init__()
        self.component = str(component or "").strip() or "pitg"

    def format(self, record: logging.LogRecord) -> str:
        entry: Dict[str, Any] = {
            "ts": _iso_utc(record.created, record.msecs),
            "level": record.levelname,
            "logger": record.name,
            "component": self.component,
            "msg": record.getMessage(),
        }
        for field in CONTEXT_FIELDS:
            value = getattr(record, field, None)
            if value is not None and str(value).strip():
                entry[field] = str(value).strip()
        if record.exc_info:
            entry["exc"] = self.formatException(record.exc_info)
        return json.dumps(entry, ensure_ascii=False, default=str)


def parse_level(level: str, default: int = logging.INFO) -> int:
    """"debug" -> logging.DEBUG; unknown names fall back to `default`."""
    value = logging.getLevelName(str(level or "").strip().upper())
    return value if isinstance(value, int) else default


def setup_root_json_logging(
    *,
    component: str,
    level: str = "INFO",
    stream: Optional[TextIO] = None,
    force: bool = False,
) -> None:
    """Install the JSON handler on the root logger, or just re-level it if already installed.

    `force=True` drops every existing root handler first.
    """
    global _handler
    root = logging.getLogger()
    if force:
        for h in list(root.handlers):
            root.removeHandler(h)
        _handler = None

    if _handler is None or _handler not in root.handlers:
        _handler = logging.StreamHandler(stream or sys.stderr)
        _handler.setFormatter(JsonlFormatter(component=component))
        root.addHandler(_handler)

    lvl = parse_level(level)
    root.setLevel(lvl)
    _handler.setLevel(lvl)
