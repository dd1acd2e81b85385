from __future__ import annotations

import math
from typing import Any, List, Optional

_TRUE = {"1", "true", "yes", "y", "on"}
_FALSE = {"0", "false", "no", "n", "off"}


def coerce_bool(value: Any, *, default: bool = False) -> bool:
    """Coerce a loosely-typed value into a boolean.

    Environment variables and hand-written YAML deliver strings like
    "false"/"0"; unknown strings fall back to `default` so that
    bool("false") == True never leaks into settings.
    """
    if value is None:
        return bool(default)
    if isinstance(value, bool):
        return value
    if isinstance(value, int):
        return value != 0
    if isinstance(value, float):
        if math.isnan(value):
            return bool(default)
        return value != 0.0
    if isinstance(value, str):
        s = value.strip().lower()
        if not s:
            return bool(default)
        if s in _TRUE:
            return True
        if s in _FALSE:
            return False
        try:
            return int(s) != 0
        except ValueError:
            return bool(default)
    return bool(value)


def parse_int_list(value: Any) -> Optional[List[int]]:
    """Parse "1,2, 3" (or a list) into [1, 2, 3]. Empty input means None.

    Raises ValueError on a non-integer item.
    """
    if value is None:
        return None
    if isinstance(value, (list, tuple)):
        items = [str(x) for x in value]
    else:
        items = str(value).split(",")
    out = [int(x.strip()) for x in items if str(x).strip()]
    return out or None
