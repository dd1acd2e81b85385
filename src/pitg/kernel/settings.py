"""Bridge settings.

Sources, lowest to highest precedence:
- field defaults below
- ~/.pitg/settings.yaml (or $PITG_HOME/settings.yaml)
- environment variables (TELEGRAM_BOT_TOKEN, PI_WORKING_DIRECTORY, ... and PITG_<FIELD>)
"""
from __future__ import annotations

import logging
import os
import shlex
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional

import yaml  # type: ignore
from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from ..paths import settings_path
from ..util.conv import coerce_bool, parse_int_list
from ..util.fs import atomic_write_text
from .errors import ConfigError

logger = logging.getLogger("pitg.settings")


class BridgeSettings(BaseModel):
    # Telegram
    telegram_bot_token: str = ""
    bot_username: str = ""

    # Backing sessions
    session_prefix: str = "pi-tg"
    agent_command: List[str] = Field(default_factory=lambda: ["pi"])
    working_directory: str = "~"
    settle_delay_s: float = 1.0
    tmux_timeout_s: float = 3.0

    # Readiness protocol
    readiness_signature: str = ">"
    start_timeout_s: float = 5.0
    response_timeout_s: float = 10.0
    poll_interval_s: float = 0.1
    readiness_window_lines: int = 5
    capture_lines: int = 100

    # Security
    allowed_users: Optional[List[int]] = None

    # History
    enable_history: bool = True
    max_history: int = 50
    persist_history: bool = False

    # Runtime
    max_workers: int = 8
    log_level: str = "INFO"

    model_config = ConfigDict(extra="ignore")

    @field_validator("session_prefix")
    @classmethod
    def _check_prefix(cls, v: str) -> str:
        v = str(v or "").strip()
        if not v or any(ch in v for ch in ".: "):
            raise ValueError("session_prefix must be non-empty and contain no '.', ':' or spaces")
        return v

    @field_validator("agent_command", mode="before")
    @classmethod
    def _split_command(cls, v: Any) -> Any:
        if isinstance(v, str):
            return shlex.split(v)
        return v

    @field_validator("agent_command")
    @classmethod
    def _check_command(cls, v: List[str]) -> List[str]:
        if not v:
            raise ValueError("agent_command must not be empty")
        return v

    @field_validator("readiness_signature")
    @classmethod
    def _check_signature(cls, v: str) -> str:
        if not v:
            raise ValueError("readiness_signature must not be empty")
        return v

    @field_validator("capture_lines", "readiness_window_lines", "max_workers", "max_history")
    @classmethod
    def _positive(cls, v: int) -> int:
        if v < 1:
            raise ValueError("must be >= 1")
        return v

    @property
    def cwd(self) -> Path:
        return Path(self.working_directory).expanduser()

    def require_token(self) -> str:
        token = self.telegram_bot_token.strip()
        if not token:
            raise ConfigError("TELEGRAM_BOT_TOKEN not set (environment or settings.yaml)")
        return token

    def is_user_allowed(self, user_id: int) -> bool:
        return self.allowed_users is None or int(user_id) in self.allowed_users


# Env names kept from the original deployment's .env files.
_ENV_ALIASES: Dict[str, str] = {
    "TELEGRAM_BOT_TOKEN": "telegram_bot_token",
    "TELEGRAM_BOT_USERNAME": "bot_username",
    "PI_WORKING_DIRECTORY": "working_directory",
    "ALLOWED_USERS": "allowed_users",
    "ENABLE_CONVERSATION_HISTORY": "enable_history",
    "MAX_CONVERSATION_HISTORY": "max_history",
    "LOG_LEVEL": "log_level",
}

_BOOL_FIELDS = {"enable_history", "persist_history"}


def _read_yaml(path: Path) -> Dict[str, Any]:
    if not path.exists():
        return {}
    try:
        doc = yaml.safe_load(path.read_text(encoding="utf-8")) or {}
    except yaml.YAMLError as e:
        raise ConfigError(f"invalid YAML in {path}: {e}") from e
    if not isinstance(doc, dict):
        raise ConfigError(f"{path} must contain a mapping at top level")
    return doc


def _env_overrides(env: Mapping[str, str]) -> Dict[str, Any]:
    out: Dict[str, Any] = {}
    for name in BridgeSettings.model_fields:
        raw = env.get(f"PITG_{name.upper()}")
        if raw is not None and raw.strip():
            out[name] = raw.strip()
    for env_name, field_name in _ENV_ALIASES.items():
        raw = env.get(env_name)
        if raw is not None and raw.strip():
            out[field_name] = raw.strip()

    for name in _BOOL_FIELDS:
        if name in out:
            out[name] = coerce_bool(out[name], default=True)
    if "allowed_users" in out:
        try:
            out["allowed_users"] = parse_int_list(out["allowed_users"])
        except ValueError as e:
            raise ConfigError(f"ALLOWED_USERS must be comma-separated integers: {e}") from e
    return out


def load_settings(*, env: Optional[Mapping[str, str]] = None, path: Optional[Path] = None) -> BridgeSettings:
    env = os.environ if env is None else env
    p = path or settings_path()

    merged: Dict[str, Any] = {}
    merged.update(_read_yaml(p))
    merged.update(_env_overrides(env))

    try:
        settings = BridgeSettings.model_validate(merged)
    except ValidationError as e:
        raise ConfigError(f"invalid settings: {e}") from e

    logger.info(
        "configuration loaded (prefix=%s cwd=%s)",
        settings.session_prefix,
        settings.working_directory,
        extra={"op": "load_settings"},
    )
    return settings


def save_settings(settings: BridgeSettings, *, path: Optional[Path] = None) -> Path:
    """Write settings to YAML. The bot token is never written out."""
    p = path or settings_path()
    doc = settings.model_dump(exclude={"telegram_bot_token"})
    atomic_write_text(p, yaml.safe_dump(doc, allow_unicode=True, sort_keys=False))
    return p
