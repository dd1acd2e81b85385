"""Error taxonomy for the session bridge.

Readiness timeouts and busy rejections are not errors: they come back as
`ReadinessState.TIMED_OUT` and `Outcome.BUSY` respectively.
"""
from __future__ import annotations


class BridgeError(RuntimeError):
    """Base class for failures that abort a single exchange."""


class LifecycleError(BridgeError):
    """The session host could not create (or destroy) a backing session."""


class SessionIOError(BridgeError):
    """Writing to (or reading from) a named backing session failed."""


class ConfigError(ValueError):
    """Settings could not be loaded or failed validation."""
