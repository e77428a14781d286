"""Core module — config, types, logging."""

from heightwatch.core.config import Settings, get_settings, load_settings, reset_settings
from heightwatch.core.exceptions import ConfigurationError
from heightwatch.core.logging import setup_logging
from heightwatch.core.types import (
    AlertDecision,
    AlertLevel,
    HeightSample,
    PersistedState,
    QuorumResult,
)

__all__ = [
    "AlertDecision",
    "AlertLevel",
    "ConfigurationError",
    "HeightSample",
    "PersistedState",
    "QuorumResult",
    "Settings",
    "get_settings",
    "load_settings",
    "reset_settings",
    "setup_logging",
]
