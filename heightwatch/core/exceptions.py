"""Core exceptions."""

from __future__ import annotations


class ConfigurationError(Exception):
    """Settings are missing or invalid. Fatal at startup."""
