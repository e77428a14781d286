"""Alerting exceptions."""

from __future__ import annotations


class AlertingError(Exception):
    """Base exception for alerting errors."""


class PersistenceError(AlertingError):
    """The alert state file could not be read or written."""
