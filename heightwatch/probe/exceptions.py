"""Exception hierarchy for height probes."""

from __future__ import annotations


class ProbeError(Exception):
    """Base exception for all probe errors."""


class TransportError(ProbeError):
    """Endpoint unreachable or the request timed out."""


class ProtocolError(ProbeError):
    """Non-success status or a response that does not match the status schema."""
