"""Domain types for the notification subsystem."""

from __future__ import annotations

import time
from enum import StrEnum

from pydantic import BaseModel, Field

from heightwatch.core.types import AlertLevel


class MessageKind(StrEnum):
    """Which path produced an outbound message."""

    ESCALATION = "ESCALATION"
    DEESCALATION = "DEESCALATION"
    OUTAGE = "OUTAGE"
    WELCOME = "WELCOME"


class AlertMessage(BaseModel):
    """Normalised message ready for dispatch to channels."""

    kind: MessageKind
    text: str
    level: AlertLevel | None = None
    lag: int | None = None
    timestamp: float = Field(default_factory=time.time)
