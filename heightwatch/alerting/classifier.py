"""Lag classification and level-change debouncing.

Pure functions: the caller owns delivery and persistence. A decision with a
message must be followed by a state write; a decision without one must not.
"""

from __future__ import annotations

from heightwatch.core.config import ThresholdsConfig
from heightwatch.core.types import AlertDecision, AlertLevel, PersistedState


def classify(lag: int, thresholds: ThresholdsConfig) -> AlertLevel:
    """Map a lag to its alert level. Each cutoff is inclusive."""
    if lag >= thresholds.level_3:
        return AlertLevel.LEVEL_3
    if lag >= thresholds.level_2:
        return AlertLevel.LEVEL_2
    if lag >= thresholds.level_1:
        return AlertLevel.LEVEL_1
    return AlertLevel.NOMINAL


def escalation_message(level: AlertLevel, lag: int) -> str:
    return f"Alert Level {int(level)}: Block height difference is {lag} blocks!"


def deescalation_message(level: AlertLevel, lag: int) -> str:
    return f"Alert Level Dropping to {int(level)}: Block height difference is {lag} blocks!"


def decide(
    lag: int,
    thresholds: ThresholdsConfig,
    previous: PersistedState,
) -> AlertDecision:
    """Compare the current level with the last one sent.

    A jump across several levels yields one message naming the final level.
    """
    current = classify(lag, thresholds)
    last = previous.last_alert_level

    message: str | None = None
    if current > last:
        message = escalation_message(current, lag)
    elif current < last:
        message = deescalation_message(current, lag)

    return AlertDecision(lag=lag, level=current, previous_level=last, message=message)
