"""Domain types shared by the probe, alerting and monitor packages."""

from __future__ import annotations

from enum import IntEnum

from pydantic import BaseModel, ConfigDict, Field


class AlertLevel(IntEnum):
    """Lag severity — ordered so comparisons work naturally."""

    NOMINAL = 0
    LEVEL_1 = 1
    LEVEL_2 = 2
    LEVEL_3 = 3


# ── Probe Types ─────────────────────────────────────────────────


class HeightSample(BaseModel):
    """Outcome of probing one endpoint. Exactly one of height/error is set."""

    endpoint: str
    height: int | None = Field(default=None, ge=0)
    error: str | None = None

    @property
    def ok(self) -> bool:
        return self.height is not None


class QuorumResult(BaseModel):
    """All samples from one fan-out over the peer endpoints."""

    samples: list[HeightSample] = Field(default_factory=list)

    @property
    def heights(self) -> list[int]:
        return [s.height for s in self.samples if s.height is not None]

    @property
    def has_quorum(self) -> bool:
        """True if at least one peer answered."""
        return bool(self.heights)

    @property
    def best_height(self) -> int | None:
        heights = self.heights
        return max(heights) if heights else None

    @property
    def failed(self) -> list[HeightSample]:
        return [s for s in self.samples if not s.ok]


# ── Alerting Types ──────────────────────────────────────────────


class PersistedState(BaseModel):
    """Last lag and alert level written to disk.

    Serialised with the historical file keys ``previous_height_diff`` and
    ``last_alert_level``.
    """

    model_config = ConfigDict(populate_by_name=True)

    previous_lag: int = Field(default=0, alias="previous_height_diff")
    last_alert_level: AlertLevel = AlertLevel.NOMINAL


class AlertDecision(BaseModel):
    """Result of comparing the current lag level with the persisted one."""

    lag: int
    level: AlertLevel
    previous_level: AlertLevel
    message: str | None = None

    @property
    def changed(self) -> bool:
        return self.message is not None
