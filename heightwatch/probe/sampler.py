"""Quorum sampler — fans a height probe out over every peer endpoint."""

from __future__ import annotations

import asyncio
from collections.abc import Sequence

import structlog

from heightwatch.core.types import HeightSample, QuorumResult
from heightwatch.probe.exceptions import ProbeError
from heightwatch.probe.height import HeightProber

logger = structlog.get_logger(__name__)


class QuorumSampler:
    """Probes all peer endpoints concurrently and collects their heights.

    Individual failures are logged and recorded on the sample; they never
    propagate. An empty ``QuorumResult.heights`` means no peer answered.
    """

    def __init__(self, prober: HeightProber, endpoints: Sequence[str]) -> None:
        self._prober = prober
        self._endpoints = list(endpoints)

    @property
    def endpoints(self) -> list[str]:
        return list(self._endpoints)

    async def _probe(self, endpoint: str) -> HeightSample:
        try:
            height = await self._prober.fetch_height(endpoint)
        except ProbeError as exc:
            logger.warning(
                "probe_failed",
                endpoint=endpoint,
                error_type=type(exc).__name__,
                error=str(exc),
            )
            return HeightSample(endpoint=endpoint, error=str(exc))
        return HeightSample(endpoint=endpoint, height=height)

    async def sample(self) -> QuorumResult:
        """Probe every endpoint; returns once all have answered or failed."""
        samples = await asyncio.gather(*(self._probe(ep) for ep in self._endpoints))
        result = QuorumResult(samples=list(samples))
        logger.debug(
            "quorum_sampled",
            reachable=len(result.heights),
            total=len(self._endpoints),
            best_height=result.best_height,
        )
        return result
