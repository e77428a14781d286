"""Scheduling loop — drives probing, lag alerts and outage notices."""

from __future__ import annotations

import asyncio
from types import TracebackType

import structlog
from pydantic import BaseModel

from heightwatch.alerting.classifier import decide
from heightwatch.alerting.exceptions import PersistenceError
from heightwatch.alerting.state import AlertStateStore
from heightwatch.core.config import ScheduleConfig, ThresholdsConfig
from heightwatch.core.types import AlertDecision, QuorumResult
from heightwatch.monitor.dispatcher import AlertDispatcher
from heightwatch.monitor.outage import OutageTracker
from heightwatch.monitor.types import AlertMessage, MessageKind
from heightwatch.probe.exceptions import ProbeError
from heightwatch.probe.height import HeightProber
from heightwatch.probe.sampler import QuorumSampler

logger = structlog.get_logger(__name__)


def outage_message(elapsed_secs: float) -> str:
    return f"None of the RPC endpoints could be reached for {int(elapsed_secs)} seconds!"


class CycleReport(BaseModel):
    """What happened during one tick."""

    quorum: QuorumResult
    node_height: int | None = None
    lag: int | None = None
    decision: AlertDecision | None = None
    outage_notified: bool = False


class LagMonitor:
    """Runs one check cycle per interval until stopped.

    Each cycle samples the peers, probes the node, classifies the lag and
    notifies on level changes. When no peer answers, the cycle feeds the
    outage tracker instead and leaves the lag state alone.

    Usage::

        monitor = LagMonitor(sampler, prober, node_url, store, dispatcher,
                             thresholds, schedule)
        async with monitor:
            await stop_event.wait()
    """

    def __init__(
        self,
        sampler: QuorumSampler,
        prober: HeightProber,
        node_url: str,
        store: AlertStateStore,
        dispatcher: AlertDispatcher,
        thresholds: ThresholdsConfig,
        schedule: ScheduleConfig | None = None,
    ) -> None:
        sched = schedule or ScheduleConfig()
        self._sampler = sampler
        self._prober = prober
        self._node_url = node_url
        self._store = store
        self._dispatcher = dispatcher
        self._thresholds = thresholds
        self._interval_secs = sched.interval_secs
        self._outage = OutageTracker(
            grace_secs=sched.outage_grace_secs,
            repeat_secs=sched.outage_repeat_secs,
        )
        self._task: asyncio.Task[None] | None = None
        self._running = False
        self._cycle_count = 0
        self._error_count = 0

    @property
    def running(self) -> bool:
        return self._running

    @property
    def outage(self) -> OutageTracker:
        return self._outage

    @property
    def cycle_count(self) -> int:
        return self._cycle_count

    @property
    def error_count(self) -> int:
        return self._error_count

    # ── One tick ────────────────────────────────────────────────

    async def run_cycle(self) -> CycleReport:
        """Run a single check cycle."""
        self._cycle_count += 1
        quorum = await self._sampler.sample()

        best_height = quorum.best_height
        if best_height is None:
            return await self._handle_outage(quorum)

        self._outage.reset()

        try:
            node_height = await self._prober.fetch_height(self._node_url)
        except ProbeError as exc:
            logger.error(
                "node_probe_failed",
                node=self._node_url,
                error_type=type(exc).__name__,
                error=str(exc),
            )
            return CycleReport(quorum=quorum)

        lag = best_height - node_height
        decision = await self._handle_lag(lag)

        logger.info(
            "height_lag",
            lag=lag,
            best_peer_height=best_height,
            node_height=node_height,
            reachable=len(quorum.heights),
            total=len(quorum.samples),
        )
        return CycleReport(
            quorum=quorum,
            node_height=node_height,
            lag=lag,
            decision=decision,
        )

    async def _handle_outage(self, quorum: QuorumResult) -> CycleReport:
        due = self._outage.record_outage(self._interval_secs)
        logger.warning(
            "rpc_outage",
            endpoints=len(quorum.samples),
            outage_secs=self._outage.elapsed_since_last_success,
            since_notification_secs=self._outage.elapsed_since_last_notification,
        )
        if due:
            await self._dispatcher.send(AlertMessage(
                kind=MessageKind.OUTAGE,
                text=outage_message(self._outage.elapsed_since_last_success),
            ))
        return CycleReport(quorum=quorum, outage_notified=due)

    async def _handle_lag(self, lag: int) -> AlertDecision | None:
        try:
            previous = self._store.load()
        except PersistenceError as exc:
            logger.error("state_load_failed", path=str(self._store.path), error=str(exc))
            return None

        decision = decide(lag, self._thresholds, previous)
        if decision.message is None:
            return decision

        kind = (
            MessageKind.ESCALATION
            if decision.level > decision.previous_level
            else MessageKind.DEESCALATION
        )
        logger.warning(
            "alert_level_changed",
            previous_level=int(decision.previous_level),
            level=int(decision.level),
            lag=lag,
        )
        await self._dispatcher.send(AlertMessage(
            kind=kind,
            text=decision.message,
            level=decision.level,
            lag=lag,
        ))

        # Saved even when delivery failed so an unchanged level stays quiet.
        try:
            self._store.save(lag, decision.level)
        except PersistenceError as exc:
            logger.error("state_save_failed", path=str(self._store.path), error=str(exc))
        return decision

    # ── Lifecycle ───────────────────────────────────────────────

    async def start(self) -> None:
        """Connect the prober and start the background loop."""
        if self._running:
            return
        self._running = True
        await self._prober.connect()
        self._task = asyncio.create_task(self._run_loop())
        logger.info(
            "monitor_started",
            interval_secs=self._interval_secs,
            endpoints=len(self._sampler.endpoints),
            node=self._node_url,
        )

    async def stop(self) -> None:
        """Stop the loop, abandoning any in-flight request."""
        self._running = False
        if self._task is not None:
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
            self._task = None
        await self._prober.close()
        logger.info("monitor_stopped", cycles=self._cycle_count)

    async def _run_loop(self) -> None:
        """Fixed-rate loop; the first cycle runs immediately."""
        loop = asyncio.get_running_loop()
        next_tick = loop.time()
        while self._running:
            try:
                await self.run_cycle()
            except asyncio.CancelledError:
                break
            except Exception:
                self._error_count += 1
                logger.exception("cycle_error", error_count=self._error_count)

            next_tick += self._interval_secs
            delay = next_tick - loop.time()
            if delay < 0:
                # Overran the interval: drop missed ticks rather than bursting.
                logger.warning("cycle_overrun", behind_secs=-delay)
                next_tick = loop.time()
                delay = 0.0
            try:
                await asyncio.sleep(delay)
            except asyncio.CancelledError:
                break

    async def __aenter__(self) -> LagMonitor:
        await self.start()
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: TracebackType | None,
    ) -> None:
        await self.stop()
