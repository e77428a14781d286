"""Tests for LagMonitor — cycle logic, debouncing, outage path, lifecycle."""

from __future__ import annotations

import asyncio
from pathlib import Path

import pytest

from heightwatch.alerting.state import AlertStateStore
from heightwatch.core.config import ScheduleConfig, ThresholdsConfig
from heightwatch.core.types import AlertLevel
from heightwatch.monitor.channels import NotificationChannel
from heightwatch.monitor.dispatcher import AlertDispatcher
from heightwatch.monitor.loop import LagMonitor, outage_message
from heightwatch.monitor.types import AlertMessage, MessageKind
from heightwatch.probe.exceptions import ProtocolError, TransportError
from heightwatch.probe.height import HeightProber
from heightwatch.probe.sampler import QuorumSampler

NODE = "http://node.test"
PEERS = ["https://rpc-a.test", "https://rpc-b.test", "https://rpc-c.test"]

# ── Helpers ─────────────────────────────────────────────────────


class FakeProber(HeightProber):
    """Answers from a mutable table; exception values get raised."""

    def __init__(self, table: dict[str, int | BaseException]) -> None:
        super().__init__()
        self.table = table
        self.calls: list[str] = []

    async def fetch_height(self, endpoint: str) -> int:
        self.calls.append(endpoint)
        value = self.table[endpoint]
        if isinstance(value, BaseException):
            raise value
        return value


class FakeChannel(NotificationChannel):
    def __init__(self, ok: bool = True) -> None:
        self.sent: list[AlertMessage] = []
        self.ok = ok

    async def send(self, msg: AlertMessage, chat_id: str | None = None) -> bool:
        self.sent.append(msg)
        return self.ok

    async def close(self) -> None:
        pass


class SpyStore(AlertStateStore):
    def __init__(self, path: Path) -> None:
        super().__init__(path)
        self.saves: list[tuple[int, AlertLevel]] = []

    def save(self, lag: int, level: AlertLevel) -> None:
        self.saves.append((lag, level))
        super().save(lag, level)


def _table(peers: list[int | BaseException], node: int | BaseException) -> dict[str, int | BaseException]:
    table: dict[str, int | BaseException] = dict(zip(PEERS, peers))
    table[NODE] = node
    return table


def _monitor(
    tmp_path: Path,
    table: dict[str, int | BaseException],
    channel: FakeChannel | None = None,
    store: AlertStateStore | None = None,
    schedule: ScheduleConfig | None = None,
) -> tuple[LagMonitor, FakeProber, FakeChannel, AlertStateStore]:
    prober = FakeProber(table)
    ch = channel or FakeChannel()
    st = store or SpyStore(tmp_path / "previous_state.yml")
    monitor = LagMonitor(
        sampler=QuorumSampler(prober, PEERS),
        prober=prober,
        node_url=NODE,
        store=st,
        dispatcher=AlertDispatcher(channels=[ch]),
        thresholds=ThresholdsConfig(level_1=5, level_2=10, level_3=15),
        schedule=schedule,
    )
    return monitor, prober, ch, st


# ── Lag path ────────────────────────────────────────────────────


class TestLagCycle:
    async def test_end_to_end_escalation(self, tmp_path: Path) -> None:
        monitor, _, ch, store = _monitor(tmp_path, _table([100, 102, 98], 90))
        report = await monitor.run_cycle()

        assert report.lag == 12
        assert report.node_height == 90
        assert report.decision is not None
        assert report.decision.level == AlertLevel.LEVEL_2
        assert len(ch.sent) == 1
        assert ch.sent[0].kind == MessageKind.ESCALATION
        assert ch.sent[0].text == "Alert Level 2: Block height difference is 12 blocks!"
        state = store.load()
        assert (state.previous_lag, state.last_alert_level) == (12, AlertLevel.LEVEL_2)

    async def test_unchanged_level_no_message_no_write(self, tmp_path: Path) -> None:
        table = _table([100, 102, 98], 90)
        monitor, _, ch, store = _monitor(tmp_path, table)
        await monitor.run_cycle()
        table[NODE] = 91  # lag 11, still level 2
        await monitor.run_cycle()
        await monitor.run_cycle()

        assert len(ch.sent) == 1
        assert isinstance(store, SpyStore)
        assert store.saves == [(12, AlertLevel.LEVEL_2)]
        assert store.load().previous_lag == 12

    async def test_deescalation(self, tmp_path: Path) -> None:
        table = _table([120, 100, 100], 100)
        monitor, _, ch, store = _monitor(tmp_path, table)
        await monitor.run_cycle()
        table[NODE] = 119
        await monitor.run_cycle()

        assert [m.kind for m in ch.sent] == [MessageKind.ESCALATION, MessageKind.DEESCALATION]
        assert ch.sent[1].text == "Alert Level Dropping to 0: Block height difference is 1 blocks!"
        assert store.load().last_alert_level == AlertLevel.NOMINAL

    async def test_resumes_from_persisted_level(self, tmp_path: Path) -> None:
        path = tmp_path / "previous_state.yml"
        AlertStateStore(path).save(13, AlertLevel.LEVEL_2)
        monitor, _, ch, _ = _monitor(tmp_path, _table([100, 102, 98], 90))
        await monitor.run_cycle()
        assert ch.sent == []

    async def test_node_ahead_is_nominal(self, tmp_path: Path) -> None:
        monitor, _, ch, _ = _monitor(tmp_path, _table([100, 100, 100], 105))
        report = await monitor.run_cycle()
        assert report.lag == -5
        assert report.decision is not None
        assert report.decision.level == AlertLevel.NOMINAL
        assert ch.sent == []

    async def test_partial_quorum_uses_best_peer(self, tmp_path: Path) -> None:
        table = _table([TransportError("down"), 110, ProtocolError("bad")], 104)
        monitor, _, _, _ = _monitor(tmp_path, table)
        report = await monitor.run_cycle()
        assert report.lag == 6

    async def test_zero_height_peer_counts_as_answer(self, tmp_path: Path) -> None:
        table = _table([0, TransportError("down"), TransportError("down")], 0)
        monitor, prober, ch, _ = _monitor(tmp_path, table)
        report = await monitor.run_cycle()

        assert report.lag == 0
        assert not report.outage_notified
        assert not monitor.outage.in_outage
        assert NODE in prober.calls
        assert ch.sent == []

    async def test_delivery_failure_still_persists(self, tmp_path: Path) -> None:
        monitor, _, ch, store = _monitor(
            tmp_path, _table([100, 102, 98], 90), channel=FakeChannel(ok=False)
        )
        await monitor.run_cycle()
        await monitor.run_cycle()

        assert len(ch.sent) == 1
        assert store.load().last_alert_level == AlertLevel.LEVEL_2

    async def test_node_probe_failure_skips_cycle(self, tmp_path: Path) -> None:
        monitor, _, ch, store = _monitor(tmp_path, _table([100, 102, 98], TransportError("x")))
        report = await monitor.run_cycle()

        assert report.lag is None
        assert report.decision is None
        assert ch.sent == []
        assert isinstance(store, SpyStore)
        assert store.saves == []

    async def test_save_failure_does_not_abort(self, tmp_path: Path) -> None:
        store = AlertStateStore(tmp_path / "missing-dir" / "previous_state.yml")
        monitor, _, ch, _ = _monitor(tmp_path, _table([100, 102, 98], 90), store=store)
        report = await monitor.run_cycle()

        assert report.lag == 12
        assert len(ch.sent) == 1

    async def test_load_failure_skips_decision(self, tmp_path: Path) -> None:
        path = tmp_path / "previous_state.yml"
        path.write_text("not: [valid")
        monitor, _, ch, _ = _monitor(
            tmp_path, _table([100, 102, 98], 90), store=AlertStateStore(path)
        )
        report = await monitor.run_cycle()

        assert report.lag == 12
        assert report.decision is None
        assert ch.sent == []


# ── Outage path ─────────────────────────────────────────────────


class TestOutageCycle:
    async def test_outage_notifies_on_schedule(self, tmp_path: Path) -> None:
        down = [TransportError("a"), TransportError("b"), TransportError("c")]
        monitor, prober, ch, store = _monitor(tmp_path, _table(down, 90))

        notified = [(await monitor.run_cycle()).outage_notified for _ in range(12)]

        assert [i + 1 for i, n in enumerate(notified) if n] == [8, 12]
        assert [m.kind for m in ch.sent] == [MessageKind.OUTAGE, MessageKind.OUTAGE]
        assert ch.sent[0].text == outage_message(120.0)
        assert NODE not in prober.calls
        assert isinstance(store, SpyStore)
        assert store.saves == []

    async def test_outage_does_not_touch_lag_state(self, tmp_path: Path) -> None:
        path = tmp_path / "previous_state.yml"
        AlertStateStore(path).save(20, AlertLevel.LEVEL_3)
        down = [TransportError("a"), TransportError("b"), TransportError("c")]
        monitor, _, _, _ = _monitor(tmp_path, _table(down, 90))
        for _ in range(10):
            report = await monitor.run_cycle()
            assert report.decision is None
        assert AlertStateStore(path).load().last_alert_level == AlertLevel.LEVEL_3

    async def test_recovery_resets_tracker(self, tmp_path: Path) -> None:
        down: list[int | BaseException] = [TransportError("a"), TransportError("b"), TransportError("c")]
        table = _table(down, 100)
        monitor, _, ch, _ = _monitor(tmp_path, table)
        for _ in range(7):
            await monitor.run_cycle()
        assert monitor.outage.in_outage

        table[PEERS[0]] = 100
        await monitor.run_cycle()
        assert not monitor.outage.in_outage

        table[PEERS[0]] = TransportError("a")
        for _ in range(7):
            await monitor.run_cycle()
        assert ch.sent == []

    async def test_interval_drives_cadence(self, tmp_path: Path) -> None:
        down = [TransportError("a"), TransportError("b"), TransportError("c")]
        schedule = ScheduleConfig(interval_secs=30.0)
        monitor, _, ch, _ = _monitor(tmp_path, _table(down, 90), schedule=schedule)
        notified = [(await monitor.run_cycle()).outage_notified for _ in range(6)]
        assert [i + 1 for i, n in enumerate(notified) if n] == [4, 6]


# ── Lifecycle ───────────────────────────────────────────────────


class TestLifecycle:
    async def test_start_runs_cycles_until_stopped(self, tmp_path: Path) -> None:
        schedule = ScheduleConfig(interval_secs=0.02)
        monitor, prober, _, _ = _monitor(tmp_path, _table([100, 100, 100], 100), schedule=schedule)
        await monitor.start()
        assert monitor.running
        assert prober.connected
        await asyncio.sleep(0.1)
        await monitor.stop()

        assert not monitor.running
        assert not prober.connected
        assert monitor.cycle_count >= 2
        count = monitor.cycle_count
        await asyncio.sleep(0.05)
        assert monitor.cycle_count == count

    async def test_cycle_error_does_not_kill_loop(self, tmp_path: Path) -> None:
        schedule = ScheduleConfig(interval_secs=0.02)
        table = _table([RuntimeError("unexpected"), 100, 100], 100)
        monitor, _, _, _ = _monitor(tmp_path, table, schedule=schedule)
        async with monitor:
            await asyncio.sleep(0.1)
        assert monitor.error_count >= 2

    async def test_start_twice_is_noop(self, tmp_path: Path) -> None:
        schedule = ScheduleConfig(interval_secs=0.05)
        monitor, _, _, _ = _monitor(tmp_path, _table([1, 1, 1], 1), schedule=schedule)
        await monitor.start()
        task = monitor._task
        await monitor.start()
        assert monitor._task is task
        await monitor.stop()


@pytest.mark.parametrize("elapsed", [120.0, 180.0])
def test_outage_message_mentions_duration(elapsed: float) -> None:
    assert str(int(elapsed)) in outage_message(elapsed)
