"""Convenience factory for wiring the monitoring stack."""

from __future__ import annotations

from typing import NamedTuple

from heightwatch.alerting.state import AlertStateStore
from heightwatch.core.config import Settings
from heightwatch.monitor.channels import TelegramChannel
from heightwatch.monitor.commands import StartCommandListener
from heightwatch.monitor.dispatcher import AlertDispatcher
from heightwatch.monitor.loop import LagMonitor
from heightwatch.probe.height import HeightProber
from heightwatch.probe.sampler import QuorumSampler


class MonitorStack(NamedTuple):
    monitor: LagMonitor
    listener: StartCommandListener
    dispatcher: AlertDispatcher


def create_monitor_stack(settings: Settings) -> MonitorStack:
    """Build the scheduling loop and command listener from settings.

    Both share one Telegram channel; closing the dispatcher closes it.
    """
    channel = TelegramChannel(settings.telegram)
    dispatcher = AlertDispatcher(channels=[channel])

    prober = HeightProber(timeout_secs=settings.probe.timeout_secs)
    sampler = QuorumSampler(prober, settings.endpoints.rpc_urls)

    monitor = LagMonitor(
        sampler=sampler,
        prober=prober,
        node_url=settings.endpoints.node_url,
        store=AlertStateStore(settings.state.path),
        dispatcher=dispatcher,
        thresholds=settings.thresholds,
        schedule=settings.schedule,
    )
    listener = StartCommandListener(
        channel,
        poll_interval_secs=settings.telegram.command_poll_secs,
    )
    return MonitorStack(monitor=monitor, listener=listener, dispatcher=dispatcher)
