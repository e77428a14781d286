"""Notification, scheduling and operator command subsystem."""

from heightwatch.monitor.channels import NotificationChannel, TelegramChannel
from heightwatch.monitor.commands import StartCommandListener
from heightwatch.monitor.dispatcher import AlertDispatcher
from heightwatch.monitor.factory import MonitorStack, create_monitor_stack
from heightwatch.monitor.loop import CycleReport, LagMonitor
from heightwatch.monitor.outage import OutageTracker
from heightwatch.monitor.types import AlertMessage, MessageKind

__all__ = [
    "AlertDispatcher",
    "AlertMessage",
    "CycleReport",
    "LagMonitor",
    "MessageKind",
    "MonitorStack",
    "NotificationChannel",
    "OutageTracker",
    "StartCommandListener",
    "TelegramChannel",
    "create_monitor_stack",
]
