"""Alert dispatcher — logs every outbound message and fans it out to channels."""

from __future__ import annotations

import structlog

from heightwatch.monitor.channels import NotificationChannel
from heightwatch.monitor.types import AlertMessage

logger = structlog.get_logger(__name__)


class AlertDispatcher:
    """Routes messages to notification channels.

    Delivery is best effort: failures are logged, never retried, and never
    raised to the caller.
    """

    def __init__(self, channels: list[NotificationChannel] | None = None) -> None:
        self._channels: list[NotificationChannel] = channels or []

    @property
    def channels(self) -> list[NotificationChannel]:
        return list(self._channels)

    async def send(self, msg: AlertMessage, chat_id: str | None = None) -> bool:
        """Dispatch *msg*. Returns True if at least one channel delivered it."""
        logger.info(
            "notification",
            kind=msg.kind.value,
            text=msg.text,
            level=None if msg.level is None else int(msg.level),
            lag=msg.lag,
        )

        delivered = False
        for ch in self._channels:
            try:
                ok = await ch.send(msg, chat_id=chat_id)
            except Exception:
                logger.exception(
                    "channel_dispatch_error",
                    channel=type(ch).__name__,
                    kind=msg.kind.value,
                )
                continue
            if ok:
                delivered = True
            else:
                logger.warning(
                    "notification_not_delivered",
                    channel=type(ch).__name__,
                    kind=msg.kind.value,
                )
        return delivered

    # ── Lifecycle ───────────────────────────────────────────────

    async def close(self) -> None:
        for ch in self._channels:
            try:
                await ch.close()
            except Exception:
                logger.exception("channel_close_error", channel=type(ch).__name__)
