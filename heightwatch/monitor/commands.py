"""Operator command listener — acknowledges the first /start message."""

from __future__ import annotations

import asyncio
from typing import Any

import structlog

from heightwatch.monitor.channels import TelegramChannel
from heightwatch.monitor.types import AlertMessage, MessageKind

logger = structlog.get_logger(__name__)

START_COMMAND = "/start"
WELCOME_TEXT = "Monitoring has started!"


def _start_chat_id(update: dict[str, Any]) -> str | None:
    """Return the chat id if *update* is a ``/start`` message, else None."""
    message = update.get("message")
    if not isinstance(message, dict) or message.get("text") != START_COMMAND:
        return None
    chat = message.get("chat")
    if not isinstance(chat, dict):
        return None
    chat_id = chat.get("id")
    if chat_id is None or isinstance(chat_id, bool):
        return None
    return str(chat_id)


class StartCommandListener:
    """Polls bot updates and replies once to the first ``/start``.

    The acknowledgement latch lives on this object only, is set after a
    successful reply, and is not persisted across restarts.
    """

    def __init__(self, channel: TelegramChannel, poll_interval_secs: float = 2.0) -> None:
        self._channel = channel
        self._poll_interval_secs = poll_interval_secs
        self._acknowledged = False
        self._offset: int | None = None
        self._task: asyncio.Task[None] | None = None
        self._running = False

    @property
    def acknowledged(self) -> bool:
        return self._acknowledged

    @property
    def offset(self) -> int | None:
        return self._offset

    async def poll_once(self) -> None:
        """Fetch one batch of updates and handle any ``/start``."""
        updates = await self._channel.get_updates(self._offset)
        for update in updates:
            chat_id = None if self._acknowledged else _start_chat_id(update)
            if chat_id is not None:
                sent = await self._channel.send(
                    AlertMessage(kind=MessageKind.WELCOME, text=WELCOME_TEXT),
                    chat_id=chat_id,
                )
                if not sent:
                    # Leave the offset here so the same /start is retried.
                    logger.warning("start_ack_failed", chat_id=chat_id)
                    return
                self._acknowledged = True
                logger.info("start_acknowledged", chat_id=chat_id)

            update_id = update.get("update_id")
            if isinstance(update_id, int) and not isinstance(update_id, bool):
                self._offset = max(self._offset or 0, update_id + 1)

    # ── Lifecycle ───────────────────────────────────────────────

    async def start(self) -> None:
        if self._running:
            return
        self._running = True
        self._task = asyncio.create_task(self._loop())
        logger.info("command_listener_started", poll_interval_secs=self._poll_interval_secs)

    async def stop(self) -> None:
        self._running = False
        if self._task is not None:
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
            self._task = None

    async def _loop(self) -> None:
        while self._running:
            try:
                await self.poll_once()
            except asyncio.CancelledError:
                return
            except Exception:
                logger.exception("command_listener_error")
            try:
                await asyncio.sleep(self._poll_interval_secs)
            except asyncio.CancelledError:
                return
