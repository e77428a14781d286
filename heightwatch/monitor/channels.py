"""Notification channels — Telegram Bot API delivery."""

from __future__ import annotations

import abc
from typing import Any

import aiohttp
import structlog

from heightwatch.core.config import TelegramConfig
from heightwatch.monitor.types import AlertMessage

logger = structlog.get_logger(__name__)


class NotificationChannel(abc.ABC):
    """Base class for message delivery channels."""

    @abc.abstractmethod
    async def send(self, msg: AlertMessage, chat_id: str | None = None) -> bool:
        """Send a message. Returns True on success."""

    @abc.abstractmethod
    async def close(self) -> None:
        """Release resources (HTTP sessions, etc.)."""


class TelegramChannel(NotificationChannel):
    """Delivers plain-text messages via the Telegram Bot API.

    Failures are logged and reported through the return value; nothing is
    retried.
    """

    def __init__(self, config: TelegramConfig) -> None:
        self._token = config.bot_token.get_secret_value()
        self._chat_id = config.chat_id
        self._api_base = config.api_base.rstrip("/")
        self._timeout = aiohttp.ClientTimeout(total=config.timeout_secs)
        self._session: aiohttp.ClientSession | None = None

    def _get_session(self) -> aiohttp.ClientSession:
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession(timeout=self._timeout)
        return self._session

    def _url(self, method: str) -> str:
        return f"{self._api_base}/bot{self._token}/{method}"

    async def send(self, msg: AlertMessage, chat_id: str | None = None) -> bool:
        target = chat_id or self._chat_id
        payload = {
            "chat_id": target,
            "text": msg.text,
        }

        try:
            session = self._get_session()
            async with session.post(self._url("sendMessage"), json=payload) as resp:
                if 200 <= resp.status < 300:
                    return True
                body = await resp.text()
                logger.warning(
                    "telegram_send_failed",
                    status=resp.status,
                    body=body[:200],
                    kind=msg.kind.value,
                )
                return False
        except Exception:
            logger.exception("telegram_send_error", kind=msg.kind.value)
            return False

    async def get_updates(self, offset: int | None = None) -> list[dict[str, Any]]:
        """Fetch pending bot updates. Returns an empty list on any failure."""
        params: dict[str, int] = {}
        if offset is not None:
            params["offset"] = offset

        try:
            session = self._get_session()
            async with session.get(self._url("getUpdates"), params=params) as resp:
                if not 200 <= resp.status < 300:
                    body = await resp.text()
                    logger.warning(
                        "telegram_updates_failed",
                        status=resp.status,
                        body=body[:200],
                    )
                    return []
                data = await resp.json(content_type=None)
        except Exception:
            logger.exception("telegram_updates_error")
            return []

        if not isinstance(data, dict):
            logger.warning("telegram_updates_malformed")
            return []
        result = data.get("result")
        if not isinstance(result, list):
            return []
        return [u for u in result if isinstance(u, dict)]

    async def close(self) -> None:
        if self._session and not self._session.closed:
            await self._session.close()
            self._session = None
