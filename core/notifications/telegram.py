"""Telegram Bot API client.

Thin aiohttp wrapper around sendMessage. No retries: a failed send raises
NotificationError and the caller decides.
"""

import asyncio
from typing import Any, Dict, Optional

import aiohttp

from core.errors import NotificationError
from core.observability.logging import get_logger

logger = get_logger(__name__)

DEFAULT_API_URL = "https://api.telegram.org"


class TelegramClient:
    """Sends chat messages through a bot.

    Usage:
        client = TelegramClient(bot_token)
        await client.send_message("123456", "hello")
        await client.close()
    """

    def __init__(
        self,
        bot_token: str,
        api_url: str = DEFAULT_API_URL,
        timeout_seconds: float = 10.0,
        session: Optional[aiohttp.ClientSession] = None,
    ):
        self.bot_token = bot_token
        self.api_url = api_url.rstrip("/")
        self.timeout_seconds = timeout_seconds
        self._session = session
        self._owns_session = session is None

    @property
    def send_url(self) -> str:
        return f"{self.api_url}/bot{self.bot_token}/sendMessage"

    async def _get_session(self) -> aiohttp.ClientSession:
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession()
            self._owns_session = True
        return self._session

    async def close(self) -> None:
        if self._session is not None and self._owns_session:
            await self._session.close()
        self._session = None

    async def send_message(
        self,
        chat_id: str,
        text: str,
        reply_markup: Optional[Dict[str, Any]] = None,
    ) -> None:
        if not self.bot_token:
            raise NotificationError("TELEGRAM_BOT_TOKEN is not configured")

        payload: Dict[str, Any] = {"chat_id": chat_id, "text": text, "parse_mode": "HTML"}
        if reply_markup:
            payload["reply_markup"] = reply_markup

        session = await self._get_session()
        try:
            async with session.post(
                self.send_url,
                json=payload,
                timeout=aiohttp.ClientTimeout(total=self.timeout_seconds),
            ) as response:
                if response.status >= 300:
                    body = await response.text()
                    raise NotificationError(
                        f"Telegram sendMessage failed with HTTP {response.status}: {body[:200]}",
                        response.status,
                    )
                logger.debug(f"Sent message to chat {chat_id}")
        except asyncio.TimeoutError:
            raise NotificationError(f"Telegram sendMessage timed out after {self.timeout_seconds}s")
        except aiohttp.ClientError as e:
            raise NotificationError(f"Telegram sendMessage failed: {e}")
