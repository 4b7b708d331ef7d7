"""Telegram notification adapter, implements NotificationPort.

Credentials live in the document store rather than the environment, so a
short-lived telegram.Bot is created per delivery.
"""

from __future__ import annotations

import html
import logging
from typing import TYPE_CHECKING, Callable

from telegram import Bot
from telegram.constants import ParseMode
from telegram.error import TelegramError

if TYPE_CHECKING:
    from backoffice.data.models import ReminderDefinition, TelegramCredentials

logger = logging.getLogger(__name__)


def format_reminder(reminder: ReminderDefinition) -> str:
    return f"🔔 <b>תזכורת</b>\n\n{html.escape(reminder.title)}"


class TelegramNotifier:
    """Telegram implementation of NotificationPort."""

    def __init__(self, bot_factory: Callable[[str], Bot] = Bot) -> None:
        self._bot_factory = bot_factory

    async def send(
        self, credentials: TelegramCredentials, reminder: ReminderDefinition,
    ) -> bool:
        return await self.send_text(credentials, format_reminder(reminder))

    async def send_text(self, credentials: TelegramCredentials, text: str) -> bool:
        """Send one HTML message. API errors and network failures return False."""
        try:
            async with self._bot_factory(credentials.bot_token) as bot:
                await bot.send_message(
                    chat_id=credentials.chat_id,
                    text=text,
                    parse_mode=ParseMode.HTML,
                )
        except TelegramError as exc:
            logger.error("Telegram API error for chat %s: %s", credentials.masked_chat_id, exc)
            return False
        return True
