# backend/fulfillment/bot_notify.py

from __future__ import annotations

from typing import Optional, Union

from aiogram import Bot
from aiogram.client.default import DefaultBotProperties
from aiogram.enums import ParseMode
from aiogram.exceptions import TelegramAPIError

from .config import Settings
from .utils import get_logger

logger = get_logger("storeskull.bot")


class AdminNotifier:
    """
    Sends messages to the admin chat through the Telegram Bot API (aiogram Bot).
    Both send methods return False instead of raising: notification failures
    never fail the request that triggered them.
    """

    def __init__(self, bot: Bot, chat_id: Union[int, str]):
        self.bot = bot
        self.chat_id = chat_id

    async def send_text(self, text: str) -> bool:
        try:
            await self.bot.send_message(chat_id=self.chat_id, text=text)
            return True
        except TelegramAPIError as e:
            logger.error("Telegram sendMessage failed: %s", e)
            return False

    async def send_photo(self, photo: str, caption: str) -> bool:
        try:
            await self.bot.send_photo(chat_id=self.chat_id, photo=photo, caption=caption)
            return True
        except TelegramAPIError as e:
            logger.error("Telegram sendPhoto failed (photo=%s): %s", photo, e)
            return False

    async def close(self) -> None:
        await self.bot.session.close()


def build_admin_notifier(settings: Settings) -> Optional[AdminNotifier]:
    """
    None when TELEGRAM_BOT_TOKEN or TELEGRAM_ADMIN_CHAT_ID is not set.
    """
    if not settings.telegram_configured():
        logger.warning("TELEGRAM_BOT_TOKEN or TELEGRAM_ADMIN_CHAT_ID is not set; admin notifications disabled")
        return None
    bot = Bot(
        token=settings.TELEGRAM_BOT_TOKEN,
        default=DefaultBotProperties(parse_mode=ParseMode.HTML),
    )
    return AdminNotifier(bot, settings.TELEGRAM_ADMIN_CHAT_ID)
