"""
Outbound calls to the Telegram Bot API.

``TelegramGateway`` is the only place that talks to Telegram. When no bot token
is configured, messages are skipped with a warning and invoice creation raises
``TelegramNotConfiguredError``.
"""
import logging
from typing import Optional

from telegram import Bot, InlineKeyboardButton, InlineKeyboardMarkup, LabeledPrice, WebAppInfo
from telegram.error import TelegramError

from fruitmerge.errors import TelegramNotConfiguredError

logger = logging.getLogger(__name__)

STARS_CURRENCY = "XTR"


class TelegramGateway:
    def __init__(self, bot_token: str = "", webapp_url: str = ""):
        self.webapp_url = webapp_url
        self.bot: Optional[Bot] = Bot(bot_token) if bot_token else None
        if self.bot is None:
            logger.warning("BOT_TOKEN not set - Telegram features disabled")

    @property
    def enabled(self) -> bool:
        return self.bot is not None

    async def start(self):
        if self.bot is not None:
            await self.bot.initialize()
            logger.info(f"Telegram bot initialized: @{self.bot.username}")

    async def close(self):
        if self.bot is not None:
            await self.bot.shutdown()

    async def create_invoice_link(self, title: str, description: str, payload: str,
                                  amount: int, label: Optional[str] = None) -> str:
        """Create a Telegram Stars invoice link for a single priced item."""
        if self.bot is None:
            raise TelegramNotConfiguredError("Payments are not configured")
        return await self.bot.create_invoice_link(
            title=title,
            description=description,
            payload=payload,
            provider_token="",
            currency=STARS_CURRENCY,
            prices=[LabeledPrice(label=label or title, amount=amount)],
        )

    async def answer_pre_checkout(self, query_id: str, ok: bool,
                                  error_message: Optional[str] = None):
        if self.bot is None:
            logger.warning(f"Cannot answer pre-checkout {query_id}: bot not configured")
            return
        await self.bot.answer_pre_checkout_query(
            pre_checkout_query_id=query_id, ok=ok, error_message=error_message
        )

    async def send_message(self, chat_id, text: str, play_button: Optional[str] = None) -> bool:
        """
        Send ``text`` to ``chat_id``, optionally with a button opening the web app.

        Delivery failures are logged and reported as False, never raised.
        """
        if self.bot is None:
            logger.warning(f"Cannot send message to {chat_id}: bot not configured")
            return False

        reply_markup = None
        if play_button:
            reply_markup = InlineKeyboardMarkup([[
                InlineKeyboardButton(play_button, web_app=WebAppInfo(url=self.webapp_url))
            ]])
        try:
            await self.bot.send_message(chat_id=chat_id, text=text, reply_markup=reply_markup)
            return True
        except TelegramError as e:
            logger.warning(f"Failed to send message to {chat_id}: {e}")
            return False
