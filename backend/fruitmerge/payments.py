"""
Telegram Stars payments and bot commands.

Invoice payloads are colon-delimited strings chosen when the invoice is
created:

    stars:<packageId>:<userId>    a star package from ``STAR_PACKAGES``
    item:<itemId>:<userId>        a single in-game item

Each inbound update is handled on its own. Store mutations happen before any
Telegram call, so a failed notification never loses a credit.
"""
import logging
from dataclasses import dataclass
from typing import Optional

from fruitmerge.config import Settings
from fruitmerge.monitoring import monitor_transaction, record_custom_event, record_custom_metric
from fruitmerge.persistence import PersistenceManager
from fruitmerge.records import PaymentRecord, display_name, find_package
from fruitmerge.schemas import PreCheckoutQuery, TelegramMessage, TelegramUpdate
from fruitmerge.store import GameStore
from fruitmerge.telegram_client import TelegramGateway

logger = logging.getLogger(__name__)

REFERRAL_PREFIX = "ref_"


@dataclass
class InvoicePayload:
    kind: str
    target_id: str
    user_id: Optional[str] = None


def stars_payload(package_id: str, user_id: str) -> str:
    return f"stars:{package_id}:{user_id}"


def item_payload(item_id: str, user_id: str) -> str:
    return f"item:{item_id}:{user_id}"


def parse_payload(payload: str) -> Optional[InvoicePayload]:
    """Split an invoice payload; None when it does not follow either format."""
    parts = (payload or "").split(":")
    if len(parts) < 2 or parts[0] not in ("stars", "item") or not parts[1]:
        return None
    user_id = parts[2] if len(parts) > 2 and parts[2] else None
    return InvoicePayload(kind=parts[0], target_id=parts[1], user_id=user_id)


class WebhookHandler:
    """Applies inbound Telegram updates to the store."""

    def __init__(self, store: GameStore, telegram: TelegramGateway,
                 persistence: Optional[PersistenceManager], settings: Settings):
        self.store = store
        self.telegram = telegram
        self.persistence = persistence
        self.settings = settings

    @monitor_transaction("Webhook/handle_update")
    async def handle(self, raw: dict) -> bool:
        """
        Process one update.

        Never raises: any failure is logged and counted, and the caller still
        acknowledges the delivery so Telegram does not redeliver it.

        Returns:
            True if the update was processed without error
        """
        try:
            update = TelegramUpdate.model_validate(raw)

            if update.pre_checkout_query is not None:
                await self.handle_pre_checkout(update.pre_checkout_query)

            message = update.message
            if message is not None:
                if message.successful_payment is not None:
                    await self.handle_successful_payment(message)
                text = (message.text or "").strip()
                if text == "/start" or text.startswith("/start "):
                    await self.handle_start(message, text)
                elif text == "/stats":
                    await self.handle_stats(message)
            return True
        except Exception as e:
            logger.error(f"Webhook processing failed: {e}", exc_info=True)
            record_custom_metric("Webhook/Errors")
            return False

    async def handle_pre_checkout(self, query: PreCheckoutQuery):
        parsed = parse_payload(query.invoice_payload)
        if parsed is not None and parsed.kind == "stars" and find_package(parsed.target_id) is None:
            logger.warning(f"Declining pre-checkout {query.id}: unknown package {parsed.target_id}")
            await self.telegram.answer_pre_checkout(query.id, ok=False,
                                                    error_message="This package is no longer available")
            return
        await self.telegram.answer_pre_checkout(query.id, ok=True)

    async def handle_successful_payment(self, message: TelegramMessage):
        payment = message.successful_payment
        payer = message.from_user
        if payer is None:
            raise ValueError("successful_payment without sender")

        charge_id = payment.telegram_payment_charge_id
        if self.store.has_charge(charge_id):
            logger.warning(f"Duplicate payment delivery ignored: charge_id={charge_id}")
            record_custom_metric("Payments/Duplicates")
            return

        payer_id = str(payer.id)
        parsed = parse_payload(payment.invoice_payload)
        target_id = parsed.user_id if parsed and parsed.user_id else payer_id
        name = self.store.resolve_name(
            payer_id, display_name(payer_id, payer.username, payer.first_name, payer.last_name)
        )
        # A gifted purchase must not hand the payer's name to the recipient
        target = self.store.ensure_user(target_id, name if target_id == payer_id else None)
        if target_id == payer_id and payer.username:
            target.telegram_username = payer.username

        record = PaymentRecord(
            user_id=target_id,
            username=name,
            telegram_username=payer.username,
            amount=payment.total_amount,
            currency=payment.currency,
            item=payment.invoice_payload,
            charge_id=charge_id,
        )
        self.store.record_payment(record)

        confirmation = None
        if parsed is not None and parsed.kind == "stars":
            package = find_package(parsed.target_id)
            if package is not None:
                self.store.credit_stars(target_id, package.total_stars)
                confirmation = (
                    f"✅ Payment successful!\n\nYou received: {package.total_stars} ⭐ Stars\n\n"
                    f"Open the game to use your stars!"
                )
            else:
                logger.error(f"Paid for unknown package {parsed.target_id} by user {target_id}")
        elif parsed is not None and parsed.kind == "item":
            self.store.grant_item(target_id, parsed.target_id)
            confirmation = "✅ Payment successful!\n\nYour item is waiting for you in the game."

        logger.info(
            f"Payment received: user_id={target_id}, amount={payment.total_amount} "
            f"{payment.currency}, item={payment.invoice_payload}"
        )
        record_custom_event("StarsPayment", {
            "userId": target_id,
            "amount": payment.total_amount,
            "currency": payment.currency,
            "item": payment.invoice_payload,
        })

        # Payment data must survive a crash before the next periodic flush
        if self.persistence is not None:
            self.persistence.flush(reason="payment")

        if confirmation:
            await self.telegram.send_message(payer.id, confirmation)

        if self.settings.admin_telegram_id:
            lines = ["💰 New Payment!", "", f"👤 {name}"]
            if payer.username:
                lines.append(f"@{payer.username}")
            lines.append(f"💵 {payment.total_amount} {payment.currency}")
            lines.append(f"📦 {payment.invoice_payload}")
            await self.telegram.send_message(self.settings.admin_telegram_id, "\n".join(lines))

    async def handle_start(self, message: TelegramMessage, text: str):
        sender = message.from_user
        chat_id = message.chat.id if message.chat else (sender.id if sender else None)
        if chat_id is None:
            return

        param = text[len("/start"):].strip()
        if sender is not None and param.startswith(REFERRAL_PREFIX):
            referrer_id = param[len(REFERRAL_PREFIX):]
            user_id = str(sender.id)
            if referrer_id and referrer_id != user_id:
                name = display_name(user_id, sender.username, sender.first_name, sender.last_name)
                self.store.apply_referral(user_id, referrer_id, name)
                logger.info(f"Referral via /start: user_id={user_id}, referrer_id={referrer_id}")

        first_name = sender.first_name if sender and sender.first_name else "Player"
        await self.telegram.send_message(
            chat_id,
            f"🍉 Welcome to Fruit Merge, {first_name}!\n\n"
            f"Drop and merge fruits to score high!\n\n"
            f"Tap the button below to play:",
            play_button="🎮 Play Now",
        )

    async def handle_stats(self, message: TelegramMessage):
        sender = message.from_user
        admin_id = self.settings.admin_telegram_id
        if not admin_id or sender is None or str(sender.id) != admin_id:
            return

        self.store.sweep_offline()
        counters = self.store.counters()
        chat_id = message.chat.id if message.chat else sender.id
        await self.telegram.send_message(
            chat_id,
            f"📊 Fruit Merge Stats\n\n"
            f"👥 Online: {counters['onlineUsers']}\n"
            f"👤 Total Users: {counters['totalUsers']}\n"
            f"🎮 Games Played: {counters['totalGamesPlayed']}\n"
            f"💰 Revenue: {counters['totalRevenue']} XTR\n"
            f"💳 Payments: {counters['totalPayments']}\n"
            f"🤝 Referrals: {counters['totalReferrals']}",
        )
