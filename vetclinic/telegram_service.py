"""
Telegram notifications for clinic staff
Sends admins a message for new bookings, uploads and status changes
"""
import os
import logging
from html import escape
from typing import List
from telegram import Bot
from telegram.error import TelegramError
from dotenv import load_dotenv

from .events import (
    BoardingReservationCreated, DocumentAttached, DocumentDecided, Event,
    ReceiptDecided, ReservationCreated, ReservationDeleted, StatusChanged,
)

load_dotenv()

# Logging setup
logging.basicConfig(level=os.getenv("LOG_LEVEL", "INFO"))
logger = logging.getLogger(__name__)

CLINIC_NAME = os.getenv("CLINIC_NAME", "Vet Clinic")

class TelegramNotifier:
    """Sends Telegram notifications to clinic admins"""

    def __init__(self):
        self.bot_token = os.getenv("TELEGRAM_BOT_TOKEN")
        self.admin_chat_ids = self._parse_chat_ids()
        self.bot = None

        if self.bot_token:
            try:
                self.bot = Bot(token=self.bot_token)
                logger.info("✅ Telegram bot initialised")
            except Exception as e:
                logger.error(f"❌ Could not initialise Telegram bot: {e}")
        else:
            logger.warning("⚠️ TELEGRAM_BOT_TOKEN is not set, admin notifications disabled")

    def _parse_chat_ids(self) -> List[int]:
        """Parse chat ids from the environment"""
        chat_ids_str = os.getenv("TELEGRAM_ADMIN_CHAT_IDS", "")
        if not chat_ids_str:
            return []

        # Several chat ids separated by commas
        return [int(chat_id.strip()) for chat_id in chat_ids_str.split(",") if chat_id.strip()]

    async def _broadcast(self, message: str) -> bool:
        if not self.bot or not self.admin_chat_ids:
            logger.debug("Telegram bot not configured or no admins to notify")
            return False

        success_count = 0
        for chat_id in self.admin_chat_ids:
            try:
                await self.bot.send_message(
                    chat_id=chat_id,
                    text=message,
                    parse_mode="HTML"
                )
                success_count += 1
                logger.info(f"✅ Notification sent to admin {chat_id}")
            except TelegramError as e:
                logger.error(f"❌ Could not notify admin {chat_id}: {e}")

        return success_count > 0

    async def handle(self, event: Event) -> bool:
        """Event handler registered with the background dispatcher"""
        if isinstance(event, ReservationCreated):
            return await self.send_new_reservation_notification(event)
        if isinstance(event, BoardingReservationCreated):
            return await self.send_boarding_contract_notification(event)
        if isinstance(event, DocumentAttached):
            return await self.send_document_uploaded_notification(event)
        if isinstance(event, StatusChanged):
            return await self.send_status_changed_notification(event)
        if isinstance(event, ReservationDeleted):
            return await self.send_reservation_deleted_notification(event)
        if isinstance(event, (ReceiptDecided, DocumentDecided)):
            # the reviewing admin already knows; the client gets an email
            return False
        return False

    async def send_new_reservation_notification(self, event: ReservationCreated) -> bool:
        """Notify admins about a new reservation"""
        pets = escape(", ".join(event.pet_names))
        message = f"""
🐾 <b>New reservation</b>

🩺 <b>Service:</b> {escape(event.service_name)}
📅 <b>Starts:</b> {event.starts_at.strftime('%d %B %Y %H:%M')}
🐶 <b>Pets:</b> {pets}
💰 <b>Total:</b> {event.total_amount}
📌 <b>Status:</b> {event.status}

👤 <b>Client:</b> {escape(event.client_name)}
📞 <b>Phone:</b> <code>{escape(event.client_phone)}</code>

🆔 Reservation #{event.reservation_id}

🏥 <b>{escape(CLINIC_NAME)}</b>
"""
        return await self._broadcast(message)

    async def send_boarding_contract_notification(self, event: BoardingReservationCreated) -> bool:
        """Boarding stays need a signed contract; remind admins to issue it"""
        message = f"""
🏠 <b>Boarding reservation: contract needed</b>

🔢 <b>Cage:</b> {escape(event.cage_number)}
📅 <b>Stay:</b> {event.check_in_date.strftime('%d %b %Y')} - {event.check_out_date.strftime('%d %b %Y')}
🐶 <b>Pets:</b> {escape(", ".join(event.pet_names))}
👤 <b>Client:</b> {escape(event.client_name)}

🆔 Reservation #{event.reservation_id}
"""
        return await self._broadcast(message)

    async def send_document_uploaded_notification(self, event: DocumentAttached) -> bool:
        labels = {"receipt": "payment receipt", "id": "ID document", "signature": "signature"}
        message = f"""
📎 <b>New {labels.get(event.subject, event.subject)} uploaded</b>

🆔 Reservation #{event.reservation_id}
🔗 {escape(event.url)}

❗️ Please review it.
"""
        return await self._broadcast(message)

    async def send_status_changed_notification(self, event: StatusChanged) -> bool:
        message = f"""
🔄 <b>Reservation status changed</b>

🆔 Reservation #{event.reservation_id}
{event.old_status} → <b>{event.new_status}</b>
👤 By: {escape(event.actor)}
"""
        return await self._broadcast(message)

    async def send_reservation_deleted_notification(self, event: ReservationDeleted) -> bool:
        """Notify admins about a deleted reservation"""
        message = f"""
❌ <b>Reservation deleted</b>

👤 <b>Client:</b> {escape(event.client_name)}
🆔 Reservation #{event.reservation_id}
🗑 By: {escape(event.actor)}
"""
        return await self._broadcast(message)

    async def send_test_message(self, chat_id: int) -> bool:
        """Send a test message"""

        if not self.bot:
            return False

        message = f"""
✅ <b>Test message</b>

If you can read this, the Telegram bot is configured correctly!

🏥 <b>{escape(CLINIC_NAME)}</b>
"""

        try:
            await self.bot.send_message(
                chat_id=chat_id,
                text=message,
                parse_mode="HTML"
            )
            logger.info(f"✅ Test message sent to chat {chat_id}")
            return True
        except TelegramError as e:
            logger.error(f"❌ Could not send test message: {e}")
            return False

# Global instance
telegram_notifier = TelegramNotifier()
