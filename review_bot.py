"""
Telegram bot for clinic staff to review payment receipts and boarding documents
Uses python-telegram-bot library (same as telegram_service)
"""
import os
import logging
from html import escape
from telegram import Update, InlineKeyboardButton, InlineKeyboardMarkup
from telegram.ext import Application, CommandHandler, CallbackQueryHandler, MessageHandler, filters, ContextTypes
from dotenv import load_dotenv

from vetclinic import email_service, verification
from vetclinic.database import SessionLocal, init_db
from vetclinic.errors import BookingError
from vetclinic.events import EventCollector
from vetclinic.models import DocumentSubject, Reservation, Verification, TERMINAL_STATUSES

load_dotenv()

logging.basicConfig(level=os.getenv("LOG_LEVEL", "INFO"))
logger = logging.getLogger(__name__)

# Bot setup
BOT_TOKEN = os.getenv("TELEGRAM_BOT_TOKEN")

# Admin IDs
ADMIN_IDS_STR = os.getenv("TELEGRAM_ADMIN_CHAT_IDS", "")
ADMIN_IDS = [int(x.strip()) for x in ADMIN_IDS_STR.split(",") if x.strip()]

# How many reservations /pending and /documents show at once
PAGE_SIZE = 10

SUBJECT_LABELS = {"id": "ID document", "signature": "signature"}


def actor_for(update: Update) -> str:
    user = update.effective_user
    return f"telegram:{user.username or user.id}"


def is_admin(update: Update) -> bool:
    return update.effective_user is not None and update.effective_user.id in ADMIN_IDS


def describe(reservation: Reservation) -> str:
    pets = ", ".join(escape(pet.name) for pet in reservation.pets)
    if reservation.is_boarding:
        when = f"🏠 Cage {escape(reservation.cage.cage_number)}: {reservation.check_in_date} → {reservation.check_out_date}"
    else:
        when = f"📅 {reservation.appointment_date} {reservation.appointment_time.strftime('%H:%M')}"
    return (
        f"🆔 <b>Reservation #{reservation.id}</b> ({reservation.status.value})\n"
        f"👤 {escape(reservation.client.name)} · 📞 {escape(reservation.client.phone)}\n"
        f"🐶 {pets}\n"
        f"{when}\n"
        f"💰 {reservation.total_amount} via {reservation.payment_method.value}"
    )


async def notify_clients(decided: EventCollector):
    """Email clients about decisions, as the web API does after a review"""
    for event in decided.events:
        await email_service.handle(event)


async def start(update: Update, context: ContextTypes.DEFAULT_TYPE):
    """Handle /start command"""
    if not is_admin(update):
        await update.message.reply_text("This bot is for clinic staff only.")
        return

    await update.message.reply_text(
        "👋 Hello!\n\n"
        "Commands:\n"
        "/pending - receipts waiting for review\n"
        "/documents - boarding IDs and signatures waiting for review\n"
        "/help - this message"
    )


async def pending_receipts(update: Update, context: ContextTypes.DEFAULT_TYPE):
    """List receipts nobody has reviewed yet"""
    if not is_admin(update):
        return

    db = SessionLocal()
    try:
        waiting = db.query(Reservation).filter(
            Reservation.receipt_url.isnot(None),
            Reservation.receipt_verification == Verification.UNREVIEWED,
            Reservation.status.notin_(list(TERMINAL_STATUSES)),
        ).order_by(Reservation.created_at).limit(PAGE_SIZE).all()

        if not waiting:
            await update.message.reply_text("✅ No receipts waiting for review.")
            return

        for reservation in waiting:
            keyboard = [[
                InlineKeyboardButton("✅ Approve", callback_data=f"receipt:approve:{reservation.id}"),
                InlineKeyboardButton("❌ Reject", callback_data=f"receipt:reject:{reservation.id}"),
            ]]
            await update.message.reply_text(
                f"{describe(reservation)}\n🧾 {escape(reservation.receipt_url)}",
                reply_markup=InlineKeyboardMarkup(keyboard),
                parse_mode='HTML'
            )
    finally:
        db.close()


async def pending_documents(update: Update, context: ContextTypes.DEFAULT_TYPE):
    """List boarding documents nobody has reviewed yet"""
    if not is_admin(update):
        return

    db = SessionLocal()
    try:
        boarding = db.query(Reservation).filter(
            Reservation.cage_id.isnot(None),
            Reservation.status.notin_(list(TERMINAL_STATUSES)),
        ).order_by(Reservation.check_in_date).all()

        shown = 0
        for reservation in boarding:
            for subject, url, state in (
                ("id", reservation.id_document_url, reservation.id_verification),
                ("signature", reservation.signature_url, reservation.signature_verification),
            ):
                if not url or state != Verification.UNREVIEWED:
                    continue
                keyboard = [[
                    InlineKeyboardButton("✅ Approve", callback_data=f"{subject}:approve:{reservation.id}"),
                    InlineKeyboardButton("❌ Reject", callback_data=f"{subject}:reject:{reservation.id}"),
                ]]
                await update.message.reply_text(
                    f"{describe(reservation)}\n📎 {SUBJECT_LABELS[subject]}: {escape(url)}",
                    reply_markup=InlineKeyboardMarkup(keyboard),
                    parse_mode='HTML'
                )
                shown += 1
                if shown >= PAGE_SIZE:
                    return

        if not shown:
            await update.message.reply_text("✅ No boarding documents waiting for review.")
    finally:
        db.close()


async def button_callback(update: Update, context: ContextTypes.DEFAULT_TYPE):
    """Handle button callbacks"""
    query = update.callback_query

    if not is_admin(update):
        await query.answer("Not allowed", show_alert=True)
        return

    subject, action, reservation_id = query.data.split(":", 2)
    reservation_id = int(reservation_id)

    if subject == "receipt":
        await decide_receipt(update, context, reservation_id, approved=(action == "approve"))
    elif action == "approve":
        await decide_document(update, context, reservation_id, subject, approved=True)
    else:
        # document rejection needs a reason; the next text message provides it
        context.user_data["pending_rejection"] = (reservation_id, subject)
        await query.answer()
        await context.bot.send_message(
            chat_id=query.message.chat_id,
            text=f"✍️ Why is the {SUBJECT_LABELS[subject]} for reservation #{reservation_id} rejected?\n"
                 f"Reply with the reason, or /cancel."
        )


async def decide_receipt(update: Update, context: ContextTypes.DEFAULT_TYPE, reservation_id: int, approved: bool):
    query = update.callback_query
    db = SessionLocal()
    decided = EventCollector()

    try:
        reservation = verification.decide_receipt(
            db, reservation_id, approved, actor_for(update), emit=decided,
        )
        await notify_clients(decided)
        await query.answer("Receipt approved" if approved else "Receipt rejected")
        await query.edit_message_reply_markup(reply_markup=None)
        await context.bot.send_message(
            chat_id=query.message.chat_id,
            text=f"{'✅' if approved else '❌'} Receipt for reservation #{reservation.id} "
                 f"{'approved' if approved else 'rejected'}. Status: <b>{reservation.status.value}</b>",
            parse_mode='HTML'
        )
    except BookingError as e:
        await query.answer(f"⚠️ {e.message}", show_alert=True)
    finally:
        db.close()


async def decide_document(update: Update, context: ContextTypes.DEFAULT_TYPE, reservation_id: int,
                          subject: str, approved: bool, reason: str = None):
    db = SessionLocal()
    chat_id = update.effective_chat.id
    decided = EventCollector()

    try:
        reservation = verification.decide_document(
            db, reservation_id, DocumentSubject(subject), approved,
            rejection_reason=reason, actor=actor_for(update), emit=decided,
        )
        await notify_clients(decided)
        if update.callback_query:
            await update.callback_query.answer("Approved")
            await update.callback_query.edit_message_reply_markup(reply_markup=None)

        text = (
            f"✅ {SUBJECT_LABELS[subject]} for reservation #{reservation.id} approved."
            if approved else
            f"❌ {SUBJECT_LABELS[subject]} for reservation #{reservation.id} rejected ({escape(reason)}). "
            f"Reservation status: <b>{reservation.status.value}</b>"
        )
        if approved and verification.documents_verified(reservation):
            text += "\n📄 All boarding documents verified."
        await context.bot.send_message(chat_id=chat_id, text=text, parse_mode='HTML')
    except BookingError as e:
        if update.callback_query:
            await update.callback_query.answer(f"⚠️ {e.message}", show_alert=True)
        else:
            await context.bot.send_message(chat_id=chat_id, text=f"⚠️ {e.message}")
    finally:
        db.close()


async def handle_rejection_reason(update: Update, context: ContextTypes.DEFAULT_TYPE):
    """Text following a Reject button is the rejection reason"""
    if not is_admin(update):
        return

    pending = context.user_data.pop("pending_rejection", None)
    if pending is None:
        await update.message.reply_text("ℹ️ Use /pending or /documents to review reservations.")
        return

    reservation_id, subject = pending
    await decide_document(update, context, reservation_id, subject, approved=False,
                          reason=update.message.text.strip())


async def cancel_command(update: Update, context: ContextTypes.DEFAULT_TYPE):
    if context.user_data.pop("pending_rejection", None) is not None:
        await update.message.reply_text("Rejection cancelled.")


async def help_command(update: Update, context: ContextTypes.DEFAULT_TYPE):
    """Help command"""
    await update.message.reply_text(
        "ℹ️ <b>Help</b>\n\n"
        "This bot lets clinic staff review what clients upload.\n\n"
        "<b>How it works:</b>\n"
        "1. /pending shows payment receipts waiting for review\n"
        "2. Approving a receipt marks the reservation as paid\n"
        "3. Rejecting it sends the reservation back to pending payment\n"
        "4. /documents shows boarding IDs and signatures\n"
        "5. Rejecting a document rejects the whole reservation and needs a reason",
        parse_mode='HTML'
    )


def main():
    """Run the bot"""
    if not BOT_TOKEN:
        raise ValueError("TELEGRAM_BOT_TOKEN not found!")

    init_db()

    # Create application
    application = Application.builder().token(BOT_TOKEN).build()

    # Add handlers
    application.add_handler(CommandHandler("start", start))
    application.add_handler(CommandHandler("help", help_command))
    application.add_handler(CommandHandler("pending", pending_receipts))
    application.add_handler(CommandHandler("documents", pending_documents))
    application.add_handler(CommandHandler("cancel", cancel_command))
    application.add_handler(CallbackQueryHandler(button_callback))
    application.add_handler(MessageHandler(filters.TEXT & ~filters.COMMAND, handle_rejection_reason))

    # Run bot
    logger.info(f"🤖 Review bot started, admin ids: {ADMIN_IDS}")
    application.run_polling(allowed_updates=Update.ALL_TYPES)


if __name__ == "__main__":
    main()
