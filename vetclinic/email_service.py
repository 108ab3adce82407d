"""
Email notifications to clients about receipt and document reviews
"""
import os
import logging
from typing import Optional
from fastapi_mail import FastMail, MessageSchema, ConnectionConfig, MessageType
from pydantic import EmailStr
from jinja2 import Environment, select_autoescape
from dotenv import load_dotenv

from .events import DocumentDecided, Event, ReceiptDecided

load_dotenv()

logger = logging.getLogger(__name__)

CLINIC_NAME = os.getenv("CLINIC_NAME", "Vet Clinic")

# Email configuration
conf = ConnectionConfig(
    MAIL_USERNAME=os.getenv("MAIL_USERNAME", ""),
    MAIL_PASSWORD=os.getenv("MAIL_PASSWORD", ""),
    MAIL_FROM=os.getenv("MAIL_FROM", "noreply@vetclinic.com"),
    MAIL_PORT=int(os.getenv("MAIL_PORT", "587")),
    MAIL_SERVER=os.getenv("MAIL_SERVER", "smtp.gmail.com"),
    MAIL_FROM_NAME=os.getenv("MAIL_FROM_NAME", CLINIC_NAME),
    MAIL_STARTTLS=True,
    MAIL_SSL_TLS=False,
    USE_CREDENTIALS=True,
    VALIDATE_CERTS=True,
)

_templates = Environment(autoescape=select_autoescape(default=True, default_for_string=True))

NOTIFICATION_TEMPLATE = _templates.from_string("""
<!DOCTYPE html>
<html>
<head>
    <meta charset="UTF-8">
    <style>
        body { font-family: Arial, sans-serif; line-height: 1.6; color: #333; }
        .container { max-width: 600px; margin: 0 auto; padding: 20px; background: #f4f7f6; }
        .content { background: white; padding: 40px; border-radius: 10px; }
        h1 { color: {{ colour }}; }
        .button { display: inline-block; padding: 15px 30px; background: #2a9d8f; color: white;
                  text-decoration: none; border-radius: 5px; margin: 20px 0; }
        .footer { text-align: center; margin-top: 20px; color: #888; font-size: 12px; }
    </style>
</head>
<body>
    <div class="container">
        <div class="content">
            <h1>{{ title }}</h1>
            <p>Hi {{ name }},</p>
            <p>{{ message }}</p>
            {% if reason %}<p><strong>Reason:</strong> {{ reason }}</p>{% endif %}
            <a href="{{ action_url }}" class="button">View reservation</a>
        </div>
        <div class="footer">
            <p>{{ clinic }}</p>
        </div>
    </div>
</body>
</html>
""")

_DOCUMENT_NAMES = {"id": "ID document", "signature": "signature"}


def mail_enabled() -> bool:
    return bool(conf.MAIL_USERNAME)


def render_notification(title: str, name: str, message: str, reservation_id: int,
                        reason: Optional[str] = None, success: bool = True) -> str:
    frontend_url = os.getenv("FRONTEND_URL", "http://localhost:8000")
    return NOTIFICATION_TEMPLATE.render(
        title=title,
        name=name,
        message=message,
        reason=reason,
        colour="#2a9d8f" if success else "#e63946",
        action_url=f"{frontend_url}/appointments/{reservation_id}",
        clinic=CLINIC_NAME,
    )


async def send_notification_email(email: EmailStr, subject: str, html_content: str):
    """Send one HTML email"""
    message = MessageSchema(
        subject=f"{subject} - {CLINIC_NAME}",
        recipients=[email],
        body=html_content,
        subtype=MessageType.html
    )

    fm = FastMail(conf)
    await fm.send_message(message)


def compose(event: Event):
    """Subject and body for an event, or None when the client need not hear about it"""
    if isinstance(event, ReceiptDecided):
        if event.approved:
            title = "Payment Verified"
            message = "Your payment has been verified and your reservation is now marked as paid."
        else:
            title = "Receipt Rejected"
            message = "Your payment receipt was rejected. Please upload a valid receipt."
        return title, render_notification(title, event.client_name, message, event.reservation_id,
                                           success=event.approved)

    if isinstance(event, DocumentDecided):
        document = _DOCUMENT_NAMES.get(event.subject, event.subject)
        if event.approved and event.all_documents_verified:
            title = "All Documents Verified"
            message = "All your boarding documents have been verified! Your reservation is ready to proceed."
        elif event.approved:
            title = f"{document[:1].upper()}{document[1:]} Verified"
            message = f"Your {document} has been verified for your boarding reservation."
        else:
            title = "Boarding Reservation Rejected"
            message = (f"Your {document} was rejected and your reservation has been marked as rejected. "
                       f"Please contact us to book again with a corrected document.")
        return title, render_notification(title, event.client_name, message, event.reservation_id,
                                           reason=event.rejection_reason, success=event.approved)

    return None


async def handle(event: Event) -> bool:
    """Event handler registered with the background dispatcher"""
    composed = compose(event)
    if composed is None:
        return False

    email = getattr(event, "client_email", None)
    if not email:
        logger.debug(f"No email on file for reservation #{event.reservation_id}")
        return False
    if not mail_enabled():
        logger.warning("⚠️ MAIL_USERNAME is not set, client emails disabled")
        return False

    subject, html_content = composed
    try:
        await send_notification_email(email, subject, html_content)
    except Exception as e:
        # a failed email must not surface as a failed review
        logger.error(f"❌ Could not email client about reservation #{event.reservation_id}: {e}")
        return False
    logger.info(f"📧 {subject} email sent for reservation #{event.reservation_id}")
    return True
