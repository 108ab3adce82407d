from fastapi import BackgroundTasks

from .. import email_service
from ..events import BackgroundDispatcher
from ..telegram_service import telegram_notifier


def get_dispatcher(background_tasks: BackgroundTasks) -> BackgroundDispatcher:
    """Request-scoped event sink delivering to the notification subscribers"""
    return BackgroundDispatcher(
        background_tasks,
        handlers=[telegram_notifier.handle, email_service.handle],
    )
