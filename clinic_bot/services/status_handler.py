"""Appointment status check. Single turn once the patient is known."""
from enum import Enum
from sqlalchemy.orm import Session
from clinic_bot.core.clinic_time import format_datetime
from clinic_bot.core.constants import Flow
from clinic_bot.core.state_manager import state_manager
from clinic_bot.core.utils import is_valid_email
from clinic_bot.models.conversation import WhatsAppConversation
from clinic_bot.models.schemas import StatusContext
from clinic_bot.models.user import User
from clinic_bot.services.appointment_service import appointment_service
from clinic_bot.services.messages import BotMessages
from clinic_bot.services.messenger import Messenger
from clinic_bot.services.user_service import user_service
import logging

logger = logging.getLogger(__name__)


class StatusSteps(str, Enum):
    AWAITING_EMAIL = "awaiting_email"


async def start_status_flow(conversation: WhatsAppConversation, db: Session):
    messenger = Messenger(conversation, db)
    user = user_service.find_for_conversation(conversation, db)

    if not user:
        # Recover the account through the email used at booking
        state_manager.update(
            conversation, db,
            flow=Flow.STATUS.value,
            current_step=StatusSteps.AWAITING_EMAIL.value,
            context=StatusContext().dump(),
        )
        await messenger.text(BotMessages.ask_status_email())
        return

    await show_appointment_status(conversation, user, messenger, db)


async def handle_status_step(conversation: WhatsAppConversation, text: str, interactive: bool, db: Session):
    messenger = Messenger(conversation, db)
    handler = STEP_HANDLERS.get(conversation.current_step)
    if handler is None:
        state_manager.reset(conversation, db)
        await messenger.text(BotMessages.start_over())
        return
    await handler(conversation, text, messenger, db)


async def _handle_email(conversation: WhatsAppConversation, text: str, messenger: Messenger, db: Session):
    email = text.strip().lower()
    if not is_valid_email(email):
        await messenger.text(BotMessages.invalid_input("Please enter a valid email address."))
        return

    user = user_service.find_by_email(email, db)
    if not user:
        await messenger.text(BotMessages.no_account_for_email())
        state_manager.reset(conversation, db)
        return

    await show_appointment_status(conversation, user, messenger, db)


async def show_appointment_status(conversation: WhatsAppConversation, user: User, messenger: Messenger, db: Session):
    """Send the patient's active appointments and return to idle"""
    appointments = appointment_service.list_for_patient(user.id, db)

    report = [
        {
            "status": appointment.status,
            "formatted_date": format_datetime(appointment.date),
            "doctor_name": appointment.doctor_name,
            "reason": appointment.reason_for_visit,
        }
        for appointment in appointments
    ]

    await messenger.text(BotMessages.status_report(report))
    messenger.note(f"Status check: {len(appointments)} appointments")
    state_manager.reset(conversation, db)


STEP_HANDLERS = {
    StatusSteps.AWAITING_EMAIL.value: _handle_email,
}
