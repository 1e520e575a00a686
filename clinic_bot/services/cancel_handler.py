"""
Appointment cancellation: awaiting_selection → awaiting_confirm → idle.
"""
from enum import Enum
from sqlalchemy.orm import Session
from clinic_bot.core.constants import Action, Flow
from clinic_bot.core.state_manager import state_manager
from clinic_bot.models.appointment import AppointmentStatus
from clinic_bot.models.conversation import WhatsAppConversation
from clinic_bot.models.schemas import CancelContext
from clinic_bot.services.appointment_service import appointment_service
from clinic_bot.services.messages import BotMessages
from clinic_bot.services.messenger import Messenger
from clinic_bot.services.notification_scheduler import notification_scheduler
from clinic_bot.services.selection import appointment_choice, appointment_sections, is_confirmed, resolve_selection
from clinic_bot.services.user_service import user_service
import logging

logger = logging.getLogger(__name__)

ROW_PREFIX = "cancel_"

CANCEL_BUTTONS = [
    {"id": Action.CONFIRM_YES.value, "title": "✅ Yes, Cancel"},
    {"id": Action.CONFIRM_NO.value, "title": "❌ No, Keep It"},
]


class CancelSteps(str, Enum):
    AWAITING_SELECTION = "awaiting_selection"
    AWAITING_CONFIRM = "awaiting_confirm"


async def start_cancel_flow(conversation: WhatsAppConversation, db: Session):
    messenger = Messenger(conversation, db)
    user = user_service.find_for_conversation(conversation, db)

    if not user:
        await messenger.text(BotMessages.no_account())
        state_manager.reset(conversation, db)
        return

    appointments = appointment_service.list_for_patient(user.id, db, AppointmentStatus.ACTIVE)
    if not appointments:
        await messenger.text(BotMessages.no_active_appointments("cancel"))
        state_manager.reset(conversation, db)
        return

    ctx = CancelContext(user_id=str(user.id), appointments=[appointment_choice(a) for a in appointments])
    state_manager.update(
        conversation, db,
        flow=Flow.CANCEL.value,
        current_step=CancelSteps.AWAITING_SELECTION.value,
        context=ctx.dump(),
    )
    await messenger.list(
        BotMessages.cancel_select_appointment(),
        "Select Appointment",
        appointment_sections(appointments, ROW_PREFIX),
        header="Cancel Appointment",
    )


async def handle_cancel_step(conversation: WhatsAppConversation, text: str, interactive: bool, db: Session):
    messenger = Messenger(conversation, db)
    handler = STEP_HANDLERS.get(conversation.current_step)
    if handler is None:
        state_manager.reset(conversation, db)
        await messenger.text(BotMessages.start_over())
        return

    ctx = CancelContext.load(conversation.context)
    await handler(conversation, ctx, text, interactive, messenger, db)


async def _handle_selection(conversation, ctx: CancelContext, text: str, interactive: bool, messenger: Messenger, db: Session):
    choice = resolve_selection(text, interactive, ROW_PREFIX, ctx)
    if not choice:
        await messenger.text(BotMessages.invalid_input("Please select an appointment from the list."))
        return

    state_manager.merge_context(
        conversation,
        {"selected_appointment_id": choice.id},
        db,
        current_step=CancelSteps.AWAITING_CONFIRM.value,
    )
    await messenger.confirm(BotMessages.cancel_confirmation(choice.formatted_date), CANCEL_BUTTONS)


async def _handle_confirmation(conversation, ctx: CancelContext, text: str, interactive: bool, messenger: Messenger, db: Session):
    if not is_confirmed(text, interactive):
        await messenger.text(BotMessages.cancel_aborted())
        state_manager.reset(conversation, db)
        return

    appointment_id = ctx.selected_appointment_id
    try:
        appointment_service.cancel(appointment_id, db)
        notification_scheduler.cancel_pending(appointment_id, db)
    except Exception as e:
        logger.error(f"❌ Cancel failed for appointment {appointment_id}: {e}", exc_info=True)
        db.rollback()
        await messenger.text(BotMessages.cancel_failed())
        state_manager.reset(conversation, db)
        return

    await messenger.text(BotMessages.cancel_success())
    messenger.note(f"Cancelled appointment: {appointment_id}")
    state_manager.reset(conversation, db)


STEP_HANDLERS = {
    CancelSteps.AWAITING_SELECTION.value: _handle_selection,
    CancelSteps.AWAITING_CONFIRM.value: _handle_confirmation,
}
