"""
Appointment reschedule:
awaiting_selection → awaiting_date → awaiting_time → awaiting_confirm → idle.

Only pending or approved appointments can be moved here. The new date must
be today or later in IST and not a Sunday; the booking horizon does not
apply.
"""
from datetime import date
from enum import Enum
from sqlalchemy.orm import Session
from clinic_bot.core.clinic_time import parse_date, ist_to_utc, format_long_date
from clinic_bot.core.constants import Flow, find_slot
from clinic_bot.core.state_manager import state_manager
from clinic_bot.core.utils import run_best_effort
from clinic_bot.models.appointment import AppointmentStatus
from clinic_bot.models.conversation import WhatsAppConversation
from clinic_bot.models.schemas import RescheduleContext
from clinic_bot.services.appointment_service import appointment_service
from clinic_bot.services.messages import BotMessages
from clinic_bot.services.messenger import Messenger
from clinic_bot.services.notification_scheduler import notification_scheduler
from clinic_bot.services.selection import (
    appointment_choice, appointment_sections, is_confirmed, resolve_selection, time_slot_sections
)
from clinic_bot.services.user_service import user_service
import logging

logger = logging.getLogger(__name__)

ROW_PREFIX = "resched_"
SLOT_PREFIX = "rs_"


class RescheduleSteps(str, Enum):
    AWAITING_SELECTION = "awaiting_selection"
    AWAITING_DATE = "awaiting_date"
    AWAITING_TIME = "awaiting_time"
    AWAITING_CONFIRM = "awaiting_confirm"


async def start_reschedule_flow(conversation: WhatsAppConversation, db: Session):
    messenger = Messenger(conversation, db)
    user = user_service.find_for_conversation(conversation, db)

    if not user:
        await messenger.text(BotMessages.no_account())
        state_manager.reset(conversation, db)
        return

    appointments = appointment_service.list_for_patient(user.id, db, AppointmentStatus.RESCHEDULABLE)
    if not appointments:
        await messenger.text(BotMessages.no_active_appointments("reschedule"))
        state_manager.reset(conversation, db)
        return

    ctx = RescheduleContext(user_id=str(user.id), appointments=[appointment_choice(a) for a in appointments])
    state_manager.update(
        conversation, db,
        flow=Flow.RESCHEDULE.value,
        current_step=RescheduleSteps.AWAITING_SELECTION.value,
        context=ctx.dump(),
    )
    await messenger.list(
        BotMessages.reschedule_select_appointment(),
        "Select Appointment",
        appointment_sections(appointments, ROW_PREFIX),
        header="Reschedule",
    )


async def handle_reschedule_step(conversation: WhatsAppConversation, text: str, interactive: bool, db: Session):
    messenger = Messenger(conversation, db)
    handler = STEP_HANDLERS.get(conversation.current_step)
    if handler is None:
        state_manager.reset(conversation, db)
        await messenger.text(BotMessages.start_over())
        return

    ctx = RescheduleContext.load(conversation.context)
    await handler(conversation, ctx, text, interactive, messenger, db)


async def _handle_selection(conversation, ctx: RescheduleContext, text: str, interactive: bool, messenger: Messenger, db: Session):
    choice = resolve_selection(text, interactive, ROW_PREFIX, ctx)
    if not choice:
        await messenger.text(BotMessages.invalid_input("Please select an appointment from the list."))
        return

    state_manager.merge_context(
        conversation,
        {"selected_appointment_id": choice.id},
        db,
        current_step=RescheduleSteps.AWAITING_DATE.value,
    )
    await messenger.text(BotMessages.ask_date())


async def _handle_date(conversation, ctx: RescheduleContext, text: str, interactive: bool, messenger: Messenger, db: Session):
    chosen = parse_date(text)
    if not chosen:
        await messenger.text(BotMessages.invalid_reschedule_date())
        return

    formatted = format_long_date(chosen)
    state_manager.merge_context(
        conversation,
        {"new_date": chosen.isoformat(), "new_formatted_date": formatted},
        db,
        current_step=RescheduleSteps.AWAITING_TIME.value,
    )
    await messenger.list(
        BotMessages.reschedule_slots(formatted),
        "View Time Slots",
        time_slot_sections(id_prefix=SLOT_PREFIX),
        header="Select Time",
    )


async def _handle_time(conversation, ctx: RescheduleContext, text: str, interactive: bool, messenger: Messenger, db: Session):
    slot = find_slot(text, interactive=interactive, id_prefix=SLOT_PREFIX)
    if not slot:
        await messenger.text(BotMessages.invalid_input("Please select a valid time slot."))
        return

    state_manager.merge_context(
        conversation,
        {"new_time": slot.value, "new_formatted_time": slot.title},
        db,
        current_step=RescheduleSteps.AWAITING_CONFIRM.value,
    )
    await messenger.confirm(BotMessages.reschedule_confirmation(ctx.new_formatted_date, slot.title))


async def _handle_confirmation(conversation, ctx: RescheduleContext, text: str, interactive: bool, messenger: Messenger, db: Session):
    if not is_confirmed(text, interactive):
        await messenger.text(BotMessages.reschedule_aborted())
        state_manager.reset(conversation, db)
        return

    appointment_id = ctx.selected_appointment_id
    try:
        new_date = ist_to_utc(date.fromisoformat(ctx.new_date), ctx.new_time)
        appointment = appointment_service.reschedule(appointment_id, new_date, db)
        notification_scheduler.cancel_pending(appointment_id, db)
    except Exception as e:
        logger.error(f"❌ Reschedule failed for appointment {appointment_id}: {e}", exc_info=True)
        db.rollback()
        await messenger.text(BotMessages.reschedule_failed())
        state_manager.reset(conversation, db)
        return

    await messenger.text(BotMessages.reschedule_success(ctx.new_formatted_date, ctx.new_formatted_time))

    await run_best_effort(
        "Reminder scheduling",
        notification_scheduler.schedule_appointment_reminders,
        conversation.phone,
        appointment.patient_id,
        appointment.id,
        new_date,
        appointment.name,
        db,
        db=db,
        doctor_name=appointment.doctor_name,
    )

    messenger.note(f"Rescheduled appointment: {appointment_id}")
    state_manager.reset(conversation, db)


STEP_HANDLERS = {
    RescheduleSteps.AWAITING_SELECTION.value: _handle_selection,
    RescheduleSteps.AWAITING_DATE.value: _handle_date,
    RescheduleSteps.AWAITING_TIME.value: _handle_time,
    RescheduleSteps.AWAITING_CONFIRM.value: _handle_confirmation,
}
