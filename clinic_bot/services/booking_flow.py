"""
Appointment booking flow.

idle → awaiting_name → awaiting_email → awaiting_reason → awaiting_date
     → awaiting_time → awaiting_confirm → idle

Invalid input re-prompts and keeps the current step. A patient already
linked to an account with name and email starts at awaiting_reason.
"""
from datetime import date
from enum import Enum
from sqlalchemy.orm import Session
from clinic_bot.core.clinic_time import parse_date, ist_to_utc, format_long_date
from clinic_bot.core.config import settings
from clinic_bot.core.constants import Flow, find_slot
from clinic_bot.core.state_manager import state_manager
from clinic_bot.core.utils import is_valid_email, run_best_effort
from clinic_bot.models.conversation import WhatsAppConversation
from clinic_bot.models.schemas import BookingContext
from clinic_bot.services import email_service
from clinic_bot.services.appointment_service import appointment_service
from clinic_bot.services.messages import BotMessages
from clinic_bot.services.messenger import Messenger
from clinic_bot.services.notification_scheduler import notification_scheduler
from clinic_bot.services.selection import is_confirmed, is_declined, time_slot_sections
from clinic_bot.services.user_service import user_service
import logging

logger = logging.getLogger(__name__)


class BookingSteps(str, Enum):
    AWAITING_NAME = "awaiting_name"
    AWAITING_EMAIL = "awaiting_email"
    AWAITING_REASON = "awaiting_reason"
    AWAITING_DATE = "awaiting_date"
    AWAITING_TIME = "awaiting_time"
    AWAITING_CONFIRM = "awaiting_confirm"


CONFIRM_WORDS = ("yes", "y", "confirm", "ok", "sure")
DECLINE_WORDS = ("no", "n", "cancel", "stop")


async def start_booking_flow(conversation: WhatsAppConversation, db: Session):
    messenger = Messenger(conversation, db)

    user = user_service.get(conversation.user_id, db) if conversation.user_id else None
    if user and user.full_name and user.email:
        known = BookingContext(name=user.full_name, email=user.email)
        state_manager.update(
            conversation, db,
            flow=Flow.BOOKING.value,
            current_step=BookingSteps.AWAITING_REASON.value,
            context=known.dump(),
        )
        await messenger.text(BotMessages.welcome_back(user.full_name))
        return

    state_manager.update(
        conversation, db,
        flow=Flow.BOOKING.value,
        current_step=BookingSteps.AWAITING_NAME.value,
        context={},
    )
    await messenger.text(BotMessages.ask_name())


async def handle_booking_step(conversation: WhatsAppConversation, text: str, interactive: bool, db: Session):
    """Dispatch the inbound message to the handler of the current step"""
    messenger = Messenger(conversation, db)
    handler = STEP_HANDLERS.get(conversation.current_step)
    if handler is None:
        logger.warning(f"Unknown booking step for {conversation.phone}: {conversation.current_step}")
        state_manager.reset(conversation, db)
        await messenger.text(BotMessages.start_over())
        return

    ctx = BookingContext.load(conversation.context)
    await handler(conversation, ctx, text, interactive, messenger, db)


async def _handle_name(conversation, ctx: BookingContext, text: str, interactive: bool, messenger: Messenger, db: Session):
    name = text.strip()
    if not 2 <= len(name) <= 100:
        await messenger.text(BotMessages.invalid_input("Please enter a valid full name (2–100 characters)."))
        return

    state_manager.merge_context(conversation, {"name": name}, db, current_step=BookingSteps.AWAITING_EMAIL.value)
    await messenger.text(BotMessages.ask_email(name))


async def _handle_email(conversation, ctx: BookingContext, text: str, interactive: bool, messenger: Messenger, db: Session):
    email = text.strip().lower()
    if not is_valid_email(email):
        await messenger.text(BotMessages.invalid_input(
            "Please enter a valid email address.\n\n_Example: rahul@email.com_"
        ))
        return

    # Known account: link now, the typed name/email stay in the context
    existing = user_service.find_by_email(email, db)
    if existing:
        state_manager.link_to_user(conversation, existing.id, db)

    state_manager.merge_context(conversation, {"email": email}, db, current_step=BookingSteps.AWAITING_REASON.value)
    await messenger.text(BotMessages.ask_reason())


async def _handle_reason(conversation, ctx: BookingContext, text: str, interactive: bool, messenger: Messenger, db: Session):
    reason = text.strip()
    if len(reason) < 2:
        await messenger.text(BotMessages.invalid_input("Please describe your reason for visiting."))
        return

    state_manager.merge_context(conversation, {"reason": reason}, db, current_step=BookingSteps.AWAITING_DATE.value)
    await messenger.text(BotMessages.ask_date())


async def _handle_date(conversation, ctx: BookingContext, text: str, interactive: bool, messenger: Messenger, db: Session):
    chosen = parse_date(text, max_days_ahead=settings.BOOKING_HORIZON_DAYS)
    if not chosen:
        await messenger.text(BotMessages.invalid_booking_date(settings.BOOKING_HORIZON_DAYS))
        return

    formatted = format_long_date(chosen)
    state_manager.merge_context(
        conversation,
        {"date": chosen.isoformat(), "formatted_date": formatted},
        db,
        current_step=BookingSteps.AWAITING_TIME.value,
    )
    await messenger.list(
        BotMessages.available_slots(formatted),
        "View Time Slots",
        time_slot_sections(description=formatted),
        header="Select Time Slot",
    )


async def _handle_time(conversation, ctx: BookingContext, text: str, interactive: bool, messenger: Messenger, db: Session):
    slot = find_slot(text, interactive=interactive)
    if not slot:
        await messenger.text(BotMessages.invalid_input("Please select a valid time slot from the list."))
        return

    state_manager.merge_context(
        conversation,
        {"time": slot.value, "formatted_time": slot.title},
        db,
        current_step=BookingSteps.AWAITING_CONFIRM.value,
    )
    await messenger.confirm(BotMessages.confirm_booking({
        "name": ctx.name,
        "email": ctx.email,
        "date": ctx.formatted_date,
        "time": slot.title,
        "reason": ctx.reason,
    }))


async def _handle_confirmation(conversation, ctx: BookingContext, text: str, interactive: bool, messenger: Messenger, db: Session):
    if is_declined(text, interactive, DECLINE_WORDS):
        state_manager.reset(conversation, db)
        await messenger.text(BotMessages.booking_cancelled())
        return

    if not is_confirmed(text, interactive, CONFIRM_WORDS):
        await messenger.confirm(BotMessages.please_confirm())
        return

    await commit_booking(conversation, ctx, messenger, db)


async def commit_booking(conversation: WhatsAppConversation, ctx: BookingContext, messenger: Messenger, db: Session):
    """
    Create (or reuse) the patient and insert the pending appointment.

    A failure while writing the user or the appointment aborts the booking
    with a generic message. Emails, admin notifications and reminders run
    afterwards as best-effort tasks and never undo the appointment.
    """
    try:
        email = ctx.email.strip().lower()
        user, created = user_service.resolve_patient(ctx.name, email, conversation.phone, db)
        state_manager.link_to_user(conversation, user.id, db)

        appointment_date = ist_to_utc(date.fromisoformat(ctx.date), ctx.time)
        appointment = appointment_service.create_from_whatsapp(
            patient_id=user.id,
            name=ctx.name,
            email=email,
            phone=conversation.phone,
            date_utc=appointment_date,
            reason=ctx.reason,
            db=db,
        )
    except Exception as e:
        logger.error(f"❌ Booking failed for {conversation.phone}: {e}", exc_info=True)
        db.rollback()
        await messenger.text(BotMessages.booking_failed())
        state_manager.reset(conversation, db)
        return

    await messenger.text(BotMessages.booking_success(ctx.formatted_date, ctx.formatted_time))

    details = {
        "patient_name": ctx.name,
        "email": email,
        "phone": conversation.phone,
        "date": ctx.formatted_date,
        "time": ctx.formatted_time,
        "reason": ctx.reason,
    }

    if created:
        await run_best_effort("Welcome email", email_service.send_welcome_email, email, ctx.name)
    await run_best_effort("Confirmation email", email_service.send_appointment_confirmation, email, ctx.name, details)

    for admin in user_service.active_admins(db):
        await run_best_effort("Admin email", email_service.send_new_appointment_admin, admin.email, details)
        await run_best_effort(
            "Admin notification",
            appointment_service.add_admin_notification,
            admin.id,
            appointment,
            f"{ctx.name} booked via WhatsApp for {ctx.formatted_date} at {ctx.formatted_time}",
            db,
            db=db,
        )

    await run_best_effort(
        "Reminder scheduling",
        notification_scheduler.schedule_appointment_reminders,
        conversation.phone,
        user.id,
        appointment.id,
        appointment_date,
        ctx.name,
        db,
        db=db,
    )

    messenger.note(f"Appointment created: {appointment.id}")
    state_manager.reset(conversation, db)
    logger.info(f"✅ WhatsApp booking completed for {conversation.phone}: {appointment.id}")


STEP_HANDLERS = {
    BookingSteps.AWAITING_NAME.value: _handle_name,
    BookingSteps.AWAITING_EMAIL.value: _handle_email,
    BookingSteps.AWAITING_REASON.value: _handle_reason,
    BookingSteps.AWAITING_DATE.value: _handle_date,
    BookingSteps.AWAITING_TIME.value: _handle_time,
    BookingSteps.AWAITING_CONFIRM.value: _handle_confirmation,
}
