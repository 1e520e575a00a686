"""
Entry point for every inbound WhatsApp message.

Order of evaluation: unsupported type, inactivity timeout, global menu
command, idle-only greetings/opt-out/shortcuts, interactive replies,
mid-flow "cancel", the active flow's step handler, and finally the main
menu. Any unexpected error is answered with a generic message so no
inbound message goes unanswered.
"""
from datetime import timedelta
from typing import Optional
from sqlalchemy.orm import Session
from clinic_bot.core.clinic_time import now_utc
from clinic_bot.core.config import settings
from clinic_bot.core.constants import Action, Flow, IDLE
from clinic_bot.core.message_log import message_log
from clinic_bot.core.state_manager import state_manager
from clinic_bot.core.utils import normalize_phone
from clinic_bot.models.conversation import WhatsAppConversation
from clinic_bot.models.schemas import InboundMessage, InboundType
from clinic_bot.services.booking_flow import start_booking_flow, handle_booking_step
from clinic_bot.services.cancel_handler import start_cancel_flow, handle_cancel_step
from clinic_bot.services.messages import BotMessages
from clinic_bot.services.messenger import Messenger
from clinic_bot.services.reschedule_handler import start_reschedule_flow, handle_reschedule_step
from clinic_bot.services.status_handler import start_status_flow, handle_status_step
from clinic_bot.services.whatsapp_service import whatsapp_service
import logging

logger = logging.getLogger(__name__)

MENU_COMMANDS = ("menu", "main menu", "home", "start")
GREETINGS = ("hi", "hello", "hey", "namaste", "good morning", "good afternoon", "good evening", "hola")
OPT_OUT_COMMANDS = ("stop", "unsubscribe")

# Honoured only while idle
SHORTCUTS = {
    "book": Flow.BOOKING,
    "appointment": Flow.BOOKING,
    "1": Flow.BOOKING,
    "status": Flow.STATUS,
    "check": Flow.STATUS,
    "2": Flow.STATUS,
    "cancel": Flow.CANCEL,
    "3": Flow.CANCEL,
    "reschedule": Flow.RESCHEDULE,
    "4": Flow.RESCHEDULE,
    "help": Flow.HELP,
    "5": Flow.HELP,
}

MENU_ACTIONS = {
    Action.BOOK_APPOINTMENT.value: Flow.BOOKING,
    Action.CHECK_STATUS.value: Flow.STATUS,
    Action.CANCEL_APPOINTMENT.value: Flow.CANCEL,
    Action.RESCHEDULE.value: Flow.RESCHEDULE,
    Action.HELP.value: Flow.HELP,
}

MENU_BUTTONS = [
    {"id": Action.BOOK_APPOINTMENT.value, "title": "📅 Book Appointment"},
    {"id": Action.CHECK_STATUS.value, "title": "📋 Check Status"},
    {"id": Action.HELP.value, "title": "ℹ️ Help"},
]

BRAND = "Abel Wellness"


def parse_incoming_message(message: Optional[dict]) -> Optional[InboundMessage]:
    """
    Normalise one entry of the webhook `messages` array.

    Text keeps its body, button/list replies keep the tapped id as content,
    any other type becomes `unsupported`.
    """
    if not message:
        return None

    base = {
        "phone": normalize_phone(message.get("from", "")),
        "message_id": message.get("id"),
        "timestamp": message.get("timestamp"),
    }
    message_type = message.get("type")

    if message_type == "text":
        return InboundMessage(**base, type=InboundType.TEXT, content=(message.get("text") or {}).get("body") or "")

    if message_type == "interactive":
        interactive = message.get("interactive") or {}
        reply_type = interactive.get("type")
        if reply_type in ("button_reply", "list_reply"):
            reply = interactive.get(reply_type) or {}
            return InboundMessage(
                **base,
                type=InboundType.INTERACTIVE,
                content=reply.get("id") or "",
                title=reply.get("title") or "",
            )

    return InboundMessage(**base, type=InboundType.UNSUPPORTED, content=f"[{message_type} message]")


async def handle_incoming_message(inbound: InboundMessage, db: Session):
    conversation_id = None
    try:
        if inbound.message_id:
            await whatsapp_service.mark_as_read(inbound.message_id)

        conversation = state_manager.get_or_create(inbound.phone, db)
        conversation_id = conversation.id

        message_log.record_inbound(db, inbound, conversation_id)

        await route_message(conversation, inbound, db)

    except Exception as e:
        logger.error(f"❌ Error handling message from {inbound.phone}: {e}", exc_info=True)
        db.rollback()
        reply = BotMessages.generic_error()
        result = await whatsapp_service.send_text(inbound.phone, reply)
        message_log.append(
            db,
            phone=inbound.phone,
            direction="outbound",
            content=reply,
            conversation_id=conversation_id,
            wa_message_id=result.get("message_id"),
            success=bool(result.get("success")),
            metadata={"error": str(e)},
        )


async def route_message(conversation: WhatsAppConversation, inbound: InboundMessage, db: Session):
    messenger = Messenger(conversation, db)

    if inbound.type == InboundType.UNSUPPORTED:
        await messenger.text(BotMessages.unsupported())
        return

    if not conversation.is_idle and is_expired(conversation):
        logger.info(f"⏰ Conversation {conversation.phone} expired in {conversation.flow}/{conversation.current_step}")
        state_manager.reset(conversation, db)
        await messenger.text(BotMessages.session_expired())
        return

    content = inbound.content
    text = content.strip().lower()
    interactive = inbound.type == InboundType.INTERACTIVE

    if is_menu_command(text, content, interactive):
        patch = {"flow": None, "current_step": IDLE, "context": {}}
        if text == "start" and conversation.opted_out:
            patch["opted_out"] = False
        state_manager.update(conversation, db, **patch)
        await show_main_menu(messenger)
        return

    if conversation.is_idle and not interactive:
        if text in GREETINGS:
            await show_welcome(messenger)
            return

        if text in OPT_OUT_COMMANDS:
            state_manager.set_opt_out(conversation, True, db)
            await messenger.text(BotMessages.opted_out())
            return

        flow = SHORTCUTS.get(text)
        if flow:
            await start_flow(flow, conversation, db)
            return

    if interactive:
        await handle_interactive_action(conversation, content, db)
        return

    if text == "cancel" and not conversation.is_idle:
        state_manager.reset(conversation, db)
        await messenger.text(BotMessages.flow_cancelled())
        return

    if not conversation.is_idle:
        await route_to_flow(conversation, content, False, db)
        return

    await show_main_menu(messenger)


def is_expired(conversation: WhatsAppConversation) -> bool:
    """Inactivity measured from the message before the current one"""
    previous = conversation.previous_message_at
    if previous is None:
        return False
    return now_utc() - previous > timedelta(minutes=settings.CONVERSATION_TIMEOUT_MINUTES)


def is_menu_command(text: str, content: str, interactive: bool) -> bool:
    if interactive:
        return content == Action.MAIN_MENU.value
    return text in MENU_COMMANDS


async def handle_interactive_action(conversation: WhatsAppConversation, action_id: str, db: Session):
    """Button/list reply: forwarded to the active flow, otherwise a main-menu action"""
    if not conversation.is_idle:
        await route_to_flow(conversation, action_id, True, db)
        return

    flow = MENU_ACTIONS.get(action_id)
    if flow:
        await start_flow(flow, conversation, db)
        return

    await show_main_menu(Messenger(conversation, db))


async def route_to_flow(conversation: WhatsAppConversation, content: str, interactive: bool, db: Session):
    handler = FLOW_HANDLERS.get(conversation.flow)
    if handler is None:
        logger.warning(f"Unknown flow for {conversation.phone}: {conversation.flow}")
        state_manager.reset(conversation, db)
        await show_main_menu(Messenger(conversation, db))
        return

    await handler(conversation, content, interactive, db)


async def start_flow(flow: Flow, conversation: WhatsAppConversation, db: Session):
    await FLOW_STARTERS[flow](conversation, db)


async def show_welcome(messenger: Messenger):
    await messenger.text(BotMessages.welcome())
    await messenger.buttons(BotMessages.main_menu(), MENU_BUTTONS, footer=BRAND)


async def show_main_menu(messenger: Messenger):
    await messenger.buttons(
        BotMessages.main_menu(),
        MENU_BUTTONS,
        header=BRAND,
        footer="Reply with a number or tap a button",
    )


async def show_help(conversation: WhatsAppConversation, db: Session):
    await Messenger(conversation, db).text(BotMessages.help())


FLOW_STARTERS = {
    Flow.BOOKING: start_booking_flow,
    Flow.STATUS: start_status_flow,
    Flow.CANCEL: start_cancel_flow,
    Flow.RESCHEDULE: start_reschedule_flow,
    Flow.HELP: show_help,
}

FLOW_HANDLERS = {
    Flow.BOOKING.value: handle_booking_step,
    Flow.STATUS.value: handle_status_step,
    Flow.CANCEL.value: handle_cancel_step,
    Flow.RESCHEDULE.value: handle_reschedule_step,
}
