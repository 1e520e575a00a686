"""
Constants for the WhatsApp booking chatbot: flows, interactive action ids,
clinic time slots and notification/template catalogues.
"""
from enum import Enum
from typing import NamedTuple

IDLE = "idle"


class Flow(str, Enum):
    BOOKING = "booking"
    STATUS = "status"
    CANCEL = "cancel"
    RESCHEDULE = "reschedule"
    HELP = "help"


class Action(str, Enum):
    """Ids of interactive buttons / list rows sent by the bot."""
    BOOK_APPOINTMENT = "book_appointment"
    CHECK_STATUS = "check_status"
    CANCEL_APPOINTMENT = "cancel_appointment"
    RESCHEDULE = "reschedule_appointment"
    HELP = "help"
    CONFIRM_YES = "confirm_yes"
    CONFIRM_NO = "confirm_no"
    MAIN_MENU = "main_menu"


class TimeSlot(NamedTuple):
    id: str
    title: str
    value: str  # 24h HH:MM, clinic local time

    @property
    def hour(self) -> int:
        return int(self.value.split(":")[0])


# Clinic hours, Monday to Saturday
TIME_SLOTS = [
    TimeSlot("slot_09_00", "09:00 AM", "09:00"),
    TimeSlot("slot_09_30", "09:30 AM", "09:30"),
    TimeSlot("slot_10_00", "10:00 AM", "10:00"),
    TimeSlot("slot_10_30", "10:30 AM", "10:30"),
    TimeSlot("slot_11_00", "11:00 AM", "11:00"),
    TimeSlot("slot_11_30", "11:30 AM", "11:30"),
    TimeSlot("slot_12_00", "12:00 PM", "12:00"),
    TimeSlot("slot_14_00", "02:00 PM", "14:00"),
    TimeSlot("slot_14_30", "02:30 PM", "14:30"),
    TimeSlot("slot_15_00", "03:00 PM", "15:00"),
    TimeSlot("slot_15_30", "03:30 PM", "15:30"),
    TimeSlot("slot_16_00", "04:00 PM", "16:00"),
    TimeSlot("slot_16_30", "04:30 PM", "16:30"),
    TimeSlot("slot_17_00", "05:00 PM", "17:00"),
]


def find_slot(text: str, interactive: bool = False, id_prefix: str = ""):
    """
    Resolve a time slot from a list-reply id or from typed text.

    Typed text matches the display title (case and spacing insensitive)
    or the 24h value.
    """
    raw = (text or "").strip()
    if interactive:
        slot_id = raw[len(id_prefix):] if id_prefix and raw.startswith(id_prefix) else raw
        return next((s for s in TIME_SLOTS if s.id == slot_id), None)

    cleaned = " ".join(raw.split()).upper()
    return next(
        (s for s in TIME_SLOTS if s.title.upper() == cleaned or s.value == raw),
        None,
    )


class NotificationType(str, Enum):
    APPOINTMENT_REMINDER_24H = "appointment_reminder_24h"
    APPOINTMENT_REMINDER_1H = "appointment_reminder_1h"
    APPOINTMENT_CONFIRMED = "appointment_confirmed"
    APPOINTMENT_REJECTED = "appointment_rejected"
    APPOINTMENT_RESCHEDULED = "appointment_rescheduled"
    APPOINTMENT_CANCELLED = "appointment_cancelled"
    PRESCRIPTION_READY = "prescription_ready"
    PRESCRIPTION_DISPENSED = "prescription_dispensed"
    FOLLOW_UP = "follow_up"
    WELCOME = "welcome"
    MISSED_APPOINTMENT = "missed_appointment"


REMINDER_TYPES = (
    NotificationType.APPOINTMENT_REMINDER_24H.value,
    NotificationType.APPOINTMENT_REMINDER_1H.value,
)


class WhatsAppTemplate(str, Enum):
    """Meta-approved template names (Business Manager)."""
    # Hi {{1}}, Your appointment is scheduled for {{2}}. Service: {{3}} Confirmation number: {{4}}
    APPOINTMENT_CONFIRMATION = "appointment_confirmation"
    # Hi {{1}}, Your appointment on {{2}} has been cancelled.
    APPOINTMENT_CANCELLED = "appointment_cancelled"
    # Hello {{1}}, This is a reminder about your upcoming appointment with {{2}} on {{3}} at {{4}}.
    APPOINTMENT_REMINDER = "appointment_reminder"
    # Hi {{1}}, we missed you at your scheduled {{2}} appointment on {{3}}. ... contact {{4}}
    MISSED_APPOINTMENT = "missed_appointment"
    # Dear {{1}}, Your appointment with Dr. {{2}} has been rescheduled. New Date: {{3}} New Time: {{4}} ... {{5}}
    RESCHEDULED = "rescheduled"
    # Dear {{1}}, Greetings from {{2}}, Your appointment scheduled on {{3}} at {{4}} with Dr. {{5}} has been cancelled due to {{6}}
    REJECTED = "rejected"


TEMPLATE_LANGUAGES = {
    WhatsAppTemplate.APPOINTMENT_CONFIRMATION: "en_US",
    WhatsAppTemplate.APPOINTMENT_CANCELLED: "en_US",
    WhatsAppTemplate.APPOINTMENT_REMINDER: "en_US",
    WhatsAppTemplate.MISSED_APPOINTMENT: "en_US",
    WhatsAppTemplate.RESCHEDULED: "en",
    WhatsAppTemplate.REJECTED: "en",
}

# Template used first when the processor delivers a scheduled notification (keyed by type value)
NOTIFICATION_TEMPLATES = {
    NotificationType.APPOINTMENT_REMINDER_24H.value: WhatsAppTemplate.APPOINTMENT_REMINDER,
    NotificationType.APPOINTMENT_REMINDER_1H.value: WhatsAppTemplate.APPOINTMENT_REMINDER,
    NotificationType.APPOINTMENT_CONFIRMED.value: WhatsAppTemplate.APPOINTMENT_CONFIRMATION,
    NotificationType.APPOINTMENT_CANCELLED.value: WhatsAppTemplate.APPOINTMENT_CANCELLED,
    NotificationType.APPOINTMENT_RESCHEDULED.value: WhatsAppTemplate.RESCHEDULED,
    NotificationType.APPOINTMENT_REJECTED.value: WhatsAppTemplate.REJECTED,
    NotificationType.MISSED_APPOINTMENT.value: WhatsAppTemplate.MISSED_APPOINTMENT,
}
