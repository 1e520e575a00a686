"""Helpers shared by the flows that pick an appointment or a time slot from a list."""
from typing import Iterable, List, Optional
from clinic_bot.core.clinic_time import format_datetime, format_short
from clinic_bot.core.constants import Action, TIME_SLOTS
from clinic_bot.models.appointment import Appointment
from clinic_bot.models.schemas import AppointmentChoice, CancelContext

YES_WORDS = ("yes", "y", "confirm")


def is_confirmed(text: str, interactive: bool, words: Iterable[str] = YES_WORDS) -> bool:
    if interactive:
        return text == Action.CONFIRM_YES.value
    return text.strip().lower() in words


def is_declined(text: str, interactive: bool, words: Iterable[str]) -> bool:
    if interactive:
        return text == Action.CONFIRM_NO.value
    return text.strip().lower() in words


def appointment_choice(appointment: Appointment) -> AppointmentChoice:
    return AppointmentChoice(
        id=str(appointment.id),
        date=appointment.date.isoformat(),
        status=appointment.status,
        formatted_date=format_datetime(appointment.date),
        reason=appointment.reason_for_visit,
    )


def appointment_sections(appointments: List[Appointment], id_prefix: str) -> List[dict]:
    """One list section, one row per appointment (row id = prefix + appointment id)"""
    rows = [
        {
            "id": f"{id_prefix}{appointment.id}",
            "title": format_short(appointment.date),
            "description": f"{appointment.status.upper()} — {appointment.reason_for_visit or 'General'}"[:72],
        }
        for appointment in appointments
    ]
    return [{"title": "Active Appointments", "rows": rows}]


def resolve_selection(text: str, interactive: bool, id_prefix: str, ctx: CancelContext) -> Optional[AppointmentChoice]:
    """
    Resolve the picked appointment from a list-reply id or from a typed
    position (1..N) in the list that was sent.
    """
    raw = text.strip()
    if interactive and raw.startswith(id_prefix):
        selected_id = raw[len(id_prefix):]
        return next((choice for choice in ctx.appointments if choice.id == selected_id), None)

    if raw.isdigit():
        position = int(raw)
        if 1 <= position <= len(ctx.appointments):
            return ctx.appointments[position - 1]
    return None


def time_slot_sections(id_prefix: str = "", description: Optional[str] = None) -> List[dict]:
    """Morning (before 12:00) and afternoon slot sections"""

    def row(slot):
        built = {"id": f"{id_prefix}{slot.id}", "title": slot.title}
        if description:
            built["description"] = description
        return built

    return [
        {"title": "Morning Slots", "rows": [row(s) for s in TIME_SLOTS if s.hour < 12]},
        {"title": "Afternoon Slots", "rows": [row(s) for s in TIME_SLOTS if s.hour >= 12]},
    ]
