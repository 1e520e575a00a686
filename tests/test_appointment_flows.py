"""
Tests for the status, cancel and reschedule conversations.
"""

from datetime import date, timedelta

from clinic_bot.core.clinic_time import as_utc, ist_to_utc, today_ist
from clinic_bot.models.appointment import Appointment, AppointmentStatus
from clinic_bot.models.conversation import WhatsAppConversation
from clinic_bot.models.scheduled_message import ScheduledMessage
from clinic_bot.services.appointment_service import PATIENT_CANCELLATION_REASON
from clinic_bot.services.notification_scheduler import notification_scheduler

PHONE = "919876543210"


def upcoming(weekday: int, days_ahead: int) -> date:
    day = today_ist() + timedelta(days=days_ahead)
    while day.weekday() != weekday:
        day += timedelta(days=1)
    return day


def conversation_for(db):
    db.expire_all()
    return db.query(WhatsAppConversation).filter_by(phone=PHONE).one()


def reminders(db, appointment, status):
    return db.query(ScheduledMessage).filter_by(related_id=appointment.id, status=status).all()


def with_reminders(db, appointment):
    notification_scheduler.schedule_appointment_reminders(
        appointment.phone, appointment.patient_id, appointment.id, appointment.date, appointment.name, db
    )
    return appointment


class TestStatusFlow:

    def test_known_phone_gets_report(self, db, transport, say, patient, make_appointment):
        make_appointment(patient, reason="Joint pain")
        make_appointment(patient, status=AppointmentStatus.CANCELLED, reason="Old visit")

        say(PHONE, "status")

        report = transport.last["text"]
        assert "Your Appointments" in report
        assert "*Pending*" in report
        assert "Joint pain" in report
        assert "Old visit" not in report
        assert conversation_for(db).is_idle

    def test_no_active_appointments(self, db, transport, say, patient):
        say(PHONE, "2")

        assert "No Appointments Found" in transport.last["text"]
        assert conversation_for(db).is_idle

    def test_unknown_phone_asks_for_email(self, db, transport, say, patient, make_appointment):
        make_appointment(patient)

        say("917000000001", "status")
        assert transport.last["text"].startswith("I couldn't find an account")

        say("917000000001", "ravi@example.com")

        assert "Joint pain" in transport.last["text"]
        db.expire_all()
        conversation = db.query(WhatsAppConversation).filter_by(phone="917000000001").one()
        assert conversation.is_idle
        assert conversation.user_id is None

    def test_unknown_email(self, db, transport, say):
        say(PHONE, "status")
        say(PHONE, "nobody@example.com")

        assert transport.last["text"].startswith("No account found")
        assert conversation_for(db).is_idle

    def test_invalid_email_keeps_step(self, db, transport, say):
        say(PHONE, "status")
        say(PHONE, "not-an-email")

        assert conversation_for(db).current_step == "awaiting_email"


class TestCancelFlow:

    def test_cancel_by_list_selection(self, db, transport, say, patient, make_appointment):
        appointment = with_reminders(db, make_appointment(patient))
        assert len(reminders(db, appointment, "pending")) == 2

        say(PHONE, "3")
        assert transport.last["kind"] == "list"
        assert transport.last["header"] == "Cancel Appointment"
        row = transport.last["sections"][0]["rows"][0]
        assert row["id"] == f"cancel_{appointment.id}"
        assert row["description"] == "PENDING — Joint pain"

        say(PHONE, row["id"], interactive=True)
        assert conversation_for(db).current_step == "awaiting_confirm"
        assert [b["title"] for b in transport.last["buttons"]] == ["✅ Yes, Cancel", "❌ No, Keep It"]

        say(PHONE, "confirm_yes", interactive=True)

        db.expire_all()
        cancelled = db.get(Appointment, appointment.id)
        assert cancelled.status == "cancelled"
        assert cancelled.cancellation_reason == PATIENT_CANCELLATION_REASON
        assert reminders(db, appointment, "pending") == []
        assert len(reminders(db, appointment, "cancelled")) == 2
        assert "cancelled successfully" in transport.last["text"]
        assert conversation_for(db).is_idle

    def test_cancel_by_typed_number(self, db, transport, say, patient, make_appointment):
        make_appointment(patient, days_ahead=5, reason="First")
        second = make_appointment(patient, days_ahead=12, reason="Second")

        say(PHONE, "cancel")
        say(PHONE, "2")
        say(PHONE, "yes")

        db.expire_all()
        statuses = {a.reason_for_visit: a.status for a in db.query(Appointment).all()}
        assert statuses == {"First": "pending", "Second": "cancelled"}
        assert db.get(Appointment, second.id).status == "cancelled"

    def test_selection_outside_list_is_rejected(self, db, transport, say, patient, make_appointment):
        make_appointment(patient)

        say(PHONE, "3")
        say(PHONE, "cancel_00000000-0000-0000-0000-000000000000", interactive=True)

        assert conversation_for(db).current_step == "awaiting_selection"
        assert "select an appointment" in transport.last["text"]

    def test_keep_appointment(self, db, transport, say, patient, make_appointment):
        appointment = make_appointment(patient)

        say(PHONE, "3")
        say(PHONE, "1")
        say(PHONE, "confirm_no", interactive=True)

        db.expire_all()
        assert db.get(Appointment, appointment.id).status == "pending"
        assert "aborted" in transport.last["text"]
        assert conversation_for(db).is_idle

    def test_no_account(self, db, transport, say):
        say(PHONE, "3")

        assert "couldn't find an account" in transport.last["text"]
        assert conversation_for(db).is_idle

    def test_nothing_to_cancel(self, db, transport, say, patient, make_appointment):
        make_appointment(patient, status=AppointmentStatus.COMPLETED)

        say(PHONE, "3")

        assert transport.last["text"].startswith("You don't have any active appointments to cancel.")


class TestRescheduleFlow:

    def test_reschedule_moves_appointment_and_reminders(self, db, transport, say, patient, make_appointment):
        appointment = with_reminders(db, make_appointment(patient, days_ahead=10))
        old_date = as_utc(appointment.date)
        new_day = upcoming(weekday=2, days_ahead=30)  # Wednesday

        say(PHONE, "4")
        say(PHONE, f"resched_{appointment.id}", interactive=True)
        assert conversation_for(db).current_step == "awaiting_date"

        say(PHONE, new_day.strftime("%d/%m/%Y"))
        assert transport.last["kind"] == "list"
        assert transport.last["sections"][1]["rows"][0]["id"] == "rs_slot_12_00"

        say(PHONE, "rs_slot_15_00", interactive=True)
        assert conversation_for(db).current_step == "awaiting_confirm"

        say(PHONE, "confirm_yes", interactive=True)

        db.expire_all()
        moved = db.get(Appointment, appointment.id)
        new_date = ist_to_utc(new_day, "15:00")
        assert moved.status == "rescheduled"
        assert as_utc(moved.date) == new_date
        assert as_utc(moved.rescheduled_from) == old_date

        assert len(reminders(db, appointment, "cancelled")) == 2
        pending = reminders(db, appointment, "pending")
        assert sorted(as_utc(r.scheduled_at) for r in pending) == [
            new_date - timedelta(hours=24),
            new_date - timedelta(hours=1),
        ]
        assert "Appointment Rescheduled" in transport.last["text"]
        assert conversation_for(db).is_idle

    def test_new_date_may_exceed_booking_horizon(self, db, transport, say, patient, make_appointment):
        make_appointment(patient)

        say(PHONE, "reschedule")
        say(PHONE, "1")
        say(PHONE, upcoming(weekday=3, days_ahead=120).strftime("%d/%m/%Y"))

        assert conversation_for(db).current_step == "awaiting_time"

    def test_sunday_is_rejected(self, db, transport, say, patient, make_appointment):
        make_appointment(patient)

        say(PHONE, "4")
        say(PHONE, "1")
        say(PHONE, upcoming(weekday=6, days_ahead=7).strftime("%d/%m/%Y"))

        assert conversation_for(db).current_step == "awaiting_date"

    def test_rescheduled_appointment_cannot_move_again(self, db, transport, say, patient, make_appointment):
        make_appointment(patient, status=AppointmentStatus.RESCHEDULED)

        say(PHONE, "4")

        assert transport.last["text"].startswith("You don't have any active appointments to reschedule.")
        assert conversation_for(db).is_idle

    def test_declined_reschedule(self, db, transport, say, patient, make_appointment):
        appointment = make_appointment(patient)
        original = as_utc(appointment.date)

        say(PHONE, "4")
        say(PHONE, "1")
        say(PHONE, upcoming(weekday=1, days_ahead=14).strftime("%d/%m/%Y"))
        say(PHONE, "10:30 AM")
        say(PHONE, "no")

        db.expire_all()
        kept = db.get(Appointment, appointment.id)
        assert kept.status == "pending"
        assert as_utc(kept.date) == original
        assert "Reschedule cancelled" in transport.last["text"]
