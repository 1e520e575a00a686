"""
Tests for reminder scheduling and the scheduled-message processor.
"""

import asyncio
from datetime import datetime, timedelta

import pytest
import pytz

from clinic_bot.core.clinic_time import as_utc, now_utc
from clinic_bot.core.config import settings
from clinic_bot.core.state_manager import state_manager
from clinic_bot.models.appointment import AppointmentStatus
from clinic_bot.models.message_log import WhatsAppMessage
from clinic_bot.models.scheduled_message import ScheduledMessage
from clinic_bot.services.notification_scheduler import notification_scheduler
from clinic_bot.services.notification_service import (
    build_template_components,
    notification_service,
    render_notification,
)

PHONE = "919876543210"


def process(db, now=None):
    return asyncio.run(notification_service.process_scheduled_messages(db, now=now))


def due_reminder(db, appointment, minutes_ago=1, params=None):
    row = ScheduledMessage(
        phone=PHONE,
        user_id=appointment.patient_id,
        message_type="appointment_reminder_24h",
        related_type="appointment",
        related_id=appointment.id,
        scheduled_at=now_utc() - timedelta(minutes=minutes_ago),
        template_name="appointment_reminder",
        template_params=params or {"patient_name": "Ravi Kumar", "date": "Someday", "time": "Sometime"},
    )
    db.add(row)
    db.commit()
    return row


class TestNotificationScheduler:

    def test_schedules_both_reminders(self, db, patient, make_appointment):
        appointment = make_appointment(patient, days_ahead=3)

        count = notification_scheduler.schedule_appointment_reminders(
            PHONE, patient.id, appointment.id, appointment.date, "Ravi Kumar", db
        )

        rows = db.query(ScheduledMessage).all()
        assert count == 2
        assert {r.template_name for r in rows} == {"appointment_reminder"}
        assert all(r.template_params["patient_name"] == "Ravi Kumar" for r in rows)
        assert all(r.related_type == "appointment" for r in rows)

    def test_rescheduling_reminders_is_idempotent(self, db, patient, make_appointment):
        appointment = make_appointment(patient, days_ahead=3)

        for _ in range(2):
            notification_scheduler.schedule_appointment_reminders(
                PHONE, patient.id, appointment.id, appointment.date, "Ravi Kumar", db
            )

        pending = db.query(ScheduledMessage).filter_by(status="pending").all()
        assert sorted(r.message_type for r in pending) == ["appointment_reminder_1h", "appointment_reminder_24h"]
        assert db.query(ScheduledMessage).filter_by(status="cancelled").count() == 2

    def test_past_send_times_are_skipped(self, db, patient, make_appointment):
        appointment = make_appointment(patient)
        soon = now_utc() + timedelta(hours=5)

        count = notification_scheduler.schedule_appointment_reminders(
            PHONE, patient.id, appointment.id, soon, "Ravi Kumar", db
        )
        assert count == 1
        assert db.query(ScheduledMessage).one().message_type == "appointment_reminder_1h"

        imminent = now_utc() + timedelta(minutes=30)
        assert notification_scheduler.schedule_appointment_reminders(
            PHONE, patient.id, appointment.id, imminent, "Ravi Kumar", db
        ) == 0

    def test_follow_up_at_ten_ist(self, db, patient, make_appointment):
        appointment = make_appointment(patient)
        now = datetime(2026, 10, 19, 6, 0, tzinfo=pytz.utc)

        row = notification_scheduler.schedule_follow_up_reminder(
            PHONE, patient.id, appointment.id, "Ravi Kumar", None, db, days_after=7, now=now
        )

        assert as_utc(row.scheduled_at) == datetime(2026, 10, 26, 4, 30, tzinfo=pytz.utc)
        assert row.message_type == "follow_up"
        assert row.template_name is None
        assert row.template_params["days_after"] == 7

    def test_cancel_pending_by_type(self, db, patient, make_appointment):
        appointment = make_appointment(patient, days_ahead=3)
        notification_scheduler.schedule_appointment_reminders(
            PHONE, patient.id, appointment.id, appointment.date, "Ravi Kumar", db
        )
        notification_scheduler.schedule_follow_up_reminder(PHONE, patient.id, appointment.id, "Ravi Kumar", None, db)

        assert notification_scheduler.cancel_pending_reminders(appointment.id, db) == 2
        assert db.query(ScheduledMessage).filter_by(status="pending").one().message_type == "follow_up"
        assert notification_scheduler.cancel_pending(str(appointment.id), db) == 1


class TestScheduledMessageProcessor:

    def test_nothing_due(self, db, transport):
        assert process(db) == {"processed": 0, "errors": 0, "total": 0}
        assert transport.sent == []

    def test_template_delivery(self, db, transport, patient, make_appointment):
        appointment = make_appointment(patient, days_ahead=1)
        row = due_reminder(db, appointment)

        assert process(db) == {"processed": 1, "errors": 0, "total": 1}

        assert transport.kinds() == ["template"]
        sent = transport.last
        assert sent["template"] == "appointment_reminder"
        assert sent["language"] == "en_US"
        values = [p["text"] for p in sent["components"][0]["parameters"]]
        assert values[0] == "Ravi Kumar"
        assert values[1] == "our doctor"

        db.expire_all()
        assert row.status == "sent"
        assert row.sent_at is not None
        logged = db.query(WhatsAppMessage).filter_by(message_type="notification").one()
        assert logged.status == "sent"
        assert logged.message_metadata["channel"] == "template"

    def test_template_failure_falls_back_to_text(self, db, transport, patient, make_appointment):
        appointment = make_appointment(patient, days_ahead=1)
        row = due_reminder(db, appointment)
        transport.fail_template = True

        assert process(db)["processed"] == 1

        assert transport.kinds() == ["template", "text"]
        assert transport.last["text"].startswith("⏰ *Appointment Reminder*")
        db.expire_all()
        assert row.status == "sent"
        assert db.query(WhatsAppMessage).filter_by(message_type="notification").one().message_metadata["channel"] == "text"

    def test_reminder_uses_current_appointment_time(self, db, transport, patient, make_appointment):
        appointment = make_appointment(patient, days_ahead=1)
        appointment.date = datetime(2026, 11, 10, 9, 30, tzinfo=pytz.utc)
        db.commit()
        due_reminder(db, appointment)
        transport.fail_template = True

        process(db)

        assert "03:00 PM" in transport.last["text"]
        assert "Tuesday, 10 November 2026" in transport.last["text"]

    @pytest.mark.parametrize("status", [AppointmentStatus.CANCELLED, AppointmentStatus.REJECTED])
    def test_dead_appointment_is_skipped(self, db, transport, patient, make_appointment, status):
        appointment = make_appointment(patient, days_ahead=1, status=status)
        row = due_reminder(db, appointment)

        assert process(db) == {"processed": 0, "errors": 0, "total": 1}

        assert transport.sent == []
        db.expire_all()
        assert row.status == "cancelled"
        assert row.error_message == f"appointment {status}"

    def test_opted_out_phone_is_skipped(self, db, transport, patient, make_appointment):
        conversation = state_manager.get_or_create(PHONE, db)
        state_manager.set_opt_out(conversation, True, db)
        row = due_reminder(db, make_appointment(patient, days_ahead=1))

        process(db)

        assert transport.sent == []
        db.expire_all()
        assert row.status == "cancelled"
        assert row.error_message == "opted out"

    def test_future_rows_are_left_alone(self, db, transport, patient, make_appointment):
        row = due_reminder(db, make_appointment(patient, days_ahead=1), minutes_ago=-10)

        assert process(db)["total"] == 0
        db.expire_all()
        assert row.status == "pending"

    def test_failed_send_retries_then_gives_up(self, db, transport, patient, make_appointment):
        row = due_reminder(db, make_appointment(patient, days_ahead=1))
        transport.fail_template = True
        transport.fail_text = True
        now = now_utc()

        assert process(db, now=now) == {"processed": 0, "errors": 1, "total": 1}
        db.expire_all()
        assert row.status == "pending"
        assert row.retry_count == 1
        assert row.error_message == "text send failed"
        assert as_utc(row.scheduled_at) == now + timedelta(minutes=5)

        # Not due again until the backoff has passed
        assert process(db, now=now + timedelta(minutes=1))["total"] == 0

        process(db, now=now + timedelta(minutes=6))
        process(db, now=now + timedelta(minutes=12))
        db.expire_all()
        assert row.status == "failed"
        assert row.retry_count == 3

        assert process(db, now=now + timedelta(minutes=30))["total"] == 0
        failed_logs = db.query(WhatsAppMessage).filter_by(message_type="notification", status="failed").count()
        assert failed_logs == 3

    def test_row_exception_counts_as_attempt(self, db, transport, patient, make_appointment, monkeypatch):
        row = due_reminder(db, make_appointment(patient, days_ahead=1))

        async def broken(row, params):
            raise RuntimeError("transport exploded")

        monkeypatch.setattr(notification_service, "deliver", broken)

        assert process(db)["errors"] == 1
        db.expire_all()
        assert row.retry_count == 1
        assert row.error_message == "transport exploded"

    def test_follow_up_reports_days_since(self, db, transport, patient, make_appointment):
        appointment = make_appointment(patient, days_ahead=-7, status=AppointmentStatus.COMPLETED)
        row = notification_scheduler.schedule_follow_up_reminder(
            PHONE, patient.id, appointment.id, "Ravi Kumar", None, db, days_after=3
        )
        row.scheduled_at = now_utc() - timedelta(minutes=1)
        db.commit()

        process(db)

        assert transport.kinds() == ["text"]
        assert "*3 days*" in transport.last["text"]

    def test_batch_size_limit(self, db, transport, patient, make_appointment, monkeypatch):
        monkeypatch.setattr(settings, "SCHEDULED_BATCH_SIZE", 2)
        appointment = make_appointment(patient, days_ahead=1)
        for minutes in (3, 2, 1):
            due_reminder(db, appointment, minutes_ago=minutes)

        assert process(db)["total"] == 2
        assert db.query(ScheduledMessage).filter_by(status="pending").count() == 1


class TestInstantNotifications:

    def test_unknown_type(self, transport):
        result = asyncio.run(notification_service.send_whatsapp_notification(PHONE, "birthday", {}))
        assert result == {"success": False, "error": "Unknown notification type"}
        assert transport.sent == []

    def test_missing_phone(self, transport):
        result = asyncio.run(notification_service.send_whatsapp_notification("", "appointment_confirmed", {}))
        assert result["error"] == "No phone number"

    def test_sends_rendered_text(self, transport):
        params = {"patient_name": "Ravi", "date": "Tue 10 Nov", "time": "10:00 AM", "doctor_name": "Mehta"}
        result = asyncio.run(notification_service.send_whatsapp_notification(PHONE, "appointment_confirmed", params))

        assert result["success"]
        assert transport.last["text"] == render_notification("appointment_confirmed", params)
        assert "Dr. Mehta" in transport.last["text"]

    def test_rejected_template_parameters(self):
        components = build_template_components("rejected", {"patient_name": "Ravi", "date": "Tue", "time": "10:00 AM"})
        values = [p["text"] for p in components[0]["parameters"]]
        assert len(values) == 6
        assert values[0] == "Ravi"
        assert values[-1] == "unavoidable circumstances"

    def test_no_components_for_unknown_template(self):
        assert build_template_components("nonexistent", {}) == []
