"""
Reminder scheduling for appointments.

Rows land in whatsapp_scheduled_messages as `pending` and are delivered by
NotificationService.process_scheduled_messages. For one appointment there is
at most one pending row per reminder type: scheduling again cancels the
previous pending reminders first.
"""
import logging
from datetime import datetime, timedelta
from typing import Iterable, Optional
from sqlalchemy.orm import Session
from clinic_bot.core.clinic_time import now_utc, as_utc, today_ist, ist_to_utc, format_date, format_time
from clinic_bot.core.constants import NotificationType, NOTIFICATION_TEMPLATES, REMINDER_TYPES
from clinic_bot.core.utils import normalize_phone, parse_uuid
from clinic_bot.models.scheduled_message import ScheduledMessage, ScheduledStatus

logger = logging.getLogger(__name__)

# (type, lead time before the appointment)
REMINDER_OFFSETS = (
    (NotificationType.APPOINTMENT_REMINDER_24H, timedelta(hours=24)),
    (NotificationType.APPOINTMENT_REMINDER_1H, timedelta(hours=1)),
)

FOLLOW_UP_TIME = "10:00"  # IST


class NotificationScheduler:

    def cancel_pending(
        self,
        appointment_id,
        db: Session,
        message_types: Optional[Iterable[str]] = None
    ) -> int:
        """
        Mark pending rows for an appointment as cancelled, optionally only
        those of the given message types.

        Returns:
            Number of rows cancelled
        """
        query = db.query(ScheduledMessage).filter(
            ScheduledMessage.related_id == parse_uuid(appointment_id),
            ScheduledMessage.status == ScheduledStatus.PENDING
        )
        if message_types is not None:
            query = query.filter(ScheduledMessage.message_type.in_(list(message_types)))

        try:
            count = query.update(
                {ScheduledMessage.status: ScheduledStatus.CANCELLED, ScheduledMessage.updated_at: now_utc()},
                synchronize_session=False
            )
            db.commit()
        except Exception:
            db.rollback()
            raise

        if count:
            logger.info(f"Cancelled {count} pending message(s) for appointment {appointment_id}")
        return count

    def cancel_pending_reminders(self, appointment_id, db: Session) -> int:
        return self.cancel_pending(appointment_id, db, REMINDER_TYPES)

    def schedule_appointment_reminders(
        self,
        phone: str,
        user_id,
        appointment_id,
        appointment_date: datetime,
        patient_name: str,
        db: Session,
        doctor_name: Optional[str] = None,
        now: Optional[datetime] = None
    ) -> int:
        """
        Queue the 24h and 1h reminders for an appointment.

        Earlier pending reminders for the same appointment are cancelled
        first, so calling this again (rebooking, reschedule) never leaves
        duplicates. Reminders whose send time has already passed are skipped.

        Returns:
            Number of reminders scheduled (0, 1 or 2)
        """
        now = as_utc(now) if now else now_utc()
        appointment_date = as_utc(appointment_date)

        self.cancel_pending_reminders(appointment_id, db)

        params = {
            "patient_name": patient_name,
            "doctor_name": doctor_name,
            "date": format_date(appointment_date),
            "time": format_time(appointment_date),
        }

        scheduled = 0
        for message_type, lead_time in REMINDER_OFFSETS:
            send_at = appointment_date - lead_time
            if send_at <= now:
                continue
            db.add(self._build_row(phone, user_id, appointment_id, message_type, send_at, params))
            scheduled += 1

        try:
            db.commit()
        except Exception:
            db.rollback()
            raise

        logger.info(f"⏰ Scheduled {scheduled} reminder(s) for appointment {appointment_id}")
        return scheduled

    def schedule_follow_up_reminder(
        self,
        phone: str,
        user_id,
        appointment_id,
        patient_name: str,
        doctor_name: Optional[str],
        db: Session,
        days_after: int = 7,
        now: Optional[datetime] = None
    ) -> ScheduledMessage:
        """Queue a follow-up message days_after days from today, at 10:00 IST."""
        follow_up_day = today_ist(now) + timedelta(days=days_after)
        send_at = ist_to_utc(follow_up_day, FOLLOW_UP_TIME)

        row = self._build_row(
            phone, user_id, appointment_id, NotificationType.FOLLOW_UP, send_at,
            {"patient_name": patient_name, "doctor_name": doctor_name, "days_after": days_after},
        )
        try:
            db.add(row)
            db.commit()
        except Exception:
            db.rollback()
            raise

        logger.info(f"Scheduled follow-up for appointment {appointment_id} at {send_at.isoformat()}")
        return row

    @staticmethod
    def _build_row(phone, user_id, appointment_id, message_type: NotificationType, send_at: datetime, params: dict):
        template = NOTIFICATION_TEMPLATES.get(message_type.value)
        return ScheduledMessage(
            phone=normalize_phone(phone),
            user_id=parse_uuid(user_id),
            message_type=message_type.value,
            related_type="appointment",
            related_id=parse_uuid(appointment_id),
            scheduled_at=send_at,
            template_name=template.value if template else None,
            template_params=dict(params),
            status=ScheduledStatus.PENDING,
            retry_count=0,
        )


notification_scheduler = NotificationScheduler()
