"""
WhatsApp notifications: instant sends for system events and the cron-driven
delivery of queued scheduled messages.

Scheduled rows are tried as an approved template first and fall back to the
plain-text rendering when the template send fails. A failed delivery is
retried with a fixed backoff until the retry ceiling, then marked failed.
"""
import logging
from datetime import datetime, timedelta
from typing import Dict, List, Optional, Tuple
from sqlalchemy.orm import Session
from clinic_bot.core.clinic_time import now_utc, as_utc, format_date, format_time
from clinic_bot.core.config import settings
from clinic_bot.core.constants import (
    NotificationType, WhatsAppTemplate, NOTIFICATION_TEMPLATES, TEMPLATE_LANGUAGES, REMINDER_TYPES
)
from clinic_bot.core.message_log import message_log
from clinic_bot.core.state_manager import state_manager
from clinic_bot.models.appointment import AppointmentStatus
from clinic_bot.models.scheduled_message import ScheduledMessage, ScheduledStatus
from clinic_bot.services.appointment_service import appointment_service
from clinic_bot.services.messages import NotificationMessages
from clinic_bot.services.whatsapp_service import whatsapp_service

logger = logging.getLogger(__name__)

RENDERERS = {
    NotificationType.APPOINTMENT_CONFIRMED.value: NotificationMessages.appointment_confirmed,
    NotificationType.APPOINTMENT_REJECTED.value: NotificationMessages.appointment_rejected,
    NotificationType.APPOINTMENT_RESCHEDULED.value: NotificationMessages.appointment_rescheduled,
    NotificationType.APPOINTMENT_CANCELLED.value: NotificationMessages.appointment_cancelled,
    NotificationType.PRESCRIPTION_READY.value: NotificationMessages.prescription_ready,
    NotificationType.PRESCRIPTION_DISPENSED.value: NotificationMessages.prescription_dispensed,
    NotificationType.FOLLOW_UP.value: NotificationMessages.follow_up,
    NotificationType.APPOINTMENT_REMINDER_24H.value: NotificationMessages.reminder_24h,
    NotificationType.APPOINTMENT_REMINDER_1H.value: NotificationMessages.reminder_1h,
    NotificationType.MISSED_APPOINTMENT.value: NotificationMessages.missed_appointment,
    NotificationType.WELCOME.value: NotificationMessages.welcome,
}


def render_notification(notification_type: str, params: Dict) -> Optional[str]:
    renderer = RENDERERS.get(notification_type)
    return renderer(params) if renderer else None


def _template_values(template: str, params: Dict) -> List:
    """Ordered body parameters ({{1}}, {{2}}, ...) for each approved template"""
    name = params.get("patient_name") or "Patient"
    doctor = params.get("doctor_name") or "our doctor"
    date = params.get("date") or params.get("new_date") or ""
    time = params.get("time") or params.get("new_time") or ""

    if template == WhatsAppTemplate.APPOINTMENT_REMINDER:
        return [name, doctor, date, time]
    if template == WhatsAppTemplate.APPOINTMENT_CONFIRMATION:
        when = f"{date} at {time}" if time else date
        return [name, when, params.get("reason") or "Consultation", params.get("reference") or "-"]
    if template == WhatsAppTemplate.APPOINTMENT_CANCELLED:
        return [name, date]
    if template == WhatsAppTemplate.MISSED_APPOINTMENT:
        return [name, params.get("service") or "consultation", date, settings.CLINIC_PHONE]
    if template == WhatsAppTemplate.RESCHEDULED:
        return [name, doctor, date, time, settings.CLINIC_PHONE]
    if template == WhatsAppTemplate.REJECTED:
        return [name, settings.CLINIC_NAME, date, time, doctor, params.get("reason") or "unavoidable circumstances"]
    return []


def build_template_components(template: str, params: Dict) -> List[Dict]:
    values = _template_values(template, params)
    if not values:
        return []
    return [{
        "type": "body",
        "parameters": [{"type": "text", "text": str(value)} for value in values],
    }]


class NotificationService:

    async def send_whatsapp_notification(self, phone: str, notification_type: str, params: Dict) -> dict:
        """
        Send a plain-text notification for a system event.

        Returns:
            Transport result; unknown types give {"success": False, "error": "Unknown notification type"}
        """
        if not phone:
            return {"success": False, "error": "No phone number"}

        message = render_notification(notification_type, params)
        if message is None:
            logger.error(f"Unknown notification type: {notification_type}")
            return {"success": False, "error": "Unknown notification type"}

        return await whatsapp_service.send_text(phone, message)

    async def deliver(self, row: ScheduledMessage, params: Dict) -> Tuple[dict, str]:
        """
        Send one scheduled message: template first, plain text as fallback.

        Returns:
            (transport result, channel used: 'template' or 'text')
        """
        template = row.template_name or NOTIFICATION_TEMPLATES.get(row.message_type)
        if template:
            template = WhatsAppTemplate(template)
            result = await whatsapp_service.send_template(
                row.phone,
                template.value,
                TEMPLATE_LANGUAGES.get(template, "en"),
                build_template_components(template, params),
            )
            if result.get("success"):
                return result, "template"
            logger.warning(
                f"⚠️ Template {template.value} failed for {row.phone} ({result.get('error')}), falling back to text"
            )

        result = await self.send_whatsapp_notification(row.phone, row.message_type, params)
        return result, "text"

    async def process_scheduled_messages(self, db: Session, now: Optional[datetime] = None) -> dict:
        """
        Deliver every pending scheduled message that is due, earliest first,
        up to SCHEDULED_BATCH_SIZE rows. A failing row never aborts the batch.

        Returns:
            {"processed": sent count, "errors": failed attempts, "total": rows picked up}
        """
        now = as_utc(now) if now else now_utc()

        due = db.query(ScheduledMessage).filter(
            ScheduledMessage.status == ScheduledStatus.PENDING,
            ScheduledMessage.scheduled_at <= now
        ).order_by(ScheduledMessage.scheduled_at.asc()).limit(settings.SCHEDULED_BATCH_SIZE).all()

        if not due:
            return {"processed": 0, "errors": 0, "total": 0}

        logger.info(f"📬 Processing {len(due)} scheduled message(s)")
        processed = 0
        errors = 0

        for row in due:
            try:
                outcome = await self._process_row(row, db, now)
            except Exception as e:
                logger.error(f"❌ Error processing scheduled message {row.id}: {e}", exc_info=True)
                db.rollback()
                self._record_failure(row, str(e), db, now)
                errors += 1
                continue

            if outcome == ScheduledStatus.SENT:
                processed += 1
            elif outcome != ScheduledStatus.CANCELLED:
                errors += 1

        logger.info(f"✅ Scheduled batch done: {processed} sent, {errors} error(s), {len(due)} total")
        return {"processed": processed, "errors": errors, "total": len(due)}

    async def _process_row(self, row: ScheduledMessage, db: Session, now: datetime) -> str:
        conversation = state_manager.get_state(row.phone, db)

        if conversation and conversation.opted_out:
            return self._skip(row, "opted out", db)

        appointment = None
        if row.related_type == "appointment" and row.related_id:
            appointment = appointment_service.get(row.related_id, db)
            if appointment and appointment.status in AppointmentStatus.DEAD:
                return self._skip(row, f"appointment {appointment.status}", db)

        params = dict(row.template_params or {})

        # The appointment may have moved since the reminder was queued
        if row.message_type in REMINDER_TYPES and appointment:
            params.update(
                date=format_date(appointment.date),
                time=format_time(appointment.date),
                doctor_name=appointment.doctor_name or params.get("doctor_name"),
            )

        if row.message_type == NotificationType.FOLLOW_UP.value:
            params["days_since"] = params.get("days_after") or 7

        result, channel = await self.deliver(row, params)

        message_log.append(
            db,
            phone=row.phone,
            direction="outbound",
            content=render_notification(row.message_type, params),
            message_type="notification",
            conversation_id=conversation.id if conversation else None,
            wa_message_id=result.get("message_id"),
            success=bool(result.get("success")),
            metadata={
                "scheduled_message_id": str(row.id),
                "notification_type": row.message_type,
                "channel": channel,
                "error": result.get("error"),
            },
        )

        if result.get("success"):
            row.status = ScheduledStatus.SENT
            row.sent_at = now
            row.error_message = None
            db.commit()
            logger.info(f"📤 Scheduled {row.message_type} sent to {row.phone} via {channel}")
            return ScheduledStatus.SENT

        return self._record_failure(row, result.get("error") or "Unknown send error", db, now)

    @staticmethod
    def _skip(row: ScheduledMessage, reason: str, db: Session) -> str:
        row.status = ScheduledStatus.CANCELLED
        row.error_message = reason
        db.commit()
        logger.info(f"Skipped scheduled message {row.id}: {reason}")
        return ScheduledStatus.CANCELLED

    @staticmethod
    def _record_failure(row: ScheduledMessage, error: str, db: Session, now: datetime) -> str:
        """Count the attempt: push back by the fixed delay, or give up at the retry ceiling"""
        row.retry_count = (row.retry_count or 0) + 1
        row.error_message = error
        if row.retry_count >= settings.SCHEDULED_MAX_RETRIES:
            row.status = ScheduledStatus.FAILED
            logger.error(f"❌ Scheduled message {row.id} failed after {row.retry_count} attempts: {error}")
        else:
            row.scheduled_at = now + timedelta(minutes=settings.SCHEDULED_RETRY_DELAY_MINUTES)
            logger.warning(f"⚠️ Scheduled message {row.id} attempt {row.retry_count} failed, retrying later: {error}")

        try:
            db.commit()
        except Exception as e:
            logger.error(f"❌ Could not record failure for scheduled message {row.id}: {e}")
            db.rollback()
        return row.status


notification_service = NotificationService()
