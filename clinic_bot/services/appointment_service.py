from datetime import datetime
from typing import List, Optional, Sequence
from sqlalchemy.orm import Session
from clinic_bot.core.utils import parse_uuid
from clinic_bot.models.appointment import Appointment, AppointmentStatus
from clinic_bot.models.notification import Notification
import logging

logger = logging.getLogger(__name__)

PATIENT_CANCELLATION_REASON = "Cancelled by patient via WhatsApp"

class AppointmentService:

    def get(self, appointment_id, db: Session) -> Optional[Appointment]:
        appointment_id = parse_uuid(appointment_id)
        if not appointment_id:
            return None
        return db.query(Appointment).filter(Appointment.id == appointment_id).first()

    def list_for_patient(
        self,
        patient_id,
        db: Session,
        statuses: Sequence[str] = AppointmentStatus.ACTIVE
    ) -> List[Appointment]:
        """Patient's appointments in the given statuses, earliest first"""
        return db.query(Appointment).filter(
            Appointment.patient_id == parse_uuid(patient_id),
            Appointment.status.in_(statuses)
        ).order_by(Appointment.date.asc()).all()

    def create_from_whatsapp(
        self,
        patient_id,
        name: str,
        email: str,
        phone: str,
        date_utc: datetime,
        reason: str,
        db: Session
    ) -> Appointment:
        """Insert a pending appointment booked through the chatbot"""
        appointment = Appointment(
            patient_id=parse_uuid(patient_id),
            name=name,
            email=email,
            phone=phone,
            date=date_utc,
            reason_for_visit=reason,
            message=f"[Booked via WhatsApp] {reason}",
            status=AppointmentStatus.PENDING,
            consultation_status="pending",
        )
        try:
            db.add(appointment)
            db.commit()
            db.refresh(appointment)
        except Exception:
            db.rollback()
            raise

        logger.info(f"✅ Appointment created via WhatsApp: {appointment.id}")
        return appointment

    def cancel(self, appointment_id, db: Session, reason: str = PATIENT_CANCELLATION_REASON) -> Appointment:
        appointment = self._require(appointment_id, db)
        appointment.status = AppointmentStatus.CANCELLED
        appointment.cancellation_reason = reason
        self._commit(db)
        logger.info(f"Appointment {appointment.id} cancelled")
        return appointment

    def reschedule(self, appointment_id, new_date_utc: datetime, db: Session) -> Appointment:
        """Move the appointment, keeping the previous instant in rescheduled_from"""
        appointment = self._require(appointment_id, db)
        appointment.rescheduled_from = appointment.date
        appointment.date = new_date_utc
        appointment.status = AppointmentStatus.RESCHEDULED
        self._commit(db)
        logger.info(f"Appointment {appointment.id} rescheduled to {new_date_utc.isoformat()}")
        return appointment

    def add_admin_notification(self, admin_id, appointment: Appointment, message: str, db: Session) -> Notification:
        """In-app notification for the admin dashboard"""
        notification = Notification(
            user_id=admin_id,
            title="New Appointment (WhatsApp)",
            message=message,
            type="appointment",
            related_type="appointment",
            related_id=appointment.id,
        )
        db.add(notification)
        self._commit(db)
        return notification

    def _require(self, appointment_id, db: Session) -> Appointment:
        appointment = self.get(appointment_id, db)
        if not appointment:
            raise LookupError(f"Appointment {appointment_id} not found")
        return appointment

    @staticmethod
    def _commit(db: Session):
        try:
            db.commit()
        except Exception:
            db.rollback()
            raise


appointment_service = AppointmentService()
