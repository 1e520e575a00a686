from sqlalchemy import Column, String, Text, DateTime, ForeignKey, Uuid
from sqlalchemy.sql import func
from sqlalchemy.orm import relationship
from clinic_bot.core.database import Base
import uuid

class AppointmentStatus:
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"
    RESCHEDULED = "rescheduled"
    COMPLETED = "completed"
    CANCELLED = "cancelled"

    ACTIVE = (PENDING, APPROVED, RESCHEDULED)
    RESCHEDULABLE = (PENDING, APPROVED)
    DEAD = (CANCELLED, REJECTED)

class Doctor(Base):
    __tablename__ = "doctors"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    user_id = Column(Uuid(as_uuid=True), ForeignKey('users.id'), nullable=False, index=True)
    specialization = Column(String(255), nullable=True)

    user = relationship("User")

    @property
    def display_name(self):
        return self.user.full_name if self.user else None

class Appointment(Base):
    __tablename__ = "appointments"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    patient_id = Column(Uuid(as_uuid=True), ForeignKey('users.id'), nullable=True, index=True)
    doctor_id = Column(Uuid(as_uuid=True), ForeignKey('doctors.id'), nullable=True, index=True)

    name = Column(String(255), nullable=False)
    email = Column(String(255), nullable=True)
    phone = Column(String(50), nullable=True)
    date = Column(DateTime(timezone=True), nullable=False, index=True)  # UTC
    reason_for_visit = Column(Text, nullable=True)
    message = Column(Text, nullable=True)

    status = Column(String(20), nullable=False, default=AppointmentStatus.PENDING, index=True)
    consultation_status = Column(String(20), nullable=False, default="pending")
    rescheduled_from = Column(DateTime(timezone=True), nullable=True)
    cancellation_reason = Column(Text, nullable=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    patient = relationship("User", back_populates="appointments", foreign_keys=[patient_id])
    doctor = relationship("Doctor")

    @property
    def doctor_name(self):
        return self.doctor.display_name if self.doctor else None

    def __repr__(self):
        return f"<Appointment(id={self.id}, status={self.status}, date={self.date})>"
