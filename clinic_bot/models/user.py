from sqlalchemy import Column, String, DateTime, Boolean, Uuid
from sqlalchemy.sql import func
from sqlalchemy.orm import relationship
from clinic_bot.core.database import Base
import uuid

class UserRole:
    PATIENT = "patient"
    ADMIN = "admin"
    DOCTOR = "doctor"
    PHARMACIST = "pharmacist"

class User(Base):
    __tablename__ = "users"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    full_name = Column(String(255), nullable=True)
    email = Column(String(255), unique=True, nullable=True, index=True)
    phone = Column(String(50), nullable=True, index=True)
    role = Column(String(20), nullable=False, default=UserRole.PATIENT, index=True)
    is_active = Column(Boolean, default=True, nullable=False)

    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    appointments = relationship("Appointment", back_populates="patient", foreign_keys="Appointment.patient_id")

    def __repr__(self):
        return f"<User(id={self.id}, email={self.email}, role={self.role})>"
