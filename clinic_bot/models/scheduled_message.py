from sqlalchemy import Column, String, Text, Integer, DateTime, Uuid
from sqlalchemy.sql import func
from clinic_bot.core.database import Base, JSONType
import uuid

class ScheduledStatus:
    PENDING = "pending"
    SENT = "sent"
    CANCELLED = "cancelled"
    FAILED = "failed"

class ScheduledMessage(Base):
    __tablename__ = "whatsapp_scheduled_messages"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    phone = Column(String(50), nullable=False, index=True)
    user_id = Column(Uuid(as_uuid=True), nullable=True, index=True)
    message_type = Column(String(50), nullable=False, index=True)
    related_type = Column(String(50), nullable=True)  # 'appointment'
    related_id = Column(Uuid(as_uuid=True), nullable=True, index=True)
    scheduled_at = Column(DateTime(timezone=True), nullable=False, index=True)
    template_name = Column(String(100), nullable=True)
    template_params = Column(JSONType, nullable=True)
    status = Column(String(20), nullable=False, default=ScheduledStatus.PENDING, index=True)
    retry_count = Column(Integer, nullable=False, default=0)
    error_message = Column(Text, nullable=True)
    sent_at = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    def __repr__(self):
        return f"<ScheduledMessage(type={self.message_type}, status={self.status}, scheduled_at={self.scheduled_at})>"
