from sqlalchemy import Column, String, Integer, Boolean, DateTime, ForeignKey, Uuid
from sqlalchemy.sql import func
from clinic_bot.core.database import Base, JSONType
import uuid

class WhatsAppConversation(Base):
    __tablename__ = "whatsapp_conversations"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    phone = Column(String(50), unique=True, nullable=False, index=True)
    flow = Column(String(20), nullable=True)  # booking, status, cancel, reschedule
    current_step = Column(String(50), nullable=False, default="idle")
    context = Column(JSONType, nullable=False, default=dict)
    user_id = Column(Uuid(as_uuid=True), ForeignKey('users.id'), nullable=True, index=True)
    opted_out = Column(Boolean, default=False, nullable=False)
    last_message_at = Column(DateTime(timezone=True), nullable=True, index=True)
    version = Column(Integer, nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    # Optimistic lock: concurrent writes to the same row raise StaleDataError
    __mapper_args__ = {"version_id_col": version}

    # Not persisted: last_message_at as it was before the current inbound message touched it
    previous_message_at = None

    @property
    def is_idle(self):
        return self.current_step == "idle"

    def __repr__(self):
        return f"<WhatsAppConversation(phone={self.phone}, flow={self.flow}, step={self.current_step})>"
