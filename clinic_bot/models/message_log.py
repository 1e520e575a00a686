from sqlalchemy import Column, String, Text, DateTime, ForeignKey, Uuid
from sqlalchemy.sql import func
from clinic_bot.core.database import Base, JSONType
import uuid

class WhatsAppMessage(Base):
    """Append-only audit of every inbound and outbound WhatsApp message."""
    __tablename__ = "whatsapp_messages"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    conversation_id = Column(Uuid(as_uuid=True), ForeignKey('whatsapp_conversations.id'), nullable=True, index=True)
    phone = Column(String(50), nullable=False, index=True)
    direction = Column(String(10), nullable=False)  # 'inbound', 'outbound'
    message_type = Column(String(20), nullable=False)  # 'text', 'interactive', 'notification', 'unsupported', 'system'
    content = Column(Text, nullable=True)
    wa_message_id = Column(String(255), nullable=True, index=True)
    status = Column(String(20), nullable=False)  # 'received', 'sent', 'failed'
    message_metadata = Column("metadata", JSONType, nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), index=True)
