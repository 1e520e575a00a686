from sqlalchemy import Column, String, Text, DateTime, Boolean, ForeignKey, Uuid
from sqlalchemy.sql import func
from clinic_bot.core.database import Base
import uuid

class Notification(Base):
    """In-app notification shown on the admin dashboard."""
    __tablename__ = "notifications"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    user_id = Column(Uuid(as_uuid=True), ForeignKey('users.id'), nullable=False, index=True)
    title = Column(String(255), nullable=False)
    message = Column(Text, nullable=False)
    type = Column(String(50), nullable=False, default="appointment")
    related_type = Column(String(50), nullable=True)
    related_id = Column(Uuid(as_uuid=True), nullable=True)
    is_read = Column(Boolean, default=False, nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), index=True)
