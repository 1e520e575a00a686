import logging
from typing import Dict, Optional
from sqlalchemy.orm import Session
from clinic_bot.core.utils import normalize_phone, truncate
from clinic_bot.models.message_log import WhatsAppMessage
from clinic_bot.models.schemas import InboundMessage

logger = logging.getLogger(__name__)

MAX_LOGGED_CONTENT = 1000

class MessageLog:
    """Append-only audit trail of WhatsApp traffic"""

    def append(
        self,
        db: Session,
        phone: str,
        direction: str,
        content: Optional[str],
        message_type: str = "text",
        conversation_id=None,
        wa_message_id: Optional[str] = None,
        success: bool = True,
        metadata: Optional[Dict] = None,
    ) -> bool:
        """
        Record one message. Logging never interrupts the conversation, so a
        failed insert is logged and reported as False.
        """
        if direction == "inbound":
            status = "received"
        else:
            status = "sent" if success else "failed"

        try:
            entry = WhatsAppMessage(
                conversation_id=conversation_id,
                phone=normalize_phone(phone),
                direction=direction,
                message_type=message_type,
                content=truncate(content, MAX_LOGGED_CONTENT),
                wa_message_id=wa_message_id,
                status=status,
                message_metadata=metadata or {},
            )
            db.add(entry)
            db.commit()
            return True
        except Exception as e:
            logger.error(f"Error logging {direction} message for {phone}: {e}")
            db.rollback()
            return False

    def record_inbound(self, db: Session, inbound: InboundMessage, conversation_id=None) -> bool:
        """
        Log an inbound message once per WhatsApp id. The webhook records it
        before queueing, so the router's later call finds the row and writes
        nothing.
        """
        if self.is_duplicate_inbound(inbound.message_id, db):
            return True
        return self.append(
            db,
            phone=inbound.phone,
            direction="inbound",
            content=inbound.content,
            message_type=inbound.type.value,
            conversation_id=conversation_id,
            wa_message_id=inbound.message_id,
            metadata={"title": inbound.title} if inbound.title else None,
        )

    def is_duplicate_inbound(self, wa_message_id: Optional[str], db: Session) -> bool:
        """True when this WhatsApp message id was already received (webhook redelivery)."""
        if not wa_message_id:
            return False
        return db.query(WhatsAppMessage.id).filter(
            WhatsAppMessage.wa_message_id == wa_message_id,
            WhatsAppMessage.direction == "inbound",
        ).first() is not None


message_log = MessageLog()
