import logging
from typing import Dict, List, Optional
from sqlalchemy.orm import Session
from clinic_bot.core.constants import Action
from clinic_bot.core.message_log import message_log
from clinic_bot.models.conversation import WhatsAppConversation
from clinic_bot.services.whatsapp_service import whatsapp_service

logger = logging.getLogger(__name__)

CONFIRM_BUTTONS = [
    {"id": Action.CONFIRM_YES.value, "title": "✅ Confirm"},
    {"id": Action.CONFIRM_NO.value, "title": "❌ Cancel"},
]


class Messenger:
    """
    Replies to one conversation. Every send goes through the WhatsApp
    transport and is appended to the message log with its outcome; a failed
    send is logged, never raised.
    """

    def __init__(self, conversation: WhatsAppConversation, db: Session):
        self.conversation = conversation
        self.db = db

    @property
    def phone(self) -> str:
        return self.conversation.phone

    async def text(self, body: str) -> dict:
        result = await whatsapp_service.send_text(self.phone, body)
        self._record(body, "text", result)
        return result

    async def buttons(
        self,
        body: str,
        buttons: List[Dict],
        header: Optional[str] = None,
        footer: Optional[str] = None
    ) -> dict:
        result = await whatsapp_service.send_buttons(self.phone, body, buttons, header, footer)
        self._record(body, "interactive", result, {"buttons": [b["id"] for b in buttons]})
        return result

    async def list(
        self,
        body: str,
        button_text: str,
        sections: List[Dict],
        header: Optional[str] = None,
        footer: Optional[str] = None
    ) -> dict:
        result = await whatsapp_service.send_list(self.phone, body, button_text, sections, header, footer)
        rows = sum(len(section.get("rows", [])) for section in sections)
        self._record(body, "interactive", result, {"list_rows": rows})
        return result

    async def confirm(self, body: str, buttons: Optional[List[Dict]] = None) -> dict:
        return await self.buttons(body, buttons or CONFIRM_BUTTONS)

    def note(self, content: str):
        """Audit entry for a side effect (no message is sent)"""
        message_log.append(
            self.db,
            phone=self.phone,
            direction="outbound",
            content=content,
            message_type="system",
            conversation_id=self.conversation.id,
        )

    def _record(self, content: str, message_type: str, result: dict, metadata: Optional[Dict] = None):
        if not result.get("success"):
            logger.warning(f"⚠️ Send to {self.phone} failed: {result.get('error')}")
        metadata = dict(metadata or {})
        if result.get("error"):
            metadata["error"] = result["error"]
        message_log.append(
            self.db,
            phone=self.phone,
            direction="outbound",
            content=content,
            message_type=message_type,
            conversation_id=self.conversation.id,
            wa_message_id=result.get("message_id"),
            success=bool(result.get("success")),
            metadata=metadata,
        )
