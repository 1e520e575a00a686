import httpx
import logging
from typing import Dict, List, Optional
from clinic_bot.core.config import settings
from clinic_bot.core.utils import normalize_phone

logger = logging.getLogger(__name__)

class WhatsAppService:
    """Sends messages through the WhatsApp Business Cloud API"""

    MAX_BUTTONS = 3
    MAX_BUTTON_TITLE = 20
    MAX_LIST_ROWS = 10
    MAX_ROW_TITLE = 24
    MAX_ROW_DESCRIPTION = 72
    MAX_LIST_BUTTON = 20

    def _messages_url(self) -> str:
        return f"{settings.WHATSAPP_API_URL}/{settings.WHATSAPP_PHONE_NUMBER_ID}/messages"

    async def _post(self, body: Dict) -> dict:
        """
        Core send: every helper builds a Cloud API payload and posts it here.

        Returns:
            dict with 'success' key, 'message_id' when accepted and 'error' otherwise
        """
        if settings.SKIP_WHATSAPP_IN_DEV:
            logger.info(f"📤 DEV MODE: Would send {body.get('type', 'status')} message to {body.get('to')}")
            return {"success": True, "message_id": None, "dev_mode": True}

        if not settings.WHATSAPP_ACCESS_TOKEN or not settings.WHATSAPP_PHONE_NUMBER_ID:
            logger.error("WhatsApp credentials not configured")
            return {"success": False, "error": "WhatsApp credentials not configured"}

        try:
            async with httpx.AsyncClient(timeout=30.0) as client:
                response = await client.post(
                    self._messages_url(),
                    headers={"Authorization": f"Bearer {settings.WHATSAPP_ACCESS_TOKEN}"},
                    json=body,
                )

            try:
                data = response.json()
            except ValueError:
                data = {}

            if response.status_code == 200:
                messages = data.get("messages") or [{}]
                return {"success": True, "message_id": messages[0].get("id")}

            error_msg = (data.get("error") or {}).get("message") or f"WhatsApp API error: {response.status_code}"
            logger.error(f"❌ WhatsApp API error {response.status_code}: {response.text}")
            return {"success": False, "error": error_msg, "status": response.status_code}

        except httpx.TimeoutException:
            error_msg = "Timeout sending WhatsApp message"
            logger.error(error_msg)
            return {"success": False, "error": error_msg}
        except Exception as e:
            error_msg = f"Error sending WhatsApp message: {str(e)}"
            logger.error(error_msg, exc_info=True)
            return {"success": False, "error": error_msg}

    @staticmethod
    def _envelope(to: str, message_type: str) -> Dict:
        return {
            "messaging_product": "whatsapp",
            "recipient_type": "individual",
            "to": normalize_phone(to),
            "type": message_type,
        }

    @staticmethod
    def _frame(interactive: Dict, header: Optional[str], footer: Optional[str]) -> Dict:
        if header:
            interactive["header"] = {"type": "text", "text": header}
        if footer:
            interactive["footer"] = {"text": footer}
        return interactive

    async def send_text(self, to: str, text: str) -> dict:
        body = self._envelope(to, "text")
        body["text"] = {"preview_url": False, "body": text}
        return await self._post(body)

    async def send_buttons(
        self,
        to: str,
        text: str,
        buttons: List[Dict],
        header: Optional[str] = None,
        footer: Optional[str] = None
    ) -> dict:
        """
        Send reply buttons. Only the first 3 are sent and titles are cut to
        20 characters.

        Args:
            buttons: [{"id": ..., "title": ...}]
        """
        interactive = {
            "type": "button",
            "body": {"text": text},
            "action": {
                "buttons": [
                    {
                        "type": "reply",
                        "reply": {
                            "id": button.get("id") or f"btn_{i}",
                            "title": button["title"][:self.MAX_BUTTON_TITLE],
                        },
                    }
                    for i, button in enumerate(buttons[:self.MAX_BUTTONS])
                ]
            },
        }
        body = self._envelope(to, "interactive")
        body["interactive"] = self._frame(interactive, header, footer)
        return await self._post(body)

    async def send_list(
        self,
        to: str,
        text: str,
        button_text: str,
        sections: List[Dict],
        header: Optional[str] = None,
        footer: Optional[str] = None
    ) -> dict:
        """
        Send a sectioned list. Each section keeps at most 10 rows; row titles,
        descriptions and the button label are cut to the Cloud API limits.

        Args:
            sections: [{"title": ..., "rows": [{"id", "title", "description"}]}]
        """
        built_sections = []
        for section in sections:
            rows = []
            for row in section.get("rows", [])[:self.MAX_LIST_ROWS]:
                built = {"id": row["id"], "title": row["title"][:self.MAX_ROW_TITLE]}
                if row.get("description"):
                    built["description"] = row["description"][:self.MAX_ROW_DESCRIPTION]
                rows.append(built)
            built_section = {"rows": rows}
            if section.get("title"):
                built_section["title"] = section["title"][:self.MAX_ROW_TITLE]
            built_sections.append(built_section)

        interactive = {
            "type": "list",
            "body": {"text": text},
            "action": {
                "button": button_text[:self.MAX_LIST_BUTTON],
                "sections": built_sections,
            },
        }
        body = self._envelope(to, "interactive")
        body["interactive"] = self._frame(interactive, header, footer)
        return await self._post(body)

    async def send_template(
        self,
        to: str,
        template_name: str,
        language_code: str = "en",
        components: Optional[List[Dict]] = None
    ) -> dict:
        """Send an approved template (required outside the 24h service window)."""
        template = {"name": template_name, "language": {"code": language_code}}
        if components:
            template["components"] = components
        body = self._envelope(to, "template")
        body["template"] = template
        return await self._post(body)

    async def mark_as_read(self, message_id: str) -> dict:
        return await self._post({
            "messaging_product": "whatsapp",
            "status": "read",
            "message_id": message_id,
        })


whatsapp_service = WhatsAppService()
