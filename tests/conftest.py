import os

# Must be set before clinic_bot.core.config is imported
os.environ["DATABASE_URL"] = "sqlite://"
os.environ["SKIP_WHATSAPP_IN_DEV"] = "false"
os.environ["WHATSAPP_ACCESS_TOKEN"] = ""
os.environ["WHATSAPP_PHONE_NUMBER_ID"] = ""
os.environ["WHATSAPP_APP_SECRET"] = ""
os.environ["WHATSAPP_VERIFY_TOKEN"] = "verify-me"
os.environ["CRON_SECRET"] = "cron-secret"
os.environ["ADMIN_API_TOKEN"] = "admin-token"
os.environ["RESEND_API_KEY"] = ""

import asyncio
from datetime import timedelta

import pytest

from clinic_bot.core.clinic_time import now_utc
from clinic_bot.core.database import SessionLocal, init_db, drop_db
from clinic_bot.models.appointment import Appointment, AppointmentStatus
from clinic_bot.models.schemas import InboundMessage, InboundType
from clinic_bot.models.user import User, UserRole
from clinic_bot.services import email_service
from clinic_bot.services.message_router import handle_incoming_message
from clinic_bot.services.whatsapp_service import whatsapp_service


class FakeTransport:
    """Records every outbound send instead of calling the Cloud API."""

    def __init__(self):
        self.sent = []
        self.read = []
        self.fail_template = False
        self.fail_text = False
        self._counter = 0

    def _result(self, ok=True, error=None):
        if not ok:
            return {"success": False, "error": error}
        self._counter += 1
        return {"success": True, "message_id": f"wamid.out.{self._counter}"}

    async def send_text(self, to, text):
        self.sent.append({"kind": "text", "to": to, "text": text})
        return self._result(not self.fail_text, "text send failed")

    async def send_buttons(self, to, text, buttons, header=None, footer=None):
        self.sent.append({"kind": "buttons", "to": to, "text": text, "buttons": buttons,
                          "header": header, "footer": footer})
        return self._result()

    async def send_list(self, to, text, button_text, sections, header=None, footer=None):
        self.sent.append({"kind": "list", "to": to, "text": text, "button": button_text,
                          "sections": sections, "header": header})
        return self._result()

    async def send_template(self, to, template_name, language_code="en", components=None):
        self.sent.append({"kind": "template", "to": to, "template": template_name,
                          "language": language_code, "components": components or []})
        return self._result(not self.fail_template, "Template not approved")

    async def mark_as_read(self, message_id):
        self.read.append(message_id)
        return self._result()

    @property
    def last(self):
        return self.sent[-1]

    def kinds(self):
        return [message["kind"] for message in self.sent]

    def clear(self):
        self.sent.clear()


class FakeEmails:
    def __init__(self):
        self.sent = []

    def recorder(self, kind):
        async def record(to, *args):
            self.sent.append((kind, to))
            return {"success": True, "id": f"email-{len(self.sent)}"}
        return record

    def kinds(self):
        return [kind for kind, _ in self.sent]


@pytest.fixture
def db():
    init_db()
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()
        drop_db()


@pytest.fixture
def transport(monkeypatch):
    fake = FakeTransport()
    for name in ("send_text", "send_buttons", "send_list", "send_template", "mark_as_read"):
        monkeypatch.setattr(whatsapp_service, name, getattr(fake, name))
    return fake


@pytest.fixture
def emails(monkeypatch):
    fake = FakeEmails()
    monkeypatch.setattr(email_service, "send_welcome_email", fake.recorder("welcome"))
    monkeypatch.setattr(email_service, "send_appointment_confirmation", fake.recorder("confirmation"))
    monkeypatch.setattr(email_service, "send_new_appointment_admin", fake.recorder("admin"))
    return fake


@pytest.fixture
def say(db, transport, emails):
    """Deliver an inbound message to the router, as the webhook would."""

    def _say(phone, content, interactive=False, message_id=None):
        inbound = InboundMessage(
            phone=phone,
            message_id=message_id,
            type=InboundType.INTERACTIVE if interactive else InboundType.TEXT,
            content=content,
        )
        asyncio.run(handle_incoming_message(inbound, db))

    return _say


@pytest.fixture
def patient(db):
    user = User(full_name="Ravi Kumar", email="ravi@example.com", phone="919876543210", role=UserRole.PATIENT)
    db.add(user)
    db.commit()
    db.refresh(user)
    return user


@pytest.fixture
def make_appointment(db):
    def _make(user, days_ahead=10, status=AppointmentStatus.PENDING, reason="Joint pain"):
        appointment = Appointment(
            patient_id=user.id,
            name=user.full_name,
            email=user.email,
            phone=user.phone,
            date=now_utc() + timedelta(days=days_ahead),
            reason_for_visit=reason,
            status=status,
        )
        db.add(appointment)
        db.commit()
        db.refresh(appointment)
        return appointment

    return _make
