"""
Tests for transactional emails sent through Resend.
"""

import asyncio

import resend

from clinic_bot.core.config import settings
from clinic_bot.services import email_service


class TestEmailService:

    def test_not_configured(self, monkeypatch):
        monkeypatch.setattr(settings, "RESEND_API_KEY", "")

        result = asyncio.run(email_service.send_email("asha@x.com", "Hi", "<p>Hi</p>"))

        assert result == {"success": False, "error": "Email service not configured"}

    def test_sends_through_resend(self, monkeypatch):
        sent = []

        def fake_send(params):
            sent.append(params)
            return {"id": "email-1"}

        monkeypatch.setattr(settings, "RESEND_API_KEY", "re_test")
        monkeypatch.setattr(resend.Emails, "send", fake_send)

        result = asyncio.run(email_service.send_appointment_confirmation("asha@x.com", "Asha Rao", {
            "date": "Tuesday, 10 November 2026", "time": "10:00 AM", "reason": "skin rash",
        }))

        assert result["success"] is True
        assert sent[0]["to"] == ["asha@x.com"]
        assert "Tuesday, 10 November 2026" in sent[0]["html"]

    def test_patient_text_is_escaped(self, monkeypatch):
        sent = []
        monkeypatch.setattr(settings, "RESEND_API_KEY", "re_test")
        monkeypatch.setattr(resend.Emails, "send", lambda params: sent.append(params) or {"id": "email-1"})

        asyncio.run(email_service.send_new_appointment_admin("admin@x.com", {
            "patient_name": '<a href="https://evil.example">Click</a>',
            "email": "asha@x.com",
            "phone": "919876543210",
            "date": "Tuesday, 10 November 2026",
            "time": "10:00 AM",
            "reason": "<script>alert(1)</script>",
        }))
        asyncio.run(email_service.send_welcome_email("asha@x.com", "<b>Asha</b>"))

        admin_html, welcome_html = sent[0]["html"], sent[1]["html"]
        assert '<a href="https://evil.example">' not in admin_html
        assert "&lt;a href=&quot;https://evil.example&quot;&gt;Click&lt;/a&gt;" in admin_html
        assert "<script>" not in admin_html
        assert "<b>Asha</b>" not in welcome_html
        assert "Welcome, &lt;b&gt;Asha&lt;/b&gt;!" in welcome_html

    def test_provider_error(self, monkeypatch):
        def failing_send(params):
            raise RuntimeError("rate limited")

        monkeypatch.setattr(settings, "RESEND_API_KEY", "re_test")
        monkeypatch.setattr(resend.Emails, "send", failing_send)

        result = asyncio.run(email_service.send_welcome_email("asha@x.com", "Asha Rao"))

        assert result["success"] is False
        assert "rate limited" in result["error"]
