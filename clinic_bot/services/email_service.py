"""
Transactional email via Resend.

Every helper returns a dict shaped like the WhatsApp transport result
({"success": bool, "id"?, "error"?}) so booking side effects can log
failures without raising.
"""

import html
import logging
from typing import Dict, List, Union

import resend

from clinic_bot.core.config import settings

logger = logging.getLogger(__name__)


def base_template(content: str, title: str = "Abel Wellness") -> str:
    return f"""<!DOCTYPE html>
<html lang="en">
<head>
  <meta charset="UTF-8">
  <meta name="viewport" content="width=device-width, initial-scale=1.0">
  <title>{title}</title>
  <style>
    body {{ font-family: 'Segoe UI', Tahoma, Geneva, Verdana, sans-serif; line-height: 1.6; color: #333;
           max-width: 600px; margin: 0 auto; padding: 20px; background-color: #f5f5f5; }}
    .container {{ background-color: #ffffff; border-radius: 10px; padding: 30px; }}
    .info-box {{ background-color: #f0f7f4; border-left: 4px solid #2e7d5b; padding: 15px; margin: 20px 0; }}
    .details-table td {{ padding: 4px 12px 4px 0; }}
    .button {{ display: inline-block; padding: 12px 24px; background-color: #2e7d5b; color: #ffffff;
              text-decoration: none; border-radius: 6px; }}
  </style>
</head>
<body>
  <div class="container">
    {content}
    <p style="color: #888; font-size: 12px;">{settings.CLINIC_NAME} · {settings.CLINIC_PHONE}</p>
  </div>
</body>
</html>"""


def _escape(value) -> str:
    """HTML-escape a value for an email body (None renders empty)"""
    if value is None:
        return ""
    return html.escape(str(value), quote=True)


def _details_table(rows: List[tuple]) -> str:
    cells = "".join(f"<tr><td>{label}</td><td>{_escape(value)}</td></tr>" for label, value in rows)
    return f'<table class="details-table">{cells}</table>'


async def send_email(to: Union[str, List[str]], subject: str, html_content: str) -> dict:
    """
    Send an email through Resend.

    Args:
        to: Recipient email(s)
        subject: Email subject line
        html_content: Rendered HTML body

    Returns:
        dict with 'success' key, the Resend 'id' or an 'error' message
    """
    recipients = [to] if isinstance(to, str) else to

    if not settings.RESEND_API_KEY:
        logger.warning(f"⚠️ RESEND_API_KEY missing, skipping email '{subject}' to {recipients}")
        return {"success": False, "error": "Email service not configured"}

    resend.api_key = settings.RESEND_API_KEY
    try:
        logger.info(f"📧 Sending email via Resend to: {recipients}")
        response = resend.Emails.send({
            "from": settings.EMAIL_FROM_ADDRESS,
            "to": recipients,
            "subject": subject,
            "html": html_content,
        })
        logger.info(f"✅ Email sent successfully via Resend: {response}")
        return {"success": True, "id": response.get("id") if isinstance(response, dict) else None}
    except Exception as e:
        logger.error(f"❌ Email send error to {recipients}: {e}")
        return {"success": False, "error": str(e)}


async def send_welcome_email(to: str, patient_name: str) -> dict:
    """Welcome email for a patient account created over WhatsApp"""
    html_content = base_template(f"""
      <h2>Welcome, {_escape(patient_name)}! 🎉</h2>
      <p>Thank you for choosing Abel Wellness for your healthcare needs.</p>
      <p>Your account has been created successfully. You can now:</p>
      <ul>
        <li>📅 Book and manage appointments</li>
        <li>👤 View your medical history</li>
        <li>💊 Track your prescriptions</li>
      </ul>
      <div class="info-box">
        <strong>🔐 How to Login:</strong>
        <p>Enter your email address on the login page and we'll send you a one-time code.</p>
      </div>
      <p style="text-align: center;"><a href="{settings.APP_URL}/patient/login" class="button">Go to Dashboard</a></p>
    """)
    return await send_email(to, "Welcome to Abel Wellness! 🌟", html_content)


async def send_appointment_confirmation(to: str, patient_name: str, details: Dict) -> dict:
    """Appointment-request-received email for the patient"""
    table = _details_table([
        ("Date", details.get("date")),
        ("Time", details.get("time")),
        ("Reason", details.get("reason") or "General Consultation"),
    ])
    html_content = base_template(f"""
      <h2>Hello {_escape(patient_name)}!</h2>
      <p>We have received your appointment request. Our team will review and confirm it shortly.</p>
      <div class="info-box"><h3 style="margin-top: 0;">📅 Appointment Details</h3>{table}</div>
      <p>You will receive another email once your appointment is confirmed with an assigned doctor.</p>
      <p style="text-align: center;"><a href="{settings.APP_URL}/patient/dashboard" class="button">View Your Dashboard</a></p>
    """)
    return await send_email(to, "Appointment Request Received - Abel Wellness", html_content)


async def send_new_appointment_admin(to: str, details: Dict) -> dict:
    """New-appointment notice for an admin"""
    table = _details_table([
        ("Name", details.get("patient_name")),
        ("Email", details.get("email")),
        ("Phone", details.get("phone")),
        ("Requested Date", details.get("date")),
        ("Time", details.get("time")),
        ("Reason", details.get("reason") or "Not specified"),
    ])
    html_content = base_template(f"""
      <h2>New Appointment Request 📋</h2>
      <p>A new appointment request has been submitted and requires your attention.</p>
      <div class="info-box"><h3 style="margin-top: 0;">Patient Information</h3>{table}</div>
      <p style="text-align: center;"><a href="{settings.APP_URL}/admin/appointments" class="button">Review Appointment</a></p>
    """)
    return await send_email(to, "New Appointment Request - Abel Wellness Admin", html_content)
