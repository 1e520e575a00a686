from fastapi import APIRouter, BackgroundTasks, Depends, Header, Query, Request
from fastapi.responses import JSONResponse, PlainTextResponse
from sqlalchemy.orm import Session
from typing import Optional
from clinic_bot.core.clinic_time import now_utc
from clinic_bot.core.config import settings
from clinic_bot.core.database import SessionLocal, get_db
from clinic_bot.core.message_log import message_log
from clinic_bot.core.state_manager import state_manager
from clinic_bot.core.utils import normalize_phone
from clinic_bot.models.schemas import InboundMessage, SendMessageRequest
from clinic_bot.services.message_router import parse_incoming_message, handle_incoming_message
from clinic_bot.services.notification_service import notification_service, render_notification
from clinic_bot.services.whatsapp_service import whatsapp_service
import hashlib
import hmac
import json
import logging

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/whatsapp", tags=["WhatsApp"])


def verify_signature(raw_body: bytes, signature: Optional[str]) -> bool:
    """
    Check Meta's X-Hub-Signature-256 header (HMAC-SHA256 of the raw body with
    the app secret). Without a configured secret the check is skipped.
    """
    if not settings.WHATSAPP_APP_SECRET:
        logger.warning("⚠️ WHATSAPP_APP_SECRET not set, skipping signature verification")
        return True
    if not signature:
        return False

    expected = "sha256=" + hmac.new(
        settings.WHATSAPP_APP_SECRET.encode("utf-8"), raw_body, hashlib.sha256
    ).hexdigest()
    return hmac.compare_digest(signature.encode("utf-8"), expected.encode("utf-8"))


def cron_authorized(token: Optional[str], authorization: Optional[str]) -> bool:
    secret = settings.CRON_SECRET
    if token and hmac.compare_digest(token.encode("utf-8"), secret.encode("utf-8")):
        return True
    return bool(authorization) and hmac.compare_digest(authorization.encode("utf-8"), f"Bearer {secret}".encode("utf-8"))


def admin_authorized(authorization: Optional[str]) -> bool:
    secret = settings.ADMIN_API_TOKEN
    if not secret or not authorization:
        return False
    return hmac.compare_digest(authorization.encode("utf-8"), f"Bearer {secret}".encode("utf-8"))


async def process_inbound(inbound: InboundMessage):
    """Background task: handle one inbound message with its own session"""
    db = SessionLocal()
    try:
        await handle_incoming_message(inbound, db)
    finally:
        db.close()


@router.get("/webhook")
def verify_webhook(
    hub_mode: Optional[str] = Query(None, alias="hub.mode"),
    hub_verify_token: Optional[str] = Query(None, alias="hub.verify_token"),
    hub_challenge: Optional[str] = Query(None, alias="hub.challenge"),
):
    """Meta subscription handshake: echo the challenge when the token matches"""
    if not settings.WHATSAPP_VERIFY_TOKEN:
        logger.error("WHATSAPP_VERIFY_TOKEN not configured")
        return JSONResponse(status_code=500, content={"error": "Server misconfigured"})

    if hub_mode == "subscribe" and hub_verify_token == settings.WHATSAPP_VERIFY_TOKEN:
        logger.info("✅ WhatsApp webhook verified")
        return PlainTextResponse(hub_challenge or "")

    return JSONResponse(status_code=403, content={"error": "Forbidden"})


@router.post("/webhook")
async def receive_webhook(
    request: Request,
    background_tasks: BackgroundTasks,
    db: Session = Depends(get_db)
):
    """
    Inbound messages and delivery statuses. Answers 200 as soon as the
    payload is accepted; messages are handled in the background.
    """
    raw_body = await request.body()

    if not verify_signature(raw_body, request.headers.get("x-hub-signature-256")):
        logger.error("❌ Invalid webhook signature")
        return JSONResponse(status_code=403, content={"error": "Invalid signature"})

    try:
        body = json.loads(raw_body)
    except ValueError:
        logger.error("❌ Webhook body is not valid JSON")
        return {"status": "error"}

    if body.get("object") != "whatsapp_business_account":
        return {"status": "ignored"}

    queued = 0
    for entry in body.get("entry") or []:
        for change in entry.get("changes") or []:
            if change.get("field") != "messages":
                continue
            value = change.get("value") or {}

            for message in value.get("messages") or []:
                if message_log.is_duplicate_inbound(message.get("id"), db):
                    logger.info(f"Skipping duplicate message: {message.get('id')}")
                    continue

                inbound = parse_incoming_message(message)
                if inbound:
                    # Claim the id now so a redelivery racing the background task is skipped
                    conversation = state_manager.get_state(inbound.phone, db)
                    message_log.record_inbound(db, inbound, conversation.id if conversation else None)
                    background_tasks.add_task(process_inbound, inbound)
                    queued += 1

            for delivery in value.get("statuses") or []:
                if delivery.get("status") == "failed":
                    logger.error(
                        f"❌ WhatsApp delivery failed: message={delivery.get('id')} "
                        f"recipient={delivery.get('recipient_id')} errors={delivery.get('errors')}"
                    )

    logger.info(f"📥 Webhook accepted, {queued} message(s) queued")
    return {"status": "ok"}


@router.get("/cron")
async def run_scheduled_messages(
    token: Optional[str] = Query(None),
    authorization: Optional[str] = Header(None),
    db: Session = Depends(get_db)
):
    """Deliver due scheduled messages (called by an external scheduler)"""
    if not cron_authorized(token, authorization):
        return JSONResponse(status_code=401, content={"error": "Unauthorized"})

    try:
        result = await notification_service.process_scheduled_messages(db)
    except Exception as e:
        logger.error(f"❌ Cron processing error: {e}", exc_info=True)
        return JSONResponse(status_code=500, content={"error": "Internal server error", "message": str(e)})

    return {"success": True, **result, "timestamp": now_utc().isoformat()}


@router.post("/send")
async def send_message(
    request: SendMessageRequest,
    authorization: Optional[str] = Header(None),
    db: Session = Depends(get_db)
):
    """
    Outbound send for the admin panel and system events.

    Sends `message` as plain text, or renders a typed notification from
    `type` + `params`. 400 when the recipient or both payloads are missing,
    500 when the send fails.
    """
    if not admin_authorized(authorization):
        return JSONResponse(status_code=401, content={"error": "Unauthorized"})

    if not request.to:
        return JSONResponse(status_code=400, content={"error": "Missing 'to' phone number"})

    phone = normalize_phone(request.to)

    if request.type and request.params:
        result = await notification_service.send_whatsapp_notification(phone, request.type, request.params)
        content = render_notification(request.type, request.params) or request.type
        message_type = "notification"
    elif request.message:
        result = await whatsapp_service.send_text(phone, request.message)
        content = request.message
        message_type = "text"
    else:
        return JSONResponse(status_code=400, content={"error": "Missing 'message' or 'type'+'params'"})

    conversation = state_manager.get_state(phone, db)
    message_log.append(
        db,
        phone=phone,
        direction="outbound",
        content=content,
        message_type=message_type,
        conversation_id=conversation.id if conversation else None,
        wa_message_id=result.get("message_id"),
        success=bool(result.get("success")),
        metadata={"error": result["error"]} if result.get("error") else None,
    )

    if result.get("success"):
        logger.info(f"✅ Admin {message_type} sent to {phone}")
        return {"success": True, "message_id": result.get("message_id")}

    logger.error(f"❌ Admin send to {phone} failed: {result.get('error')}")
    return JSONResponse(status_code=500, content={"error": result.get("error") or "Failed to send message"})
