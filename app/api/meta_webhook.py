"""
app/api/meta_webhook.py

Purpose: WhatsApp Cloud API webhook endpoints

- GET: subscription handshake (hub.mode / hub.verify_token / hub.challenge)
- POST: verifies X-Hub-Signature-256, then processes every message in
  the payload; status callbacks carry no messages and are acknowledged
"""

import hashlib
import hmac
import json

from fastapi import APIRouter, BackgroundTasks, Query, Request
from fastapi.responses import PlainTextResponse

from app.core.config import settings
from app.core.exceptions import IdentityError, TransportAuthError
from app.core.logging import get_logger
from app.flow.dispatcher import deliver_outcome, process_inbound
from app.schemas.response import WebhookAck
from app.schemas.webhook import parse_meta_payload

logger = get_logger(__name__)
router = APIRouter()


def verify_meta_signature(body: bytes, signature: str) -> None:
    """
    Raises:
        TransportAuthError: the HMAC-SHA256 of the raw body does not match
    """
    if not settings.META_APP_SECRET:
        logger.warning("⚠️ META_APP_SECRET not set, skipping signature check")
        return

    expected = "sha256=" + hmac.new(
        settings.META_APP_SECRET.encode(), body, hashlib.sha256
    ).hexdigest()
    if not signature or not hmac.compare_digest(expected, signature):
        logger.warning("🚫 Invalid Meta webhook signature")
        raise TransportAuthError("Invalid Meta signature")


@router.get("/webhook")
async def meta_verify(
    mode: str = Query("", alias="hub.mode"),
    token: str = Query("", alias="hub.verify_token"),
    challenge: str = Query("", alias="hub.challenge"),
):
    """
    Meta calls this once when the webhook is registered.
    """
    if mode == "subscribe" and settings.META_VERIFY_TOKEN and token == settings.META_VERIFY_TOKEN:
        logger.info("✅ Meta webhook verified")
        return PlainTextResponse(challenge)
    raise TransportAuthError("Webhook verification failed")


@router.post("/webhook", response_model=WebhookAck)
async def meta_webhook(request: Request, background_tasks: BackgroundTasks):
    body = await request.body()
    verify_meta_signature(body, request.headers.get("X-Hub-Signature-256", ""))

    try:
        payload = json.loads(body or b"{}")
    except ValueError:
        payload = None
    if not isinstance(payload, dict):
        logger.warning(f"⚠️ Ignoring Meta webhook body that is not a JSON object ({len(body)} bytes)")
        return WebhookAck()

    for message in parse_meta_payload(payload):
        try:
            logger.info(f"📱 Meta webhook received from {message.phone}")
            outcome = await process_inbound(message)
            background_tasks.add_task(deliver_outcome, outcome)
        except IdentityError as e:
            logger.warning(f"Dropping message with unusable sender: {e.message}")
        except Exception as e:
            logger.error(f"Webhook error: {e}", exc_info=True)

    return WebhookAck()
