"""
app/api/twilio_webhook.py

Purpose: Twilio WhatsApp webhook endpoint

- Verifies the X-Twilio-Signature header
- Parses the form post into an InboundMessage
- Runs the dialog turn, then delivers replies in the background
- Always answers Twilio with an empty TwiML document
"""

from fastapi import APIRouter, BackgroundTasks, Request
from fastapi.responses import Response
from twilio.request_validator import RequestValidator

from app.core.config import settings
from app.core.exceptions import IdentityError, TransportAuthError
from app.core.logging import get_logger
from app.flow.dispatcher import deliver_outcome, process_inbound
from app.schemas.webhook import parse_twilio_message

logger = get_logger(__name__)
router = APIRouter()

EMPTY_TWIML = '<?xml version="1.0" encoding="UTF-8"?><Response></Response>'


def _twiml() -> Response:
    return Response(content=EMPTY_TWIML, media_type="application/xml")


def verify_twilio_signature(request: Request, params: dict) -> None:
    """
    Raises:
        TransportAuthError: the signature is missing or does not match
    """
    if not settings.TWILIO_AUTH_TOKEN:
        logger.warning("⚠️ TWILIO_AUTH_TOKEN not set, skipping signature check")
        return

    signature = request.headers.get("X-Twilio-Signature", "")
    url = settings.TWILIO_WEBHOOK_URL or str(request.url)
    validator = RequestValidator(settings.TWILIO_AUTH_TOKEN)
    if not signature or not validator.validate(url, params, signature):
        logger.warning(f"🚫 Invalid Twilio signature for {url}")
        raise TransportAuthError("Invalid Twilio signature")


@router.post("/webhook")
async def twilio_webhook(request: Request, background_tasks: BackgroundTasks):
    """
    Twilio posts every inbound WhatsApp message here as form data.
    Replies are sent through the REST API, not in the TwiML body.
    """
    form = await request.form()
    params = {key: value for key, value in form.items()}
    verify_twilio_signature(request, params)

    try:
        message = parse_twilio_message(params)
        logger.info(f"📱 Twilio webhook received from {message.phone}")
        outcome = await process_inbound(message)
        background_tasks.add_task(deliver_outcome, outcome)
    except IdentityError as e:
        logger.warning(f"Dropping message with unusable sender: {e.message}")
    except Exception as e:
        logger.error(f"Webhook error: {e}", exc_info=True)

    return _twiml()
