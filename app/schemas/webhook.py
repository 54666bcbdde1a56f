"""
app/schemas/webhook.py

Purpose: WhatsApp webhook payload schemas and parsers

- Twilio form posts and Meta Cloud JSON both become InboundMessage
- Interactive replies keep their button/list id separate from the text
- Image/media attachments are carried as a MediaRef (logo upload)
"""

from pydantic import BaseModel, Field
from typing import Any, Dict, List, Literal, Mapping, Optional
from datetime import datetime

from utils.whatsapp_utils import get_message_text, parse_button_response, parse_list_response

Transport = Literal["twilio", "meta"]


class MediaRef(BaseModel):
    """Reference to an inbound attachment. Twilio gives a URL, Meta a media id."""
    url: Optional[str] = None
    media_id: Optional[str] = None
    mime_type: Optional[str] = None


class InboundMessage(BaseModel):
    """
    Normalized message format for internal processing
    Works with both Twilio and Meta Cloud API
    """
    phone: str = Field(..., description="Sender phone as received from the transport")
    name: Optional[str] = Field(None, description="Sender profile name")
    text: str = Field("", description="Message text content")
    message_id: str = Field(..., description="Provider message identifier")
    timestamp: datetime = Field(default_factory=datetime.utcnow)
    transport: Transport = Field(..., description="Source transport")

    # Structured replies
    interactive_id: Optional[str] = None
    media: Optional[MediaRef] = None

    class Config:
        json_schema_extra = {
            "example": {
                "phone": "+263772123456",
                "name": "Tariro",
                "text": "1",
                "message_id": "SM1234567890",
                "transport": "twilio"
            }
        }


def parse_twilio_message(form: Mapping[str, Any]) -> InboundMessage:
    """
    Parses a Twilio WhatsApp webhook form

    Twilio format (form data):
    - From: whatsapp:+263772123456
    - Body: message text
    - ProfileName: User's name
    - MessageSid: SMxxxx
    - NumMedia / MediaUrl0 / MediaContentType0: attachments
    """
    from_number = str(form.get("From") or "")
    phone = from_number.replace("whatsapp:", "")

    media = None
    try:
        num_media = int(form.get("NumMedia") or 0)
    except ValueError:
        num_media = 0
    if num_media > 0 and form.get("MediaUrl0"):
        media = MediaRef(
            url=str(form.get("MediaUrl0")),
            mime_type=form.get("MediaContentType0"),
        )

    return InboundMessage(
        phone=phone,
        name=form.get("ProfileName") or None,
        text=str(form.get("Body") or ""),
        message_id=str(form.get("MessageSid") or f"twilio_{datetime.utcnow().timestamp()}"),
        transport="twilio",
        interactive_id=form.get("ButtonPayload") or None,
        media=media,
    )


def parse_meta_payload(payload: Dict[str, Any]) -> List[InboundMessage]:
    """
    Extracts every user message from a Meta Cloud webhook payload

    Meta format (JSON):
    {
        "object": "whatsapp_business_account",
        "entry": [{"changes": [{"value": {
            "contacts": [{"profile": {"name": "..."}, "wa_id": "263..."}],
            "messages": [{"from": "263...", "id": "wamid...", "type": "text",
                          "text": {"body": "hi"}}]
        }}]}]
    }

    Status callbacks (delivered/read) carry no messages and yield nothing.
    """
    messages: List[InboundMessage] = []

    for entry in payload.get("entry", []) or []:
        for change in entry.get("changes", []) or []:
            value = change.get("value", {}) or {}
            names = {
                c.get("wa_id"): (c.get("profile") or {}).get("name")
                for c in value.get("contacts", []) or []
            }

            for msg in value.get("messages", []) or []:
                sender = msg.get("from")
                if not sender:
                    continue

                msg_type = msg.get("type")
                interactive_id = parse_button_response(msg) or parse_list_response(msg)
                if msg_type == "button":
                    # Template quick-reply buttons
                    interactive_id = (msg.get("button") or {}).get("payload")

                media = None
                if msg_type == "image":
                    image = msg.get("image") or {}
                    media = MediaRef(media_id=image.get("id"), mime_type=image.get("mime_type"))
                elif msg_type == "document":
                    doc = msg.get("document") or {}
                    media = MediaRef(media_id=doc.get("id"), mime_type=doc.get("mime_type"))

                text = get_message_text(msg) or ""
                if media is not None:
                    text = (msg.get(msg_type) or {}).get("caption") or ""

                messages.append(
                    InboundMessage(
                        phone=f"+{sender.lstrip('+')}",
                        name=names.get(sender),
                        text=text,
                        message_id=msg.get("id") or f"meta_{datetime.utcnow().timestamp()}",
                        transport="meta",
                        interactive_id=interactive_id,
                        media=media,
                    )
                )

    return messages
