"""
app/services/outbound_service.py

Purpose: Outbound Dispatcher

- Turns reply plans into transport calls for the transport the turn
  arrived on
- Transport B (Meta): native buttons (<=3), lists (<=10), documents;
  longer option sets fall back to numbered text
- Transport A (Twilio): options become numbered text, documents are
  sent as media
- Never raises: failures are logged per message
"""

from typing import Any, Dict, List, Optional, Tuple

from app.core.logging import get_logger
from app.schemas.outbound import (
    MAX_BUTTONS,
    MAX_LIST_ROWS,
    ButtonsPlan,
    DocumentPlan,
    ListPlan,
    Option,
    OutboundPlan,
    TextPlan,
)
from app.services.meta_service import meta_service
from app.services.twilio_service import twilio_service
from utils.whatsapp_utils import (
    create_button_message,
    create_document_message,
    create_list_message,
    create_text_message,
)

logger = get_logger(__name__)


def numbered_text(body: str, choices: List[Option]) -> str:
    """Option i is shown as 'i) title', matching how numbered replies resolve."""
    lines = [body, ""]
    lines.extend(f"{i}) {option.title}" for i, option in enumerate(choices, start=1))
    lines.append("")
    lines.append("_Reply with a number._")
    return "\n".join(lines)


def render_for_twilio(plan: OutboundPlan) -> Tuple[str, Optional[str]]:
    """
    Returns:
        (body, media_url)
    """
    if isinstance(plan, TextPlan):
        return plan.text, None
    if isinstance(plan, (ButtonsPlan, ListPlan)):
        return numbered_text(plan.text, plan.options), None
    if isinstance(plan, DocumentPlan):
        return plan.caption or plan.filename, plan.url
    raise TypeError(f"Unknown plan type: {type(plan).__name__}")


def render_for_meta(plan: OutboundPlan) -> Dict[str, Any]:
    if isinstance(plan, TextPlan):
        return create_text_message(plan.text)

    if isinstance(plan, ButtonsPlan) and len(plan.options) <= MAX_BUTTONS:
        return create_button_message(
            plan.text,
            [{"id": o.id, "title": o.title} for o in plan.options],
        )

    if isinstance(plan, (ButtonsPlan, ListPlan)):
        if len(plan.options) > MAX_LIST_ROWS:
            return create_text_message(numbered_text(plan.text, plan.options))
        button_label = plan.button_label if isinstance(plan, ListPlan) else "Select"
        section_title = plan.section_title if isinstance(plan, ListPlan) else "Options"
        return create_list_message(
            plan.text,
            button_label,
            [{
                "title": section_title,
                "rows": [
                    {"id": o.id, "title": o.title, "description": o.description}
                    for o in plan.options
                ],
            }],
        )

    if isinstance(plan, DocumentPlan):
        return create_document_message(plan.url, plan.filename, plan.caption)

    raise TypeError(f"Unknown plan type: {type(plan).__name__}")


async def send_plan(transport: str, to_phone: str, plan: OutboundPlan) -> bool:
    """
    Sends one plan. Returns True when the provider accepted it.
    """
    try:
        if transport == "twilio":
            body, media_url = render_for_twilio(plan)
            result = await twilio_service.send_message(to_phone, body, media_url=media_url)
        elif transport == "meta":
            result = await meta_service.send_payload(to_phone, render_for_meta(plan))
        else:
            logger.error(f"Unknown transport: {transport}")
            return False
    except Exception as e:
        logger.error(f"❌ Failed to send {plan.kind} via {transport}: {e}", exc_info=True)
        return False

    if not result.get("success"):
        logger.warning(f"⚠️ {transport} did not accept {plan.kind}: {result.get('error')}")
        return False
    return True


async def deliver(transport: str, to_phone: str, plans: List[OutboundPlan]) -> int:
    """
    Sends plans in order, continuing past failures.

    Returns:
        Number of plans the provider accepted
    """
    sent = 0
    for plan in plans:
        if await send_plan(transport, to_phone, plan):
            sent += 1
    if sent < len(plans):
        logger.warning(f"Delivered {sent}/{len(plans)} messages to {to_phone} via {transport}")
    return sent
