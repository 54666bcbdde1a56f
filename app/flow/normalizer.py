"""
app/flow/normalizer.py

Purpose: Action Normalizer

- Structured replies (button/list ids) pass through, trimmed and lower-cased
- Numbered replies resolve against the role's main menu in the ready
  state, and against the options last shown in any other state
- Keywords (menu, cancel, join, ...) and typed static tokens map to tokens
- Everything else is free text for the current state (action=None)
"""

from typing import Optional

from pydantic import BaseModel

from app.flow.actions import KEYWORDS, STATIC_TOKENS
from app.flow.menus import numbered_menu
from app.flow.states import DialogState
from app.schemas.webhook import InboundMessage, MediaRef


class NormalizedInput(BaseModel):
    action: Optional[str] = None
    raw_text: str = ""
    media: Optional[MediaRef] = None

    @property
    def text(self) -> str:
        return self.raw_text


def resolve_number(number: str, state: DialogState, session, role: Optional[str]) -> Optional[str]:
    """Maps "1", "2", ... to a token, or None when the number means nothing here."""
    if state == DialogState.READY:
        return numbered_menu(role).get(number) if role else None

    choices = getattr(session, "choices", None) or []
    index = int(number)
    if 1 <= index <= len(choices):
        return choices[index - 1]
    return None


def normalize_input(
    message: InboundMessage,
    state: DialogState = DialogState.READY,
    session=None,
    role: Optional[str] = None,
) -> NormalizedInput:
    """
    Turns an inbound message into an action token plus free text.

    Args:
        message: Parsed inbound message from either transport
        state: The tenant's current dialog state
        session: The tenant's current session (for last-shown choices)
        role: The sender's role (for the numbered main menu)
    """
    raw_text = (message.text or "").strip()

    if message.interactive_id and message.interactive_id.strip():
        return NormalizedInput(
            action=message.interactive_id.strip().lower(),
            raw_text=raw_text,
            media=message.media,
        )

    lowered = raw_text.lower()
    action: Optional[str] = None

    if lowered in KEYWORDS:
        action = KEYWORDS[lowered].value
    elif lowered.isdecimal():
        action = resolve_number(lowered, state, session, role)
    elif lowered in STATIC_TOKENS:
        action = lowered

    return NormalizedInput(action=action, raw_text=raw_text, media=message.media)
