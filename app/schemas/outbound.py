"""
app/schemas/outbound.py

Purpose: Transport-independent reply plans

- Text, button set, selectable list and document link
- Produced by dialog handlers, rendered per transport by the
  outbound dispatcher
"""

from typing import List, Literal, Optional, Union

from pydantic import BaseModel, Field

from utils.whatsapp_utils import MAX_BUTTONS, MAX_ROWS as MAX_LIST_ROWS


class Option(BaseModel):
    id: str
    title: str
    description: Optional[str] = None


class TextPlan(BaseModel):
    kind: Literal["text"] = "text"
    text: str


class ButtonsPlan(BaseModel):
    kind: Literal["buttons"] = "buttons"
    text: str
    options: List[Option]


class ListPlan(BaseModel):
    kind: Literal["list"] = "list"
    text: str
    options: List[Option]
    button_label: str = "Select"
    section_title: str = "Options"


class DocumentPlan(BaseModel):
    kind: Literal["document"] = "document"
    url: str
    filename: str
    caption: Optional[str] = None


OutboundPlan = Union[TextPlan, ButtonsPlan, ListPlan, DocumentPlan]


def text(body: str) -> TextPlan:
    return TextPlan(text=body)


def options(body: str, choices: List[Option], button_label: str = "Select") -> OutboundPlan:
    """
    Builds the right interactive shape for the number of choices:
    up to 3 become buttons, more become a list.
    """
    if len(choices) <= MAX_BUTTONS:
        return ButtonsPlan(text=body, options=choices)
    return ListPlan(text=body, options=choices, button_label=button_label)


def option_ids(plan: OutboundPlan) -> List[str]:
    if isinstance(plan, (ButtonsPlan, ListPlan)):
        return [o.id for o in plan.options]
    return []


class RenderJob(BaseModel):
    """Render a committed document after the tenant lock is released."""
    kind: Literal["render"] = "render"
    document_id: str
    number: str = ""
    caption: Optional[str] = None


class LogoJob(BaseModel):
    """Download an uploaded logo after the tenant lock is released."""
    kind: Literal["logo"] = "logo"
    tenant_id: str
    media_url: Optional[str] = None
    media_id: Optional[str] = None
    mime_type: Optional[str] = None


PostCommitJob = Union[RenderJob, LogoJob]


class Notification(BaseModel):
    """A message for someone other than the sender (e.g. the inviter)."""
    to_phone: str
    plan: OutboundPlan = Field(discriminator="kind")
