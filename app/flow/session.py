"""
app/flow/session.py

Purpose: Typed per-flow session data

- One model per flow family, discriminated on `flow`
- A handler only sees the fields of its own flow
- `generation` identifies one run of a flow; commits are keyed on it
- `choices` remembers the option ids last presented, so numbered
  replies can be resolved on transports without interactive messages
"""

from typing import Annotated, List, Literal, Optional, Union
from uuid import uuid4

from pydantic import BaseModel, Field

from app.models.records import DocType, LineItem


def new_generation() -> str:
    return uuid4().hex


class ReadySession(BaseModel):
    """Empty session of the resting state."""
    flow: Literal["ready"] = "ready"


class _ActiveSession(BaseModel):
    generation: str = Field(default_factory=new_generation)
    choices: List[str] = Field(default_factory=list)


class OnboardingSession(_ActiveSession):
    flow: Literal["onboarding"] = "onboarding"


class MenuSession(_ActiveSession):
    flow: Literal["menu"] = "menu"


class PendingItem(BaseModel):
    description: str
    quantity: Optional[float] = None
    unit_price: Optional[float] = None
    product_id: Optional[str] = None


class DocumentSession(_ActiveSession):
    """Draft of an invoice, quote or receipt."""
    flow: Literal["document"] = "document"
    doc_type: DocType
    client_id: Optional[str] = None
    client_name: Optional[str] = None
    client_phone: Optional[str] = None
    new_client_name: Optional[str] = None
    items: List[LineItem] = Field(default_factory=list)
    pending: Optional[PendingItem] = None
    discount_percent: float = 0.0
    vat_percent: float = 0.0


class ClientSession(_ActiveSession):
    flow: Literal["client"] = "client"
    name: Optional[str] = None


class StatementSession(_ActiveSession):
    flow: Literal["statement"] = "statement"


class PaymentSession(_ActiveSession):
    flow: Literal["payment"] = "payment"
    invoice_id: Optional[str] = None
    invoice_number: Optional[str] = None
    balance: Optional[float] = None
    amount: Optional[float] = None


class ExpenseSession(_ActiveSession):
    flow: Literal["expense"] = "expense"
    category: Optional[str] = None
    description: Optional[str] = None
    amount: Optional[float] = None


class ReportSession(_ActiveSession):
    flow: Literal["report"] = "report"


class SettingsSession(_ActiveSession):
    flow: Literal["settings"] = "settings"


class InviteSession(_ActiveSession):
    flow: Literal["invite"] = "invite"
    phone: Optional[str] = None
    branch_id: Optional[str] = None


class BranchSession(_ActiveSession):
    flow: Literal["branch"] = "branch"


class ProductSession(_ActiveSession):
    flow: Literal["product"] = "product"
    name: Optional[str] = None


class DocViewSession(_ActiveSession):
    flow: Literal["docview"] = "docview"
    doc_type: DocType
    document_id: Optional[str] = None


class UpgradeSession(_ActiveSession):
    flow: Literal["upgrade"] = "upgrade"
    blocked_feature: Optional[str] = None


FlowSession = Annotated[
    Union[
        ReadySession,
        OnboardingSession,
        MenuSession,
        DocumentSession,
        ClientSession,
        StatementSession,
        PaymentSession,
        ExpenseSession,
        ReportSession,
        SettingsSession,
        InviteSession,
        BranchSession,
        ProductSession,
        DocViewSession,
        UpgradeSession,
    ],
    Field(discriminator="flow"),
]
