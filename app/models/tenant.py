"""
app/models/tenant.py

Purpose: Business (tenant) document model

- Branding and document numbering settings
- Subscription package and trial window
- Dialog program counter (current_state) and typed session
- Optimistic concurrency version
"""

from datetime import datetime
from typing import Dict, Optional, Set

from pydantic import BaseModel, ConfigDict, Field, PrivateAttr

from app.flow.session import FlowSession, ReadySession
from app.flow.states import DialogState, state_accepts_session

DEFAULT_PREFIXES = {"invoice": "INV", "quote": "QT", "receipt": "RCPT"}

# Profile fields a dialog turn may change; saved together with the dialog state.
PROFILE_FIELDS = (
    "name",
    "currency",
    "address",
    "payment_terms_days",
    "logo_url",
    "vat_percent",
    "invoice_prefix",
    "quote_prefix",
    "receipt_prefix",
)


class Tenant(BaseModel):
    """A business account: the unit of billing, numbering and dialog isolation."""

    model_config = ConfigDict(populate_by_name=True)

    id: str = Field(alias="_id")
    name: str = ""
    currency: str = "USD"
    address: Optional[str] = None
    payment_terms_days: int = 30
    logo_url: Optional[str] = None
    vat_percent: float = 0.0
    invoice_prefix: str = DEFAULT_PREFIXES["invoice"]
    quote_prefix: str = DEFAULT_PREFIXES["quote"]
    receipt_prefix: str = DEFAULT_PREFIXES["receipt"]
    counters: Dict[str, int] = Field(
        default_factory=lambda: {"invoice": 0, "quote": 0, "receipt": 0}
    )
    package: str = "trial"
    subscription_status: str = "trial"
    trial_started_at: Optional[datetime] = None
    trial_ends_at: Optional[datetime] = None
    document_count_month: int = 0
    document_count_month_key: Optional[str] = None
    current_state: DialogState = DialogState.READY
    session: FlowSession = Field(default_factory=ReadySession)
    version: int = 0
    created_at: datetime = Field(default_factory=datetime.utcnow)
    updated_at: datetime = Field(default_factory=datetime.utcnow)

    _dirty: Set[str] = PrivateAttr(default_factory=set)

    # ------------------------------------------------------------
    # Dialog state
    # ------------------------------------------------------------

    def go(self, state: DialogState, session: FlowSession) -> None:
        """
        Moves the dialog to `state` carrying `session`.

        Raises:
            ValueError: if the session shape does not belong to the state
        """
        if not state_accepts_session(state, session):
            raise ValueError(
                f"State {state.value} cannot carry a '{session.flow}' session"
            )
        self.current_state = state
        self.session = session

    def reset(self) -> None:
        self.current_state = DialogState.READY
        self.session = ReadySession()

    @property
    def is_ready(self) -> bool:
        return self.current_state == DialogState.READY

    def session_is_consistent(self) -> bool:
        return state_accepts_session(self.current_state, self.session)

    # ------------------------------------------------------------
    # Profile
    # ------------------------------------------------------------

    def update_profile(self, **fields) -> None:
        for key, value in fields.items():
            if key not in PROFILE_FIELDS:
                raise KeyError(f"{key} is not an editable business field")
            setattr(self, key, value)
            self._dirty.add(key)

    def dirty_profile(self) -> Dict[str, object]:
        return {key: getattr(self, key) for key in sorted(self._dirty)}

    def prefix_for(self, doc_type: str) -> str:
        return getattr(self, f"{doc_type}_prefix") or DEFAULT_PREFIXES[doc_type]

    def trial_expired(self, now: Optional[datetime] = None) -> bool:
        if self.package != "trial" or self.trial_ends_at is None:
            return False
        return (now or datetime.utcnow()) > self.trial_ends_at

    def branding(self) -> Dict[str, object]:
        """Metadata the renderer needs to brand a document."""
        return {
            "business_name": self.name,
            "address": self.address,
            "logo_url": self.logo_url,
            "currency": self.currency,
            "payment_terms_days": self.payment_terms_days,
        }

    def to_document(self) -> Dict[str, object]:
        data = self.model_dump(by_alias=True)
        data["current_state"] = self.current_state.value
        data["session"] = self.session.model_dump()
        return data
