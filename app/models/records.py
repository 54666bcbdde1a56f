"""
app/models/records.py

Purpose: Tenant-scoped business records

- Branch, Client, Product
- Committed Document (invoice / quote / receipt)
- Payment and Expense ledger entries
"""

from datetime import datetime
from typing import List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field

DocType = Literal["invoice", "quote", "receipt"]
DOC_TYPES = ("invoice", "quote", "receipt")

PAYMENT_METHODS = ("cash", "bank", "ecocash", "other")
EXPENSE_CATEGORIES = ("rent", "utilities", "transport", "supplies", "salaries", "other")


class Record(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    id: str = Field(alias="_id")
    tenant_id: str
    created_at: datetime = Field(default_factory=datetime.utcnow)

    def to_document(self) -> dict:
        return self.model_dump(by_alias=True)


class Branch(Record):
    name: str
    is_default: bool = False


class Client(Record):
    name: str
    phone: Optional[str] = None


class Product(Record):
    name: str
    unit_price: float = Field(ge=0)
    is_active: bool = True


class LineItem(BaseModel):
    description: str
    quantity: float = Field(ge=0)
    unit_price: float = Field(ge=0)
    discount_percent: float = Field(default=0.0, ge=0, le=100)
    product_id: Optional[str] = None

    @property
    def line_total(self) -> float:
        gross = self.quantity * self.unit_price
        return round(gross - gross * self.discount_percent / 100, 2)


class Document(Record):
    doc_type: DocType
    number: str
    sequence: int
    branch_id: Optional[str] = None
    client_id: Optional[str] = None
    client_name: str
    client_phone: Optional[str] = None
    items: List[LineItem] = Field(default_factory=list)
    subtotal: float = 0.0
    discount_percent: float = 0.0
    discount_amount: float = 0.0
    vat_percent: float = 0.0
    vat_amount: float = 0.0
    total: float = 0.0
    amount_paid: float = 0.0
    balance: float = 0.0
    status: Literal["unpaid", "partial", "paid", "issued"] = "issued"
    currency: str = "USD"
    source_generation: str
    created_by: str
    invoice_id: Optional[str] = None
    payment_id: Optional[str] = None
    pdf_url: Optional[str] = None
    render_method: Optional[str] = None
    rendered_at: Optional[datetime] = None


class Payment(Record):
    branch_id: Optional[str] = None
    invoice_id: str
    invoice_number: str
    amount: float = Field(gt=0)
    method: str
    receipt_id: Optional[str] = None
    source_generation: str
    created_by: str


class Expense(Record):
    branch_id: Optional[str] = None
    category: str
    description: str
    amount: float = Field(gt=0)
    method: str
    source_generation: str
    created_by: str
