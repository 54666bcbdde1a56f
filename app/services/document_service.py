"""
app/services/document_service.py

Purpose: Document Finalizer

- Totals: subtotal -> discount % -> VAT % (never on receipts)
- Commit a draft exactly once per dialog generation
- Atomic number allocation ({prefix}-{n:06d})
- Payment commit: payment, receipt document and invoice balance
- Rendering of committed documents (called after the tenant lock)
"""

from dataclasses import dataclass
from datetime import datetime
from typing import List, Optional, Tuple
from uuid import uuid4

from pymongo.errors import DuplicateKeyError, PyMongoError

from app.core.exceptions import (
    MonthlyLimitReached,
    PersistenceError,
    RenderError,
    ResourceNotFoundError,
    ValidationError,
)
from app.core.logging import get_logger
from app.db.mongo import get_documents_collection, get_payments_collection
from app.flow.gates import get_package
from app.flow.session import DocumentSession, PaymentSession
from app.models.principal import Principal
from app.models.records import Document, LineItem, Payment
from app.models.tenant import Tenant
from app.services.renderer_service import renderer_service
from app.services.tenant_service import (
    allocate_number,
    count_document,
    documents_used_this_month,
    load_tenant,
)
from utils.format_utils import format_money, format_percent, format_quantity

logger = get_logger(__name__)

DOC_LABELS = {"invoice": "Invoice", "quote": "Quotation", "receipt": "Receipt"}


@dataclass(frozen=True)
class Totals:
    subtotal: float
    discount_percent: float
    discount_amount: float
    vat_percent: float
    vat_amount: float
    total: float


def compute_totals(
    items: List[LineItem],
    discount_percent: float = 0.0,
    vat_percent: float = 0.0,
    doc_type: str = "invoice",
) -> Totals:
    """
    Subtotal of line totals, then the document discount, then VAT on the
    discounted amount. Receipts never carry VAT.
    """
    subtotal = round(sum(item.line_total for item in items), 2)
    discount_amount = round(subtotal * discount_percent / 100, 2)
    taxable = round(subtotal - discount_amount, 2)
    vat = 0.0 if doc_type == "receipt" else vat_percent
    vat_amount = round(taxable * vat / 100, 2)
    return Totals(
        subtotal=subtotal,
        discount_percent=discount_percent,
        discount_amount=discount_amount,
        vat_percent=vat,
        vat_amount=vat_amount,
        total=round(taxable + vat_amount, 2),
    )


def format_number(prefix: str, sequence: int) -> str:
    """("INV", 1) -> "INV-000001" """
    return f"{prefix}-{sequence:06d}"


def draft_summary(session: DocumentSession, currency: str) -> str:
    """
    Running summary shown at the confirm step. The VAT line appears only
    when a non-zero rate applies.
    """
    label = DOC_LABELS[session.doc_type]
    totals = compute_totals(session.items, session.discount_percent, session.vat_percent, session.doc_type)

    lines = [f"🧾 *{label} summary* for *{session.client_name}*:", ""]
    for i, item in enumerate(session.items, start=1):
        lines.append(
            f"{i}) {item.description} x{format_quantity(item.quantity)} @ "
            f"{format_money(item.unit_price, currency)} = {format_money(item.line_total, currency)}"
        )
    lines.append("")
    lines.append(f"Subtotal: {format_money(totals.subtotal, currency)}")
    if totals.discount_percent > 0:
        lines.append(
            f"Discount ({format_percent(totals.discount_percent)}): -{format_money(totals.discount_amount, currency)}"
        )
    if totals.vat_percent > 0:
        lines.append(f"VAT @ {format_percent(totals.vat_percent)}: {format_money(totals.vat_amount, currency)}")
    lines.append(f"*Total: {format_money(totals.total, currency)}*")
    return "\n".join(lines)


async def find_committed(tenant_id: str, generation: str) -> Optional[Document]:
    doc = await get_documents_collection().find_one(
        {"tenant_id": tenant_id, "source_generation": generation}
    )
    return Document.model_validate(doc) if doc else None


async def get_document(tenant_id: str, document_id: str) -> Optional[Document]:
    doc = await get_documents_collection().find_one({"_id": document_id, "tenant_id": tenant_id})
    return Document.model_validate(doc) if doc else None


def _check_draft(session: DocumentSession) -> None:
    if not session.items:
        raise ValidationError("❌ Add at least one item before generating.")
    if not session.client_name:
        raise ValidationError("❌ Choose a client before generating.")
    for item in session.items:
        if item.quantity < 0 or item.unit_price < 0:
            raise ValidationError("❌ Quantities and prices cannot be negative.")


async def _insert_document(document: Document) -> Tuple[Document, bool]:
    """Inserts once per source generation; a duplicate returns the stored one."""
    try:
        await get_documents_collection().insert_one(document.to_document())
    except DuplicateKeyError:
        existing = await find_committed(document.tenant_id, document.source_generation)
        if existing is None:
            raise PersistenceError("Document number clash")
        return existing, False
    except PyMongoError as e:
        raise PersistenceError("Could not save document") from e
    return document, True


async def commit_document(
    tenant: Tenant,
    session: DocumentSession,
    principal: Principal,
    now: Optional[datetime] = None,
) -> Tuple[Document, bool]:
    """
    Persists the draft in `session` as a numbered document.

    Returns:
        (document, created). created is False when this generation was
        already committed, in which case nothing new is written.

    Raises:
        ValidationError: empty or invalid draft
        MonthlyLimitReached: package allowance used up
        PersistenceError: database failure (the draft is left untouched)
    """
    existing = await find_committed(tenant.id, session.generation)
    if existing is not None:
        logger.info(f"↩️ {existing.number} already committed for this draft")
        return existing, False

    _check_draft(session)

    package = get_package(tenant.package)
    if documents_used_this_month(tenant, now) >= package.monthly_documents:
        raise MonthlyLimitReached(details={"limit": package.monthly_documents})

    totals = compute_totals(session.items, session.discount_percent, session.vat_percent, session.doc_type)
    sequence = await allocate_number(tenant.id, session.doc_type)

    if session.doc_type == "invoice":
        status, amount_paid, balance = "unpaid", 0.0, totals.total
    elif session.doc_type == "receipt":
        status, amount_paid, balance = "paid", totals.total, 0.0
    else:
        status, amount_paid, balance = "issued", 0.0, 0.0

    document = Document(
        _id=uuid4().hex,
        tenant_id=tenant.id,
        doc_type=session.doc_type,
        number=format_number(tenant.prefix_for(session.doc_type), sequence),
        sequence=sequence,
        branch_id=principal.branch_id,
        client_id=session.client_id,
        client_name=session.client_name,
        client_phone=session.client_phone,
        items=session.items,
        subtotal=totals.subtotal,
        discount_percent=totals.discount_percent,
        discount_amount=totals.discount_amount,
        vat_percent=totals.vat_percent,
        vat_amount=totals.vat_amount,
        total=totals.total,
        amount_paid=amount_paid,
        balance=balance,
        status=status,
        currency=tenant.currency,
        source_generation=session.generation,
        created_by=principal.phone,
        created_at=now or datetime.utcnow(),
    )

    document, created = await _insert_document(document)
    if created:
        await count_document(tenant.id, now)
        logger.info(f"✅ Committed {document.number} total={document.total}")
    return document, created


async def commit_payment(
    tenant: Tenant,
    session: PaymentSession,
    principal: Principal,
    method: str,
) -> Tuple[Payment, Document, bool]:
    """
    Records a payment against an invoice: a receipt document, the payment
    entry, and the invoice's paid amount, balance and status. Every step
    is keyed on the dialog generation so a replay changes nothing.

    Returns:
        (payment, receipt, created)

    Raises:
        ResourceNotFoundError: the invoice is gone
        ValidationError: the amount now exceeds the balance
        PersistenceError
    """
    generation = session.generation
    invoice = await get_document(tenant.id, session.invoice_id or "")
    if invoice is None or invoice.doc_type != "invoice":
        raise ResourceNotFoundError("Invoice not found")

    existing_payment = await get_payments_collection().find_one(
        {"tenant_id": tenant.id, "source_generation": generation}
    )
    amount = session.amount or 0.0

    if existing_payment is None and amount > invoice.balance + 0.005:
        raise ValidationError(
            f"❌ Payment exceeds invoice balance.\nBalance: {format_money(invoice.balance, tenant.currency)}"
        )

    receipt_generation = f"{generation}:receipt"
    receipt = await find_committed(tenant.id, receipt_generation)
    created = False
    if receipt is None:
        sequence = await allocate_number(tenant.id, "receipt")
        receipt = Document(
            _id=uuid4().hex,
            tenant_id=tenant.id,
            doc_type="receipt",
            number=format_number(tenant.prefix_for("receipt"), sequence),
            sequence=sequence,
            branch_id=invoice.branch_id,
            client_id=invoice.client_id,
            client_name=invoice.client_name,
            client_phone=invoice.client_phone,
            items=[LineItem(description=f"Payment for {invoice.number}", quantity=1, unit_price=amount)],
            subtotal=amount,
            total=amount,
            amount_paid=amount,
            balance=0.0,
            status="paid",
            currency=tenant.currency,
            source_generation=receipt_generation,
            created_by=principal.phone,
            invoice_id=invoice.id,
            payment_id=generation,
        )
        receipt, created = await _insert_document(receipt)

    payment = Payment(
        _id=generation,
        tenant_id=tenant.id,
        branch_id=invoice.branch_id,
        invoice_id=invoice.id,
        invoice_number=invoice.number,
        amount=amount if existing_payment is None else existing_payment["amount"],
        method=method,
        receipt_id=receipt.id,
        source_generation=generation,
        created_by=principal.phone,
    )

    try:
        if existing_payment is None:
            try:
                await get_payments_collection().insert_one(payment.to_document())
            except DuplicateKeyError:
                pass

        new_paid = round(invoice.amount_paid + payment.amount, 2)
        new_balance = round(max(invoice.total - new_paid, 0.0), 2)
        await get_documents_collection().update_one(
            {"_id": invoice.id, "payment_ids": {"$ne": payment.id}},
            {
                "$inc": {"amount_paid": payment.amount},
                "$set": {"balance": new_balance, "status": "paid" if new_balance <= 0 else "partial"},
                "$push": {"payment_ids": payment.id},
            },
        )
    except PyMongoError as e:
        raise PersistenceError("Could not record payment") from e

    logger.info(
        f"💰 Payment {payment.amount} on {invoice.number} -> {receipt.number}"
    )
    return payment, receipt, created


async def render_document(tenant_id: str, document_id: str) -> Document:
    """
    Renders a committed document and stores the link on it.

    Raises:
        RenderError: the renderer failed; the document stays committed
    """
    document = await get_document(tenant_id, document_id)
    if document is None:
        raise RenderError("Document to render was not found")

    tenant = await load_tenant(tenant_id)
    result = await renderer_service.render(
        document=document.model_dump(mode="json", by_alias=True),
        branding=tenant.branding(),
    )

    now = datetime.utcnow()
    try:
        await get_documents_collection().update_one(
            {"_id": document.id},
            {"$set": {"pdf_url": result.url, "render_method": result.method, "rendered_at": now}},
        )
    except PyMongoError as e:
        logger.error(f"Rendered {document.number} but could not store link: {e}")

    document.pdf_url = result.url
    document.render_method = result.method
    document.rendered_at = now
    return document


async def recent_documents(tenant_id: str, doc_type: str, branch_id: Optional[str] = None, limit: int = 9) -> List[Document]:
    query = {"tenant_id": tenant_id, "doc_type": doc_type}
    if branch_id:
        query["branch_id"] = branch_id
    cursor = get_documents_collection().find(query).sort("created_at", -1).limit(limit)
    return [Document.model_validate(doc) async for doc in cursor]


async def open_invoices(tenant_id: str, branch_id: Optional[str] = None, limit: int = 9) -> List[Document]:
    """Invoices with an outstanding balance, newest first."""
    query = {"tenant_id": tenant_id, "doc_type": "invoice", "balance": {"$gt": 0}}
    if branch_id:
        query["branch_id"] = branch_id
    cursor = get_documents_collection().find(query).sort("created_at", -1).limit(limit)
    return [Document.model_validate(doc) async for doc in cursor]


async def delete_document(tenant_id: str, document_id: str) -> bool:
    """
    Deletes an unpaid document. Its number is not reused.

    Raises:
        ValidationError: the document has payments against it
    """
    document = await get_document(tenant_id, document_id)
    if document is None:
        return False
    if document.doc_type == "receipt" or document.amount_paid > 0:
        raise ValidationError("❌ Paid documents cannot be deleted.")
    result = await get_documents_collection().delete_one({"_id": document_id, "tenant_id": tenant_id})
    return result.deleted_count == 1
