import asyncio
from datetime import datetime

import pytest

from app.core.exceptions import MonthlyLimitReached, ValidationError
from app.flow.session import DocumentSession, PaymentSession
from app.models.records import LineItem
from app.services.document_service import (
    commit_document,
    commit_payment,
    compute_totals,
    delete_document,
    draft_summary,
    format_number,
)
from app.services.identity_service import get_active_principal
from app.services.tenant_service import allocate_number, load_tenant

from conftest import OWNER, make_business


def items():
    return [
        LineItem(description="Website design", quantity=1, unit_price=500),
        LineItem(description="Hosting", quantity=12, unit_price=10),
    ]


def draft(**kwargs):
    data = {"doc_type": "invoice", "client_name": "Chipo", "items": items()}
    data.update(kwargs)
    return DocumentSession(**data)


def test_totals_discount_then_vat():
    totals = compute_totals(items(), discount_percent=10, vat_percent=15)
    assert totals.subtotal == 620.0
    assert totals.discount_amount == 62.0
    assert totals.vat_amount == 83.7
    assert totals.total == 641.7


def test_receipts_carry_no_vat():
    totals = compute_totals(items(), vat_percent=15, doc_type="receipt")
    assert totals.vat_amount == 0.0
    assert totals.total == 620.0


def test_line_discount():
    item = LineItem(description="Paint", quantity=2, unit_price=50, discount_percent=10)
    assert item.line_total == 90.0


def test_format_number():
    assert format_number("INV", 1) == "INV-000001"
    assert format_number("QT", 1234567) == "QT-1234567"


def test_summary_hides_zero_vat():
    summary = draft_summary(draft(), "USD")
    assert "VAT" not in summary
    assert "USD 620.00" in summary
    assert "VAT @ 15%" in draft_summary(draft(vat_percent=15), "USD")


def _commit(tenant_id, session, now=None):
    async def run():
        tenant = await load_tenant(tenant_id)
        owner = await get_active_principal(tenant_id, OWNER)
        return await commit_document(tenant, session, owner, now)
    return asyncio.run(run())


def test_commit_numbers_and_is_idempotent(db, business):
    session = draft()
    document, created = _commit(business, session)
    assert created
    assert document.number == "INV-000001"
    assert document.balance == document.total == 620.0
    assert document.status == "unpaid"

    again, created_again = _commit(business, session)
    assert not created_again
    assert again.id == document.id
    assert asyncio.run(db["documents"].count_documents({})) == 1

    tenant = asyncio.run(load_tenant(business))
    assert tenant.counters["invoice"] == 1
    assert tenant.document_count_month == 1


def test_commit_rejects_empty_draft(db, business):
    with pytest.raises(ValidationError):
        _commit(business, draft(items=[]))
    assert asyncio.run(db["documents"].count_documents({})) == 0


def test_monthly_limit(db):
    tenant_id = make_business(db, package="trial")
    now = datetime.utcnow()
    asyncio.run(db["tenants"].update_one(
        {"_id": tenant_id},
        {"$set": {"document_count_month": 10, "document_count_month_key": now.strftime("%Y-%m")}},
    ))
    with pytest.raises(MonthlyLimitReached):
        _commit(tenant_id, draft(), now)


def test_concurrent_numbering_never_repeats(db, business):
    async def run():
        return await asyncio.gather(*(allocate_number(business, "quote") for _ in range(25)))

    numbers = asyncio.run(run())
    assert sorted(numbers) == list(range(1, 26))


def test_payment_updates_invoice_and_issues_receipt(db, business):
    invoice, _ = _commit(business, draft())

    async def pay(amount, session=None):
        tenant = await load_tenant(business)
        owner = await get_active_principal(business, OWNER)
        session = session or PaymentSession(invoice_id=invoice.id, amount=amount)
        return await commit_payment(tenant, session, owner, "cash"), session

    (payment, receipt, created), session = asyncio.run(pay(200))
    assert created
    assert receipt.number == "RCPT-000001"
    assert receipt.invoice_id == invoice.id

    stored = asyncio.run(db["documents"].find_one({"_id": invoice.id}))
    assert stored["amount_paid"] == 200
    assert stored["balance"] == 420.0
    assert stored["status"] == "partial"

    # replaying the same generation changes nothing
    asyncio.run(pay(200, session))
    stored = asyncio.run(db["documents"].find_one({"_id": invoice.id}))
    assert stored["amount_paid"] == 200
    assert asyncio.run(db["payments"].count_documents({})) == 1


def test_payment_over_balance_is_rejected(db, business):
    invoice, _ = _commit(business, draft())

    async def pay():
        tenant = await load_tenant(business)
        owner = await get_active_principal(business, OWNER)
        await commit_payment(tenant, PaymentSession(invoice_id=invoice.id, amount=1000), owner, "cash")

    with pytest.raises(ValidationError):
        asyncio.run(pay())
    stored = asyncio.run(db["documents"].find_one({"_id": invoice.id}))
    assert stored["balance"] == 620.0
    assert asyncio.run(db["payments"].count_documents({})) == 0


def test_paid_documents_cannot_be_deleted(db, business):
    receipt, _ = _commit(business, draft(doc_type="receipt"))
    with pytest.raises(ValidationError):
        asyncio.run(delete_document(business, receipt.id))

    quote, _ = _commit(business, draft(doc_type="quote"))
    assert asyncio.run(delete_document(business, quote.id))
