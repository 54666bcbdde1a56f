"""
app/services/ledger_service.py

Purpose: Expenses, client statements and reports

- Expense commit (once per dialog generation)
- Client statement: billed, paid, balance
- Period and branch report summaries
"""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel
from pymongo import ReturnDocument
from pymongo.errors import PyMongoError

from app.core.config import settings
from app.core.exceptions import PersistenceError
from app.core.logging import get_logger
from app.db.mongo import (
    get_documents_collection,
    get_expenses_collection,
    get_payments_collection,
)
from app.flow.session import ExpenseSession
from app.models.principal import Principal
from app.models.records import Expense
from utils.time_utils import report_range

logger = get_logger(__name__)


async def commit_expense(tenant_id: str, session: ExpenseSession, principal: Principal, method: str) -> Expense:
    """
    Raises:
        PersistenceError
    """
    expense = Expense(
        _id=session.generation,
        tenant_id=tenant_id,
        branch_id=principal.branch_id,
        category=session.category or "other",
        description=session.description or "",
        amount=session.amount or 0.0,
        method=method,
        source_generation=session.generation,
        created_by=principal.phone,
    )
    try:
        doc = await get_expenses_collection().find_one_and_update(
            {"tenant_id": tenant_id, "source_generation": session.generation},
            {"$setOnInsert": expense.to_document()},
            upsert=True,
            return_document=ReturnDocument.AFTER,
        )
    except PyMongoError as e:
        raise PersistenceError("Could not save expense") from e

    logger.info(f"🧾 Expense {expense.amount} ({expense.category})")
    return Expense.model_validate(doc)


class ClientStatement(BaseModel):
    invoices: int = 0
    billed: float = 0.0
    paid: float = 0.0
    balance: float = 0.0


async def client_statement(tenant_id: str, client_id: str) -> ClientStatement:
    statement = ClientStatement()
    cursor = get_documents_collection().find(
        {"tenant_id": tenant_id, "client_id": client_id, "doc_type": "invoice"}
    )
    async for doc in cursor:
        statement.invoices += 1
        statement.billed += doc.get("total", 0.0)
        statement.paid += doc.get("amount_paid", 0.0)
        statement.balance += doc.get("balance", 0.0)
    statement.billed = round(statement.billed, 2)
    statement.paid = round(statement.paid, 2)
    statement.balance = round(statement.balance, 2)
    return statement


class ReportSummary(BaseModel):
    period: str
    start: datetime
    end: datetime
    branch_id: Optional[str] = None
    invoices: int = 0
    sales: float = 0.0
    cash_received: float = 0.0
    expenses: float = 0.0
    outstanding: float = 0.0

    @property
    def net_cash(self) -> float:
        return round(self.cash_received - self.expenses, 2)


async def build_report(
    tenant_id: str,
    period: str,
    branch_id: Optional[str] = None,
    now: Optional[datetime] = None,
) -> ReportSummary:
    """
    Totals for a period, optionally limited to one branch.

    - invoices / sales: invoices issued in the period
    - cash_received: payments recorded in the period
    - expenses: expenses recorded in the period
    - outstanding: balance still open on the period's invoices
    """
    start, end = report_range(period, settings.TIMEZONE, now)
    summary = ReportSummary(period=period, start=start, end=end, branch_id=branch_id)

    window = {"tenant_id": tenant_id, "created_at": {"$gte": start, "$lt": end}}
    if branch_id:
        window["branch_id"] = branch_id

    async for doc in get_documents_collection().find({**window, "doc_type": "invoice"}):
        summary.invoices += 1
        summary.sales += doc.get("total", 0.0)
        summary.outstanding += doc.get("balance", 0.0)

    async for doc in get_payments_collection().find(window):
        summary.cash_received += doc.get("amount", 0.0)

    async for doc in get_expenses_collection().find(window):
        summary.expenses += doc.get("amount", 0.0)

    summary.sales = round(summary.sales, 2)
    summary.outstanding = round(summary.outstanding, 2)
    summary.cash_received = round(summary.cash_received, 2)
    summary.expenses = round(summary.expenses, 2)
    return summary
