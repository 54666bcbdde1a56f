"""
app/flow/handlers/payments.py

Handles: recording a payment against an open invoice

Flow:
1. Pick an invoice with an outstanding balance (own branch for staff)
2. Amount: must be a number greater than 0 and not above the balance
3. Method: commits the payment, issues a receipt and updates the invoice

The amount is re-checked against the stored balance at commit, since
another payment may have landed since step 2.
"""

from typing import List

from app.core.exceptions import PersistenceError, ResourceNotFoundError, ValidationError
from app.core.logging import get_logger
from app.flow.actions import INVOICE_PREFIX, METHOD_PREFIX, Action, token_value
from app.flow.handlers.common import CANCEL_OPTION, finish, finish_text, retry
from app.flow.registry import entry, state_handler
from app.flow.session import PaymentSession
from app.flow.states import DialogState
from app.models.records import PAYMENT_METHODS
from app.schemas.outbound import Option, OutboundPlan, RenderJob, options, text
from app.services.document_service import commit_payment, get_document, open_invoices
from utils.constants import (
    ASK_PAYMENT_AMOUNT,
    ASK_PAYMENT_METHOD,
    DOCUMENT_PDF_CAPTION,
    GENERIC_FAILURE,
    NOT_UNDERSTOOD,
    PAYMENT_CHOOSE_INVOICE,
    PAYMENT_EXCEEDS_BALANCE,
    PAYMENT_METHOD_LABELS,
    PAYMENT_NO_INVOICES,
    PAYMENT_RECORDED,
)
from utils.format_utils import format_money, truncate
from utils.validation_utils import parse_amount

logger = get_logger(__name__)

METHOD_OPTIONS = [
    Option(id=f"{METHOD_PREFIX}{method}", title=PAYMENT_METHOD_LABELS[method])
    for method in PAYMENT_METHODS
]


async def _invoice_picker(ctx):
    invoices = await open_invoices(ctx.tenant.id, ctx.principal.branch_scope)
    if not invoices:
        return None
    rows = [
        Option(
            id=f"{INVOICE_PREFIX}{inv.id}",
            title=inv.number,
            description=truncate(f"{inv.client_name} | {format_money(inv.balance, inv.currency)} due", 72),
        )
        for inv in invoices
    ]
    return options(PAYMENT_CHOOSE_INVOICE, rows + [CANCEL_OPTION], button_label="Invoices")


def _amount_prompt(ctx, session: PaymentSession) -> OutboundPlan:
    return text(
        ASK_PAYMENT_AMOUNT.format(
            number=session.invoice_number,
            balance=format_money(session.balance or 0.0, ctx.currency),
        )
    )


def _method_prompt() -> OutboundPlan:
    return options(ASK_PAYMENT_METHOD, METHOD_OPTIONS + [CANCEL_OPTION], button_label="Methods")


@entry(Action.RECORD_PAYMENT)
async def start_payment(ctx) -> List[OutboundPlan]:
    picker = await _invoice_picker(ctx)
    if picker is None:
        return finish_text(ctx, PAYMENT_NO_INVOICES)
    ctx.tenant.go(DialogState.PAYMENT_PICK_INVOICE, PaymentSession())
    return [picker]


@state_handler(DialogState.PAYMENT_PICK_INVOICE)
async def handle_pick_invoice(ctx) -> List[OutboundPlan]:
    session: PaymentSession = ctx.session
    invoice_id = token_value(ctx.action, INVOICE_PREFIX)
    invoice = await get_document(ctx.tenant.id, invoice_id) if invoice_id else None

    scope = ctx.principal.branch_scope
    if (
        invoice is None
        or invoice.doc_type != "invoice"
        or invoice.balance <= 0
        or (scope and invoice.branch_id != scope)
    ):
        picker = await _invoice_picker(ctx)
        if picker is None:
            return finish_text(ctx, PAYMENT_NO_INVOICES)
        return retry(NOT_UNDERSTOOD, picker)

    session.invoice_id = invoice.id
    session.invoice_number = invoice.number
    session.balance = invoice.balance
    ctx.tenant.go(DialogState.PAYMENT_AMOUNT, session)
    return [_amount_prompt(ctx, session)]


@state_handler(DialogState.PAYMENT_AMOUNT)
async def handle_payment_amount(ctx) -> List[OutboundPlan]:
    session: PaymentSession = ctx.session
    try:
        amount = parse_amount(ctx.text)
    except ValidationError as e:
        return retry(e.message, _amount_prompt(ctx, session))

    invoice = await get_document(ctx.tenant.id, session.invoice_id or "")
    if invoice is None:
        return finish_text(ctx, PAYMENT_NO_INVOICES)

    if amount > invoice.balance + 0.005:
        logger.info(f"Payment {amount} exceeds balance {invoice.balance} on {invoice.number}")
        return retry(PAYMENT_EXCEEDS_BALANCE.format(balance=format_money(invoice.balance, ctx.currency)))

    session.amount = amount
    session.balance = invoice.balance
    ctx.tenant.go(DialogState.PAYMENT_METHOD, session)
    return [_method_prompt()]


@state_handler(DialogState.PAYMENT_METHOD)
async def handle_payment_method(ctx) -> List[OutboundPlan]:
    session: PaymentSession = ctx.session
    method = token_value(ctx.action, METHOD_PREFIX)
    if method not in PAYMENT_METHODS:
        return retry(NOT_UNDERSTOOD, _method_prompt())

    try:
        payment, receipt, _ = await commit_payment(ctx.tenant, session, ctx.principal, method)
    except ValidationError as e:
        # balance shrank since the amount was entered
        ctx.tenant.go(DialogState.PAYMENT_AMOUNT, session)
        return retry(e.message)
    except ResourceNotFoundError:
        return finish_text(ctx, PAYMENT_NO_INVOICES)
    except PersistenceError as e:
        logger.error(f"❌ Could not record payment: {e.message}")
        return retry(GENERIC_FAILURE, _method_prompt())

    ctx.add_job(
        RenderJob(
            document_id=receipt.id,
            number=receipt.number,
            caption=DOCUMENT_PDF_CAPTION.format(label="Receipt", number=receipt.number),
        )
    )
    return finish(
        ctx,
        text(
            PAYMENT_RECORDED.format(
                amount=format_money(payment.amount, ctx.currency),
                invoice=payment.invoice_number,
                receipt=receipt.number,
            )
        ),
    )
