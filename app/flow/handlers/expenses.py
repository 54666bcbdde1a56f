"""
app/flow/handlers/expenses.py

Handles: recording an expense

Flow: category -> description -> amount -> method (commit)
"""

from typing import List

from app.core.exceptions import PersistenceError, ValidationError
from app.core.logging import get_logger
from app.flow.actions import CATEGORY_PREFIX, METHOD_PREFIX, Action, token_value
from app.flow.handlers.common import CANCEL_OPTION, finish_text, retry
from app.flow.handlers.payments import METHOD_OPTIONS
from app.flow.registry import entry, state_handler
from app.flow.session import ExpenseSession
from app.flow.states import DialogState
from app.models.records import EXPENSE_CATEGORIES, PAYMENT_METHODS
from app.schemas.outbound import Option, OutboundPlan, options, text
from app.services.ledger_service import commit_expense
from utils.constants import (
    ASK_EXPENSE_AMOUNT,
    ASK_EXPENSE_CATEGORY,
    ASK_EXPENSE_DESCRIPTION,
    ASK_EXPENSE_METHOD,
    EXPENSE_CATEGORY_LABELS,
    EXPENSE_RECORDED,
    GENERIC_FAILURE,
    NOT_UNDERSTOOD,
    PAYMENT_METHOD_LABELS,
)
from utils.format_utils import format_money
from utils.validation_utils import clean_text, parse_amount

logger = get_logger(__name__)

CATEGORY_OPTIONS = [
    Option(id=f"{CATEGORY_PREFIX}{category}", title=EXPENSE_CATEGORY_LABELS[category])
    for category in EXPENSE_CATEGORIES
]


def _category_prompt() -> OutboundPlan:
    return options(ASK_EXPENSE_CATEGORY, CATEGORY_OPTIONS + [CANCEL_OPTION], button_label="Categories")


def _method_prompt() -> OutboundPlan:
    return options(ASK_EXPENSE_METHOD, METHOD_OPTIONS + [CANCEL_OPTION], button_label="Methods")


@entry(Action.RECORD_EXPENSE)
async def start_expense(ctx) -> List[OutboundPlan]:
    ctx.tenant.go(DialogState.EXPENSE_CATEGORY, ExpenseSession())
    return [_category_prompt()]


@state_handler(DialogState.EXPENSE_CATEGORY)
async def handle_expense_category(ctx) -> List[OutboundPlan]:
    session: ExpenseSession = ctx.session
    category = token_value(ctx.action, CATEGORY_PREFIX)
    if category not in EXPENSE_CATEGORIES:
        return retry(NOT_UNDERSTOOD, _category_prompt())

    session.category = category
    ctx.tenant.go(DialogState.EXPENSE_DESCRIPTION, session)
    return [text(ASK_EXPENSE_DESCRIPTION)]


@state_handler(DialogState.EXPENSE_DESCRIPTION)
async def handle_expense_description(ctx) -> List[OutboundPlan]:
    session: ExpenseSession = ctx.session
    try:
        session.description = clean_text(ctx.text, field="description", max_length=200)
    except ValidationError as e:
        return retry(e.message)

    ctx.tenant.go(DialogState.EXPENSE_AMOUNT, session)
    return [text(ASK_EXPENSE_AMOUNT.format(currency=ctx.currency))]


@state_handler(DialogState.EXPENSE_AMOUNT)
async def handle_expense_amount(ctx) -> List[OutboundPlan]:
    session: ExpenseSession = ctx.session
    try:
        session.amount = parse_amount(ctx.text)
    except ValidationError as e:
        return retry(e.message)

    ctx.tenant.go(DialogState.EXPENSE_METHOD, session)
    return [_method_prompt()]


@state_handler(DialogState.EXPENSE_METHOD)
async def handle_expense_method(ctx) -> List[OutboundPlan]:
    session: ExpenseSession = ctx.session
    method = token_value(ctx.action, METHOD_PREFIX)
    if method not in PAYMENT_METHODS:
        return retry(NOT_UNDERSTOOD, _method_prompt())

    try:
        expense = await commit_expense(ctx.tenant.id, session, ctx.principal, method)
    except PersistenceError as e:
        logger.error(f"❌ Could not record expense: {e.message}")
        return retry(GENERIC_FAILURE, _method_prompt())

    return finish_text(
        ctx,
        EXPENSE_RECORDED.format(
            category=EXPENSE_CATEGORY_LABELS.get(expense.category, expense.category),
            amount=format_money(expense.amount, ctx.currency),
            method=PAYMENT_METHOD_LABELS.get(expense.method, expense.method),
        ),
    )
