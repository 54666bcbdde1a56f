"""
app/flow/handlers/clients.py

Handles: standalone client management

- Add client: name -> phone
- Client statement: pick a client -> billed / paid / balance
"""

from typing import List

from app.core.config import settings
from app.core.exceptions import IdentityError, ValidationError
from app.flow.actions import CLIENT_PREFIX, Action, token_value
from app.flow.handlers.common import finish, finish_text, retry
from app.flow.handlers.documents import client_picker
from app.flow.registry import entry, state_handler
from app.flow.session import ClientSession, StatementSession
from app.flow.states import DialogState
from app.schemas.outbound import OutboundPlan, text
from app.services.business_service import get_client, save_client
from app.services.ledger_service import client_statement
from utils.constants import (
    ASK_CLIENT_NAME,
    ASK_CLIENT_PHONE,
    CLIENT_NOT_FOUND,
    CLIENT_SAVED,
    INVITE_INVALID_PHONE,
    NO_SAVED_CLIENTS,
    STATEMENT_CHOOSE,
    STATEMENT_TEXT,
)
from utils.format_utils import format_money
from utils.validation_utils import clean_text, normalize_phone


@entry(Action.ADD_CLIENT)
async def start_add_client(ctx) -> List[OutboundPlan]:
    ctx.tenant.go(DialogState.CLIENT_NAME, ClientSession())
    return [text(ASK_CLIENT_NAME)]


@state_handler(DialogState.CLIENT_NAME)
async def handle_client_name(ctx) -> List[OutboundPlan]:
    session: ClientSession = ctx.session
    try:
        session.name = clean_text(ctx.text, field="client name", max_length=80)
    except ValidationError as e:
        return retry(e.message)

    ctx.tenant.go(DialogState.CLIENT_PHONE, session)
    return [text(ASK_CLIENT_PHONE)]


@state_handler(DialogState.CLIENT_PHONE)
async def handle_client_phone(ctx) -> List[OutboundPlan]:
    session: ClientSession = ctx.session
    answer = ctx.text.strip().lower()

    if ctx.action == Action.SKIP.value or answer == "skip":
        phone = None
    elif answer == "same":
        phone = ctx.principal.phone
    else:
        try:
            phone = normalize_phone(ctx.text, settings.DEFAULT_COUNTRY_CODE)
        except IdentityError:
            return retry(INVITE_INVALID_PHONE)

    client = await save_client(ctx.tenant.id, session.name or "Client", phone, key=session.generation)
    return finish_text(ctx, CLIENT_SAVED.format(name=client.name))


@entry(Action.CLIENT_STATEMENT)
async def start_statement(ctx) -> List[OutboundPlan]:
    picker = await client_picker(ctx.tenant.id, STATEMENT_CHOOSE)
    if picker is None:
        return finish_text(ctx, NO_SAVED_CLIENTS)
    ctx.tenant.go(DialogState.STATEMENT_PICK_CLIENT, StatementSession())
    return [picker]


@state_handler(DialogState.STATEMENT_PICK_CLIENT)
async def handle_statement_client(ctx) -> List[OutboundPlan]:
    client_id = token_value(ctx.action, CLIENT_PREFIX)
    client = await get_client(ctx.tenant.id, client_id) if client_id else None
    if client is None:
        picker = await client_picker(ctx.tenant.id, STATEMENT_CHOOSE)
        if picker is None:
            return finish_text(ctx, NO_SAVED_CLIENTS)
        return retry(CLIENT_NOT_FOUND, picker)

    statement = await client_statement(ctx.tenant.id, client.id)
    currency = ctx.currency
    return finish(
        ctx,
        text(
            STATEMENT_TEXT.format(
                name=client.name,
                invoices=statement.invoices,
                billed=format_money(statement.billed, currency),
                paid=format_money(statement.paid, currency),
                balance=format_money(statement.balance, currency),
            )
        ),
    )
