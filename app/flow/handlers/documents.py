"""
app/flow/handlers/documents.py

Handles: invoice, quotation and receipt creation

Flow:
1. Client: saved (pick from recent) or new (name -> phone)
2. Items: catalogue product or typed description -> quantity -> price,
   looping through "add another or review"
3. Confirm: running summary, optional discount / VAT, generate

Generate is the only step that numbers and saves a document. The PDF is
rendered after the turn, outside the tenant lock.
"""

from typing import List

from app.core.config import settings
from app.core.exceptions import (
    IdentityError,
    MonthlyLimitReached,
    PersistenceError,
    ValidationError,
)
from app.core.logging import get_logger
from app.flow.actions import CLIENT_PREFIX, PRODUCT_PREFIX, Action, token_value
from app.flow.gates import allow_feature
from app.flow.handlers.common import CANCEL_OPTION, finish, retry
from app.flow.registry import entry, state_handler
from app.flow.session import DocumentSession, PendingItem
from app.flow.states import DialogState
from app.models.records import LineItem
from app.schemas.outbound import Option, OutboundPlan, RenderJob, options, text
from app.services.business_service import (
    get_client,
    get_product,
    list_products,
    recent_clients,
    save_client,
)
from app.services.document_service import DOC_LABELS, commit_document, draft_summary
from utils.constants import (
    ASK_CLIENT_NAME,
    ASK_CLIENT_PHONE,
    ASK_DISCOUNT,
    ASK_ITEM,
    ASK_ITEM_DESCRIPTION,
    ASK_MORE_ITEMS,
    ASK_QUANTITY,
    ASK_UNIT_PRICE,
    ASK_VAT,
    BUTTON_ADD_ITEM,
    BUTTON_CATALOGUE,
    BUTTON_CUSTOM_ITEM,
    BUTTON_DISCOUNT,
    BUTTON_GENERATE,
    BUTTON_NEW_CLIENT,
    BUTTON_REVIEW,
    BUTTON_SAVED_CLIENT,
    BUTTON_VAT,
    CHOOSE_PRODUCT,
    CHOOSE_SAVED_CLIENT,
    CLIENT_NOT_FOUND,
    CLIENT_SAVED,
    COMMIT_FAILED,
    CONFIRM_OPTIONS,
    DOC_START,
    DOCUMENT_ALREADY_CREATED,
    DOCUMENT_CREATED,
    DOCUMENT_PDF_CAPTION,
    INVITE_INVALID_PHONE,
    ITEM_ADDED,
    MONTHLY_LIMIT_REACHED,
    NO_PRODUCTS,
    NO_SAVED_CLIENTS,
    NOT_UNDERSTOOD,
)
from utils.format_utils import format_money, format_quantity, truncate
from utils.validation_utils import (
    clean_text,
    normalize_phone,
    parse_amount,
    parse_percent,
    parse_quantity,
)

logger = get_logger(__name__)

DOC_ENTRIES = {
    Action.NEW_INVOICE: "invoice",
    Action.NEW_QUOTE: "quote",
    Action.NEW_RECEIPT: "receipt",
}


def _label(session: DocumentSession) -> str:
    return DOC_LABELS[session.doc_type]


# ============================================================
# PROMPTS
# ============================================================

def client_choice_prompt(session: DocumentSession) -> OutboundPlan:
    return options(
        DOC_START.format(label=_label(session).lower()),
        [
            Option(id=Action.USE_SAVED_CLIENT.value, title=BUTTON_SAVED_CLIENT),
            Option(id=Action.NEW_CLIENT.value, title=BUTTON_NEW_CLIENT),
            CANCEL_OPTION,
        ],
    )


async def client_picker(tenant_id: str, heading: str = CHOOSE_SAVED_CLIENT):
    """Returns the saved-client list plan, or None when there are no clients."""
    clients = await recent_clients(tenant_id)
    if not clients:
        return None
    rows = [
        Option(id=f"{CLIENT_PREFIX}{c.id}", title=truncate(c.name, 24), description=c.phone)
        for c in clients
    ]
    return options(heading, rows + [CANCEL_OPTION], button_label="Clients")


def item_prompt(ctx) -> OutboundPlan:
    choices = []
    if allow_feature(ctx.tenant.package, "catalogue"):
        choices.append(Option(id=Action.ITEM_CATALOGUE.value, title=BUTTON_CATALOGUE))
    choices.append(Option(id=Action.ITEM_CUSTOM.value, title=BUTTON_CUSTOM_ITEM))
    choices.append(CANCEL_OPTION)
    return options(ASK_ITEM, choices)


def more_prompt(session: DocumentSession) -> OutboundPlan:
    return options(
        ASK_MORE_ITEMS.format(label=_label(session).lower()),
        [
            Option(id=Action.ADD_ITEM.value, title=BUTTON_ADD_ITEM),
            Option(id=Action.REVIEW_DOCUMENT.value, title=BUTTON_REVIEW),
            CANCEL_OPTION,
        ],
    )


def confirm_options(session: DocumentSession) -> OutboundPlan:
    choices = [
        Option(id=Action.GENERATE.value, title=BUTTON_GENERATE),
        Option(id=Action.ADD_ITEM.value, title=BUTTON_ADD_ITEM),
        Option(id=Action.SET_DISCOUNT.value, title=BUTTON_DISCOUNT),
    ]
    if session.doc_type != "receipt":
        choices.append(Option(id=Action.SET_VAT.value, title=BUTTON_VAT))
    choices.append(CANCEL_OPTION)
    return options(CONFIRM_OPTIONS, choices, button_label="Options")


def confirm_prompt(ctx, session: DocumentSession) -> List[OutboundPlan]:
    return [text(draft_summary(session, ctx.currency)), confirm_options(session)]


def _quantity_prompt(pending: PendingItem) -> OutboundPlan:
    return text(ASK_QUANTITY.format(description=pending.description))


def _price_prompt(ctx, pending: PendingItem) -> OutboundPlan:
    return text(ASK_UNIT_PRICE.format(description=pending.description, currency=ctx.currency))


# ============================================================
# CLIENT SELECTION
# ============================================================

@entry(*DOC_ENTRIES)
async def start_document(ctx) -> List[OutboundPlan]:
    doc_type = DOC_ENTRIES[Action(ctx.action)]
    session = DocumentSession(
        doc_type=doc_type,
        vat_percent=0.0 if doc_type == "receipt" else ctx.tenant.vat_percent,
    )
    ctx.tenant.go(DialogState.DOC_CHOOSE_CLIENT, session)
    logger.info(f"🧾 Drafting new {doc_type}")
    return [client_choice_prompt(session)]


async def _select_client(ctx, session: DocumentSession, client_id: str) -> List[OutboundPlan]:
    client = await get_client(ctx.tenant.id, client_id)
    if client is None:
        picker = await client_picker(ctx.tenant.id)
        return retry(CLIENT_NOT_FOUND, picker or client_choice_prompt(session))

    session.client_id = client.id
    session.client_name = client.name
    session.client_phone = client.phone
    ctx.tenant.go(DialogState.DOC_ITEM_ADD, session)
    return [item_prompt(ctx)]


@state_handler(DialogState.DOC_CHOOSE_CLIENT)
async def handle_choose_client(ctx) -> List[OutboundPlan]:
    session: DocumentSession = ctx.session
    client_id = token_value(ctx.action, CLIENT_PREFIX)
    if client_id:
        return await _select_client(ctx, session, client_id)

    if ctx.action == Action.USE_SAVED_CLIENT.value:
        picker = await client_picker(ctx.tenant.id)
        if picker is None:
            ctx.tenant.go(DialogState.DOC_NEW_CLIENT_NAME, session)
            return [text(NO_SAVED_CLIENTS), text(ASK_CLIENT_NAME)]
        ctx.tenant.go(DialogState.DOC_PICK_CLIENT, session)
        return [picker]

    if ctx.action == Action.NEW_CLIENT.value:
        ctx.tenant.go(DialogState.DOC_NEW_CLIENT_NAME, session)
        return [text(ASK_CLIENT_NAME)]

    return retry(NOT_UNDERSTOOD, client_choice_prompt(session))


@state_handler(DialogState.DOC_PICK_CLIENT)
async def handle_pick_client(ctx) -> List[OutboundPlan]:
    session: DocumentSession = ctx.session
    client_id = token_value(ctx.action, CLIENT_PREFIX)
    if client_id:
        return await _select_client(ctx, session, client_id)

    if ctx.action == Action.NEW_CLIENT.value:
        ctx.tenant.go(DialogState.DOC_NEW_CLIENT_NAME, session)
        return [text(ASK_CLIENT_NAME)]

    picker = await client_picker(ctx.tenant.id)
    return retry(NOT_UNDERSTOOD, picker or client_choice_prompt(session))


@state_handler(DialogState.DOC_NEW_CLIENT_NAME)
async def handle_new_client_name(ctx) -> List[OutboundPlan]:
    session: DocumentSession = ctx.session
    try:
        name = clean_text(ctx.text, field="client name", max_length=80)
    except ValidationError as e:
        return retry(e.message)

    session.new_client_name = name
    ctx.tenant.go(DialogState.DOC_NEW_CLIENT_PHONE, session)
    return [text(ASK_CLIENT_PHONE)]


@state_handler(DialogState.DOC_NEW_CLIENT_PHONE)
async def handle_new_client_phone(ctx) -> List[OutboundPlan]:
    session: DocumentSession = ctx.session
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

    # one client per draft, so a redelivered reply does not duplicate it
    client = await save_client(ctx.tenant.id, session.new_client_name or "Client", phone, key=session.generation)
    session.client_id = client.id
    session.client_name = client.name
    session.client_phone = client.phone
    session.new_client_name = None
    ctx.tenant.go(DialogState.DOC_ITEM_ADD, session)
    return [text(CLIENT_SAVED.format(name=client.name)), item_prompt(ctx)]


# ============================================================
# ITEMS
# ============================================================

async def _product_picker(ctx):
    products = await list_products(ctx.tenant.id)
    if not products:
        return None
    rows = [
        Option(
            id=f"{PRODUCT_PREFIX}{p.id}",
            title=truncate(p.name, 24),
            description=format_money(p.unit_price, ctx.currency),
        )
        for p in products
    ]
    return options(CHOOSE_PRODUCT, rows + [CANCEL_OPTION], button_label="Products")


async def _select_product(ctx, session: DocumentSession, product_id: str) -> List[OutboundPlan]:
    product = await get_product(ctx.tenant.id, product_id)
    if product is None:
        picker = await _product_picker(ctx)
        return retry(NOT_UNDERSTOOD, picker or item_prompt(ctx))

    session.pending = PendingItem(
        description=product.name,
        unit_price=product.unit_price,
        product_id=product.id,
    )
    ctx.tenant.go(DialogState.DOC_ITEM_QTY, session)
    return [_quantity_prompt(session.pending)]


@state_handler(DialogState.DOC_ITEM_ADD)
async def handle_item_add(ctx) -> List[OutboundPlan]:
    session: DocumentSession = ctx.session

    product_id = token_value(ctx.action, PRODUCT_PREFIX)
    if product_id:
        return await _select_product(ctx, session, product_id)

    if ctx.action == Action.ITEM_CATALOGUE.value:
        picker = await _product_picker(ctx)
        if picker is None:
            return retry(NO_PRODUCTS)
        ctx.tenant.go(DialogState.DOC_PICK_PRODUCT, session)
        return [picker]

    if ctx.action == Action.ITEM_CUSTOM.value:
        return [text(ASK_ITEM_DESCRIPTION)]

    if ctx.action is None and ctx.text:
        try:
            description = clean_text(ctx.text, min_length=1, field="item description")
        except ValidationError as e:
            return retry(e.message)
        session.pending = PendingItem(description=description)
        ctx.tenant.go(DialogState.DOC_ITEM_QTY, session)
        return [_quantity_prompt(session.pending)]

    return retry(NOT_UNDERSTOOD, item_prompt(ctx))


@state_handler(DialogState.DOC_PICK_PRODUCT)
async def handle_pick_product(ctx) -> List[OutboundPlan]:
    session: DocumentSession = ctx.session

    product_id = token_value(ctx.action, PRODUCT_PREFIX)
    if product_id:
        return await _select_product(ctx, session, product_id)

    if ctx.action == Action.ITEM_CUSTOM.value:
        ctx.tenant.go(DialogState.DOC_ITEM_ADD, session)
        return [text(ASK_ITEM_DESCRIPTION)]

    picker = await _product_picker(ctx)
    return retry(NOT_UNDERSTOOD, picker or item_prompt(ctx))


def _add_pending(ctx, session: DocumentSession) -> List[OutboundPlan]:
    pending = session.pending
    item = LineItem(
        description=pending.description,
        quantity=pending.quantity,
        unit_price=pending.unit_price,
        product_id=pending.product_id,
    )
    session.items.append(item)
    session.pending = None
    ctx.tenant.go(DialogState.DOC_ITEM_MORE, session)

    added = ITEM_ADDED.format(
        description=item.description,
        quantity=format_quantity(item.quantity),
        price=format_money(item.unit_price, ctx.currency),
    )
    return [text(added), more_prompt(session)]


@state_handler(DialogState.DOC_ITEM_QTY)
async def handle_item_quantity(ctx) -> List[OutboundPlan]:
    session: DocumentSession = ctx.session
    if session.pending is None:
        ctx.tenant.go(DialogState.DOC_ITEM_ADD, session)
        return [item_prompt(ctx)]

    try:
        quantity = parse_quantity(ctx.text)
    except ValidationError as e:
        return retry(e.message, _quantity_prompt(session.pending))

    session.pending.quantity = quantity
    if session.pending.unit_price is not None:
        return _add_pending(ctx, session)

    ctx.tenant.go(DialogState.DOC_ITEM_PRICE, session)
    return [_price_prompt(ctx, session.pending)]


@state_handler(DialogState.DOC_ITEM_PRICE)
async def handle_item_price(ctx) -> List[OutboundPlan]:
    session: DocumentSession = ctx.session
    if session.pending is None or session.pending.quantity is None:
        ctx.tenant.go(DialogState.DOC_ITEM_ADD, session)
        return [item_prompt(ctx)]

    if ctx.action == Action.SKIP.value or ctx.text.strip().lower() == "skip":
        price = 0.0
    else:
        try:
            price = parse_amount(ctx.text, allow_zero=True)
        except ValidationError as e:
            return retry(e.message, _price_prompt(ctx, session.pending))

    session.pending.unit_price = price
    return _add_pending(ctx, session)


@state_handler(DialogState.DOC_ITEM_MORE)
async def handle_item_more(ctx) -> List[OutboundPlan]:
    session: DocumentSession = ctx.session

    if ctx.action == Action.ADD_ITEM.value:
        ctx.tenant.go(DialogState.DOC_ITEM_ADD, session)
        return [item_prompt(ctx)]

    if ctx.action == Action.REVIEW_DOCUMENT.value:
        ctx.tenant.go(DialogState.DOC_CONFIRM, session)
        return confirm_prompt(ctx, session)

    return retry(NOT_UNDERSTOOD, more_prompt(session))


# ============================================================
# CONFIRM
# ============================================================

async def _generate(ctx, session: DocumentSession) -> List[OutboundPlan]:
    label = _label(session)
    try:
        document, created = await commit_document(ctx.tenant, session, ctx.principal, ctx.now)
    except ValidationError as e:
        return retry(e.message, confirm_options(session))
    except MonthlyLimitReached as e:
        limit = (e.details or {}).get("limit", 0)
        return retry(MONTHLY_LIMIT_REACHED.format(limit=limit))
    except PersistenceError as e:
        logger.error(f"❌ Could not commit {session.doc_type}: {e.message}")
        return retry(COMMIT_FAILED.format(label=label.lower()), confirm_options(session))

    ctx.add_job(
        RenderJob(
            document_id=document.id,
            number=document.number,
            caption=DOCUMENT_PDF_CAPTION.format(label=label, number=document.number),
        )
    )
    message = DOCUMENT_CREATED if created else DOCUMENT_ALREADY_CREATED
    total = format_money(document.total, document.currency)
    return finish(ctx, text(message.format(label=label, number=document.number, total=total)))


@state_handler(DialogState.DOC_CONFIRM)
async def handle_confirm(ctx) -> List[OutboundPlan]:
    session: DocumentSession = ctx.session

    if ctx.action == Action.GENERATE.value:
        return await _generate(ctx, session)

    if ctx.action == Action.ADD_ITEM.value:
        ctx.tenant.go(DialogState.DOC_ITEM_ADD, session)
        return [item_prompt(ctx)]

    if ctx.action == Action.SET_DISCOUNT.value:
        ctx.tenant.go(DialogState.DOC_SET_DISCOUNT, session)
        return [text(ASK_DISCOUNT)]

    if ctx.action == Action.SET_VAT.value and session.doc_type != "receipt":
        ctx.tenant.go(DialogState.DOC_SET_VAT, session)
        return [text(ASK_VAT)]

    return [text(NOT_UNDERSTOOD), *confirm_prompt(ctx, session)]


@state_handler(DialogState.DOC_SET_DISCOUNT)
async def handle_set_discount(ctx) -> List[OutboundPlan]:
    session: DocumentSession = ctx.session
    try:
        session.discount_percent = parse_percent(ctx.text)
    except ValidationError as e:
        return retry(e.message)

    ctx.tenant.go(DialogState.DOC_CONFIRM, session)
    return confirm_prompt(ctx, session)


@state_handler(DialogState.DOC_SET_VAT)
async def handle_set_vat(ctx) -> List[OutboundPlan]:
    session: DocumentSession = ctx.session
    try:
        session.vat_percent = parse_percent(ctx.text)
    except ValidationError as e:
        return retry(e.message)

    ctx.tenant.go(DialogState.DOC_CONFIRM, session)
    return confirm_prompt(ctx, session)
