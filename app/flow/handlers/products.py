"""
app/flow/handlers/products.py

Handles: adding a catalogue product (name -> unit price)
"""

from typing import List

from app.core.exceptions import ValidationError
from app.flow.actions import Action
from app.flow.handlers.common import finish_text, retry
from app.flow.registry import entry, state_handler
from app.flow.session import ProductSession
from app.flow.states import DialogState
from app.schemas.outbound import OutboundPlan, text
from app.services.business_service import save_product
from utils.constants import ASK_PRODUCT_NAME, ASK_PRODUCT_PRICE, PRODUCT_SAVED
from utils.format_utils import format_money
from utils.validation_utils import clean_text, parse_amount


@entry(Action.ADD_PRODUCT)
async def start_add_product(ctx) -> List[OutboundPlan]:
    ctx.tenant.go(DialogState.PRODUCT_NAME, ProductSession())
    return [text(ASK_PRODUCT_NAME)]


@state_handler(DialogState.PRODUCT_NAME)
async def handle_product_name(ctx) -> List[OutboundPlan]:
    session: ProductSession = ctx.session
    try:
        session.name = clean_text(ctx.text, field="product name", max_length=80)
    except ValidationError as e:
        return retry(e.message)

    ctx.tenant.go(DialogState.PRODUCT_PRICE, session)
    return [text(ASK_PRODUCT_PRICE.format(name=session.name, currency=ctx.currency))]


@state_handler(DialogState.PRODUCT_PRICE)
async def handle_product_price(ctx) -> List[OutboundPlan]:
    session: ProductSession = ctx.session
    try:
        price = parse_amount(ctx.text, allow_zero=True)
    except ValidationError as e:
        return retry(e.message)

    product = await save_product(ctx.tenant.id, session.name or "Item", price, key=session.generation)
    return finish_text(
        ctx,
        PRODUCT_SAVED.format(name=product.name, price=format_money(product.unit_price, ctx.currency)),
    )
