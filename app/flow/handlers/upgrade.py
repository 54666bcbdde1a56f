"""
app/flow/handlers/upgrade.py

Handles: package upgrade

The owner picks a higher package and receives a checkout link. The
package itself changes only when the billing side confirms payment.
"""

from typing import List

from app.core.config import settings
from app.core.logging import get_logger
from app.flow.actions import PACKAGE_PREFIX, Action, token_value
from app.flow.gates import upgrade_options
from app.flow.handlers.common import finish_text, retry, start_upgrade, upgrade_prompt
from app.flow.registry import entry, state_handler
from app.flow.states import DialogState
from app.schemas.outbound import OutboundPlan
from app.services.business_service import record_upgrade_request
from utils.constants import NOT_UNDERSTOOD, UPGRADE_LINK

logger = get_logger(__name__)


def checkout_link(request_id: str, package: str) -> str:
    return f"{settings.CHECKOUT_URL}?ref={request_id}&package={package}"


@entry(Action.UPGRADE)
async def open_upgrade(ctx) -> List[OutboundPlan]:
    return start_upgrade(ctx)


@state_handler(DialogState.UPGRADE_PICK_PACKAGE)
async def handle_upgrade_pick(ctx) -> List[OutboundPlan]:
    name = token_value(ctx.action, PACKAGE_PREFIX)
    package = next((p for p in upgrade_options(ctx.tenant.package) if p.name == name), None)
    if package is None:
        return retry(NOT_UNDERSTOOD, upgrade_prompt(ctx))

    request_id = await record_upgrade_request(
        ctx.tenant.id, package.name, ctx.principal.phone, key=ctx.session.generation
    )
    logger.info(f"Upgrade requested: {ctx.tenant.package} -> {package.name}")
    return finish_text(
        ctx,
        UPGRADE_LINK.format(
            package=package.label,
            price=f"{package.price_usd:g}",
            link=checkout_link(request_id, package.name),
        ),
    )
