"""
app/flow/handlers/common.py

Shared reply helpers for dialog handlers:
- finishing a flow (reset + main menu)
- re-prompting after a validation error
- redirecting into the upgrade sub-flow
"""

from typing import List, Optional

from app.flow.actions import PACKAGE_PREFIX, Action
from app.flow.context import TurnContext
from app.flow.gates import FEATURE_LABELS, allow_section, get_package, upgrade_options
from app.flow.menus import main_menu_plan
from app.flow.session import UpgradeSession
from app.flow.states import DialogState
from app.schemas.outbound import Option, OutboundPlan, options, text
from utils.constants import (
    BUTTON_CANCEL,
    FEATURE_ASK_OWNER,
    UPGRADE_CHOOSE,
    UPGRADE_NONE,
)

CANCEL_OPTION = Option(id=Action.CANCEL.value, title=BUTTON_CANCEL)


def menu_plan(ctx: TurnContext) -> OutboundPlan:
    return main_menu_plan(ctx.principal, ctx.tenant.name)


def finish(ctx: TurnContext, *plans: OutboundPlan) -> List[OutboundPlan]:
    """Ends the current flow: ready state, empty session, main menu."""
    ctx.tenant.reset()
    return [*plans, menu_plan(ctx)]


def finish_text(ctx: TurnContext, message: str) -> List[OutboundPlan]:
    return finish(ctx, text(message))


def retry(message: str, prompt: Optional[OutboundPlan] = None) -> List[OutboundPlan]:
    """Re-prompt in the same state; the caller must not have touched the session."""
    plans: List[OutboundPlan] = [text(message)]
    if prompt is not None:
        plans.append(prompt)
    return plans


def package_option(package) -> Option:
    return Option(
        id=f"{PACKAGE_PREFIX}{package.name}",
        title=f"{package.label} ${package.price_usd:g}",
        description=(
            f"{package.max_users} users, {package.max_branches} branches, "
            f"{package.monthly_documents} docs/month"
        ),
    )


def upgrade_prompt(ctx: TurnContext, notice: Optional[str] = None) -> OutboundPlan:
    current = get_package(ctx.tenant.package)
    body = UPGRADE_CHOOSE.format(package=current.label)
    if notice:
        body = f"{notice}\n\n{body}"
    rows = [package_option(p) for p in upgrade_options(ctx.tenant.package)]
    return options(body, rows + [CANCEL_OPTION], button_label="Packages")


def start_upgrade(
    ctx: TurnContext,
    feature: Optional[str] = None,
    notice: Optional[str] = None,
) -> List[OutboundPlan]:
    """
    Feature denial: owners (billing section) land in the upgrade flow,
    everyone else is sent back to the menu and told to ask the owner.
    """
    if not allow_section(ctx.principal, "billing"):
        label = FEATURE_LABELS.get(feature, "This feature") if feature else "This feature"
        return finish_text(ctx, FEATURE_ASK_OWNER.format(feature=label))

    if not upgrade_options(ctx.tenant.package):
        plans = [text(notice)] if notice else []
        return finish(ctx, *plans, text(UPGRADE_NONE))

    ctx.tenant.go(DialogState.UPGRADE_PICK_PACKAGE, UpgradeSession(blocked_feature=feature))
    return [upgrade_prompt(ctx, notice)]
