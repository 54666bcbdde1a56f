"""
app/flow/router.py

Purpose: Dialog router

Decides who handles a normalized turn for a bound, active principal:

1. Global tokens first: MENU (and BACK) return to the main menu,
   CANCEL abandons the current flow
2. Flow-entry tokens are honoured from any state, behind the Access Gate
   (role sections) and the Feature Gate (package features)
3. Otherwise the handler registered for the current state runs, after
   the state's own section is re-checked for the sender's role

After the handler the last-shown choices are stored on the session so
numbered replies keep resolving against what the sender actually saw.
"""

from typing import List

from app.core.logging import get_logger
from app.flow.actions import Action
from app.flow.context import TurnContext
from app.flow.gates import FEATURE_LABELS, allow_feature, allow_section, get_package
from app.flow.handlers.common import finish, finish_text, menu_plan, start_upgrade
from app.flow.menus import ENTRY_RULES, NAVIGATION_ENTRIES
from app.flow.registry import ENTRY_STARTERS, STATE_HANDLERS
from app.flow.states import DialogState, get_state_metadata
from app.schemas.outbound import ButtonsPlan, ListPlan, OutboundPlan, option_ids, text
from utils.constants import ACCESS_DENIED, CANCELLED, FEATURE_NOT_IN_PACKAGE, TRIAL_EXPIRED

# Handler modules register themselves on import
from app.flow.handlers import (  # noqa: F401
    branches,
    clients,
    documents,
    docview,
    expenses,
    menu,
    onboarding,
    payments,
    products,
    reports,
    settings,
    upgrade,
    users,
)

logger = get_logger(__name__)


def _validate_registry() -> None:
    missing_states = [s.value for s in DialogState if s not in STATE_HANDLERS]
    if missing_states:
        raise RuntimeError(f"States without a handler: {missing_states}")

    missing_entries = [a.value for a in ENTRY_RULES if a not in ENTRY_STARTERS]
    if missing_entries:
        raise RuntimeError(f"Entry tokens without a starter: {missing_entries}")

    unruled = [a.value for a in ENTRY_STARTERS if a not in ENTRY_RULES]
    if unruled:
        raise RuntimeError(f"Starters without access rules: {unruled}")


_validate_registry()


def _deny(ctx: TurnContext) -> List[OutboundPlan]:
    return finish_text(ctx, ACCESS_DENIED)


async def _enter(ctx: TurnContext, token: Action) -> List[OutboundPlan]:
    section, feature = ENTRY_RULES[token]
    if not allow_section(ctx.principal, section):
        logger.info(f"🚫 {ctx.principal.role} denied {token.value}")
        return _deny(ctx)

    if token not in NAVIGATION_ENTRIES and ctx.tenant.trial_expired(ctx.now):
        return start_upgrade(ctx, notice=TRIAL_EXPIRED)

    if not allow_feature(ctx.tenant.package, feature):
        package = get_package(ctx.tenant.package)
        notice = FEATURE_NOT_IN_PACKAGE.format(feature=FEATURE_LABELS[feature], package=package.label)
        return start_upgrade(ctx, feature, notice=notice)

    return await ENTRY_STARTERS[token](ctx)


async def _dispatch(ctx: TurnContext) -> List[OutboundPlan]:
    tenant = ctx.tenant
    action = ctx.action

    if not tenant.session_is_consistent():
        logger.warning(
            f"Session '{getattr(tenant.session, 'flow', None)}' does not fit "
            f"state {tenant.current_state.value}, resetting"
        )
        tenant.reset()

    if action in (Action.MENU.value, Action.BACK.value):
        tenant.reset()
        return [menu_plan(ctx)]

    if action == Action.CANCEL.value:
        return finish(ctx, text(CANCELLED))

    if action is not None and action in ENTRY_RULES:
        return await _enter(ctx, Action(action))

    state = tenant.current_state
    if state != DialogState.READY and not allow_section(ctx.principal, get_state_metadata(state).section):
        logger.info(f"🚫 {ctx.principal.role} no longer allowed in {state.value}")
        return _deny(ctx)

    return await STATE_HANDLERS[state](ctx)


def _remember_choices(ctx: TurnContext, plans: List[OutboundPlan], state_before, generation_before) -> None:
    tenant = ctx.tenant
    if tenant.is_ready:
        return

    interactive = [p for p in plans if isinstance(p, (ButtonsPlan, ListPlan))]
    session = tenant.session
    if interactive:
        session.choices = option_ids(interactive[-1])
    elif tenant.current_state != state_before or session.generation != generation_before:
        session.choices = []


async def route_turn(ctx: TurnContext) -> List[OutboundPlan]:
    """
    Runs one dialog turn against the locked tenant.

    Returns:
        The reply plans for the sender, in order
    """
    tenant = ctx.tenant
    state_before = tenant.current_state
    generation_before = getattr(tenant.session, "generation", None)

    logger.info(f"🚦 Routing: state={state_before.value}, action={ctx.action}")
    plans = await _dispatch(ctx)
    _remember_choices(ctx, plans, state_before, generation_before)
    return plans
