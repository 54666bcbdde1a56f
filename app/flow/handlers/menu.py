"""
app/flow/handlers/menu.py

Handles: the ready state and the navigation sub-menus

- Ready: anything that is not a flow entry re-shows the main menu
- Clients / Sales / Business / Users / Branches sub-menus
- Member and branch listings
"""

from typing import List

from app.flow.actions import Action
from app.flow.handlers.common import finish, menu_plan
from app.flow.menus import ROLE_TITLES, sub_menu_plan
from app.flow.registry import entry, state_handler
from app.flow.session import MenuSession
from app.flow.states import DialogState
from app.schemas.outbound import OutboundPlan, text
from app.services.business_service import list_branches
from app.services.identity_service import list_members
from utils.constants import (
    BRANCHES_HEADER,
    BRANCHES_MENU_TEXT,
    BUSINESS_MENU_TEXT,
    CLIENTS_MENU_TEXT,
    MEMBERS_HEADER,
    NOT_UNDERSTOOD,
    SALES_MENU_TEXT,
    USERS_MENU_TEXT,
)

# menu token -> (state, heading)
SUB_MENU_STATES = {
    Action.CLIENTS_MENU: (DialogState.CLIENTS_MENU, CLIENTS_MENU_TEXT),
    Action.SALES_MENU: (DialogState.SALES_MENU, SALES_MENU_TEXT),
    Action.BUSINESS_MENU: (DialogState.BUSINESS_MENU, BUSINESS_MENU_TEXT),
    Action.USERS_MENU: (DialogState.USERS_MENU, USERS_MENU_TEXT),
    Action.BRANCHES_MENU: (DialogState.BRANCHES_MENU, BRANCHES_MENU_TEXT),
}

_STATE_TO_MENU = {state: token for token, (state, _) in SUB_MENU_STATES.items()}


@state_handler(DialogState.READY)
async def handle_ready(ctx) -> List[OutboundPlan]:
    if ctx.action or ctx.text:
        return [text(NOT_UNDERSTOOD), menu_plan(ctx)]
    return [menu_plan(ctx)]


@entry(*SUB_MENU_STATES)
async def open_sub_menu(ctx) -> List[OutboundPlan]:
    menu = Action(ctx.action)
    state, heading = SUB_MENU_STATES[menu]
    ctx.tenant.go(state, MenuSession())
    return [sub_menu_plan(menu, ctx.principal, heading)]


@state_handler(*_STATE_TO_MENU)
async def handle_sub_menu(ctx) -> List[OutboundPlan]:
    menu = _STATE_TO_MENU[ctx.tenant.current_state]
    heading = SUB_MENU_STATES[menu][1]
    return [text(NOT_UNDERSTOOD), sub_menu_plan(menu, ctx.principal, heading)]


@entry(Action.LIST_USERS)
async def show_members(ctx) -> List[OutboundPlan]:
    lines = [MEMBERS_HEADER, ""]
    for member in await list_members(ctx.tenant.id):
        status = " (invited)" if member.pending else ""
        name = f"{member.display_name} " if member.display_name else ""
        lines.append(f"• {name}{member.phone}: {ROLE_TITLES[member.role]}{status}")
    return finish(ctx, text("\n".join(lines)))


@entry(Action.LIST_BRANCHES)
async def show_branches(ctx) -> List[OutboundPlan]:
    lines = [BRANCHES_HEADER, ""]
    for branch in await list_branches(ctx.tenant.id):
        default = " (default)" if branch.is_default else ""
        lines.append(f"• {branch.name}{default}")
    return finish(ctx, text("\n".join(lines)))
