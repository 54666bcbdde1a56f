"""
app/flow/handlers/users.py

Handles: inviting staff

Flow:
1. Phone of the person to invite (normalized like any sender identity)
2. Branch they will work at (skipped when the business has one branch)
3. Role (manager / clerk): creates a pending membership and replies with
   the join link. The invitee becomes active only after sending JOIN.
"""

from typing import List

from app.core.config import settings
from app.core.exceptions import IdentityError
from app.flow.actions import BRANCH_PREFIX, ROLE_PREFIX, Action, token_value
from app.flow.gates import get_package
from app.flow.handlers.common import CANCEL_OPTION, finish_text, retry, start_upgrade
from app.flow.menus import ROLE_TITLES
from app.flow.registry import entry, state_handler
from app.flow.session import InviteSession
from app.flow.states import DialogState
from app.schemas.outbound import Option, OutboundPlan, options, text
from app.services.business_service import get_branch, list_branches
from app.services.identity_service import count_members, get_active_principal, upsert_invite
from utils.constants import (
    ASK_INVITE_PHONE,
    INVITE_ALREADY_ACTIVE,
    INVITE_CHOOSE_BRANCH,
    INVITE_CHOOSE_ROLE,
    INVITE_CREATED,
    INVITE_INVALID_PHONE,
    NOT_UNDERSTOOD,
    USER_LIMIT_REACHED,
)
from utils.validation_utils import normalize_phone

INVITABLE_ROLES = ("manager", "clerk")

ROLE_OPTIONS = [
    Option(id=f"{ROLE_PREFIX}{role}", title=ROLE_TITLES[role]) for role in INVITABLE_ROLES
]


def join_link() -> str:
    return f"https://wa.me/{settings.BOT_NUMBER.lstrip('+')}?text=JOIN"


def _role_prompt() -> OutboundPlan:
    return options(INVITE_CHOOSE_ROLE, ROLE_OPTIONS + [CANCEL_OPTION])


async def _branch_prompt(ctx):
    branches = await list_branches(ctx.tenant.id)
    rows = [Option(id=f"{BRANCH_PREFIX}{b.id}", title=b.name) for b in branches[:9]]
    return options(INVITE_CHOOSE_BRANCH, rows + [CANCEL_OPTION], button_label="Branches")


@entry(Action.INVITE_USER)
async def start_invite(ctx) -> List[OutboundPlan]:
    package = get_package(ctx.tenant.package)
    if await count_members(ctx.tenant.id) >= package.max_users:
        notice = USER_LIMIT_REACHED.format(package=package.label, limit=package.max_users)
        return start_upgrade(ctx, notice=notice)

    ctx.tenant.go(DialogState.INVITE_PHONE, InviteSession())
    return [text(ASK_INVITE_PHONE)]


@state_handler(DialogState.INVITE_PHONE)
async def handle_invite_phone(ctx) -> List[OutboundPlan]:
    session: InviteSession = ctx.session
    try:
        phone = normalize_phone(ctx.text, settings.DEFAULT_COUNTRY_CODE)
    except IdentityError:
        return retry(INVITE_INVALID_PHONE)

    if await get_active_principal(ctx.tenant.id, phone) is not None:
        return finish_text(ctx, INVITE_ALREADY_ACTIVE)

    session.phone = phone
    branches = await list_branches(ctx.tenant.id)
    if len(branches) == 1:
        session.branch_id = branches[0].id
        ctx.tenant.go(DialogState.INVITE_ROLE, session)
        return [_role_prompt()]

    ctx.tenant.go(DialogState.INVITE_BRANCH, session)
    return [await _branch_prompt(ctx)]


@state_handler(DialogState.INVITE_BRANCH)
async def handle_invite_branch(ctx) -> List[OutboundPlan]:
    session: InviteSession = ctx.session
    branch_id = token_value(ctx.action, BRANCH_PREFIX)
    branch = await get_branch(ctx.tenant.id, branch_id) if branch_id else None
    if branch is None:
        return retry(NOT_UNDERSTOOD, await _branch_prompt(ctx))

    session.branch_id = branch.id
    ctx.tenant.go(DialogState.INVITE_ROLE, session)
    return [_role_prompt()]


@state_handler(DialogState.INVITE_ROLE)
async def handle_invite_role(ctx) -> List[OutboundPlan]:
    session: InviteSession = ctx.session
    role = token_value(ctx.action, ROLE_PREFIX)
    if role not in INVITABLE_ROLES:
        return retry(NOT_UNDERSTOOD, _role_prompt())

    branch = await get_branch(ctx.tenant.id, session.branch_id or "")
    if session.phone is None or branch is None:
        ctx.tenant.go(DialogState.INVITE_PHONE, session)
        return [text(ASK_INVITE_PHONE)]

    await upsert_invite(
        tenant_id=ctx.tenant.id,
        phone=session.phone,
        role=role,
        branch_id=branch.id,
        invited_by=ctx.principal.phone,
    )
    return finish_text(
        ctx,
        INVITE_CREATED.format(
            phone=session.phone,
            role=ROLE_TITLES[role],
            branch=branch.name,
            link=join_link(),
        ),
    )
