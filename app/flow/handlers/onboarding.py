"""
app/flow/handlers/onboarding.py

Handles: unbound phones, JOIN and the onboarding steps

- Welcome for phones with no business (create a business or join one)
- JOIN: accept a pending invitation and switch the active business
- Business name -> currency -> logo (upload or skip) -> main menu

These steps bypass the access and feature gates.
"""

from typing import List

from app.core.exceptions import ValidationError
from app.core.logging import get_logger
from app.flow.actions import CURRENCY_PREFIX, Action, token_value
from app.flow.handlers.common import finish, retry
from app.flow.menus import ROLE_TITLES, main_menu_plan
from app.flow.registry import state_handler
from app.flow.states import DialogState
from app.schemas.outbound import LogoJob, Notification, Option, OutboundPlan, options, text
from app.schemas.webhook import InboundMessage
from app.services.identity_service import accept_invite
from app.services.tenant_service import create_tenant, load_tenant
from utils.constants import (
    ASK_BUSINESS_CURRENCY,
    ASK_BUSINESS_LOGO,
    ASK_BUSINESS_NAME,
    ASK_LOGO_IMAGE,
    BUTTON_CREATE_BUSINESS,
    BUTTON_SKIP,
    BUTTON_UPLOAD_LOGO,
    JOIN_NO_INVITE,
    JOIN_NOTIFY_OWNER,
    JOIN_SUCCESS,
    LOGO_RECEIVED,
    NOT_UNDERSTOOD,
    ONBOARDING_DONE,
    WELCOME_NEW_USER,
)
from utils.validation_utils import SUPPORTED_CURRENCIES, clean_text, parse_currency

logger = get_logger(__name__)

WELCOME_OPTIONS = [
    Option(id=Action.CREATE_BUSINESS.value, title=BUTTON_CREATE_BUSINESS),
    Option(id=Action.JOIN.value, title="Join a business"),
]

CURRENCY_OPTIONS = [
    Option(id=f"{CURRENCY_PREFIX}{code.lower()}", title=code) for code in SUPPORTED_CURRENCIES
]

LOGO_OPTIONS = [
    Option(id=Action.UPLOAD_LOGO.value, title=BUTTON_UPLOAD_LOGO),
    Option(id=Action.SKIP.value, title=BUTTON_SKIP),
]


def _welcome_token(message: InboundMessage) -> str:
    """Welcome has no stored session, so its numbering is fixed."""
    token = (message.interactive_id or message.text or "").strip().lower()
    if token.isdecimal() and 1 <= int(token) <= len(WELCOME_OPTIONS):
        return WELCOME_OPTIONS[int(token) - 1].id
    return token


async def accept_join(
    message: InboundMessage,
    phone: str,
    notifications: List[Notification],
) -> List[OutboundPlan]:
    """
    Activates the sender's pending invitation, if any.
    The inviter is told best-effort through `notifications`.
    """
    principal = await accept_invite(phone, message.name)
    if principal is None:
        logger.info("JOIN without a pending invitation")
        return [text(JOIN_NO_INVITE)]

    tenant = await load_tenant(principal.tenant_id)
    role = ROLE_TITLES[principal.role]

    if principal.invited_by and principal.invited_by != phone:
        notifications.append(
            Notification(
                to_phone=principal.invited_by,
                plan=text(JOIN_NOTIFY_OWNER.format(phone=phone, role=role)),
            )
        )

    return [
        text(JOIN_SUCCESS.format(business=tenant.name or "the business", role=role)),
        main_menu_plan(principal, tenant.name),
    ]


async def handle_unbound(
    message: InboundMessage,
    phone: str,
    notifications: List[Notification],
) -> List[OutboundPlan]:
    """
    A phone with no active business: create one, join one, or see the welcome.
    """
    token = _welcome_token(message)

    if token == Action.CREATE_BUSINESS.value:
        await create_tenant(phone, message.name)
        return [text(ASK_BUSINESS_NAME)]

    if token == Action.JOIN.value:
        return await accept_join(message, phone, notifications)

    return [options(WELCOME_NEW_USER, WELCOME_OPTIONS)]


@state_handler(DialogState.ONBOARDING_NAME)
async def handle_business_name(ctx) -> List[OutboundPlan]:
    try:
        name = clean_text(ctx.text, field="business name", max_length=60)
    except ValidationError as e:
        return retry(e.message)

    ctx.tenant.update_profile(name=name)
    ctx.tenant.go(DialogState.ONBOARDING_CURRENCY, ctx.session)
    return [options(ASK_BUSINESS_CURRENCY, CURRENCY_OPTIONS)]


@state_handler(DialogState.ONBOARDING_CURRENCY)
async def handle_business_currency(ctx) -> List[OutboundPlan]:
    try:
        currency = parse_currency(token_value(ctx.action, CURRENCY_PREFIX) or ctx.text)
    except ValidationError as e:
        return retry(e.message, options(ASK_BUSINESS_CURRENCY, CURRENCY_OPTIONS))

    ctx.tenant.update_profile(currency=currency)
    ctx.tenant.go(DialogState.ONBOARDING_LOGO, ctx.session)
    return [options(ASK_BUSINESS_LOGO, LOGO_OPTIONS)]


def _logo_job(ctx) -> LogoJob:
    media = ctx.inp.media
    return LogoJob(
        tenant_id=ctx.tenant.id,
        media_url=media.url,
        media_id=media.media_id,
        mime_type=media.mime_type,
    )


def _done(ctx, *plans: OutboundPlan) -> List[OutboundPlan]:
    name = ctx.tenant.name
    return finish(ctx, *plans, text(ONBOARDING_DONE.format(name=name)))


@state_handler(DialogState.ONBOARDING_LOGO)
async def handle_logo_choice(ctx) -> List[OutboundPlan]:
    if ctx.inp.media is not None:
        ctx.add_job(_logo_job(ctx))
        return _done(ctx, text(LOGO_RECEIVED))

    if ctx.action == Action.UPLOAD_LOGO.value:
        ctx.tenant.go(DialogState.ONBOARDING_LOGO_UPLOAD, ctx.session)
        return [text(ASK_LOGO_IMAGE)]

    if ctx.action == Action.SKIP.value:
        return _done(ctx)

    return retry(NOT_UNDERSTOOD, options(ASK_BUSINESS_LOGO, LOGO_OPTIONS))


@state_handler(DialogState.ONBOARDING_LOGO_UPLOAD)
async def handle_logo_upload(ctx) -> List[OutboundPlan]:
    if ctx.inp.media is not None:
        ctx.add_job(_logo_job(ctx))
        return _done(ctx, text(LOGO_RECEIVED))

    if ctx.action == Action.SKIP.value:
        return _done(ctx)

    return retry(ASK_LOGO_IMAGE)
