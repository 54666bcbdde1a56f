"""
app/flow/handlers/settings.py

Handles: business settings

One state per editable field, each with its own input grammar:
- currency (USD / ZWL / ZAR), payment terms (days), document prefixes,
  default VAT rate, address, logo (image upload)

After a successful update the settings menu is shown again.
"""

from typing import Callable, Dict, List, Tuple

from app.core.exceptions import ValidationError
from app.flow.actions import CURRENCY_PREFIX, Action, token_value
from app.flow.handlers.common import retry
from app.flow.handlers.onboarding import CURRENCY_OPTIONS
from app.flow.menus import LABELS, sub_menu_plan
from app.flow.registry import entry, state_handler
from app.flow.session import SettingsSession
from app.flow.states import DialogState
from app.schemas.outbound import LogoJob, OutboundPlan, options, text
from utils.constants import (
    ASK_LOGO_IMAGE,
    ASK_SETTING_ADDRESS,
    ASK_SETTING_CURRENCY,
    ASK_SETTING_PREFIX,
    ASK_SETTING_TERMS,
    ASK_SETTING_VAT,
    LOGO_RECEIVED,
    NOT_UNDERSTOOD,
    SETTING_UPDATED,
    SETTINGS_MENU_TEXT,
)
from utils.format_utils import format_percent
from utils.validation_utils import (
    clean_text,
    parse_currency,
    parse_days,
    parse_percent,
    parse_prefix,
)

# entry token -> (state, prompt)
FIELD_ENTRIES: Dict[Action, Tuple[DialogState, OutboundPlan]] = {
    Action.SET_CURRENCY: (DialogState.SETTINGS_CURRENCY, options(ASK_SETTING_CURRENCY, CURRENCY_OPTIONS)),
    Action.SET_TERMS: (DialogState.SETTINGS_TERMS, text(ASK_SETTING_TERMS)),
    Action.SET_INVOICE_PREFIX: (
        DialogState.SETTINGS_INVOICE_PREFIX,
        text(ASK_SETTING_PREFIX.format(label="invoice", example="INV")),
    ),
    Action.SET_QUOTE_PREFIX: (
        DialogState.SETTINGS_QUOTE_PREFIX,
        text(ASK_SETTING_PREFIX.format(label="quotation", example="QT")),
    ),
    Action.SET_RECEIPT_PREFIX: (
        DialogState.SETTINGS_RECEIPT_PREFIX,
        text(ASK_SETTING_PREFIX.format(label="receipt", example="RCPT")),
    ),
    Action.SET_VAT_RATE: (DialogState.SETTINGS_VAT, text(ASK_SETTING_VAT)),
    Action.SET_ADDRESS: (DialogState.SETTINGS_ADDRESS, text(ASK_SETTING_ADDRESS)),
    Action.SET_LOGO: (DialogState.SETTINGS_LOGO, text(ASK_LOGO_IMAGE)),
}

_PROMPTS = {state: prompt for state, prompt in FIELD_ENTRIES.values()}


def _address(value: str) -> str:
    return clean_text(value, min_length=3, max_length=200, field="address")


# state -> (tenant field, parser, label)
FIELD_PARSERS: Dict[DialogState, Tuple[str, Callable[[str], object], str]] = {
    DialogState.SETTINGS_TERMS: ("payment_terms_days", parse_days, LABELS[Action.SET_TERMS]),
    DialogState.SETTINGS_INVOICE_PREFIX: ("invoice_prefix", parse_prefix, LABELS[Action.SET_INVOICE_PREFIX]),
    DialogState.SETTINGS_QUOTE_PREFIX: ("quote_prefix", parse_prefix, LABELS[Action.SET_QUOTE_PREFIX]),
    DialogState.SETTINGS_RECEIPT_PREFIX: ("receipt_prefix", parse_prefix, LABELS[Action.SET_RECEIPT_PREFIX]),
    DialogState.SETTINGS_VAT: ("vat_percent", parse_percent, LABELS[Action.SET_VAT_RATE]),
    DialogState.SETTINGS_ADDRESS: ("address", _address, LABELS[Action.SET_ADDRESS]),
}


def settings_menu(ctx) -> OutboundPlan:
    tenant = ctx.tenant
    body = SETTINGS_MENU_TEXT.format(
        currency=tenant.currency,
        terms=tenant.payment_terms_days,
        invoice_prefix=tenant.invoice_prefix,
        quote_prefix=tenant.quote_prefix,
        receipt_prefix=tenant.receipt_prefix,
        vat=format_percent(tenant.vat_percent) if tenant.vat_percent else "none",
        address=tenant.address or "not set",
        logo="set" if tenant.logo_url else "not set",
    )
    return sub_menu_plan(Action.SETTINGS_MENU, ctx.principal, body)


def _settings_session(ctx) -> SettingsSession:
    return ctx.session if isinstance(ctx.session, SettingsSession) else SettingsSession()


def _back_to_settings(ctx, *plans: OutboundPlan) -> List[OutboundPlan]:
    ctx.tenant.go(DialogState.SETTINGS_MENU, _settings_session(ctx))
    return [*plans, settings_menu(ctx)]


@entry(Action.SETTINGS_MENU)
async def open_settings(ctx) -> List[OutboundPlan]:
    ctx.tenant.go(DialogState.SETTINGS_MENU, SettingsSession())
    return [settings_menu(ctx)]


@state_handler(DialogState.SETTINGS_MENU)
async def handle_settings_menu(ctx) -> List[OutboundPlan]:
    return retry(NOT_UNDERSTOOD, settings_menu(ctx))


@entry(*FIELD_ENTRIES)
async def start_field(ctx) -> List[OutboundPlan]:
    state, prompt = FIELD_ENTRIES[Action(ctx.action)]
    ctx.tenant.go(state, _settings_session(ctx))
    return [prompt]


@state_handler(*FIELD_PARSERS)
async def handle_field(ctx) -> List[OutboundPlan]:
    state = ctx.tenant.current_state
    field, parser, label = FIELD_PARSERS[state]
    try:
        value = parser(ctx.text)
    except ValidationError as e:
        return retry(e.message, _PROMPTS[state])

    ctx.tenant.update_profile(**{field: value})
    return _back_to_settings(ctx, text(SETTING_UPDATED.format(field=label)))


@state_handler(DialogState.SETTINGS_CURRENCY)
async def handle_currency(ctx) -> List[OutboundPlan]:
    try:
        currency = parse_currency(token_value(ctx.action, CURRENCY_PREFIX) or ctx.text)
    except ValidationError as e:
        return retry(e.message, _PROMPTS[DialogState.SETTINGS_CURRENCY])

    ctx.tenant.update_profile(currency=currency)
    return _back_to_settings(ctx, text(SETTING_UPDATED.format(field=LABELS[Action.SET_CURRENCY])))


@state_handler(DialogState.SETTINGS_LOGO)
async def handle_logo(ctx) -> List[OutboundPlan]:
    media = ctx.inp.media
    if media is not None:
        ctx.add_job(
            LogoJob(
                tenant_id=ctx.tenant.id,
                media_url=media.url,
                media_id=media.media_id,
                mime_type=media.mime_type,
            )
        )
        return _back_to_settings(ctx, text(LOGO_RECEIVED))

    if ctx.action == Action.SKIP.value:
        return _back_to_settings(ctx)

    return retry(ASK_LOGO_IMAGE)
