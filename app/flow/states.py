"""
app/flow/states.py

Purpose: Defines all dialog states

- One closed enumeration covering every flow family
- Single source of truth for which session shape a state carries
- Which access section each state belongs to
- Which states accept an image attachment (logo upload)
"""

from enum import Enum
from typing import Dict, Optional
from dataclasses import dataclass


class DialogState(str, Enum):
    """
    Every position a business can be in between two messages.
    READY is the resting state with an empty session.
    """

    READY = "ready"

    # Onboarding
    ONBOARDING_NAME = "onboarding_name"
    ONBOARDING_CURRENCY = "onboarding_currency"
    ONBOARDING_LOGO = "onboarding_logo"
    ONBOARDING_LOGO_UPLOAD = "onboarding_logo_upload"

    # Sub-menus
    CLIENTS_MENU = "clients_menu"
    SALES_MENU = "sales_menu"
    BUSINESS_MENU = "business_menu"
    USERS_MENU = "users_menu"
    BRANCHES_MENU = "branches_menu"

    # Document creation: client selection
    DOC_CHOOSE_CLIENT = "doc_choose_client"
    DOC_PICK_CLIENT = "doc_pick_client"
    DOC_NEW_CLIENT_NAME = "doc_new_client_name"
    DOC_NEW_CLIENT_PHONE = "doc_new_client_phone"

    # Document creation: items
    DOC_ITEM_ADD = "doc_item_add"
    DOC_PICK_PRODUCT = "doc_pick_product"
    DOC_ITEM_QTY = "doc_item_qty"
    DOC_ITEM_PRICE = "doc_item_price"
    DOC_ITEM_MORE = "doc_item_more"

    # Document creation: confirm
    DOC_CONFIRM = "doc_confirm"
    DOC_SET_DISCOUNT = "doc_set_discount"
    DOC_SET_VAT = "doc_set_vat"

    # Standalone client management
    CLIENT_NAME = "client_name"
    CLIENT_PHONE = "client_phone"
    STATEMENT_PICK_CLIENT = "statement_pick_client"

    # Payments
    PAYMENT_PICK_INVOICE = "payment_pick_invoice"
    PAYMENT_AMOUNT = "payment_amount"
    PAYMENT_METHOD = "payment_method"

    # Expenses
    EXPENSE_CATEGORY = "expense_category"
    EXPENSE_DESCRIPTION = "expense_description"
    EXPENSE_AMOUNT = "expense_amount"
    EXPENSE_METHOD = "expense_method"

    # Reports
    REPORTS_MENU = "reports_menu"
    REPORT_PICK_BRANCH = "report_pick_branch"

    # Settings
    SETTINGS_MENU = "settings_menu"
    SETTINGS_CURRENCY = "settings_currency"
    SETTINGS_TERMS = "settings_terms"
    SETTINGS_INVOICE_PREFIX = "settings_invoice_prefix"
    SETTINGS_QUOTE_PREFIX = "settings_quote_prefix"
    SETTINGS_RECEIPT_PREFIX = "settings_receipt_prefix"
    SETTINGS_VAT = "settings_vat"
    SETTINGS_ADDRESS = "settings_address"
    SETTINGS_LOGO = "settings_logo"

    # Users and branches
    INVITE_PHONE = "invite_phone"
    INVITE_BRANCH = "invite_branch"
    INVITE_ROLE = "invite_role"
    BRANCH_NAME = "branch_name"

    # Catalogue
    PRODUCT_NAME = "product_name"
    PRODUCT_PRICE = "product_price"

    # Viewing saved documents
    DOCVIEW_PICK = "docview_pick"
    DOCVIEW_ACTION = "docview_action"

    # Package upgrade
    UPGRADE_PICK_PACKAGE = "upgrade_pick_package"


@dataclass(frozen=True)
class StateMetadata:
    """
    Metadata associated with each dialog state.
    """
    name: DialogState
    flow: str  # session family the state carries
    section: Optional[str] = None  # access section; None bypasses the gate
    accepts_media: bool = False
    description: str = ""


def _meta(state, flow, section=None, accepts_media=False, description=""):
    return state, StateMetadata(state, flow, section, accepts_media, description)


STATE_METADATA: Dict[DialogState, StateMetadata] = dict([
    _meta(DialogState.READY, "ready", description="Resting state, main menu"),

    _meta(DialogState.ONBOARDING_NAME, "onboarding", description="Ask business name"),
    _meta(DialogState.ONBOARDING_CURRENCY, "onboarding", description="Pick currency"),
    _meta(DialogState.ONBOARDING_LOGO, "onboarding", description="Upload logo or skip"),
    _meta(DialogState.ONBOARDING_LOGO_UPLOAD, "onboarding", accepts_media=True,
          description="Awaiting logo image"),

    _meta(DialogState.CLIENTS_MENU, "menu", "clients"),
    _meta(DialogState.SALES_MENU, "menu", "sales"),
    _meta(DialogState.BUSINESS_MENU, "menu", "business"),
    _meta(DialogState.USERS_MENU, "menu", "users"),
    _meta(DialogState.BRANCHES_MENU, "menu", "branches"),

    _meta(DialogState.DOC_CHOOSE_CLIENT, "document", "sales", description="Saved or new client"),
    _meta(DialogState.DOC_PICK_CLIENT, "document", "sales"),
    _meta(DialogState.DOC_NEW_CLIENT_NAME, "document", "sales"),
    _meta(DialogState.DOC_NEW_CLIENT_PHONE, "document", "sales"),
    _meta(DialogState.DOC_ITEM_ADD, "document", "sales", description="Catalogue, custom or description"),
    _meta(DialogState.DOC_PICK_PRODUCT, "document", "sales"),
    _meta(DialogState.DOC_ITEM_QTY, "document", "sales"),
    _meta(DialogState.DOC_ITEM_PRICE, "document", "sales"),
    _meta(DialogState.DOC_ITEM_MORE, "document", "sales", description="Add another or review"),
    _meta(DialogState.DOC_CONFIRM, "document", "sales", description="Summary, commit point"),
    _meta(DialogState.DOC_SET_DISCOUNT, "document", "sales"),
    _meta(DialogState.DOC_SET_VAT, "document", "sales"),

    _meta(DialogState.CLIENT_NAME, "client", "clients"),
    _meta(DialogState.CLIENT_PHONE, "client", "clients"),
    _meta(DialogState.STATEMENT_PICK_CLIENT, "statement", "clients"),

    _meta(DialogState.PAYMENT_PICK_INVOICE, "payment", "payments"),
    _meta(DialogState.PAYMENT_AMOUNT, "payment", "payments"),
    _meta(DialogState.PAYMENT_METHOD, "payment", "payments", description="Commit point"),

    _meta(DialogState.EXPENSE_CATEGORY, "expense", "payments"),
    _meta(DialogState.EXPENSE_DESCRIPTION, "expense", "payments"),
    _meta(DialogState.EXPENSE_AMOUNT, "expense", "payments"),
    _meta(DialogState.EXPENSE_METHOD, "expense", "payments", description="Commit point"),

    _meta(DialogState.REPORTS_MENU, "report", "reports"),
    _meta(DialogState.REPORT_PICK_BRANCH, "report", "branches"),

    _meta(DialogState.SETTINGS_MENU, "settings", "settings"),
    _meta(DialogState.SETTINGS_CURRENCY, "settings", "settings"),
    _meta(DialogState.SETTINGS_TERMS, "settings", "settings"),
    _meta(DialogState.SETTINGS_INVOICE_PREFIX, "settings", "settings"),
    _meta(DialogState.SETTINGS_QUOTE_PREFIX, "settings", "settings"),
    _meta(DialogState.SETTINGS_RECEIPT_PREFIX, "settings", "settings"),
    _meta(DialogState.SETTINGS_VAT, "settings", "settings"),
    _meta(DialogState.SETTINGS_ADDRESS, "settings", "settings"),
    _meta(DialogState.SETTINGS_LOGO, "settings", "settings", accepts_media=True),

    _meta(DialogState.INVITE_PHONE, "invite", "users"),
    _meta(DialogState.INVITE_BRANCH, "invite", "users"),
    _meta(DialogState.INVITE_ROLE, "invite", "users", description="Commit point"),
    _meta(DialogState.BRANCH_NAME, "branch", "branches", description="Commit point"),

    _meta(DialogState.PRODUCT_NAME, "product", "catalogue"),
    _meta(DialogState.PRODUCT_PRICE, "product", "catalogue"),

    _meta(DialogState.DOCVIEW_PICK, "docview", "sales"),
    _meta(DialogState.DOCVIEW_ACTION, "docview", "sales"),

    _meta(DialogState.UPGRADE_PICK_PACKAGE, "upgrade", "billing"),
])

_missing = [s.value for s in DialogState if s not in STATE_METADATA]
if _missing:
    raise RuntimeError(f"States without metadata: {_missing}")


def get_state_metadata(state: DialogState) -> StateMetadata:
    return STATE_METADATA[state]


def state_accepts_session(state: DialogState, session) -> bool:
    """
    True when `session` is the shape `state` expects.
    READY only accepts the empty ready session.
    """
    return STATE_METADATA[state].flow == getattr(session, "flow", None)
