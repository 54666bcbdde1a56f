"""
app/flow/actions.py

Purpose: Canonical action tokens

- Static tokens shared by button ids, list ids and numbered menus
- Prefixes for tokens that carry a record id (client_<id>, doc_<id>, ...)
- Free-text keywords that map onto tokens
"""

from enum import Enum
from typing import Optional


class Action(str, Enum):
    # Global
    MENU = "menu"
    CANCEL = "cancel"
    BACK = "back"
    SKIP = "skip"
    JOIN = "join"
    CREATE_BUSINESS = "create_business"

    # Main menu entries
    NEW_INVOICE = "new_invoice"
    NEW_QUOTE = "new_quote"
    NEW_RECEIPT = "new_receipt"
    RECORD_PAYMENT = "record_payment"
    RECORD_EXPENSE = "record_expense"
    CLIENTS_MENU = "clients_menu"
    REPORTS_MENU = "reports_menu"
    SALES_MENU = "sales_menu"
    BUSINESS_MENU = "business_menu"
    SETTINGS_MENU = "settings_menu"

    # Sub-menu entries
    ADD_CLIENT = "add_client"
    CLIENT_STATEMENT = "client_statement"
    VIEW_INVOICES = "view_invoices"
    VIEW_QUOTES = "view_quotes"
    VIEW_RECEIPTS = "view_receipts"
    ADD_PRODUCT = "add_product"
    USERS_MENU = "users_menu"
    BRANCHES_MENU = "branches_menu"
    INVITE_USER = "invite_user"
    LIST_USERS = "list_users"
    ADD_BRANCH = "add_branch"
    LIST_BRANCHES = "list_branches"
    UPGRADE = "upgrade_package"

    # Reports
    REPORT_DAILY = "report_daily"
    REPORT_WEEKLY = "report_weekly"
    REPORT_MONTHLY = "report_monthly"
    REPORT_BRANCH = "report_branch"

    # Settings fields
    SET_CURRENCY = "set_currency"
    SET_TERMS = "set_terms"
    SET_INVOICE_PREFIX = "set_invoice_prefix"
    SET_QUOTE_PREFIX = "set_quote_prefix"
    SET_RECEIPT_PREFIX = "set_receipt_prefix"
    SET_VAT_RATE = "set_vat_rate"
    SET_ADDRESS = "set_address"
    SET_LOGO = "set_logo"

    # Document flow
    USE_SAVED_CLIENT = "use_saved_client"
    NEW_CLIENT = "new_client"
    ITEM_CATALOGUE = "item_catalogue"
    ITEM_CUSTOM = "item_custom"
    ADD_ITEM = "add_item"
    REVIEW_DOCUMENT = "review_document"
    GENERATE = "generate_document"
    SET_DISCOUNT = "set_discount"
    SET_VAT = "set_vat"

    # Saved documents
    VIEW_PDF = "view_pdf"
    DELETE_DOCUMENT = "delete_document"

    # Onboarding
    UPLOAD_LOGO = "upload_logo"


# Prefixes of tokens that carry a value after the underscore
CLIENT_PREFIX = "client_"
PRODUCT_PREFIX = "product_"
INVOICE_PREFIX = "payinv_"
DOCUMENT_PREFIX = "doc_"
BRANCH_PREFIX = "branch_"
PACKAGE_PREFIX = "pkg_"
CURRENCY_PREFIX = "cur_"
METHOD_PREFIX = "method_"
CATEGORY_PREFIX = "expcat_"
ROLE_PREFIX = "role_"

STATIC_TOKENS = frozenset(a.value for a in Action)

# Typed words that mean the same as a token
KEYWORDS = {
    "menu": Action.MENU,
    "hi": Action.MENU,
    "hello": Action.MENU,
    "start": Action.MENU,
    "cancel": Action.CANCEL,
    "stop": Action.CANCEL,
    "back": Action.BACK,
    "skip": Action.SKIP,
    "join": Action.JOIN,
}


def token_value(token: Optional[str], prefix: str) -> Optional[str]:
    """
    Returns the value carried by a prefixed token.

    Example:
        token_value("client_ab12", CLIENT_PREFIX) -> "ab12"
    """
    if token and token.startswith(prefix) and len(token) > len(prefix):
        return token[len(prefix):]
    return None
