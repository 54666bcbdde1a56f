"""
app/flow/menus.py

Purpose: Menu tables and menu builders

- ROLE_MENUS: the numbered main menu per role. The same table drives
  the rendered menu and the resolution of numbered replies, so "1"
  from an owner and "1" from a clerk can mean different things
- ENTRY_RULES: section and feature each flow-entry token requires
- Builders for the main menu and every sub-menu
"""

from typing import Dict, List, Optional, Tuple

from app.flow.actions import Action
from app.flow.gates import SECTIONS, FEATURE_LABELS, allow_section
from app.models.principal import Principal, ROLES
from app.schemas.outbound import ListPlan, Option, OutboundPlan, options

# token -> (section, feature)
ENTRY_RULES: Dict[Action, Tuple[str, Optional[str]]] = {
    Action.NEW_INVOICE: ("sales", "invoice"),
    Action.NEW_QUOTE: ("sales", "quote"),
    Action.NEW_RECEIPT: ("sales", "receipt"),
    Action.RECORD_PAYMENT: ("payments", "payments"),
    Action.RECORD_EXPENSE: ("payments", "payments"),
    Action.CLIENTS_MENU: ("clients", None),
    Action.ADD_CLIENT: ("clients", "clients"),
    Action.CLIENT_STATEMENT: ("clients", "clients"),
    Action.SALES_MENU: ("sales", None),
    Action.VIEW_INVOICES: ("sales", "invoice"),
    Action.VIEW_QUOTES: ("sales", "quote"),
    Action.VIEW_RECEIPTS: ("sales", "receipt"),
    Action.ADD_PRODUCT: ("catalogue", "catalogue"),
    Action.REPORTS_MENU: ("reports", None),
    Action.REPORT_DAILY: ("reports", "reports_daily"),
    Action.REPORT_WEEKLY: ("reports", "reports_weekly"),
    Action.REPORT_MONTHLY: ("reports", "reports_monthly"),
    Action.REPORT_BRANCH: ("branches", "branches"),
    Action.BUSINESS_MENU: ("business", None),
    Action.USERS_MENU: ("users", None),
    Action.INVITE_USER: ("users", "users"),
    Action.LIST_USERS: ("users", None),
    Action.BRANCHES_MENU: ("branches", None),
    Action.ADD_BRANCH: ("branches", "branches"),
    Action.LIST_BRANCHES: ("branches", None),
    Action.SETTINGS_MENU: ("settings", None),
    Action.SET_CURRENCY: ("settings", None),
    Action.SET_TERMS: ("settings", None),
    Action.SET_INVOICE_PREFIX: ("settings", None),
    Action.SET_QUOTE_PREFIX: ("settings", None),
    Action.SET_RECEIPT_PREFIX: ("settings", None),
    Action.SET_VAT_RATE: ("settings", None),
    Action.SET_ADDRESS: ("settings", None),
    Action.SET_LOGO: ("settings", "logo"),
    Action.UPGRADE: ("billing", None),
}

# Navigation only; still reachable once the trial has expired
NAVIGATION_ENTRIES = frozenset({
    Action.CLIENTS_MENU,
    Action.SALES_MENU,
    Action.REPORTS_MENU,
    Action.BUSINESS_MENU,
    Action.USERS_MENU,
    Action.LIST_USERS,
    Action.BRANCHES_MENU,
    Action.LIST_BRANCHES,
    Action.SETTINGS_MENU,
    Action.UPGRADE,
})

LABELS: Dict[Action, str] = {
    Action.NEW_INVOICE: "New invoice",
    Action.NEW_QUOTE: "New quotation",
    Action.NEW_RECEIPT: "New receipt",
    Action.RECORD_PAYMENT: "Record payment",
    Action.RECORD_EXPENSE: "Record expense",
    Action.CLIENTS_MENU: "Clients",
    Action.ADD_CLIENT: "Add client",
    Action.CLIENT_STATEMENT: "Client statement",
    Action.SALES_MENU: "Sales documents",
    Action.VIEW_INVOICES: "View invoices",
    Action.VIEW_QUOTES: "View quotations",
    Action.VIEW_RECEIPTS: "View receipts",
    Action.ADD_PRODUCT: "Add product",
    Action.REPORTS_MENU: "Reports",
    Action.REPORT_DAILY: "Daily report",
    Action.REPORT_WEEKLY: "Weekly report",
    Action.REPORT_MONTHLY: "Monthly report",
    Action.REPORT_BRANCH: "Branch report",
    Action.BUSINESS_MENU: "Business & team",
    Action.USERS_MENU: "Users",
    Action.INVITE_USER: "Invite user",
    Action.LIST_USERS: "View users",
    Action.BRANCHES_MENU: "Branches",
    Action.ADD_BRANCH: "Add branch",
    Action.LIST_BRANCHES: "View branches",
    Action.SETTINGS_MENU: "Settings",
    Action.SET_CURRENCY: "Currency",
    Action.SET_TERMS: "Payment terms",
    Action.SET_INVOICE_PREFIX: "Invoice prefix",
    Action.SET_QUOTE_PREFIX: "Quotation prefix",
    Action.SET_RECEIPT_PREFIX: "Receipt prefix",
    Action.SET_VAT_RATE: "VAT rate",
    Action.SET_ADDRESS: "Address",
    Action.SET_LOGO: "Logo",
    Action.UPGRADE: "Upgrade package",
    Action.MENU: "Main menu",
}

ROLE_MENUS: Dict[str, Tuple[Action, ...]] = {
    "owner": (
        Action.NEW_INVOICE,
        Action.NEW_QUOTE,
        Action.NEW_RECEIPT,
        Action.RECORD_PAYMENT,
        Action.RECORD_EXPENSE,
        Action.CLIENTS_MENU,
        Action.REPORTS_MENU,
        Action.SALES_MENU,
        Action.BUSINESS_MENU,
        Action.SETTINGS_MENU,
    ),
    "manager": (
        Action.NEW_INVOICE,
        Action.NEW_QUOTE,
        Action.NEW_RECEIPT,
        Action.RECORD_PAYMENT,
        Action.RECORD_EXPENSE,
        Action.CLIENTS_MENU,
        Action.REPORTS_MENU,
        Action.SALES_MENU,
        Action.SETTINGS_MENU,
    ),
    "clerk": (
        Action.NEW_INVOICE,
        Action.RECORD_PAYMENT,
        Action.RECORD_EXPENSE,
        Action.REPORT_DAILY,
    ),
}

SUB_MENUS: Dict[Action, Tuple[Action, ...]] = {
    Action.CLIENTS_MENU: (Action.ADD_CLIENT, Action.CLIENT_STATEMENT, Action.MENU),
    Action.SALES_MENU: (
        Action.VIEW_INVOICES, Action.VIEW_QUOTES, Action.VIEW_RECEIPTS, Action.ADD_PRODUCT, Action.MENU,
    ),
    Action.BUSINESS_MENU: (Action.USERS_MENU, Action.BRANCHES_MENU, Action.UPGRADE, Action.MENU),
    Action.USERS_MENU: (Action.INVITE_USER, Action.LIST_USERS, Action.MENU),
    Action.BRANCHES_MENU: (Action.ADD_BRANCH, Action.LIST_BRANCHES, Action.MENU),
    Action.REPORTS_MENU: (
        Action.REPORT_DAILY, Action.REPORT_WEEKLY, Action.REPORT_MONTHLY, Action.REPORT_BRANCH, Action.MENU,
    ),
    Action.SETTINGS_MENU: (
        Action.SET_CURRENCY,
        Action.SET_TERMS,
        Action.SET_INVOICE_PREFIX,
        Action.SET_QUOTE_PREFIX,
        Action.SET_RECEIPT_PREFIX,
        Action.SET_VAT_RATE,
        Action.SET_ADDRESS,
        Action.SET_LOGO,
        Action.MENU,
    ),
}

ROLE_TITLES = {"owner": "Owner", "manager": "Manager", "clerk": "Clerk"}


def _validate_tables() -> None:
    """Menu tables must cover every role, use only known entries and fit one list."""
    missing = set(ROLES) - set(ROLE_MENUS)
    if missing:
        raise RuntimeError(f"No main menu for roles: {sorted(missing)}")

    for role, tokens in ROLE_MENUS.items():
        if len(tokens) != len(set(tokens)):
            raise RuntimeError(f"Duplicate entries in {role} menu")
        if not 0 < len(tokens) <= 10:
            raise RuntimeError(f"{role} menu must have 1-10 entries")
        stand_in = Principal(_id="menu", tenant_id="menu", phone="+0", role=role, branch_id="menu")
        for token in tokens:
            if token not in ENTRY_RULES:
                raise RuntimeError(f"{role} menu entry {token.value} is not a flow entry")
            if not allow_section(stand_in, ENTRY_RULES[token][0]):
                raise RuntimeError(f"{role} menu entry {token.value} is outside the role's sections")

    for menu, tokens in SUB_MENUS.items():
        if len(tokens) > 10:
            raise RuntimeError(f"Sub-menu {menu.value} has more than 10 entries")

    for token, (section, feature) in ENTRY_RULES.items():
        if section not in SECTIONS:
            raise RuntimeError(f"Entry {token.value} uses unknown section {section}")
        if feature is not None and feature not in FEATURE_LABELS:
            raise RuntimeError(f"Entry {token.value} uses unknown feature {feature}")
        if token not in LABELS:
            raise RuntimeError(f"Entry {token.value} has no label")


_validate_tables()


def numbered_menu(role: str) -> Dict[str, str]:
    """{"1": "new_invoice", ...} for the role's main menu."""
    return {str(i): token.value for i, token in enumerate(ROLE_MENUS.get(role, ()), start=1)}


def main_menu_plan(principal: Principal, business_name: str = "") -> OutboundPlan:
    role = principal.role
    title = f"*{business_name or 'ZimQuote'}* | {ROLE_TITLES[role]} Menu"
    rows = [Option(id=t.value, title=LABELS[t]) for t in ROLE_MENUS[role]]
    return ListPlan(
        text=f"{title}\n\nChoose an option:",
        options=rows,
        button_label="Menu",
        section_title="Main menu",
    )


def sub_menu_plan(menu: Action, principal: Principal, body: str) -> OutboundPlan:
    """
    Builds a sub-menu, leaving out entries the principal's role cannot open.
    """
    rows: List[Option] = []
    for token in SUB_MENUS[menu]:
        rule = ENTRY_RULES.get(token)
        if rule and not allow_section(principal, rule[0]):
            continue
        rows.append(Option(id=token.value, title=LABELS[token]))
    return options(body, rows, button_label="Options")
