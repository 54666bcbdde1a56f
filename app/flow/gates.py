"""
app/flow/gates.py

Purpose: Access and feature gating

- ROLE_MATRIX: sections each staff role may enter (owner: all)
- PACKAGES: features and limits per subscription package
- allow_section / allow_feature are pure lookups; the router decides
  what a denial does to the dialog
"""

from dataclasses import dataclass
from typing import Dict, FrozenSet, Optional, Tuple

from app.models.principal import Principal, ROLES

ALL_SECTIONS = "*"

SECTIONS = frozenset({
    "sales",
    "clients",
    "payments",
    "reports",
    "catalogue",
    "branches",
    "users",
    "settings",
    "business",
    "billing",
})

ROLE_MATRIX: Dict[str, FrozenSet[str]] = {
    "owner": frozenset({ALL_SECTIONS}),
    "manager": frozenset({"sales", "clients", "payments", "reports", "catalogue", "settings"}),
    "clerk": frozenset({"sales", "clients", "payments", "reports"}),
}


@dataclass(frozen=True)
class Package:
    name: str
    label: str
    price_usd: Optional[float]
    max_users: int
    max_branches: int
    monthly_documents: int
    features: FrozenSet[str]


_BRONZE = frozenset({"invoice", "quote", "receipt", "clients", "payments", "catalogue", "reports_daily"})
_SILVER = _BRONZE | {"users", "logo"}
_GOLD = _SILVER | {"reports_weekly", "reports_monthly", "branches"}

PACKAGES: Dict[str, Package] = {
    "trial": Package("trial", "Free Trial", 0.0, 1, 1, 10, frozenset({"invoice", "reports_daily"})),
    "bronze": Package("bronze", "Bronze", 1.0, 2, 1, 50, _BRONZE),
    "silver": Package("silver", "Silver", 5.0, 5, 3, 200, _SILVER),
    "gold": Package("gold", "Gold", 10.0, 10, 10, 1000, _GOLD),
    "enterprise": Package("enterprise", "Enterprise", None, 50, 50, 100000, _GOLD),
}

PACKAGE_ORDER: Tuple[str, ...] = ("trial", "bronze", "silver", "gold", "enterprise")

FEATURE_LABELS = {
    "invoice": "Invoices",
    "quote": "Quotations",
    "receipt": "Receipts",
    "clients": "Client management",
    "payments": "Payments & expenses",
    "catalogue": "Product catalogue",
    "reports_daily": "Daily reports",
    "reports_weekly": "Weekly reports",
    "reports_monthly": "Monthly reports",
    "users": "Team members",
    "logo": "Business logo",
    "branches": "Multiple branches",
}

_unknown_roles = set(ROLE_MATRIX) ^ set(ROLES)
if _unknown_roles:
    raise RuntimeError(f"ROLE_MATRIX does not match roles: {_unknown_roles}")
for _role, _sections in ROLE_MATRIX.items():
    if not _sections <= (SECTIONS | {ALL_SECTIONS}):
        raise RuntimeError(f"ROLE_MATRIX[{_role}] names unknown sections")
for _package in PACKAGES.values():
    if not _package.features <= set(FEATURE_LABELS):
        raise RuntimeError(f"Package {_package.name} names unknown features")


def allow_section(principal: Optional[Principal], section: Optional[str]) -> bool:
    """
    Access Gate.

    A missing or pending principal is never allowed into a section.
    A state or entry with no section is open to every active principal.
    """
    if principal is None or principal.pending:
        return False
    if section is None:
        return True
    allowed = ROLE_MATRIX.get(principal.role, frozenset())
    return ALL_SECTIONS in allowed or section in allowed


def get_package(name: Optional[str]) -> Package:
    return PACKAGES.get(name or "trial", PACKAGES["trial"])


def allow_feature(package_name: Optional[str], feature: Optional[str]) -> bool:
    """Feature Gate."""
    if feature is None:
        return True
    return feature in get_package(package_name).features


def upgrade_options(package_name: Optional[str]) -> Tuple[Package, ...]:
    """Packages strictly above the current one that can be bought in chat."""
    current = package_name if package_name in PACKAGE_ORDER else "trial"
    higher = PACKAGE_ORDER[PACKAGE_ORDER.index(current) + 1:]
    return tuple(PACKAGES[p] for p in higher if PACKAGES[p].price_usd is not None)
