import pytest

from app.flow.actions import Action
from app.flow.gates import (
    PACKAGES,
    SECTIONS,
    allow_feature,
    allow_section,
    get_package,
    upgrade_options,
)
from app.flow.menus import ENTRY_RULES, ROLE_MENUS, main_menu_plan, numbered_menu, sub_menu_plan
from app.flow.registry import ENTRY_STARTERS, STATE_HANDLERS
from app.flow.router import route_turn  # noqa: F401  (registers every handler)
from app.flow.states import DialogState
from app.models.principal import Principal


def principal(role, pending=False):
    return Principal(_id=f"p_{role}", tenant_id="t1", phone="+263772000001", role=role,
                     branch_id="b1", pending=pending)


def test_owner_is_allowed_everywhere():
    owner = principal("owner")
    assert all(allow_section(owner, section) for section in SECTIONS)


def test_role_monotonicity():
    """Every section a clerk may enter, a manager may too, and so may the owner."""
    for section in SECTIONS:
        if allow_section(principal("clerk"), section):
            assert allow_section(principal("manager"), section)
        if allow_section(principal("manager"), section):
            assert allow_section(principal("owner"), section)


@pytest.mark.parametrize("section", ["settings", "users", "branches", "billing", "catalogue"])
def test_clerk_denied_admin_sections(section):
    assert not allow_section(principal("clerk"), section)


def test_pending_or_missing_principal_is_denied():
    assert not allow_section(None, None)
    assert not allow_section(principal("owner", pending=True), "sales")


def test_sectionless_entries_are_open():
    assert allow_section(principal("clerk"), None)


def test_feature_gate_follows_package():
    assert allow_feature("trial", "invoice")
    assert not allow_feature("trial", "quote")
    assert allow_feature("gold", "branches")
    assert not allow_feature("silver", "branches")
    assert allow_feature("bronze", None)


def test_unknown_package_falls_back_to_trial():
    assert get_package("platinum").name == "trial"
    assert get_package(None).name == "trial"


def test_upgrade_options_are_higher_and_purchasable():
    names = [p.name for p in upgrade_options("bronze")]
    assert names == ["silver", "gold"]
    assert upgrade_options("gold") == ()
    assert all(p.price_usd is not None for p in upgrade_options("trial"))


def test_packages_grow_monotonically():
    order = ["trial", "bronze", "silver", "gold"]
    for lower, higher in zip(order, order[1:]):
        assert PACKAGES[lower].features <= PACKAGES[higher].features
        assert PACKAGES[lower].max_users <= PACKAGES[higher].max_users


def test_numbered_menus_differ_by_role():
    assert numbered_menu("owner")["1"] == Action.NEW_INVOICE.value
    assert numbered_menu("clerk")["4"] == Action.REPORT_DAILY.value
    assert numbered_menu("owner")["4"] == Action.RECORD_PAYMENT.value


def test_main_menu_matches_numbered_menu():
    for role in ROLE_MENUS:
        plan = main_menu_plan(principal(role), "Acme")
        numbered = numbered_menu(role)
        assert [o.id for o in plan.options] == [numbered[str(i)] for i in range(1, len(numbered) + 1)]


def test_sub_menu_hides_entries_outside_role():
    plan = sub_menu_plan(Action.SALES_MENU, principal("clerk"), "Sales")
    ids = [o.id for o in plan.options]
    assert Action.ADD_PRODUCT.value not in ids
    assert Action.VIEW_INVOICES.value in ids


def test_every_state_and_entry_has_a_handler():
    assert set(DialogState) <= set(STATE_HANDLERS)
    assert set(ENTRY_RULES) == set(ENTRY_STARTERS)
