import pytest

from app.core.exceptions import IdentityError, ValidationError
from utils.format_utils import format_money
from utils.validation_utils import (
    clean_text,
    normalize_phone,
    parse_amount,
    parse_currency,
    parse_days,
    parse_percent,
    parse_prefix,
    parse_quantity,
)


@pytest.mark.parametrize("raw, expected", [
    ("whatsapp:+263772123456", "+263772123456"),
    ("+263 77 212 3456", "+263772123456"),
    ("0772123456", "+263772123456"),
    ("00263772123456", "+263772123456"),
    ("263772123456", "+263772123456"),
])
def test_normalize_phone(raw, expected):
    assert normalize_phone(raw, "263") == expected


@pytest.mark.parametrize("raw", ["", None, "abc", "12345", "0"])
def test_normalize_phone_rejects_garbage(raw):
    with pytest.raises(IdentityError):
        normalize_phone(raw, "263")


def test_same_phone_in_two_formats_is_one_identity():
    assert normalize_phone("0772 123 456") == normalize_phone("whatsapp:+263772123456")


@pytest.mark.parametrize("raw, expected", [
    ("150", 150.0),
    ("1,250.50", 1250.5),
    ("$20", 20.0),
    ("USD 99.999", 100.0),
])
def test_parse_amount(raw, expected):
    assert parse_amount(raw) == expected


@pytest.mark.parametrize("raw", ["", "ten", "-5", "0", "nan", "inf"])
def test_parse_amount_rejects(raw):
    with pytest.raises(ValidationError):
        parse_amount(raw)


def test_parse_amount_zero_when_allowed():
    assert parse_amount("0", allow_zero=True) == 0.0


def test_parse_quantity():
    assert parse_quantity("2.5") == 2.5
    with pytest.raises(ValidationError):
        parse_quantity("0")
    with pytest.raises(ValidationError):
        parse_quantity("two")


def test_parse_percent():
    assert parse_percent("15%") == 15.0
    assert parse_percent(" 7.5 % ") == 7.5
    with pytest.raises(ValidationError):
        parse_percent("101")


def test_parse_days_prefix_currency():
    assert parse_days("30") == 30
    assert parse_prefix("inv") == "INV"
    assert parse_currency("zar") == "ZAR"
    with pytest.raises(ValidationError):
        parse_days("thirty")
    with pytest.raises(ValidationError):
        parse_prefix("INV-2024!")
    with pytest.raises(ValidationError):
        parse_currency("EUR")


def test_clean_text_collapses_whitespace():
    assert clean_text("  Acme    Designs  ") == "Acme Designs"
    with pytest.raises(ValidationError):
        clean_text(" a ")


def test_format_money():
    assert format_money(1250.5, "USD").endswith("1,250.50")
