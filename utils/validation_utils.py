"""
utils/validation_utils.py

Purpose: Input validation

- Phone normalization to +<country code><number>
- Money, quantity, percentage and day-count parsing
- Document prefix and currency grammar
- Input sanitization
"""

import re
from typing import Optional

from app.core.exceptions import IdentityError, ValidationError

SUPPORTED_CURRENCIES = ("USD", "ZWL", "ZAR")

MIN_PHONE_DIGITS = 8
MAX_PHONE_DIGITS = 15  # E.164


def normalize_phone(raw: Optional[str], country_code: str = "263") -> str:
    """
    Normalizes a phone identity to +<country code><national number>.

    - "whatsapp:" prefixes, spaces, dashes and brackets are ignored
    - a leading "00" is an international prefix
    - a leading "0" is a local number and gets the country code
    - anything else is taken as already international

    Raises:
        IdentityError: if the result is not a plausible E.164 number
    """
    if not raw:
        raise IdentityError("Missing phone number")

    value = str(raw).strip().lower().replace("whatsapp:", "")
    digits = re.sub(r"[^\d]", "", value)

    if not digits:
        raise IdentityError("Phone number has no digits", details={"raw": raw})

    if digits.startswith("00"):
        digits = digits[2:]
    elif digits.startswith("0"):
        digits = country_code + digits[1:]

    if not MIN_PHONE_DIGITS <= len(digits) <= MAX_PHONE_DIGITS or digits.startswith("0"):
        raise IdentityError("Phone number is not valid", details={"raw": raw})

    return f"+{digits}"


def phone_digits(phone: str) -> str:
    """+263772123456 -> 263772123456"""
    return phone.lstrip("+")


def parse_amount(text: Optional[str], allow_zero: bool = False) -> float:
    """
    Parses a money amount like "150", "1,250.50" or "$20".

    Raises:
        ValidationError: for non-numeric, negative or (unless allowed) zero amounts
    """
    cleaned = re.sub(r"[\s,$]", "", (text or "")).upper()
    for code in SUPPORTED_CURRENCIES:
        cleaned = cleaned.replace(code, "")

    try:
        value = float(cleaned)
    except ValueError:
        raise ValidationError("❌ Please enter a valid number (e.g. 150 or 150.50).")

    if value != value or value in (float("inf"), float("-inf")):
        raise ValidationError("❌ Please enter a valid number (e.g. 150 or 150.50).")
    if value < 0 or (value == 0 and not allow_zero):
        raise ValidationError("❌ Amount must be greater than 0.")

    return round(value, 2)


def parse_quantity(text: Optional[str]) -> float:
    """
    Parses a quantity; must be a number greater than 0.

    Raises:
        ValidationError
    """
    try:
        value = float((text or "").strip().replace(",", ""))
    except ValueError:
        raise ValidationError("❌ Quantity must be a number (e.g. 1 or 2.5).")

    if value != value or value <= 0 or value == float("inf"):
        raise ValidationError("❌ Quantity must be greater than 0.")

    return value


def parse_percent(text: Optional[str]) -> float:
    """
    Parses "10", "10%" or "7.5 %" into a percentage between 0 and 100.

    Raises:
        ValidationError
    """
    cleaned = (text or "").replace("%", "").strip()
    try:
        value = float(cleaned)
    except ValueError:
        raise ValidationError("❌ Please enter a percentage, e.g. 10 or 10%.")

    if value != value or value < 0 or value > 100:
        raise ValidationError("❌ Percentage must be between 0 and 100.")

    return value


def parse_days(text: Optional[str]) -> int:
    """
    Parses a whole number of days (0 or more).

    Raises:
        ValidationError
    """
    cleaned = (text or "").strip()
    if not cleaned.isdigit():
        raise ValidationError("❌ Please send a whole number of days, e.g. 30.")
    return int(cleaned)


def parse_prefix(text: Optional[str]) -> str:
    """
    Document prefix: 1-10 letters/digits, stored upper-case.

    Raises:
        ValidationError
    """
    cleaned = (text or "").strip().upper()
    if not re.fullmatch(r"[A-Z0-9]{1,10}", cleaned):
        raise ValidationError("❌ Prefix must be 1-10 letters or digits, e.g. INV.")
    return cleaned


def parse_currency(text: Optional[str]) -> str:
    """
    Raises:
        ValidationError: if the currency is not supported
    """
    cleaned = (text or "").strip().upper()
    if cleaned not in SUPPORTED_CURRENCIES:
        raise ValidationError(
            f"❌ Currency must be one of {', '.join(SUPPORTED_CURRENCIES)}."
        )
    return cleaned


def clean_text(text: Optional[str], min_length: int = 2, max_length: int = 120, field: str = "value") -> str:
    """
    Trims and collapses whitespace in free-text input.

    Raises:
        ValidationError: if the result is too short or too long
    """
    cleaned = re.sub(r"\s+", " ", (text or "")).strip()
    if len(cleaned) < min_length:
        raise ValidationError(f"❌ Please enter a valid {field}.")
    if len(cleaned) > max_length:
        raise ValidationError(f"❌ {field.capitalize()} is too long (max {max_length} characters).")
    return cleaned
