"""
utils/format_utils.py

Purpose: Display formatting for chat replies
"""


def format_money(amount: float, currency: str = "USD") -> str:
    """150 -> 'USD 150.00'"""
    return f"{currency} {amount:,.2f}"


def format_quantity(quantity: float) -> str:
    """2.0 -> '2', 2.5 -> '2.5'"""
    if float(quantity).is_integer():
        return str(int(quantity))
    return f"{quantity:g}"


def format_percent(value: float) -> str:
    return f"{value:g}%"


def truncate(text: str, limit: int) -> str:
    if len(text) <= limit:
        return text
    return text[: limit - 1] + "…"
