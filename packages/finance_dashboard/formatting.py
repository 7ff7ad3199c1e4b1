"""Display helpers for amounts and table annotations."""

from __future__ import annotations

from .config import DEFAULT_TARGET_CURRENCY
from .models import Transaction

CURRENCY_SYMBOLS: dict[str, str] = {
    "GBP": "£",
    "USD": "$",
    "EUR": "€",
    "TWD": "NT$",
}


def currency_symbol(currency: str) -> str:
    return CURRENCY_SYMBOLS.get(currency.upper(), currency)


def format_currency(
    amount: float, currency: str = DEFAULT_TARGET_CURRENCY, *, decimals: int = 2
) -> str:
    """Render as ``"<symbol> <sign><n,nnn.nn>"``, e.g. ``"£ -1,234.50"``."""

    sign = "-" if amount < 0 else ""
    return f"{currency_symbol(currency)} {sign}{abs(amount):,.{decimals}f}"


def format_percentage(value: float) -> str:
    return f"{value:.1f}%"


def annotation(transaction: Transaction) -> str:
    """``"Trip"``, ``"GF"``, ``"Trip, GF"`` or ``""`` for the table's note column."""

    tags: list[str] = []
    if transaction.trip:
        tags.append("Trip")
    if transaction.gf > 0:
        tags.append("GF")
    return ", ".join(tags)


__all__ = [
    "CURRENCY_SYMBOLS",
    "annotation",
    "currency_symbol",
    "format_currency",
    "format_percentage",
]
