"""Formatting utilities for currency display."""

from decimal import Decimal
from typing import Union


def format_currency(
    amount: Union[Decimal, float, int],
    symbol: str = "R",
    include_symbol: bool = True,
) -> str:
    """Format an amount the South African way, with two decimals.

    Thousands are grouped with spaces and the decimal separator is a comma.

    Args:
        amount: The amount to format
        symbol: Currency symbol placed in front
        include_symbol: Whether to include the symbol

    Returns:
        Formatted string (e.g. "R 25 000,00" or "-1 500,50")

    Example:
        >>> format_currency(Decimal("25000"))
        'R 25 000,00'
        >>> format_currency(-1500.5, include_symbol=False)
        '-1 500,50'
    """
    value = Decimal(str(amount))
    sign = "-" if value < 0 else ""
    grouped = f"{abs(value):,.2f}".replace(",", " ").replace(".", ",")
    formatted = f"{sign}{grouped}"
    return f"{symbol} {formatted}" if include_symbol else formatted
