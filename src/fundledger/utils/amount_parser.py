"""Amount parsing utilities."""

from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
import re

TWO_PLACES = Decimal("0.01")


def parse_amount(amount_str: str) -> Decimal:
    """Parse an amount string into a Decimal.

    Handles various formats:
    - "123.45"
    - "$123.45"
    - "-123.45" / "-$123.45"
    - "+123.45"
    - "1,234.56"
    - "(123.45)" (negative in parentheses)

    The ledger sign convention applies: positive means money leaving the
    source account, negative means money entering it.

    Raises:
        ValueError: If amount string cannot be parsed or is not finite
    """
    if not amount_str or not amount_str.strip():
        raise ValueError("Empty amount string")

    text = amount_str.strip()

    is_negative = False
    if text.startswith("(") and text.endswith(")"):
        is_negative = True
        text = text[1:-1]

    text = re.sub(r"[$€£¥\s]", "", text).replace(",", "")

    try:
        amount = Decimal(text)
    except InvalidOperation:
        raise ValueError(f"Could not parse amount '{amount_str}'")

    if not amount.is_finite():
        raise ValueError(f"Amount must be a finite number, got '{amount_str}'")
    return -amount if is_negative else amount


def quantize(amount: Decimal) -> Decimal:
    """Round to cents, the precision stored in the ledger."""
    return amount.quantize(TWO_PLACES, rounding=ROUND_HALF_UP)
