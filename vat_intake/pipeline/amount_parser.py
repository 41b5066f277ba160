"""
Euro amount parser.

Handles the amount conventions seen on Irish invoices and exports:
- €1,234.56 / EUR 1,234.56 / 1,234.56 / 1234.56
- 1.234,56          -> continental separators
- (1,234.56)        -> negative (parentheses)
- 1,234.56 CR       -> negative (credit)
- -1,234.56         -> negative (leading minus)
- 1,234.56-         -> negative (trailing minus)
"""

import re
from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
from typing import Optional

from pydantic import BaseModel


CURRENCY_TOKENS = ("EUR", "eur", "GBP", "gbp", "USD", "usd", "€", "£", "$")

TWO_PLACES = Decimal("0.01")


class AmountParseResult(BaseModel):
    amount: Optional[Decimal] = None
    raw_text: str
    is_negative: bool = False


def _normalise_separators(s: str) -> str:
    """Resolve thousand/decimal separators into a plain Decimal literal."""
    if "," in s and "." in s:
        if s.rfind(",") > s.rfind("."):
            # 1.234,56
            return s.replace(".", "").replace(",", ".")
        return s.replace(",", "")
    if "," in s:
        head, _, tail = s.rpartition(",")
        if len(tail) in (1, 2) and head.replace(",", "").isdigit():
            # 45,50 written with a decimal comma
            return head.replace(",", "") + "." + tail
        return s.replace(",", "")
    if s.count(".") > 1:
        # 1.234.567
        return s.replace(".", "")
    return s


def parse_amount_eur(raw: str) -> AmountParseResult:
    """
    Parse a monetary amount written the way Irish documents write them.
    """
    s = (raw or "").strip()

    if not s or s in ('-', '--', '---'):
        return AmountParseResult(raw_text=raw or "")

    for token in CURRENCY_TOKENS:
        s = s.replace(token, '')
    s = s.replace('\u00a0', ' ').strip()

    if not s:
        return AmountParseResult(raw_text=raw)

    is_negative = False

    # Parentheses: (100.00) -> negative
    if s.startswith('(') and s.endswith(')'):
        s = s[1:-1].strip()
        is_negative = True

    # Credit suffix: 100.00 CR -> negative
    m = re.match(r'^(.+?)\s*(CR|DR)$', s, re.IGNORECASE)
    if m:
        s = m.group(1).strip()
        if m.group(2).upper() == 'CR':
            is_negative = True

    # Trailing minus: 100.00-
    if not is_negative and s.endswith('-'):
        s = s[:-1].strip()
        is_negative = True

    # Leading minus: -100.00
    if not is_negative and (s.startswith('-') or s.startswith(chr(8722))):
        s = s[1:].strip()
        is_negative = True

    s = s.replace(' ', '')
    s = _normalise_separators(s)

    try:
        amount = Decimal(s)
    except (InvalidOperation, ValueError):
        return AmountParseResult(raw_text=raw)

    if not amount.is_finite():
        return AmountParseResult(raw_text=raw)

    if is_negative:
        amount = amount * Decimal('-1')

    return AmountParseResult(amount=amount, raw_text=raw, is_negative=is_negative)


def to_amount(raw) -> Optional[Decimal]:
    """Parse a cell or regex group into a Decimal, or None."""
    if raw is None:
        return None
    if isinstance(raw, Decimal):
        return raw
    if isinstance(raw, (int, float)):
        if raw != raw:  # NaN
            return None
        return Decimal(str(raw))
    return parse_amount_eur(str(raw)).amount


def quantize_money(value: Decimal) -> Decimal:
    """Round half-up to cents."""
    return value.quantize(TWO_PLACES, rounding=ROUND_HALF_UP)
