"""
Strategy D: emergency fallback for binaries that could not be decoded.

Scrapes printable runs out of the raw bytes and looks for a currency-marked
number close to a VAT keyword. Whatever it finds is a guess and always goes
to manual review.
"""

import re
from decimal import Decimal
from typing import Optional

import structlog

from vat_intake.models.enums import StrategyName, StrategyStatus
from vat_intake.pipeline.amount_parser import quantize_money, to_amount
from vat_intake.schemas.contracts import CandidateAmount, StrategyOutcome

logger = structlog.get_logger(__name__)

PRINTABLE_RUN = re.compile(rb'[\x20-\x7e\x80-\xff]{4,}')
# Raw bytes are read as latin-1, so UTF-8 "á" and "€" show up as mojibake
KEYWORD = re.compile(r'\b(vat|tax|c(?:á|a|Ã¡)in)\b', re.IGNORECASE)
CURRENCY_AMOUNT = re.compile(
    r'(?:€|â\x82¬|\x80|\beur\s?|£|\$)\s*'
    r'(\d{1,3}(?:,\d{3})+(?:\.\d{1,2})?|\d{1,3}(?:\.\d{3})+,\d{1,2}|\d{1,3}(?:\.\d{3}){2,}'
    r'|\d+(?:[.,]\d{1,2})?)(?!\d|[.,]\d)',
    re.IGNORECASE,
)


def recover_text(data: bytes) -> str:
    """Join every run of 4+ printable latin-1 characters."""
    return "\n".join(run.decode("latin-1") for run in PRINTABLE_RUN.findall(data or b""))


def closest_keyword_amount(text: str, window: int) -> Optional[tuple[Decimal, int]]:
    """
    (amount, distance) of the currency amount nearest to any VAT keyword,
    within `window` characters. Ties go to the larger amount.
    """
    keywords = [m.span() for m in KEYWORD.finditer(text)]
    if not keywords:
        return None

    best: Optional[tuple[Decimal, int]] = None
    for m in CURRENCY_AMOUNT.finditer(text):
        value = to_amount(m.group(1))
        if value is None or value <= 0:
            continue
        # Characters between the amount and the keyword, whichever comes first
        distance = min(max(0, start - m.end(), m.start() - end) for start, end in keywords)
        if distance > window:
            continue
        if best is None or distance < best[1] or (distance == best[1] and value > best[0]):
            best = (value, distance)
    return best


class EmergencyStrategy:
    name = StrategyName.EMERGENCY_FALLBACK

    def __init__(self, keyword_window: int = 80):
        self.keyword_window = keyword_window

    def run(self, data: bytes) -> StrategyOutcome:
        text = recover_text(data)
        found = closest_keyword_amount(text, self.keyword_window)

        if found is None:
            return StrategyOutcome(
                strategy=self.name,
                status=StrategyStatus.EMPTY,
                reasons=["Emergency scan found no currency amount near a VAT keyword"],
            )

        value, distance = found
        candidate = CandidateAmount(
            value=quantize_money(value),
            source_pattern="emergency_keyword_proximity",
            priority=9,
            strategy=self.name,
        )
        logger.warning(
            "emergency_amount_recovered",
            value=str(candidate.value),
            distance=distance,
            recovered_chars=len(text),
        )
        return StrategyOutcome(
            strategy=self.name,
            status=StrategyStatus.SUCCESS,
            candidates=[candidate],
            evidence=[candidate],
            reasons=[f"Emergency scan: {candidate.value} found {distance} characters from a VAT keyword"],
        )
