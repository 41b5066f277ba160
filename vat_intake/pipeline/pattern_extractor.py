"""
Strategy B: pattern-text VAT extraction.

The rule table is data. Each VATPattern names a regex, a priority (1 = most
specific) and an extractor that turns a match into an amount. Patterns are
evaluated in priority order over lowercased, whitespace-collapsed text; a
match that overlaps text already claimed by a more specific pattern is
dropped, so "Total VAT amount: €5" counts once, not three times.

The same pass pulls document metadata: VAT rates, the invoice total and date,
supplier VAT number and name, and the currency.
"""

import re
from decimal import Decimal
from typing import Callable, NamedTuple, Optional

import structlog

from vat_intake.models.enums import DocumentCategory, StrategyName, StrategyStatus
from vat_intake.pipeline.amount_parser import quantize_money, to_amount
from vat_intake.pipeline.date_parser import find_invoice_date
from vat_intake.pipeline.decoder import DecodedDocument
from vat_intake.pipeline.doc_classifier import classify_document
from vat_intake.schemas.contracts import CandidateAmount, ExtractedMetadata, StrategyOutcome

logger = structlog.get_logger(__name__)


# ── Building blocks ──────────────────────────────────────────
CUR = r"(?:€|eur(?![a-z])\.?)\s*"
# 1,234.56 | 1.234,56 | 1.234.567 | 1 234,56 | 1234.56 | 1234 | 45,50
# A trailing separator plus digit means the amount was cut short: no match.
AMT = (
    r'(?P<amount>\d{1,3}(?:,\d{3})+(?:\.\d{1,2})?'
    r'|\d{1,3}(?:\.\d{3})+,\d{1,2}|\d{1,3}(?:\.\d{3}){2,}'
    r'|\d{1,3}(?: \d{3})+[.,]\d{2}'
    r'|\d+(?:[.,]\d{1,2})?)(?![\d%]|[.,]\d)'
)
# Without a currency symbol only accept amounts written with cents
NC_AMT = (
    r'(?P<amount>\d{1,3}(?:,\d{3})+\.\d{2}|\d{1,3}(?:\.\d{3})+,\d{2}'
    r'|\d+[.,]\d{2})(?![\d%]|[.,]\d)'
)
RATE = r'(?P<rate>\d{1,2}(?:\.\d{1,2})?)\s*%'
# "Total incl. VAT: €492" labels a gross total, not the VAT amount
VAT = (
    r'(?<!\bincl\. )(?<!\bincl )(?<!\bincluding )(?<!\binc\. )(?<!\binc )'
    r'(?<!\bexcl\. )(?<!\bexcl )(?<!\bexcluding )(?<!\bex\. )(?<!\bex )(?<!\bgross )\bvat'
)


def amount_group(match: re.Match) -> Optional[Decimal]:
    return to_amount(match.group("amount"))


class VATPattern(NamedTuple):
    name: str
    regex: re.Pattern
    priority: int
    extractor: Callable[[re.Match], Optional[Decimal]] = amount_group


def _p(expr: str) -> re.Pattern:
    return re.compile(expr)


DEFAULT_PATTERNS: list[VATPattern] = [
    VATPattern("vat_rate_bracket", _p(VAT + r'\s*\(\s*' + RATE + r'\s*\)\s*:?\s*' + CUR + AMT), 1),
    VATPattern("vat_at_rate", _p(VAT + r'\s*@\s*' + RATE + r'\s*:?\s*' + CUR + AMT), 1),
    VATPattern("total_vat", _p(r'\btotal\s+vat(?:\s+amount)?\s*:?\s*' + CUR + AMT), 1),
    VATPattern("vat_amount", _p(VAT + r'\s+amount\s*:?\s*' + CUR + AMT), 2),
    VATPattern("vat_colon", _p(VAT + r'\s*:\s*' + CUR + AMT), 2),
    VATPattern("irish_language_vat", _p(r'c[áa]in\s+bhreisluacha\s*:?\s*(?:' + CUR + r')?' + AMT), 2),
    VATPattern("rate_vat", _p(RATE + r'\s*vat\s*:?\s*(?:' + CUR + r')?' + AMT), 3),
    VATPattern("tax_amount", _p(r'\btax(?:\s+amount)?\s*:?\s*' + CUR + AMT), 4),
    VATPattern("vat_no_currency", _p(VAT + r'(?:\s+amount)?\s*:?\s*' + NC_AMT), 5),
    VATPattern("tax_no_currency", _p(r'\btax(?:\s+amount)?\s*:?\s*' + NC_AMT), 6),
    VATPattern("currency_first_vat", _p(CUR + AMT + r'\s*vat\b'), 6),
]

DERIVED_PRIORITY = 5

RATE_PATTERNS = [
    re.compile(r'\bvat\s*\(\s*' + RATE),
    re.compile(r'\bvat\s*@\s*' + RATE),
    re.compile(r'\bvat\s+rate\s*:?\s*' + RATE),
    re.compile(RATE + r'\s*vat\b'),
]

TOTAL_PATTERNS = [
    re.compile(r'\bgrand\s+total\s*:?\s*(?:' + CUR + r')?' + AMT),
    re.compile(r'\b(?:amount|balance|total)\s+(?:due|payable)\s*:?\s*(?:' + CUR + r')?' + AMT),
    re.compile(
        r'(?<!sub )(?<!net )(?<!vat )(?<!tax )\btotal\b(?!\s+(?:vat|tax))(?:\s+amount)?'
        r'(?:\s*\(?incl(?:\.|uding)?\s+vat\)?)?\s*:?\s*(?:' + CUR + r')?' + AMT
    ),
]

VAT_NUMBER_LABELLED = re.compile(
    r'vat\s*(?:reg(?:istration)?\.?\s*)?(?:no\.?|number|#)\s*:?\s*([A-Z]{2}\s?\d[0-9A-Z]{6,11})\b',
    re.IGNORECASE,
)
VAT_NUMBER_IE = re.compile(r'\bIE\s?\d{7}[A-Z]{1,2}\b')
VAT_NUMBER_EU = re.compile(
    r'\b(?:AT|BE|BG|CY|CZ|DE|DK|EE|EL|ES|FI|FR|HR|HU|IT|LT|LU|LV|MT|NL|PL|PT|RO|SE|SI|SK)'
    r'U?\d{8,12}\b'
)

SUPPLIER_SKIP = re.compile(
    r'\b(invoice|receipt|credit note|date|vat|tax|total|page|bill to|ship to|qty|amount)\b',
    re.IGNORECASE,
)

CURRENCY_MARKERS = {
    "EUR": (r'€', r'\beur\b'),
    "GBP": (r'£', r'\bgbp\b'),
    "USD": (r'\$', r'\busd\b'),
}


def normalise_text(text: str) -> str:
    """Lowercase and collapse whitespace (including non-breaking spaces)."""
    return re.sub(r"\s+", " ", text or "").strip().lower()


# ── Metadata ─────────────────────────────────────────────────

def extract_vat_rates(normalised: str) -> list[float]:
    rates: list[float] = []
    for pattern in RATE_PATTERNS:
        for m in pattern.finditer(normalised):
            rate = float(m.group("rate"))
            if rate not in rates:
                rates.append(rate)
    return rates


def extract_invoice_total(normalised: str) -> Optional[Decimal]:
    """First total-style pattern that matches wins; within it, the largest value."""
    for pattern in TOTAL_PATTERNS:
        values = [to_amount(m.group("amount")) for m in pattern.finditer(normalised)]
        values = [v for v in values if v is not None and v > 0]
        if values:
            return max(values)
    return None


def extract_vat_number(text: str) -> Optional[str]:
    for pattern in (VAT_NUMBER_LABELLED, VAT_NUMBER_IE, VAT_NUMBER_EU):
        m = pattern.search(text or "")
        if m:
            return re.sub(r'\s+', '', m.group(1) if pattern.groups else m.group(0)).upper()
    return None


def extract_supplier_name(text: str) -> Optional[str]:
    for line in (text or "").splitlines():
        line = line.strip()
        if len(line) < 3 or ":" in line:
            continue
        if sum(c.isalpha() for c in line) < 3:
            continue
        if SUPPLIER_SKIP.search(line):
            continue
        return line[:80]
    return None


def detect_currency(normalised: str) -> str:
    counts = {
        code: sum(len(re.findall(marker, normalised)) for marker in markers)
        for code, markers in CURRENCY_MARKERS.items()
    }
    best = max(counts, key=lambda code: counts[code])
    if counts[best] == 0 or counts[best] == counts["EUR"]:
        return "EUR"
    return best


def extract_metadata(
    text: str,
    category: DocumentCategory = DocumentCategory.UNKNOWN,
    vat_amounts: Optional[list[Decimal]] = None,
) -> ExtractedMetadata:
    normalised = normalise_text(text)
    return ExtractedMetadata(
        invoice_total=extract_invoice_total(normalised),
        invoice_date=find_invoice_date(text or ""),
        vat_amounts=list(vat_amounts or []),
        vat_rates=extract_vat_rates(normalised),
        supplier_name=extract_supplier_name(text),
        supplier_vat_number=extract_vat_number(text),
        currency=detect_currency(normalised),
        document_type=classify_document(text, category).document_type,
    )


# ── Matching ─────────────────────────────────────────────────

def _overlaps(span: tuple[int, int], taken: list[tuple[int, int]]) -> bool:
    return any(span[0] < end and start < span[1] for start, end in taken)


def match_patterns(normalised: str, patterns: list[VATPattern]) -> list[CandidateAmount]:
    """
    Every accepted raw match, most specific pattern first.
    Zero and negative values are ignored.
    """
    ordered = sorted(enumerate(patterns), key=lambda item: (item[1].priority, item[0]))
    taken: list[tuple[int, int]] = []
    evidence: list[CandidateAmount] = []

    for _, pattern in ordered:
        for m in pattern.regex.finditer(normalised):
            if _overlaps(m.span(), taken):
                continue
            value = pattern.extractor(m)
            if value is None or value <= 0:
                continue
            taken.append(m.span())
            evidence.append(CandidateAmount(
                value=quantize_money(value),
                source_pattern=pattern.name,
                priority=pattern.priority,
                strategy=StrategyName.PATTERN_TEXT,
            ))
    return evidence


def dedupe_candidates(evidence: list[CandidateAmount], tolerance: Decimal) -> list[CandidateAmount]:
    """Order by (priority, -value) and drop values within tolerance of a kept one."""
    kept: list[CandidateAmount] = []
    for candidate in sorted(evidence, key=lambda c: (c.priority, -c.value)):
        if any(abs(candidate.value - k.value) <= tolerance for k in kept):
            continue
        kept.append(candidate)
    return kept


def derive_vat_from_total(total: Optional[Decimal], rates: list[float]) -> Optional[Decimal]:
    """VAT inside a VAT-inclusive total: total x rate / (100 + rate). Needs exactly one rate."""
    if total is None or total <= 0 or len(rates) != 1 or rates[0] <= 0:
        return None
    rate = Decimal(str(rates[0]))
    return quantize_money(total * rate / (Decimal("100") + rate))


class PatternTextStrategy:
    """Run the VAT rule table over decoded text."""

    name = StrategyName.PATTERN_TEXT

    def __init__(self, patterns: Optional[list[VATPattern]] = None, tolerance: float = 0.01):
        self.patterns = list(DEFAULT_PATTERNS if patterns is None else patterns)
        self.tolerance = Decimal(str(tolerance))

    def run(
        self,
        decoded: DecodedDocument,
        category: DocumentCategory = DocumentCategory.UNKNOWN,
    ) -> StrategyOutcome:
        if not decoded.has_text:
            return StrategyOutcome(
                strategy=self.name,
                status=StrategyStatus.SKIPPED,
                reasons=["No text layer"],
            )

        normalised = normalise_text(decoded.text)
        evidence = match_patterns(normalised, self.patterns)
        candidates = dedupe_candidates(evidence, self.tolerance)
        metadata = extract_metadata(decoded.text, category)
        reasons = []

        if not candidates:
            derived = derive_vat_from_total(metadata.invoice_total, metadata.vat_rates)
            if derived is not None and derived > 0:
                candidate = CandidateAmount(
                    value=derived,
                    source_pattern="derived_from_total",
                    priority=DERIVED_PRIORITY,
                    strategy=self.name,
                )
                candidates = [candidate]
                evidence = [candidate]
                reasons.append(
                    f"VAT derived from total {metadata.invoice_total} at {metadata.vat_rates[0]}%"
                )

        metadata = metadata.model_copy(update={"vat_amounts": [c.value for c in candidates]})

        if not candidates:
            return StrategyOutcome(
                strategy=self.name,
                status=StrategyStatus.EMPTY,
                reasons=["No VAT pattern matched"],
                metadata=metadata,
            )

        primary = candidates[0]
        reasons.insert(0, f"Primary {primary.value} from pattern {primary.source_pattern} (priority {primary.priority})")

        logger.info(
            "pattern_vat_matched",
            primary=str(primary.value),
            pattern=primary.source_pattern,
            candidate_count=len(candidates),
            raw_matches=len(evidence),
        )

        return StrategyOutcome(
            strategy=self.name,
            status=StrategyStatus.SUCCESS,
            candidates=candidates,
            evidence=evidence,
            reasons=reasons,
            metadata=metadata,
        )
