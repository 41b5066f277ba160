"""
Irish day-first date parser.

Strategy:
1. Try unambiguous formats first (named month, ISO)
2. For numeric formats: assume dd/mm (Irish default)
3. Flag dd/mm vs mm/dd ambiguity
4. Locate the invoice date in free text by label proximity
"""

import re
from datetime import date
from typing import Optional

from dateutil import parser as dateutil_parser
from pydantic import BaseModel


class DateParseResult(BaseModel):
    parsed_date: Optional[date] = None
    raw_text: str
    format_detected: str
    confidence: float
    is_ambiguous: bool
    ambiguity_note: Optional[str] = None


_MONTHS = r'(January|February|March|April|May|June|July|August|September|October|November|December)'
_MONS = r'(Jan|Feb|Mar|Apr|May|Jun|Jul|Aug|Sep|Oct|Nov|Dec)'

# Ordered by specificity (try most specific first)
DATE_FORMATS = [
    # Unambiguous: named month
    (r'(\d{1,2})(?:st|nd|rd|th)?\s+' + _MONTHS + r',?\s+(\d{4})', 'DD_MONTH_YYYY', False),
    (r'(\d{1,2})(?:st|nd|rd|th)?\s+' + _MONS + r'\w*\.?,?\s+(\d{4})', 'DD_MON_YYYY', False),
    (r'(\d{1,2})(?:st|nd|rd|th)?\s+' + _MONS + r'\w*\.?\s+(\d{2})\b', 'DD_MON_YY', False),

    # ISO format
    (r'(\d{4})-(\d{2})-(\d{2})', 'YYYY-MM-DD', False),

    # Irish numeric (potentially ambiguous)
    (r'(\d{2})/(\d{2})/(\d{4})', 'DD/MM/YYYY', True),
    (r'(\d{2})-(\d{2})-(\d{4})', 'DD-MM-YYYY', True),
    (r'(\d{2})\.(\d{2})\.(\d{4})', 'DD.MM.YYYY', True),
    (r'(\d{1,2})/(\d{1,2})/(\d{4})', 'D/M/YYYY', True),
    (r'(\d{2})/(\d{2})/(\d{2})\b', 'DD/MM/YY', True),
]

ISSUE_DATE_LABELS = re.compile(
    r'\b(invoice\s+date|date\s+of\s+issue|issue\s+date|tax\s+point|receipt\s+date)\b\s*[:\-]?\s*',
    re.IGNORECASE,
)
# Bare "Date:"; due and delivery dates are not the document date
GENERIC_DATE_LABEL = re.compile(
    r'(?<!due )(?<!delivery )(?<!order )(?<!payment )\bdate\b\s*[:\-]?\s*',
    re.IGNORECASE,
)


def parse_date_ie(raw: str) -> DateParseResult:
    """
    Parse a date string with Irish locale priority (dd/mm).
    The date must start at the beginning of *raw*.
    """
    raw_clean = (raw or "").strip()

    for pattern, format_name, potentially_ambiguous in DATE_FORMATS:
        m = re.match(pattern, raw_clean, re.IGNORECASE)
        if not m:
            continue

        try:
            parsed = _parse_by_format(m, format_name)
        except (ValueError, OverflowError):
            continue

        if parsed is None:
            continue

        is_ambiguous = False
        ambiguity_note = None
        if potentially_ambiguous and format_name.startswith(('DD', 'D/')):
            groups = m.groups()
            day_val = int(groups[0])
            month_val = int(groups[1])
            if day_val <= 12 and month_val <= 12 and day_val != month_val:
                is_ambiguous = True
                ambiguity_note = f"dd/mm vs mm/dd ambiguous ({groups[0]}/{groups[1]})"

        confidence = 0.95 if not is_ambiguous else 0.70
        if parsed.year > date.today().year + 1:
            confidence = 0.3  # Future date is suspicious
        if parsed.year < 2000:
            confidence = 0.5  # Very old date

        return DateParseResult(
            parsed_date=parsed,
            raw_text=raw,
            format_detected=format_name,
            confidence=confidence,
            is_ambiguous=is_ambiguous,
            ambiguity_note=ambiguity_note,
        )

    return DateParseResult(
        parsed_date=None,
        raw_text=raw or "",
        format_detected="UNKNOWN",
        confidence=0.0,
        is_ambiguous=False,
    )


def _parse_by_format(match, format_name: str) -> Optional[date]:
    """Parse date from regex match based on detected format."""

    if format_name == 'YYYY-MM-DD':
        return date(int(match.group(1)), int(match.group(2)), int(match.group(3)))

    if format_name in ('DD/MM/YYYY', 'DD-MM-YYYY', 'DD.MM.YYYY', 'D/M/YYYY'):
        return date(int(match.group(3)), int(match.group(2)), int(match.group(1)))

    if format_name == 'DD/MM/YY':
        yy = int(match.group(3))
        year = 1900 + yy if yy > 50 else 2000 + yy
        return date(year, int(match.group(2)), int(match.group(1)))

    if 'MON' in format_name:
        cleaned = re.sub(r'(\d)(st|nd|rd|th)', r'\1', match.group(0), flags=re.IGNORECASE)
        return dateutil_parser.parse(cleaned, dayfirst=True).date()

    return None


_DATE_START = re.compile(
    r'\b(\d{4}-\d{2}-\d{2}|\d{1,2}[/\-\.]\d{1,2}[/\-\.]\d{2,4}|\d{1,2}(?:st|nd|rd|th)?\s+' + _MONS + r')',
    re.IGNORECASE,
)


def find_dates(text: str) -> list[DateParseResult]:
    """Every parseable date in *text*, in reading order."""
    found = []
    for m in _DATE_START.finditer(text or ""):
        result = parse_date_ie(text[m.start():m.start() + 40])
        if result.parsed_date is not None:
            found.append(result)
    return found


def find_invoice_date(text: str) -> Optional[date]:
    """
    Locate the document date: a date after an issue-date label, then after a
    bare date label, then the first date anywhere in the text.
    """
    if not text:
        return None

    for labels in (ISSUE_DATE_LABELS, GENERIC_DATE_LABEL):
        for label in labels.finditer(text):
            result = parse_date_ie(text[label.end():label.end() + 40])
            if result.parsed_date is not None:
                return result.parsed_date

    dates = find_dates(text)
    return dates[0].parsed_date if dates else None
