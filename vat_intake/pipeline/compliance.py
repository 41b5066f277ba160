"""
Irish VAT compliance rules.

Violations are data: every check returns a report, nothing here raises for
bad document content. Report levels always come from level_for(errors, warnings).
"""

import math
import re
from datetime import date, datetime
from decimal import Decimal, ROUND_HALF_UP
from typing import Optional, Union

import structlog
from dateutil.relativedelta import relativedelta

from vat_intake.config import Settings, settings as default_settings
from vat_intake.models.enums import DocumentCategory, DocumentType, PeriodType
from vat_intake.observability.metrics import compliance_reports_total
from vat_intake.pipeline.amount_parser import TWO_PLACES
from vat_intake.pipeline.doc_classifier import is_credit_document
from vat_intake.schemas.contracts import (
    ComplianceCheck,
    ComplianceReport,
    ExtractionResult,
    VATCalculationCheck,
    VATPeriodValidation,
    VATRateValidation,
    level_for,
)

logger = structlog.get_logger(__name__)

STANDARD_RATES = (0.0, 13.5, 23.0)
ROUNDING_WINDOW = 0.5
# Rates a near-miss is reported against, with their Revenue names
NAMED_RATES = ((13.5, "reduced"), (23.0, "standard"))

PLACEHOLDER_DIGITS = "0000000"
EXAMPLE_DIGITS = "1234567"


# ── VAT number ───────────────────────────────────────────────

def validate_vat_number(value: Optional[str], config: Optional[Settings] = None) -> ComplianceReport:
    """
    Irish VAT number: country prefix + 7 digits + 1-2 letters (IE1234567T, IE1234567AB).
    Whitespace is ignored and the value is uppercased before matching.
    """
    config = config or default_settings
    prefix = config.VAT_COUNTRY_PREFIX.upper()
    errors: list[str] = []
    warnings: list[str] = []
    recommendations: list[str] = []

    cleaned = re.sub(r"\s+", "", value or "").upper()
    if not cleaned:
        errors.append("VAT number is required")
        recommendations.append("Ensure all invoices include a valid Irish VAT number")
        return ComplianceReport(
            is_valid=False,
            compliance_level=level_for(errors, warnings),
            errors=errors,
            recommendations=recommendations,
        )

    if not re.fullmatch(re.escape(prefix) + r"\d{7}[A-Z]{1,2}", cleaned):
        errors.append("Invalid Irish VAT number format")
        recommendations.append(
            f"Irish VAT numbers must follow format: {prefix}1234567T ({prefix} + 7 digits + 1-2 letters)"
        )
        if not cleaned.startswith(prefix):
            recommendations.append(f'Irish VAT numbers must start with "{prefix}"')
        body = cleaned[len(prefix):] if cleaned.startswith(prefix) else cleaned
        if len(body) < 8 or len(body) > 9:
            recommendations.append(
                f'Irish VAT numbers must have 7 digits followed by 1-2 letters after "{prefix}"'
            )
        return ComplianceReport(
            is_valid=False,
            compliance_level=level_for(errors, warnings),
            errors=errors,
            recommendations=recommendations,
            vat_number=cleaned,
        )

    digits = cleaned[len(prefix):len(prefix) + 7]
    if digits == PLACEHOLDER_DIGITS:
        warnings.append("VAT number appears to contain placeholder digits")
    if config.VAT_FLAG_EXAMPLE_DIGITS and digits == EXAMPLE_DIGITS:
        warnings.append("VAT number appears to be an example/test number")

    if not warnings:
        recommendations.append("VAT number format is valid for Irish compliance")

    return ComplianceReport(
        is_valid=True,
        compliance_level=level_for(errors, warnings),
        warnings=warnings,
        recommendations=recommendations,
        vat_number=cleaned,
    )


# ── Rates ────────────────────────────────────────────────────

def validate_vat_rates(rates: list[float]) -> VATRateValidation:
    """Irish rates: 0% (zero-rated), 13.5% (reduced), 23% (standard)."""
    valid: list[float] = []
    invalid: list[float] = []
    warnings: list[str] = []

    for rate in rates or []:
        rate = float(rate)
        if any(math.isclose(rate, standard) for standard in STANDARD_RATES):
            valid.append(rate)
            continue
        invalid.append(rate)
        near = next((name_rate for name_rate in NAMED_RATES if abs(rate - name_rate[0]) <= ROUNDING_WINDOW), None)
        if near:
            warnings.append(
                f"VAT rate {rate:g}% is close to Irish {near[1]} rate {near[0]:g}% - check for rounding errors"
            )
        else:
            warnings.append(f"VAT rate {rate:g}% is not a standard Irish VAT rate")

    return VATRateValidation(valid_rates=valid, invalid_rates=invalid, warnings=warnings)


# ── Periods ──────────────────────────────────────────────────

def _period_days(start: Union[date, datetime], end: Union[date, datetime]) -> int:
    if isinstance(start, datetime) and isinstance(end, datetime):
        return math.ceil(abs((end - start).total_seconds()) / 86400)
    if isinstance(start, datetime):
        start = start.date()
    if isinstance(end, datetime):
        end = end.date()
    return abs((end - start).days)


def validate_vat_period(start: Union[date, datetime], end: Union[date, datetime]) -> VATPeriodValidation:
    days = _period_days(start, end)
    warnings: list[str] = []

    if 28 <= days <= 31:
        period_type = PeriodType.MONTHLY
    elif 59 <= days <= 62:
        period_type = PeriodType.BI_MONTHLY
        warnings.append("Bi-monthly VAT returns are standard for most Irish businesses")
    elif 89 <= days <= 92:
        period_type = PeriodType.QUARTERLY
        warnings.append("Quarterly VAT returns require Revenue approval for most businesses")
    elif 365 <= days <= 366:
        period_type = PeriodType.ANNUAL
        warnings.append("Annual VAT returns are only available for qualifying small businesses")
    else:
        period_type = PeriodType.UNKNOWN
        warnings.append(f"Unusual VAT period length: {days} days")

    return VATPeriodValidation(
        is_valid=period_type != PeriodType.UNKNOWN,
        period_type=period_type,
        days=days,
        warnings=warnings,
    )


# ── Calculation ──────────────────────────────────────────────

def validate_vat_calculation(
    net: Decimal,
    rate: Union[Decimal, float],
    claimed: Decimal,
    config: Optional[Settings] = None,
) -> VATCalculationCheck:
    """Expected VAT = net x rate / 100, rounded half-up to cents; 2 cent tolerance."""
    config = config or default_settings
    tolerance = Decimal(str(config.VAT_CALCULATION_TOLERANCE))
    expected = (Decimal(str(net)) * Decimal(str(rate)) / Decimal("100")).quantize(TWO_PLACES, rounding=ROUND_HALF_UP)
    difference = abs(expected - Decimal(str(claimed)))
    return VATCalculationCheck(
        is_correct=difference <= tolerance,
        calculated_vat=expected,
        difference=difference,
        tolerance=tolerance,
    )


# ── Document compliance ──────────────────────────────────────

def _report(errors, warnings, recommendations, vat_number=None) -> ComplianceReport:
    level = level_for(errors, warnings)
    compliance_reports_total.labels(compliance_level=level.value).inc()
    return ComplianceReport(
        is_valid=not errors,
        compliance_level=level,
        errors=errors,
        warnings=warnings,
        recommendations=recommendations,
        vat_number=vat_number,
    )


def check_compliance(
    check: ComplianceCheck,
    today: Optional[date] = None,
    config: Optional[Settings] = None,
) -> ComplianceReport:
    config = config or default_settings
    today = today or date.today()
    errors: list[str] = []
    warnings: list[str] = []
    recommendations: list[str] = []
    vat_number = None

    if check.currency.upper() != config.EXPECTED_CURRENCY:
        warnings.append(f"Currency is {check.currency}, but Irish businesses typically use {config.EXPECTED_CURRENCY}")
        recommendations.append(
            f"Ensure foreign currency transactions are properly converted to {config.EXPECTED_CURRENCY} for VAT reporting"
        )

    if not check.vat_amounts:
        errors.append("No VAT amounts found in document")
        recommendations.append("Ensure all VAT-applicable transactions show clear VAT amounts")
        return _report(errors, warnings, recommendations)

    if any(amount < 0 for amount in check.vat_amounts):
        if is_credit_document(check.document_type):
            warnings.append("Negative VAT amounts detected - appropriate for credit note")
        else:
            warnings.append("Negative VAT amounts detected - verify document type")
            recommendations.append("Check if this should be classified as a credit note or refund")

    if check.vat_rates:
        rates = validate_vat_rates(check.vat_rates)
        warnings.extend(rates.warnings)
        if rates.invalid_rates:
            listed = ", ".join(f"{r:g}" for r in rates.invalid_rates)
            errors.append(f"Non-standard Irish VAT rates detected: {listed}%")

    if check.supplier_vat_number:
        number = validate_vat_number(check.supplier_vat_number, config)
        if not number.is_valid or number.warnings:
            errors.extend(number.errors)
            warnings.extend(number.warnings)
            recommendations.extend(number.recommendations)
        vat_number = number.vat_number

    if check.invoice_date:
        if check.invoice_date < today - relativedelta(years=1):
            warnings.append("Invoice date is more than one year old")
            recommendations.append("Verify that historical invoices are still within VAT reporting period")
        if check.invoice_date > today + relativedelta(days=30):
            errors.append("Invoice date appears to be in the future")
            recommendations.append("Check invoice date format and validity")

    if errors:
        recommendations.append("Address compliance errors before submitting VAT return")
    elif warnings:
        recommendations.append("Document is valid but has warnings - review recommended")
    else:
        recommendations.append("Document meets Irish VAT compliance requirements")

    report = _report(errors, warnings, recommendations, vat_number)
    logger.debug(
        "compliance_checked",
        level=report.compliance_level.value,
        errors=len(errors),
        warnings=len(warnings),
    )
    return report


def build_compliance_check(
    extraction: ExtractionResult,
    category: DocumentCategory = DocumentCategory.UNKNOWN,
) -> ComplianceCheck:
    """Map an extraction result onto the compliance input."""
    metadata = extraction.metadata
    vat_amounts = list(metadata.vat_amounts)
    if not vat_amounts and extraction.primary_amount is not None:
        vat_amounts = [extraction.primary_amount]

    document_type = metadata.document_type
    if document_type == DocumentType.OTHER:
        if category == DocumentCategory.SALES:
            document_type = DocumentType.SALES_INVOICE
        elif category == DocumentCategory.PURCHASES:
            document_type = DocumentType.PURCHASE_INVOICE

    return ComplianceCheck(
        document_type=document_type,
        vat_amounts=vat_amounts,
        vat_rates=list(metadata.vat_rates),
        supplier_vat_number=metadata.supplier_vat_number,
        invoice_date=metadata.invoice_date,
        currency=metadata.currency,
    )
