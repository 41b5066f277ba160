"""
Core intake contracts.
Every strategy, the duplicate detector and the compliance validator speak these
types. All result objects are frozen: built once per processing run and handed
to the caller as-is.

Invariants:
- confidence and similarity values are clamped to [0.0, 1.0]
- money is Decimal, never float
- ExtractionResult is always produced, even when nothing was found
"""

from datetime import date, datetime
from decimal import Decimal
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from vat_intake.models.enums import (
    ComplianceLevel,
    DocumentCategory,
    DocumentType,
    PeriodType,
    StrategyName,
    StrategyStatus,
)


def clamp_unit(value: float) -> float:
    """Clamp a score into [0, 1]."""
    if value is None:
        return 0.0
    return max(0.0, min(1.0, float(value)))


class FrozenModel(BaseModel):
    model_config = ConfigDict(frozen=True)


# ─── Input ────────────────────────────────────────────────────

class RawDocument(FrozenModel):
    """An uploaded document exactly as the ingestion layer handed it over."""
    data: bytes
    mime_type: str
    file_name: str
    category: DocumentCategory = DocumentCategory.UNKNOWN
    owner_scope: str
    document_id: Optional[str] = None

    @property
    def size_bytes(self) -> int:
        return len(self.data)


# ─── Fingerprints ─────────────────────────────────────────────

class Fingerprint(FrozenModel):
    content_hash: str
    structural_hash: str
    metadata_hash: str = ""


class ExtractedMetadata(FrozenModel):
    """Document facts surfaced alongside the VAT amounts."""
    invoice_total: Optional[Decimal] = None
    invoice_date: Optional[date] = None
    vat_amounts: list[Decimal] = []
    vat_rates: list[float] = []
    supplier_name: Optional[str] = None
    supplier_vat_number: Optional[str] = None
    currency: str = "EUR"
    document_type: DocumentType = DocumentType.OTHER


class FingerprintRecord(FrozenModel):
    """A fingerprinted document as stored for duplicate comparison."""
    document_id: str
    owner_scope: str
    fingerprint: Fingerprint
    file_name: str
    size_bytes: int
    mime_type: str = ""
    extracted_date: Optional[date] = None
    invoice_total: Optional[Decimal] = None
    recorded_at: Optional[datetime] = None


# ─── Extraction ───────────────────────────────────────────────

class CandidateAmount(FrozenModel):
    """A monetary value proposed by one strategy before selection."""
    value: Decimal
    source_pattern: str
    priority: int = Field(ge=1)
    strategy: StrategyName


class StrategyOutcome(FrozenModel):
    """
    What one strategy reports back to the engine.

    candidates: deduplicated and ordered best-first
    evidence: every raw match before deduplication (used for convergence)
    """
    strategy: StrategyName
    status: StrategyStatus
    candidates: list[CandidateAmount] = []
    evidence: list[CandidateAmount] = []
    confidence: float = 0.0
    reasons: list[str] = []
    metadata: Optional[ExtractedMetadata] = None

    @field_validator("confidence", mode="before")
    @classmethod
    def clamp_confidence(cls, value):
        return clamp_unit(value)

    @property
    def primary(self) -> Optional[CandidateAmount]:
        return self.candidates[0] if self.candidates else None


class ExtractionResult(FrozenModel):
    candidates: list[CandidateAmount] = []
    primary_amount: Optional[Decimal] = None
    confidence: float = 0.0
    strategy_used: StrategyName = StrategyName.NONE
    reasons: list[str] = []
    requires_manual_review: bool = False
    metadata: ExtractedMetadata = ExtractedMetadata()

    @field_validator("confidence", mode="before")
    @classmethod
    def clamp_confidence(cls, value):
        return clamp_unit(value)

    @classmethod
    def empty(
        cls,
        reasons: list[str],
        strategy_used: StrategyName = StrategyName.NONE,
        requires_manual_review: bool = False,
    ) -> "ExtractionResult":
        return cls(
            reasons=reasons,
            strategy_used=strategy_used,
            requires_manual_review=requires_manual_review,
        )


# ─── Duplicates ───────────────────────────────────────────────

class DuplicateVerdict(FrozenModel):
    is_duplicate: bool = False
    duplicate_of_id: Optional[str] = None
    similarity_score: float = 0.0
    confidence: float = 0.0
    reasons: list[str] = []

    @field_validator("similarity_score", "confidence", mode="before")
    @classmethod
    def clamp_scores(cls, value):
        return clamp_unit(value)


# ─── Compliance ───────────────────────────────────────────────

def level_for(errors: list[str], warnings: list[str]) -> ComplianceLevel:
    """NON_COMPLIANT iff errors, else WARNING iff warnings, else COMPLIANT."""
    if errors:
        return ComplianceLevel.NON_COMPLIANT
    if warnings:
        return ComplianceLevel.WARNING
    return ComplianceLevel.COMPLIANT


class ComplianceReport(FrozenModel):
    is_valid: bool
    compliance_level: ComplianceLevel
    errors: list[str] = []
    warnings: list[str] = []
    recommendations: list[str] = []
    vat_number: Optional[str] = None


class ComplianceCheck(FrozenModel):
    """Aggregate of extracted data handed to the compliance validator."""
    document_type: DocumentType = DocumentType.OTHER
    vat_amounts: list[Decimal] = []
    vat_rates: list[float] = []
    supplier_vat_number: Optional[str] = None
    invoice_date: Optional[date] = None
    currency: str = "EUR"


class VATRateValidation(FrozenModel):
    valid_rates: list[float] = []
    invalid_rates: list[float] = []
    warnings: list[str] = []


class VATPeriodValidation(FrozenModel):
    is_valid: bool
    period_type: PeriodType
    days: int
    warnings: list[str] = []


class VATCalculationCheck(FrozenModel):
    is_correct: bool
    calculated_vat: Decimal
    difference: Decimal
    tolerance: Decimal


# ─── Pipeline output ──────────────────────────────────────────

class ProcessingOutcome(FrozenModel):
    """Everything the persistence/presentation layer receives for one document."""
    document_id: str
    owner_scope: str
    fingerprint: Fingerprint
    extraction: ExtractionResult
    duplicate: DuplicateVerdict
    compliance: ComplianceReport
    processing_time_ms: int = 0
