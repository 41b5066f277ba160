"""
Duplicate detection against fingerprints already on file for the same owner.

Each prior record is scored with weighted signals (content hash, size ratio,
filename similarity, shared date, comparable total); the best score decides.
Weights and the threshold come from Settings.
"""

import re
from decimal import Decimal
from typing import Optional

import structlog

from vat_intake.config import Settings, settings as default_settings
from vat_intake.schemas.contracts import DuplicateVerdict, FingerprintRecord
from vat_intake.storage.fingerprint_store import FingerprintStore

logger = structlog.get_logger(__name__)


def normalise_for_similarity(file_name: str) -> str:
    """
    Lowercase, strip non-alphanumerics, then replace each 8-digit block with
    "date" and any remaining digit run with "num": invoice_20240115_001.pdf -> invoicedatenumpdf
    """
    name = re.sub(r"[^a-z0-9]", "", (file_name or "").lower())
    name = re.sub(r"\d{8}", "date", name)
    return re.sub(r"\d+", "num", name)


def levenshtein(a: str, b: str) -> int:
    if a == b:
        return 0
    if not a:
        return len(b)
    if not b:
        return len(a)
    previous = list(range(len(b) + 1))
    for i, ca in enumerate(a, start=1):
        current = [i]
        for j, cb in enumerate(b, start=1):
            current.append(min(
                previous[j] + 1,
                current[j - 1] + 1,
                previous[j - 1] + (ca != cb),
            ))
        previous = current
    return previous[-1]


def filename_similarity(first: str, second: str) -> float:
    a = normalise_for_similarity(first)
    b = normalise_for_similarity(second)
    if not a or not b:
        return 0.0
    if a == b:
        return 1.0
    return 1.0 - levenshtein(a, b) / max(len(a), len(b))


def size_ratio(first: int, second: int) -> float:
    if first <= 0 or second <= 0:
        return 0.0
    return min(first, second) / max(first, second)


def totals_comparable(first: Decimal, second: Decimal, tolerance: float) -> bool:
    largest = max(abs(first), abs(second))
    if largest == 0:
        return True
    return abs(first - second) / largest <= Decimal(str(tolerance))


class DuplicateDetector:
    """Scores a fingerprint record against everything the owner already uploaded."""

    def __init__(self, store: FingerprintStore, config: Optional[Settings] = None):
        self.store = store
        self.config = config or default_settings

    def score(self, record: FingerprintRecord, candidate: FingerprintRecord) -> tuple[float, list[str]]:
        cfg = self.config
        score = 0.0
        reasons = []

        if record.fingerprint.content_hash == candidate.fingerprint.content_hash:
            score += cfg.DUPLICATE_WEIGHT_CONTENT
            reasons.append("Identical file content")

        ratio = size_ratio(record.size_bytes, candidate.size_bytes)
        if ratio > cfg.DUPLICATE_SIZE_RATIO:
            score += cfg.DUPLICATE_WEIGHT_SIZE
            reasons.append(f"Similar file size ({ratio:.0%})")

        similarity = filename_similarity(record.file_name, candidate.file_name)
        if similarity > cfg.DUPLICATE_FILENAME_SIMILARITY:
            score += cfg.DUPLICATE_WEIGHT_FILENAME * similarity
            reasons.append(f"Similar filename ({similarity:.0%})")

        if record.extracted_date and candidate.extracted_date and record.extracted_date == candidate.extracted_date:
            score += cfg.DUPLICATE_WEIGHT_DATE
            reasons.append(f"Same document date ({record.extracted_date.isoformat()})")

        if (
            record.invoice_total is not None
            and candidate.invoice_total is not None
            and totals_comparable(record.invoice_total, candidate.invoice_total, cfg.DUPLICATE_TOTAL_TOLERANCE)
        ):
            score += cfg.DUPLICATE_WEIGHT_TOTAL
            reasons.append(f"Comparable invoice total ({candidate.invoice_total})")

        return min(score, 1.0), reasons

    def check_duplicate(
        self,
        record: FingerprintRecord,
        owner_scope: Optional[str] = None,
        exclude_id: Optional[str] = None,
    ) -> DuplicateVerdict:
        owner_scope = owner_scope or record.owner_scope
        exclude_id = exclude_id or record.document_id

        try:
            candidates = self.store.list_for_owner(owner_scope, exclude_id=exclude_id)
        except Exception as e:
            logger.error(
                "duplicate_store_read_failed",
                owner_scope=owner_scope,
                document_id=record.document_id,
                error=str(e),
            )
            return DuplicateVerdict(reasons=[f"Duplicate check unavailable: {e}"])

        if not candidates:
            return DuplicateVerdict(reasons=["No prior documents in scope"])

        best_score = -1.0
        best: Optional[FingerprintRecord] = None
        best_reasons: list[str] = []
        for candidate in candidates:
            score, reasons = self.score(record, candidate)
            if score > best_score:
                best_score, best, best_reasons = score, candidate, reasons

        is_duplicate = best_score >= self.config.DUPLICATE_THRESHOLD

        logger.info(
            "duplicate_check_completed",
            owner_scope=owner_scope,
            document_id=record.document_id,
            candidates=len(candidates),
            best_score=round(best_score, 4),
            is_duplicate=is_duplicate,
        )

        return DuplicateVerdict(
            is_duplicate=is_duplicate,
            duplicate_of_id=best.document_id if is_duplicate else None,
            similarity_score=best_score,
            confidence=best_score,
            reasons=best_reasons or ["No matching signals"],
        )
