"""
Pipeline orchestrator.

ExtractionEngine runs the strategy chain for one document:
    DECODE → TABULAR / PATTERN_TEXT / EXTERNAL (profile order) → EMERGENCY (decode failures only)
and stops at the first outcome whose aggregated confidence clears the accept bar.

DocumentPipeline wraps it with fingerprinting, duplicate detection and the
compliance check, and hands back one ProcessingOutcome per document.
"""

import asyncio
import time
import uuid
from datetime import datetime, timezone
from typing import Callable, Optional

import structlog

from vat_intake.config import Settings, settings as default_settings
from vat_intake.engines.base import ExternalExtractor
from vat_intake.engines.external_engine import HttpDocumentExtractor
from vat_intake.engines.pdfplumber_engine import PdfPlumberEngine
from vat_intake.models.enums import StrategyName, StrategyStatus
from vat_intake.observability.metrics import (
    document_processing_duration_seconds,
    documents_processed_total,
    duplicates_detected_total,
    extraction_confidence,
    strategy_outcomes_total,
)
from vat_intake.pipeline.compliance import build_compliance_check, check_compliance
from vat_intake.pipeline.confidence_scorer import ConfidenceResult, aggregate_confidence
from vat_intake.pipeline.decoder import DecodedDocument, decode_document
from vat_intake.pipeline.doc_classifier import classify_document
from vat_intake.pipeline.duplicate_detector import DuplicateDetector
from vat_intake.pipeline.emergency import EmergencyStrategy
from vat_intake.pipeline.external import ExternalStrategy
from vat_intake.pipeline.fingerprint import content_hash, fingerprint
from vat_intake.pipeline.pattern_extractor import DEFAULT_PATTERNS, PatternTextStrategy, extract_metadata
from vat_intake.pipeline.table_extractor import TabularStrategy
from vat_intake.pipeline.tuning import TuningProfile, load_profile
from vat_intake.schemas.contracts import (
    ExtractedMetadata,
    ExtractionResult,
    FingerprintRecord,
    ProcessingOutcome,
    RawDocument,
    StrategyOutcome,
)
from vat_intake.storage.artifact_store import ArtifactStore
from vat_intake.storage.fingerprint_store import ArtifactFingerprintStore, FingerprintStore

logger = structlog.get_logger(__name__)


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class ExtractionEngine:
    """
    Ordered, non-throwing strategy chain.
    Strategies report StrategyOutcome statuses; the engine never lets a
    strategy exception escape (cancellation excepted).
    """

    def __init__(
        self,
        external_extractor: Optional[ExternalExtractor] = None,
        config: Optional[Settings] = None,
        profile: Optional[TuningProfile] = None,
        pdf_engine: Optional[PdfPlumberEngine] = None,
    ):
        self.config = config or default_settings
        self.profile = profile or TuningProfile()
        self.pdf_engine = pdf_engine or PdfPlumberEngine()
        self.tabular = TabularStrategy()
        self.external = ExternalStrategy(external_extractor, timeout_seconds=self.config.EXTERNAL_TIMEOUT_SECONDS)
        self.emergency = EmergencyStrategy(keyword_window=self.config.EMERGENCY_KEYWORD_WINDOW)

    def active_profile(self, document: RawDocument) -> tuple[TuningProfile, Optional[str]]:
        """The variant for this document, or the base profile plus a reason when none can be picked."""
        identity = document.document_id or content_hash(document.data)
        try:
            return self.profile.resolve(identity, self.config.TUNING_EXPERIMENT_ID), None
        except ValueError as e:
            logger.warning(
                "tuning_variant_unresolved",
                document_id=document.document_id,
                profile=self.profile.name,
                error=str(e),
            )
            return self.profile, f"Tuning variant not resolved, using profile {self.profile.name}: {e}"

    async def _run_strategy(
        self,
        strategy: StrategyName,
        document: RawDocument,
        decoded: DecodedDocument,
        profile: TuningProfile,
    ) -> StrategyOutcome:
        try:
            if strategy == StrategyName.TABULAR:
                outcome = self.tabular.run(decoded)
            elif strategy == StrategyName.PATTERN_TEXT:
                patterns = PatternTextStrategy(
                    profile.apply_to_patterns(DEFAULT_PATTERNS),
                    tolerance=self.config.AMOUNT_TOLERANCE,
                )
                outcome = patterns.run(decoded, document.category)
            elif strategy == StrategyName.EXTERNAL:
                outcome = await self.external.run(document)
            elif strategy == StrategyName.EMERGENCY_FALLBACK:
                outcome = self.emergency.run(document.data)
            else:
                raise ValueError(f"Unknown strategy {strategy}")
        except Exception as e:
            logger.error(
                "extraction_strategy_failed",
                strategy=strategy.value,
                document_id=document.document_id,
                error=str(e),
                exc_info=True,
            )
            outcome = StrategyOutcome(
                strategy=strategy,
                status=StrategyStatus.FAILED,
                reasons=[f"Unexpected error: {e}"],
            )

        strategy_outcomes_total.labels(strategy=strategy.value, status=outcome.status.value).inc()
        return outcome

    async def extract(self, document: RawDocument) -> ExtractionResult:
        decoded = decode_document(document, pdf_engine=self.pdf_engine, config=self.config)

        if decoded.rejection:
            logger.info("extraction_rejected", document_id=document.document_id, reason=decoded.rejection)
            return ExtractionResult.empty([decoded.rejection])

        profile, profile_reason = self.active_profile(document)
        order = list(profile.strategy_order)
        if decoded.decode_error:
            order.append(StrategyName.EMERGENCY_FALLBACK)

        reasons: list[str] = []
        if profile_reason:
            reasons.append(profile_reason)
        if decoded.decode_error:
            reasons.append(f"decode: {decoded.decode_error}")

        outcomes: list[StrategyOutcome] = []
        scored: list[tuple[StrategyOutcome, ConfidenceResult]] = []

        # ── Strategy chain ──
        for strategy in order:
            outcome = await self._run_strategy(strategy, document, decoded, profile)
            reasons.extend(f"{strategy.value}: {r}" for r in outcome.reasons)

            if outcome.status == StrategyStatus.SUCCESS and outcome.candidates:
                score = aggregate_confidence(outcome, outcomes, self.config)
                scored.append((outcome, score))
                if score.confidence >= self.config.EXTRACTION_ACCEPT_THRESHOLD:
                    outcomes.append(outcome)
                    logger.info(
                        "extraction_accepted",
                        document_id=document.document_id,
                        strategy=strategy.value,
                        confidence=score.confidence,
                        profile=profile.name,
                    )
                    return self._build_result(document, decoded, outcome, score, reasons, outcomes, review=False)

            outcomes.append(outcome)

        # ── Nothing cleared the bar ──
        if scored:
            outcome, score = max(scored, key=lambda item: item[1].confidence)
            logger.info(
                "extraction_below_threshold",
                document_id=document.document_id,
                strategy=outcome.strategy.value,
                confidence=score.confidence,
            )
            return self._build_result(document, decoded, outcome, score, reasons, outcomes, review=True)

        emergency_ran = StrategyName.EMERGENCY_FALLBACK in order
        logger.info(
            "extraction_empty",
            document_id=document.document_id,
            strategies=[o.strategy.value for o in outcomes],
            emergency=emergency_ran,
        )
        extraction_confidence.labels(
            strategy=(StrategyName.EMERGENCY_FALLBACK if emergency_ran else StrategyName.NONE).value
        ).observe(0.0)
        return ExtractionResult(
            reasons=reasons,
            strategy_used=StrategyName.EMERGENCY_FALLBACK if emergency_ran else StrategyName.NONE,
            requires_manual_review=emergency_ran,
            metadata=self._metadata(document, decoded, outcomes, []),
        )

    def _metadata(
        self,
        document: RawDocument,
        decoded: DecodedDocument,
        outcomes: list[StrategyOutcome],
        vat_amounts: list,
    ) -> ExtractedMetadata:
        for outcome in outcomes:
            if outcome.metadata is not None:
                return outcome.metadata.model_copy(update={"vat_amounts": list(vat_amounts)})
        if decoded.has_text:
            return extract_metadata(decoded.text, document.category, vat_amounts)
        return ExtractedMetadata(
            vat_amounts=list(vat_amounts),
            document_type=classify_document("", document.category).document_type,
        )

    def _build_result(
        self,
        document: RawDocument,
        decoded: DecodedDocument,
        outcome: StrategyOutcome,
        score: ConfidenceResult,
        reasons: list[str],
        outcomes: list[StrategyOutcome],
        review: bool,
    ) -> ExtractionResult:
        is_emergency = outcome.strategy == StrategyName.EMERGENCY_FALLBACK
        extraction_confidence.labels(strategy=outcome.strategy.value).observe(score.confidence)
        return ExtractionResult(
            candidates=outcome.candidates,
            primary_amount=outcome.primary.value,
            confidence=score.confidence,
            strategy_used=outcome.strategy,
            reasons=reasons + [f"confidence: {score.confidence:.2f} ({', '.join(score.signals)})"],
            requires_manual_review=review or is_emergency,
            metadata=self._metadata(document, decoded, outcomes, [c.value for c in outcome.candidates]),
        )


class DocumentPipeline:
    """
    Extract → fingerprint → duplicate check → record fingerprint → compliance.
    Collaborators are injected; from_settings wires the production ones.
    """

    def __init__(
        self,
        store: FingerprintStore,
        engine: Optional[ExtractionEngine] = None,
        config: Optional[Settings] = None,
        clock: Optional[Callable[[], datetime]] = None,
    ):
        self.config = config or default_settings
        self.store = store
        self.engine = engine or ExtractionEngine(config=self.config)
        self.detector = DuplicateDetector(store, self.config)
        self.clock = clock or utc_now

    @classmethod
    def from_settings(cls, config: Optional[Settings] = None) -> "DocumentPipeline":
        config = config or default_settings
        engine = ExtractionEngine(
            external_extractor=HttpDocumentExtractor.from_settings(config),
            config=config,
            profile=load_profile(config.TUNING_PROFILE_PATH),
        )
        return cls(store=ArtifactFingerprintStore(ArtifactStore(config.ARTIFACT_ROOT)), engine=engine, config=config)

    async def process(self, document: RawDocument) -> ProcessingOutcome:
        started_at = time.monotonic()
        document_id = document.document_id or str(uuid.uuid4())
        if document.document_id is None:
            document = document.model_copy(update={"document_id": document_id})

        logger.info(
            "pipeline_started",
            document_id=document_id,
            owner_scope=document.owner_scope,
            file_name=document.file_name,
            size_bytes=document.size_bytes,
        )

        # ── Extract ──
        extraction = await self.engine.extract(document)

        # ── Fingerprint ──
        fp = fingerprint(
            document.data,
            document.file_name,
            document.size_bytes,
            document.mime_type,
            extracted_metadata=extraction.metadata,
        )
        record = FingerprintRecord(
            document_id=document_id,
            owner_scope=document.owner_scope,
            fingerprint=fp,
            file_name=document.file_name,
            size_bytes=document.size_bytes,
            mime_type=document.mime_type,
            extracted_date=extraction.metadata.invoice_date,
            invoice_total=extraction.metadata.invoice_total,
            recorded_at=self.clock(),
        )

        # ── Duplicates ──
        duplicate = await asyncio.to_thread(self.detector.check_duplicate, record, document.owner_scope, document_id)
        if duplicate.is_duplicate:
            duplicates_detected_total.inc()

        try:
            await asyncio.to_thread(self.store.save, record)
        except Exception as e:
            logger.error("fingerprint_record_failed", document_id=document_id, error=str(e))

        # ── Compliance ──
        compliance = check_compliance(
            build_compliance_check(extraction, document.category),
            today=self.clock().date(),
            config=self.config,
        )

        elapsed = time.monotonic() - started_at
        document_processing_duration_seconds.observe(elapsed)
        documents_processed_total.labels(
            strategy=extraction.strategy_used.value,
            compliance_level=compliance.compliance_level.value,
        ).inc()

        logger.info(
            "pipeline_complete",
            document_id=document_id,
            strategy=extraction.strategy_used.value,
            primary_amount=str(extraction.primary_amount) if extraction.primary_amount is not None else None,
            confidence=extraction.confidence,
            is_duplicate=duplicate.is_duplicate,
            compliance_level=compliance.compliance_level.value,
            elapsed_ms=int(elapsed * 1000),
        )

        return ProcessingOutcome(
            document_id=document_id,
            owner_scope=document.owner_scope,
            fingerprint=fp,
            extraction=extraction,
            duplicate=duplicate,
            compliance=compliance,
            processing_time_ms=int(elapsed * 1000),
        )

    async def process_many(self, documents: list[RawDocument]) -> list[ProcessingOutcome]:
        """Process concurrently, at most MAX_CONCURRENT_DOCUMENTS at a time. Order is preserved."""
        semaphore = asyncio.Semaphore(max(1, self.config.MAX_CONCURRENT_DOCUMENTS))

        async def bounded(document: RawDocument) -> ProcessingOutcome:
            async with semaphore:
                return await self.process(document)

        return list(await asyncio.gather(*(bounded(d) for d in documents)))
