"""
Strategy C: delegate to the external document-understanding service.

At most one call per document, bounded by a timeout. Service failures turn
into a FAILED outcome; caller cancellation is never absorbed.
"""

import asyncio
import time
from decimal import Decimal
from typing import Optional

import structlog

from vat_intake.engines.base import ExternalExtractionError, ExternalExtractor
from vat_intake.models.enums import ExternalErrorCode, StrategyName, StrategyStatus
from vat_intake.observability.metrics import external_call_latency_seconds
from vat_intake.pipeline.amount_parser import quantize_money
from vat_intake.schemas.contracts import CandidateAmount, RawDocument, StrategyOutcome

logger = structlog.get_logger(__name__)


class ExternalStrategy:
    name = StrategyName.EXTERNAL

    def __init__(self, extractor: Optional[ExternalExtractor], timeout_seconds: float = 20.0):
        self.extractor = extractor
        self.timeout_seconds = timeout_seconds

    def _failed(self, code: str, message: str) -> StrategyOutcome:
        return StrategyOutcome(
            strategy=self.name,
            status=StrategyStatus.FAILED,
            reasons=[f"External extraction failed ({code}): {message}"],
        )

    async def run(self, document: RawDocument) -> StrategyOutcome:
        if self.extractor is None:
            return StrategyOutcome(
                strategy=self.name,
                status=StrategyStatus.SKIPPED,
                reasons=["External extraction unavailable"],
            )

        start = time.monotonic()
        try:
            amounts = await asyncio.wait_for(
                self.extractor.extract_amounts(document.data, document.mime_type),
                timeout=self.timeout_seconds,
            )
        except asyncio.TimeoutError:
            external_call_latency_seconds.labels(outcome=ExternalErrorCode.TIMEOUT.value).observe(
                time.monotonic() - start
            )
            logger.warning(
                "external_extraction_timeout",
                document_id=document.document_id,
                timeout_seconds=self.timeout_seconds,
            )
            return self._failed(ExternalErrorCode.TIMEOUT.value, f"no response within {self.timeout_seconds}s")
        except ExternalExtractionError as e:
            external_call_latency_seconds.labels(outcome=e.error_code).observe(time.monotonic() - start)
            logger.warning(
                "external_extraction_failed",
                document_id=document.document_id,
                error_code=e.error_code,
                error=e.message,
            )
            return self._failed(e.error_code, e.message)

        external_call_latency_seconds.labels(outcome="success").observe(time.monotonic() - start)

        # Highest confidence first, then larger value
        ranked = sorted(
            (a for a in amounts if a.value > 0),
            key=lambda a: (-a.confidence, -a.value),
        )
        if not ranked:
            return StrategyOutcome(
                strategy=self.name,
                status=StrategyStatus.EMPTY,
                reasons=["External service returned no VAT amounts"],
            )

        candidates = []
        for amount in ranked:
            value = quantize_money(Decimal(amount.value))
            if any(abs(value - c.value) <= Decimal("0.01") for c in candidates):
                continue
            candidates.append(CandidateAmount(
                value=value,
                source_pattern="external_service",
                priority=1,
                strategy=self.name,
            ))

        logger.info(
            "external_strategy_succeeded",
            document_id=document.document_id,
            primary=str(candidates[0].value),
            confidence=ranked[0].confidence,
        )

        return StrategyOutcome(
            strategy=self.name,
            status=StrategyStatus.SUCCESS,
            candidates=candidates,
            evidence=candidates,
            confidence=ranked[0].confidence,
            reasons=[f"External service reported {len(candidates)} amount(s)"],
        )
