"""
Stub external extractor for testing pipeline plumbing.
Returns fixed amounts (or a fixed failure) without calling any service.
"""

import asyncio
from decimal import Decimal
from typing import Optional

from vat_intake.engines.base import ExternalAmount, ExternalExtractionError, ExternalExtractor
from vat_intake.models.enums import ExternalErrorCode


class StaticExternalExtractor(ExternalExtractor):
    """Fake adapter that returns preset amounts, optionally after a delay."""

    engine_name = "static"
    engine_version = "0.1.0"

    def __init__(
        self,
        amounts: Optional[list[tuple[str, float]]] = None,
        fail_with: Optional[ExternalErrorCode] = None,
        delay_seconds: float = 0.0,
    ):
        self._amounts = [
            ExternalAmount(value=Decimal(value), confidence=confidence)
            for value, confidence in (amounts or [])
        ]
        self._fail_with = fail_with
        self._delay = delay_seconds
        self.calls = 0

    async def extract_amounts(self, data: bytes, mime_type: str) -> list[ExternalAmount]:
        self.calls += 1
        if self._delay:
            await asyncio.sleep(self._delay)
        if self._fail_with is not None:
            raise ExternalExtractionError(self.engine_name, self._fail_with, "stubbed failure")
        return list(self._amounts)
