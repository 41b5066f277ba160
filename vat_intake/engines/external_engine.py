"""
HTTP client for the external document-understanding service.

The service receives base64 bytes + MIME type and answers with
{"amounts": [{"value": "92.00", "confidence": 0.87}, ...]}.
"""

import base64
import time
from decimal import Decimal, InvalidOperation
from typing import Optional

import httpx
import structlog

from vat_intake.config import Settings, settings as default_settings
from vat_intake.engines.base import ExternalAmount, ExternalExtractionError, ExternalExtractor
from vat_intake.models.enums import ExternalErrorCode

logger = structlog.get_logger(__name__)


class HttpDocumentExtractor(ExternalExtractor):
    """ExternalExtractor backed by an HTTP JSON endpoint."""

    engine_name = "http_extractor"
    engine_version = "v1"

    def __init__(
        self,
        url: str,
        api_key: Optional[str] = None,
        timeout_seconds: float = 20.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self._url = url
        self._api_key = api_key
        self._timeout = timeout_seconds
        self._transport = transport

    @classmethod
    def from_settings(cls, config: Optional[Settings] = None) -> Optional["HttpDocumentExtractor"]:
        """Build the client when an endpoint is configured, else None."""
        config = config or default_settings
        if not config.EXTERNAL_EXTRACTION_URL:
            return None
        return cls(
            url=config.EXTERNAL_EXTRACTION_URL,
            api_key=config.EXTERNAL_API_KEY,
            timeout_seconds=config.EXTERNAL_TIMEOUT_SECONDS,
        )

    async def extract_amounts(self, data: bytes, mime_type: str) -> list[ExternalAmount]:
        headers = {"Content-Type": "application/json"}
        if self._api_key:
            headers["Authorization"] = f"Bearer {self._api_key}"

        t0 = time.monotonic()
        try:
            async with httpx.AsyncClient(timeout=self._timeout, transport=self._transport) as client:
                resp = await client.post(
                    self._url,
                    headers=headers,
                    json={
                        "mime_type": mime_type,
                        "content": base64.b64encode(data).decode("ascii"),
                    },
                )
        except httpx.TimeoutException as e:
            raise ExternalExtractionError(self.engine_name, ExternalErrorCode.TIMEOUT, str(e)) from e
        except httpx.HTTPError as e:
            raise ExternalExtractionError(self.engine_name, ExternalErrorCode.UNAVAILABLE, str(e)) from e

        if resp.status_code == 429:
            raise ExternalExtractionError(self.engine_name, ExternalErrorCode.QUOTA_EXCEEDED, "rate limited")
        if resp.status_code in (400, 413, 415, 422):
            raise ExternalExtractionError(
                self.engine_name, ExternalErrorCode.INVALID_INPUT, f"HTTP {resp.status_code}"
            )
        if resp.status_code >= 400:
            raise ExternalExtractionError(
                self.engine_name, ExternalErrorCode.UNAVAILABLE, f"HTTP {resp.status_code}"
            )

        try:
            payload = resp.json()
        except ValueError as e:
            raise ExternalExtractionError(self.engine_name, ExternalErrorCode.UNAVAILABLE, "non-JSON response") from e

        if not isinstance(payload, dict) or not isinstance(payload.get("amounts", []), (list, type(None))):
            raise ExternalExtractionError(
                self.engine_name, ExternalErrorCode.UNAVAILABLE, "unexpected response shape"
            )
        amounts = self._parse_amounts(payload)

        logger.info(
            "external_extraction_complete",
            engine=self.engine_name,
            amounts=len(amounts),
            latency_ms=int((time.monotonic() - t0) * 1000),
        )
        return amounts

    @staticmethod
    def _parse_amounts(payload: dict) -> list[ExternalAmount]:
        amounts = []
        for item in payload.get("amounts", []) or []:
            try:
                value = Decimal(str(item["value"]))
                confidence = max(0.0, min(1.0, float(item.get("confidence", 0.0))))
            except (KeyError, TypeError, ValueError, InvalidOperation):
                continue
            if value.is_finite():
                amounts.append(ExternalAmount(value=value, confidence=confidence))
        return amounts
