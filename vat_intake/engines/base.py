"""
Abstract base classes for document engines.
An engine turns raw bytes into something the extraction strategies can read:
decoded text/tables (pdfplumber) or amounts (external document-understanding).
"""

from abc import ABC, abstractmethod
from decimal import Decimal

from pydantic import BaseModel, Field

from vat_intake.models.enums import ExternalErrorCode


class DocumentEngine(ABC):
    """
    Abstract base class for all document engines.

    Every engine must:
    1. Report its name and version
    2. Raise EngineError on failure (never return partial/corrupt data)
    """

    @property
    @abstractmethod
    def engine_name(self) -> str:
        """Unique identifier: 'pdfplumber', 'http_extractor', 'static'"""
        ...

    @property
    @abstractmethod
    def engine_version(self) -> str:
        """Semver or API version string."""
        ...


class ExternalAmount(BaseModel):
    """One value reported by the external document-understanding service."""
    value: Decimal
    confidence: float = Field(ge=0.0, le=1.0)


class ExternalExtractor(DocumentEngine):
    """
    Contract for the external document-understanding collaborator.

    Given bytes + MIME type, return zero or more amounts, or raise
    ExternalExtractionError with one of the ExternalErrorCode values.
    """

    @abstractmethod
    async def extract_amounts(self, data: bytes, mime_type: str) -> list[ExternalAmount]:
        ...


class EngineError(Exception):
    """Raised when an engine fails."""

    def __init__(self, engine_name: str, error_code: str, message: str):
        self.engine_name = engine_name
        self.error_code = error_code
        self.message = message
        super().__init__(f"[{engine_name}] {error_code}: {message}")


class DocumentDecodeError(EngineError):
    """Structured parsing of a binary format failed outright."""


class ExternalExtractionError(EngineError):
    """The external extractor timed out, ran out of quota or rejected the input."""

    def __init__(self, engine_name: str, error_code: ExternalErrorCode, message: str):
        super().__init__(engine_name, error_code.value, message)
        self.code = error_code
