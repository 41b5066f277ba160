"""
Python enums shared across the pipeline.
Values are part of the output contract consumed by the persistence layer.
"""

from enum import Enum


class DocumentCategory(str, Enum):
    SALES = "SALES"
    PURCHASES = "PURCHASES"
    UNKNOWN = "UNKNOWN"


class DocumentType(str, Enum):
    SALES_INVOICE = "SALES_INVOICE"
    SALES_RECEIPT = "SALES_RECEIPT"
    PURCHASE_INVOICE = "PURCHASE_INVOICE"
    PURCHASE_RECEIPT = "PURCHASE_RECEIPT"
    CREDIT_NOTE = "CREDIT_NOTE"
    TAX_REPORT = "TAX_REPORT"
    OTHER = "OTHER"


class StrategyName(str, Enum):
    TABULAR = "tabular"
    PATTERN_TEXT = "pattern_text"
    EXTERNAL = "external"
    EMERGENCY_FALLBACK = "emergency_fallback"
    NONE = "none"


class StrategyStatus(str, Enum):
    SUCCESS = "SUCCESS"
    EMPTY = "EMPTY"
    FAILED = "FAILED"
    SKIPPED = "SKIPPED"


class ComplianceLevel(str, Enum):
    COMPLIANT = "COMPLIANT"
    WARNING = "WARNING"
    NON_COMPLIANT = "NON_COMPLIANT"


class PeriodType(str, Enum):
    MONTHLY = "MONTHLY"
    BI_MONTHLY = "BI_MONTHLY"
    QUARTERLY = "QUARTERLY"
    ANNUAL = "ANNUAL"
    UNKNOWN = "UNKNOWN"


class ExternalErrorCode(str, Enum):
    TIMEOUT = "timeout"
    QUOTA_EXCEEDED = "quota_exceeded"
    INVALID_INPUT = "invalid_input"
    UNAVAILABLE = "unavailable"
