"""
Document classification - invoice, receipt, credit note or tax report.
Combines the declared category (sales/purchases) with keyword signals in the
text. The sign check in compliance relies on CREDIT_NOTE.
"""

import re

from pydantic import BaseModel

from vat_intake.models.enums import DocumentCategory, DocumentType


class ClassificationResult(BaseModel):
    document_type: DocumentType = DocumentType.OTHER
    confidence: float = 0.0
    signals: list[str] = []


CREDIT_NOTE_KEYWORDS = [
    r"credit\s+note",
    r"credit\s+memo",
    r"\brefund\b",
    r"\breturn(ed)?\s+goods\b",
    r"nóta\s+creidmheasa",
]

TAX_REPORT_KEYWORDS = [
    r"tax\s+report",
    r"net\s+total\s+tax",
    r"item\s+tax\s+amt",
    r"shipping\s+tax\s+amt",
    r"order\s+number",
    r"billing[_\s]country",
]

INVOICE_KEYWORDS = [
    r"\binvoice\b",
    r"\binv\s*no\b",
    r"\bbill\s+to\b",
    r"payment\s+terms",
    r"\bsonrasc\b",
]

RECEIPT_KEYWORDS = [
    r"\breceipt\b",
    r"\bthank\s+you\s+for\s+your\s+(purchase|order)\b",
    r"\bcard\s+payment\b",
    r"\bchange\s+due\b",
]


def _score(patterns: list[str], text: str, weight: float, label: str, signals: list[str]) -> float:
    score = 0.0
    for pattern in patterns:
        if re.search(pattern, text, re.IGNORECASE):
            score += weight
            signals.append(f"{label}:{pattern[:30]}")
    return min(score, 1.0)


def classify_document(text: str, category: DocumentCategory = DocumentCategory.UNKNOWN) -> ClassificationResult:
    """
    Classify a document from its text and declared category.
    Credit notes win over everything else; tax reports over invoices/receipts.
    """
    combined = (text or "").lower()
    signals: list[str] = []

    credit_score = _score(CREDIT_NOTE_KEYWORDS, combined, 0.5, "CREDIT_NOTE", signals)
    report_score = _score(TAX_REPORT_KEYWORDS, combined, 0.25, "TAX_REPORT", signals)
    invoice_score = _score(INVOICE_KEYWORDS, combined, 0.3, "INVOICE", signals)
    receipt_score = _score(RECEIPT_KEYWORDS, combined, 0.3, "RECEIPT", signals)

    if credit_score >= 0.5:
        return ClassificationResult(
            document_type=DocumentType.CREDIT_NOTE,
            confidence=credit_score,
            signals=signals,
        )

    if report_score >= 0.5 and report_score > invoice_score:
        return ClassificationResult(
            document_type=DocumentType.TAX_REPORT,
            confidence=report_score,
            signals=signals,
        )

    is_invoice = invoice_score >= receipt_score and invoice_score > 0
    confidence = max(invoice_score, receipt_score)

    if category == DocumentCategory.SALES:
        doc_type = DocumentType.SALES_INVOICE if is_invoice else DocumentType.SALES_RECEIPT
    elif category == DocumentCategory.PURCHASES:
        doc_type = DocumentType.PURCHASE_INVOICE if is_invoice else DocumentType.PURCHASE_RECEIPT
    else:
        doc_type = DocumentType.OTHER

    return ClassificationResult(
        document_type=doc_type,
        confidence=confidence,
        signals=signals,
    )


def is_credit_document(document_type: DocumentType) -> bool:
    return document_type == DocumentType.CREDIT_NOTE
