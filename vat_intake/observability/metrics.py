"""
Prometheus metrics for the VAT document intake pipeline.
"""

from prometheus_client import Counter, Histogram


# ── Document Processing ─────────────────────────────────────
documents_processed_total = Counter(
    "vat_documents_processed_total",
    "Total documents processed to completion",
    ["strategy", "compliance_level"],
)

document_processing_duration_seconds = Histogram(
    "vat_document_processing_duration_seconds",
    "Time to process a document end-to-end",
    buckets=[0.05, 0.1, 0.5, 1, 5, 10, 30, 60],
)

# ── Extraction ───────────────────────────────────────────────
strategy_outcomes_total = Counter(
    "vat_extraction_strategy_outcomes_total",
    "Strategy outcomes by strategy and status",
    ["strategy", "status"],
)

extraction_confidence = Histogram(
    "vat_extraction_confidence",
    "Distribution of extraction confidence scores",
    ["strategy"],
    buckets=[0.1, 0.2, 0.3, 0.4, 0.5, 0.6, 0.7, 0.8, 0.9, 0.95, 1.0],
)

# ── Duplicates ───────────────────────────────────────────────
duplicates_detected_total = Counter(
    "vat_duplicates_detected_total",
    "Documents flagged as duplicates of an earlier upload",
)

# ── Compliance ───────────────────────────────────────────────
compliance_reports_total = Counter(
    "vat_compliance_reports_total",
    "Compliance reports by level",
    ["compliance_level"],
)

# ── External API ─────────────────────────────────────────────
external_call_latency_seconds = Histogram(
    "vat_external_call_latency_seconds",
    "Latency of external document-understanding calls",
    ["outcome"],
    buckets=[0.1, 0.5, 1, 2, 5, 10, 30],
)
