"""
Document fingerprints: content, structural and metadata hashes.
All three are SHA-256 hex digests; the two JSON-based ones hash canonical
JSON (sorted keys, compact separators) so they are stable across runs.
"""

import hashlib
import json
import re
from typing import Optional

from vat_intake.schemas.contracts import ExtractedMetadata, Fingerprint


def _sha256(payload: bytes) -> str:
    return hashlib.sha256(payload).hexdigest()


def canonical_json(value: dict) -> bytes:
    return json.dumps(value, sort_keys=True, separators=(",", ":"), default=str).encode("utf-8")


def normalise_file_name(file_name: str) -> str:
    return re.sub(r"[^a-z0-9]", "", (file_name or "").lower())


def file_extension(file_name: str) -> str:
    name = (file_name or "").lower()
    if "." not in name:
        return ""
    return name.rsplit(".", 1)[1]


def normalise_supplier(name: Optional[str]) -> Optional[str]:
    if not name:
        return None
    return re.sub(r"[^a-z0-9]", "", name.lower()) or None


def content_hash(data: bytes) -> str:
    return _sha256(data or b"")


def structural_hash(file_name: str, size_bytes: int, mime_type: str) -> str:
    return _sha256(canonical_json({
        "size_bytes": size_bytes,
        "mime_type": (mime_type or "").lower(),
        "file_name": normalise_file_name(file_name),
        "extension": file_extension(file_name),
    }))


def metadata_hash(metadata: Optional[ExtractedMetadata]) -> str:
    """Empty string until extraction has produced at least one identifying field."""
    if metadata is None:
        return ""
    fields = {
        "invoice_total": str(metadata.invoice_total) if metadata.invoice_total is not None else None,
        "extracted_date": metadata.invoice_date.isoformat() if metadata.invoice_date else None,
        "vat_amounts": [str(v) for v in sorted(metadata.vat_amounts)],
        "supplier_name": normalise_supplier(metadata.supplier_name),
    }
    if not any(fields.values()):
        return ""
    return _sha256(canonical_json(fields))


def fingerprint(
    data: bytes,
    file_name: str,
    size_bytes: Optional[int] = None,
    mime_type: str = "",
    extracted_metadata: Optional[ExtractedMetadata] = None,
) -> Fingerprint:
    """Pure function of its inputs; never raises for odd names or empty bytes."""
    if size_bytes is None:
        size_bytes = len(data or b"")
    return Fingerprint(
        content_hash=content_hash(data),
        structural_hash=structural_hash(file_name, size_bytes, mime_type),
        metadata_hash=metadata_hash(extracted_metadata),
    )
