"""
Tests for document fingerprints.
"""

from datetime import date
from decimal import Decimal

from vat_intake.pipeline.fingerprint import (
    canonical_json,
    fingerprint,
    metadata_hash,
    normalise_file_name,
    structural_hash,
)
from vat_intake.schemas.contracts import ExtractedMetadata


class TestContentHash:

    def test_same_bytes_same_hash(self):
        first = fingerprint(b"invoice body", "a.pdf", mime_type="application/pdf")
        second = fingerprint(b"invoice body", "renamed.pdf", mime_type="application/pdf")
        assert first.content_hash == second.content_hash
        assert first.structural_hash != second.structural_hash

    def test_known_digest(self):
        # sha256 of the empty string
        assert fingerprint(b"", "x").content_hash == (
            "e3b0c44298fc1c149afbf4c8996fb92427ae41e4649b934ca495991b7852b855"
        )

    def test_deterministic(self):
        meta = ExtractedMetadata(invoice_total=Decimal("492.00"), supplier_name="Acme")
        assert fingerprint(b"x", "a.pdf", 1, "application/pdf", meta) == fingerprint(
            b"x", "a.pdf", 1, "application/pdf", meta
        )


class TestStructuralHash:

    def test_name_normalised(self):
        assert normalise_file_name("Invoice_001 (copy).PDF") == "invoice001copypdf"
        assert structural_hash("Invoice-001.pdf", 10, "application/pdf") == structural_hash(
            "invoice_001.PDF", 10, "APPLICATION/PDF"
        )

    def test_size_matters(self):
        assert structural_hash("a.pdf", 10, "application/pdf") != structural_hash("a.pdf", 11, "application/pdf")

    def test_canonical_json_sorted(self):
        assert canonical_json({"b": 1, "a": 2}) == b'{"a":2,"b":1}'


class TestMetadataHash:

    def test_empty_without_metadata(self):
        assert metadata_hash(None) == ""
        assert metadata_hash(ExtractedMetadata()) == ""
        assert fingerprint(b"x", "a.pdf").metadata_hash == ""

    def test_vat_amount_order_irrelevant(self):
        first = ExtractedMetadata(vat_amounts=[Decimal("23.00"), Decimal("4.50")])
        second = ExtractedMetadata(vat_amounts=[Decimal("4.50"), Decimal("23.00")])
        assert metadata_hash(first) == metadata_hash(second) != ""

    def test_supplier_normalised(self):
        first = ExtractedMetadata(supplier_name="Acme Supplies Ltd.", invoice_date=date(2024, 1, 15))
        second = ExtractedMetadata(supplier_name="ACME SUPPLIES LTD", invoice_date=date(2024, 1, 15))
        assert metadata_hash(first) == metadata_hash(second)

    def test_fields_change_hash(self):
        base = ExtractedMetadata(invoice_total=Decimal("100.00"))
        assert metadata_hash(base) != metadata_hash(ExtractedMetadata(invoice_total=Decimal("100.01")))
