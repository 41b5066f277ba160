"""
Tests for pattern-text VAT extraction and metadata.
"""

from datetime import date
from decimal import Decimal

from vat_intake.models.enums import DocumentCategory, DocumentType, StrategyName, StrategyStatus
from vat_intake.pipeline.decoder import DecodedDocument
from vat_intake.pipeline.pattern_extractor import (
    DEFAULT_PATTERNS,
    PatternTextStrategy,
    derive_vat_from_total,
    detect_currency,
    extract_metadata,
    extract_vat_number,
    match_patterns,
    normalise_text,
)


def run(text, patterns=None, category=DocumentCategory.PURCHASES):
    return PatternTextStrategy(patterns).run(DecodedDocument(text=text), category)


class TestPatternPriority:

    def test_bracket_rate_beats_bare_colon(self):
        outcome = run("VAT: €100.00\nVAT (23.00%): €92.00")
        assert outcome.status == StrategyStatus.SUCCESS
        assert outcome.primary.value == Decimal("92.00")
        assert outcome.primary.source_pattern == "vat_rate_bracket"
        assert [c.value for c in outcome.candidates] == [Decimal("92.00"), Decimal("100.00")]

    def test_vat_at_rate(self):
        outcome = run("Goods €200.00\nVAT @ 23%: €46.00")
        assert outcome.primary.value == Decimal("46.00")
        assert outcome.primary.priority == 1

    def test_total_vat_counts_once(self):
        outcome = run("Total VAT amount: €55.20")
        assert len(outcome.evidence) == 1
        assert outcome.primary.source_pattern == "total_vat"

    def test_irish_language_label(self):
        outcome = run("Cáin Bhreisluacha: €12.50")
        assert outcome.primary.value == Decimal("12.50")
        assert outcome.primary.source_pattern == "irish_language_vat"

    def test_rate_first_form(self):
        outcome = run("23% VAT €23.00")
        assert outcome.primary.value == Decimal("23.00")
        assert outcome.primary.priority == 3

    def test_amount_without_currency_needs_cents(self):
        assert run("VAT: 45.00").primary.value == Decimal("45.00")
        assert run("VAT reg 1234567").status == StrategyStatus.EMPTY

    def test_word_containing_vat_ignored(self):
        assert run("Private: €10.00").status == StrategyStatus.EMPTY

    def test_zero_and_negative_ignored(self):
        outcome = run("VAT: €0.00\nTax: €5.00")
        assert outcome.primary.value == Decimal("5.00")

    def test_duplicates_within_a_cent_collapse(self):
        outcome = run("VAT (23%): €92.00\nVAT Amount: €92.00")
        assert len(outcome.candidates) == 1
        assert len(outcome.evidence) == 2

    def test_higher_value_wins_within_priority(self):
        outcome = run("VAT (13.5%): €13.50\nVAT (23%): €46.00")
        assert outcome.primary.value == Decimal("46.00")

    def test_continental_amount_kept_whole(self):
        outcome = run("Supplier\nVAT: €1.234,56\n")
        assert outcome.primary.value == Decimal("1234.56")
        assert outcome.primary.source_pattern == "vat_colon"

    def test_space_grouped_amount(self):
        assert run("VAT (23%): € 1 234,56").primary.value == Decimal("1234.56")

    def test_continental_amount_without_currency(self):
        assert run("VAT amount 2.500,00").primary.value == Decimal("2500.00")

    def test_truncated_amount_not_matched(self):
        # Three decimals is not a money amount; better nothing than €1.00
        assert run("VAT: €1.234").status == StrategyStatus.EMPTY

    def test_gross_total_label_is_not_vat(self):
        text = "Net: €400.00\nVAT: €92.00\nTotal incl. VAT: €492.00"
        outcome = run(text)
        assert outcome.primary.value == Decimal("92.00")
        assert Decimal("492.00") not in [c.value for c in outcome.evidence]
        assert extract_metadata(text).invoice_total == Decimal("492.00")

    def test_net_label_is_not_vat(self):
        outcome = run("Amount excl. VAT: €400.00\nVAT: €92.00\nTotal including VAT (23%): €492.00")
        assert [c.value for c in outcome.candidates] == [Decimal("92.00")]

    def test_no_text_skipped(self):
        outcome = PatternTextStrategy().run(DecodedDocument(text="  "))
        assert outcome.status == StrategyStatus.SKIPPED

    def test_no_match_is_empty(self):
        outcome = run("Thank you for your business")
        assert outcome.status == StrategyStatus.EMPTY
        assert outcome.reasons == ["No VAT pattern matched"]


class TestPatternTable:

    def test_default_table_names_unique(self):
        names = [p.name for p in DEFAULT_PATTERNS]
        assert len(names) == len(set(names))

    def test_disabled_pattern_not_used(self):
        patterns = [p for p in DEFAULT_PATTERNS if p.name != "vat_rate_bracket"]
        outcome = run("VAT: €100.00\nVAT (23%): €92.00", patterns=patterns)
        assert outcome.primary.value == Decimal("100.00")

    def test_priority_override_reorders(self):
        patterns = [p._replace(priority=1) if p.name == "vat_colon" else p for p in DEFAULT_PATTERNS]
        patterns = [p._replace(priority=3) if p.name == "vat_rate_bracket" else p for p in patterns]
        outcome = run("VAT: €100.00\nVAT (23%): €92.00", patterns=patterns)
        assert outcome.primary.value == Decimal("100.00")

    def test_match_patterns_tags_strategy(self):
        evidence = match_patterns(normalise_text("VAT: €10.00"), DEFAULT_PATTERNS)
        assert evidence[0].strategy == StrategyName.PATTERN_TEXT


class TestDerivedVAT:

    def test_derived_from_total_and_rate(self):
        assert derive_vat_from_total(Decimal("123.00"), [23.0]) == Decimal("23.00")

    def test_needs_single_rate(self):
        assert derive_vat_from_total(Decimal("123.00"), [23.0, 13.5]) is None
        assert derive_vat_from_total(None, [23.0]) is None

    def test_strategy_falls_back_to_derived(self):
        outcome = run("Grand Total: €123.00\nPrices include 23% VAT")
        assert outcome.status == StrategyStatus.SUCCESS
        assert outcome.primary.value == Decimal("23.00")
        assert outcome.primary.source_pattern == "derived_from_total"
        assert outcome.primary.priority == 5


class TestMetadata:

    def test_full_invoice(self, sample_invoice_text):
        metadata = extract_metadata(sample_invoice_text, DocumentCategory.PURCHASES)
        assert metadata.invoice_total == Decimal("492.00")
        assert metadata.invoice_date == date(2024, 1, 15)
        assert metadata.vat_rates == [23.0]
        assert metadata.supplier_vat_number == "IE1234567T"
        assert metadata.supplier_name == "Acme Supplies Ltd"
        assert metadata.currency == "EUR"
        assert metadata.document_type == DocumentType.PURCHASE_INVOICE

    def test_subtotal_is_not_total(self):
        metadata = extract_metadata("Sub Total: €100.00\nTotal VAT: €23.00")
        assert metadata.invoice_total is None

    def test_amount_due_preferred(self):
        metadata = extract_metadata("Total: €50.00\nAmount Due: €61.50")
        assert metadata.invoice_total == Decimal("61.50")

    def test_outcome_carries_metadata(self, sample_invoice_text):
        outcome = run(sample_invoice_text)
        assert outcome.metadata.vat_amounts == [Decimal("92.00")]
        assert outcome.metadata.invoice_total == Decimal("492.00")

    def test_spaced_vat_number(self):
        assert extract_vat_number("VAT Reg No: IE 9876543WA") == "IE9876543WA"

    def test_unlabelled_irish_number(self):
        assert extract_vat_number("Registered IE6388047V Dublin") == "IE6388047V"

    def test_other_eu_number(self):
        assert extract_vat_number("Supplier DE123456789") == "DE123456789"

    def test_currency_detection(self):
        assert detect_currency(normalise_text("£10.00 £5.00 VAT")) == "GBP"
        assert detect_currency(normalise_text("no symbols")) == "EUR"
        assert detect_currency(normalise_text("€1 £1")) == "EUR"

    def test_credit_note_classified(self):
        metadata = extract_metadata("CREDIT NOTE\nVAT: €-5.00", DocumentCategory.SALES)
        assert metadata.document_type == DocumentType.CREDIT_NOTE
