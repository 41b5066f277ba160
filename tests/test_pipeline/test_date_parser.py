"""
Tests for the Irish date parser.
"""

from datetime import date

from vat_intake.pipeline.date_parser import find_dates, find_invoice_date, parse_date_ie


class TestParseDateIE:
    """Test day-first date parsing."""

    def test_samples(self, sample_date_strings):
        for raw, expected in sample_date_strings:
            assert parse_date_ie(raw).parsed_date == date.fromisoformat(expected), raw

    def test_dd_mon_yyyy(self):
        result = parse_date_ie("15 Jan 2024")
        assert result.parsed_date == date(2024, 1, 15)
        assert result.confidence >= 0.90
        assert not result.is_ambiguous

    def test_ambiguous_date_flagged(self):
        result = parse_date_ie("05/06/2024")
        assert result.parsed_date == date(2024, 6, 5)  # Irish default
        assert result.is_ambiguous

    def test_unambiguous_date_not_flagged(self):
        result = parse_date_ie("25/06/2024")
        assert result.parsed_date == date(2024, 6, 25)
        assert not result.is_ambiguous

    def test_invalid_calendar_date(self):
        assert parse_date_ie("31/02/2024").parsed_date is None

    def test_unparseable_returns_none(self):
        result = parse_date_ie("not a date")
        assert result.parsed_date is None
        assert result.confidence == 0.0

    def test_empty_string(self):
        assert parse_date_ie("").parsed_date is None


class TestFindInvoiceDate:

    def test_labelled_date_preferred(self):
        text = "Delivered 02/01/2024\nInvoice Date: 15/01/2024\n"
        assert find_invoice_date(text) == date(2024, 1, 15)

    def test_issue_label_beats_earlier_due_date(self):
        text = "Due Date: 14/02/2024\nInvoice Date: 15/01/2024\n"
        assert find_invoice_date(text) == date(2024, 1, 15)

    def test_bare_date_label_skips_due_date(self):
        text = "Due Date: 14/02/2024\nDate: 15/01/2024\n"
        assert find_invoice_date(text) == date(2024, 1, 15)

    def test_first_date_fallback(self):
        text = "Ref 2024-03-15 and again 2024-04-01"
        assert find_invoice_date(text) == date(2024, 3, 15)

    def test_none_when_no_dates(self):
        assert find_invoice_date("VAT: €10.00") is None

    def test_find_dates_in_order(self):
        found = find_dates("from 01/01/2024 to 31 Mar 2024")
        assert [d.parsed_date for d in found] == [date(2024, 1, 1), date(2024, 3, 31)]
