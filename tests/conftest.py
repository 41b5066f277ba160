"""
Shared test fixtures.
"""

from datetime import datetime, timezone

import pytest

from vat_intake.config import Settings
from vat_intake.models.enums import DocumentCategory
from vat_intake.schemas.contracts import RawDocument
from vat_intake.storage.fingerprint_store import InMemoryFingerprintStore


@pytest.fixture
def test_settings(tmp_path):
    """Settings isolated from the environment's artifact root."""
    return Settings(ARTIFACT_ROOT=str(tmp_path / "artifacts"), EXTERNAL_TIMEOUT_SECONDS=0.5)


@pytest.fixture
def store():
    return InMemoryFingerprintStore()


@pytest.fixture
def fixed_now():
    return datetime(2024, 3, 1, 12, 0, tzinfo=timezone.utc)


@pytest.fixture
def fixed_clock(fixed_now):
    return lambda: fixed_now


@pytest.fixture
def make_document():
    """Build a RawDocument; str data is UTF-8 encoded."""
    def _make(
        data,
        mime_type="text/plain",
        file_name="invoice.txt",
        category=DocumentCategory.PURCHASES,
        owner_scope="owner-1",
        document_id=None,
    ):
        if isinstance(data, str):
            data = data.encode("utf-8")
        return RawDocument(
            data=data,
            mime_type=mime_type,
            file_name=file_name,
            category=category,
            owner_scope=owner_scope,
            document_id=document_id,
        )
    return _make


@pytest.fixture
def sample_invoice_text():
    return (
        "Acme Supplies Ltd\n"
        "12 Main Street, Dublin 2\n"
        "VAT No: IE1234567T\n"
        "Invoice Date: 15/01/2024\n"
        "Invoice No: INV-001\n"
        "Office chairs 2 €400.00\n"
        "Subtotal: €400.00\n"
        "VAT (23%): €92.00\n"
        "Total: €492.00\n"
    )


@pytest.fixture
def tax_report_csv():
    """WooCommerce-style export: two tax amount columns plus an order total."""
    return (
        "Order Number,Billing Country,Item Tax Amt.,Shipping Tax Amt.,Order Total\n"
        "1001,IE,5000.00,300.00,6765.00\n"
        "1002,IE,142.32,75.88,1000.00\n"
    ).encode("utf-8")


@pytest.fixture
def corrupt_pdf_bytes():
    """Truncated PDF whose body still carries a readable VAT figure."""
    return b"%PDF-1.4\n%\xe2\xe3\xcf\xd3\n1 0 obj\n<< /Type /Catalog /Pages 2 0 R >>\n(Total VAT \xe2\x82\xac23.00)\n"


@pytest.fixture
def sample_amounts():
    """Amount strings as they appear on Irish documents."""
    return [
        ("1,234.56", "1234.56", False),
        ("€1,234.56", "1234.56", False),
        ("EUR 99.99", "99.99", False),
        ("1.234,56", "1234.56", False),
        ("45,50", "45.50", False),
        ("(500.00)", "-500.00", True),
        ("250.00 CR", "-250.00", True),
        ("-75.50", "-75.50", True),
        ("75.50-", "-75.50", True),
        ("0.01", "0.01", False),
    ]


@pytest.fixture
def sample_date_strings():
    """Irish day-first date samples."""
    return [
        ("01/02/2024", "2024-02-01"),
        ("15 Jan 2024", "2024-01-15"),
        ("5 February 2024", "2024-02-05"),
        ("2024-03-15", "2024-03-15"),
        ("01/02/24", "2024-02-01"),
        ("1st Jan 2024", "2024-01-01"),
        ("15.01.2024", "2024-01-15"),
    ]
