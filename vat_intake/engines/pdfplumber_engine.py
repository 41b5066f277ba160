"""
pdfplumber engine.
Primary path for PDFs with embedded text layers.
Produces the page text and any ruled tables pdfplumber can see.
"""

import io
from dataclasses import dataclass, field

import pdfplumber
import structlog

from vat_intake.engines.base import DocumentDecodeError, DocumentEngine

logger = structlog.get_logger(__name__)


@dataclass
class PdfContent:
    text: str = ""
    tables: list[list[list[str]]] = field(default_factory=list)
    page_count: int = 0


def _clean_row(row: list) -> list[str]:
    return [("" if cell is None else str(cell)).strip() for cell in row]


class PdfPlumberEngine(DocumentEngine):
    """
    Engine using pdfplumber for PDFs with embedded text.
    Text is joined page by page; tables are kept as raw row lists.
    """

    engine_name = "pdfplumber"
    engine_version = "0.11"

    def read(self, data: bytes) -> PdfContent:
        """Decode a PDF payload. Raises DocumentDecodeError on corrupt input."""
        page_texts = []
        tables = []
        try:
            with pdfplumber.open(io.BytesIO(data)) as pdf:
                page_count = len(pdf.pages)
                for page in pdf.pages:
                    page_texts.append(page.extract_text() or "")
                    for table in page.extract_tables():
                        rows = [_clean_row(r) for r in table if r]
                        if len(rows) >= 2:
                            tables.append(rows)
        except Exception as e:
            raise DocumentDecodeError(self.engine_name, "ERR_PDF_DECODE", f"pdfplumber failed: {e}") from e

        if page_count == 0:
            raise DocumentDecodeError(self.engine_name, "ERR_PDF_NO_PAGES", "PDF has no readable pages")

        text = "\n".join(page_texts)

        logger.debug(
            "pdfplumber_read_complete",
            page_count=page_count,
            table_count=len(tables),
            text_length=len(text),
        )

        return PdfContent(text=text, tables=tables, page_count=page_count)

    def has_text_layer(self, content: PdfContent) -> bool:
        """Check if decoded content has a text layer worth using."""
        words = content.text.split()
        if len(words) < 3:
            return False
        alpha_count = sum(1 for w in words[:200] if any(c.isalpha() for c in w))
        return alpha_count / min(len(words), 200) > 0.3
