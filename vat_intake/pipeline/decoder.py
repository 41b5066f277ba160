"""
Input decoding: turn a RawDocument into text and tables by MIME type.

Never raises. Input-shape problems land in `rejection`, decode failures in
`decode_error`; the extraction engine decides what to do with either.
"""

import io
from dataclasses import dataclass, field
from typing import Optional

import pandas as pd
import structlog

from vat_intake.config import Settings, settings as default_settings
from vat_intake.engines.base import DocumentDecodeError
from vat_intake.engines.pdfplumber_engine import PdfPlumberEngine
from vat_intake.schemas.contracts import RawDocument

logger = structlog.get_logger(__name__)

PDF_TYPES = {"application/pdf", "application/x-pdf"}
TEXT_TYPES = {"text/plain"}
CSV_TYPES = {"text/csv", "application/csv"}
EXCEL_TYPES = {
    "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet",
    "application/vnd.ms-excel",
}
ZIP_MAGIC = b"PK\x03\x04"
OLE_MAGIC = b"\xd0\xcf\x11\xe0\xa1\xb1\x1a\xe1"


@dataclass
class DecodedDocument:
    text: str = ""
    tables: list[pd.DataFrame] = field(default_factory=list)
    is_image: bool = False
    is_binary: bool = False
    decode_error: Optional[str] = None
    rejection: Optional[str] = None

    @property
    def has_text(self) -> bool:
        return bool(self.text.strip())


def _decode_text(data: bytes) -> str:
    try:
        return data.decode("utf-8")
    except UnicodeDecodeError:
        return data.decode("latin-1")


def _frame_from_rows(rows: list[list[str]]) -> pd.DataFrame:
    """First row is the header; pad ragged rows to header width."""
    header = [h or f"column_{i}" for i, h in enumerate(rows[0])]
    width = len(header)
    body = [(r + [""] * width)[:width] for r in rows[1:]]
    return pd.DataFrame(body, columns=header)


def _frame_to_text(frame: pd.DataFrame) -> str:
    return frame.to_csv(index=False)


def _decode_csv(document: RawDocument) -> DecodedDocument:
    text = _decode_text(document.data)
    try:
        frame = pd.read_csv(io.StringIO(text), dtype=str, keep_default_na=False)
    except (pd.errors.ParserError, pd.errors.EmptyDataError, ValueError) as e:
        logger.warning("csv_decode_failed", file_name=document.file_name, error=str(e))
        return DecodedDocument(text=text)
    return DecodedDocument(text=text, tables=[frame])


def _decode_workbook(document: RawDocument) -> DecodedDocument:
    try:
        sheets = pd.read_excel(io.BytesIO(document.data), sheet_name=None, dtype=str)
    except Exception as e:
        logger.warning("excel_decode_failed", file_name=document.file_name, error=str(e))
        return DecodedDocument(is_binary=True, decode_error=f"Spreadsheet could not be read: {e}")
    tables = [frame.fillna("") for frame in sheets.values() if not frame.empty]
    return DecodedDocument(
        text="\n".join(_frame_to_text(t) for t in tables),
        tables=tables,
        is_binary=True,
    )


def _decode_spreadsheet(document: RawDocument) -> DecodedDocument:
    """
    Excel MIME types are sniffed: browsers send CSV exports as
    application/vnd.ms-excel too. Only .xlsx (a ZIP container) is read as a workbook.
    """
    if document.data.startswith(ZIP_MAGIC):
        return _decode_workbook(document)
    if document.data.startswith(OLE_MAGIC):
        logger.warning("legacy_xls_unsupported", file_name=document.file_name)
        return DecodedDocument(
            is_binary=True,
            decode_error="Legacy .xls workbooks are not supported; save as .xlsx or CSV",
        )
    return _decode_csv(document)


def decode_document(
    document: RawDocument,
    pdf_engine: Optional[PdfPlumberEngine] = None,
    config: Optional[Settings] = None,
) -> DecodedDocument:
    """Decode bytes into text/tables according to the declared MIME type."""
    config = config or default_settings
    mime = (document.mime_type or "").split(";")[0].strip().lower()

    if not document.data:
        return DecodedDocument(rejection="Document is empty")

    if document.size_bytes > config.MAX_UPLOAD_SIZE_MB * 1024 * 1024:
        return DecodedDocument(rejection=f"Document exceeds {config.MAX_UPLOAD_SIZE_MB} MB")

    if mime not in config.supported_mime_types:
        return DecodedDocument(rejection=f"Unsupported MIME type: {mime or 'unknown'}")

    if mime.startswith("image/"):
        return DecodedDocument(is_image=True, is_binary=True)

    if mime in TEXT_TYPES:
        return DecodedDocument(text=_decode_text(document.data))

    if mime in CSV_TYPES:
        return _decode_csv(document)

    if mime in EXCEL_TYPES:
        return _decode_spreadsheet(document)

    if mime in PDF_TYPES:
        engine = pdf_engine or PdfPlumberEngine()
        try:
            content = engine.read(document.data)
        except DocumentDecodeError as e:
            logger.warning("pdf_decode_failed", file_name=document.file_name, error=e.message)
            return DecodedDocument(is_binary=True, decode_error=e.message)
        tables = [_frame_from_rows(rows) for rows in content.tables]
        return DecodedDocument(
            text=content.text if engine.has_text_layer(content) else "",
            tables=tables,
            is_binary=True,
        )

    # Supported by configuration but no reader: treat as opaque binary
    return DecodedDocument(is_binary=True)
