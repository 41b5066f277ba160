"""
Strategy A: tabular VAT extraction.

Works on row/column data (CSV, spreadsheets, PDF tables). A header is a VAT
column when it carries a tax token AND an amount token, e.g. "Item Tax Amt.",
"shipping_tax_amt", "Net Total Tax", "VAT Amount". Every matching column is
summed down all data rows and the column sums are added into one total.
"""

import re
from dataclasses import dataclass
from decimal import Decimal

import pandas as pd
import structlog

from vat_intake.models.enums import StrategyName, StrategyStatus
from vat_intake.pipeline.amount_parser import quantize_money, to_amount
from vat_intake.pipeline.decoder import DecodedDocument
from vat_intake.schemas.contracts import CandidateAmount, StrategyOutcome

logger = structlog.get_logger(__name__)


TAX_TOKENS = {"tax", "vat"}
AMOUNT_TOKENS = {"amt", "amount", "total", "value"}
# Gross/net figures and rates that merely mention tax
EXCLUDED_TOKENS = {"incl", "including", "inc", "excl", "excluding", "ex", "gross", "rate", "pct", "percent"}


@dataclass
class VATColumn:
    table_index: int
    name: str
    total: Decimal
    rows: int
    non_zero_rows: int


def header_tokens(header: str) -> set[str]:
    """Lowercased alphanumeric tokens of a header ("Item Tax Amt." -> item, tax, amt)."""
    return set(t for t in re.split(r'[^a-z0-9]+', str(header).lower()) if t)


def is_vat_column(header: str) -> bool:
    tokens = header_tokens(header)
    if tokens & EXCLUDED_TOKENS:
        return False
    return bool(tokens & TAX_TOKENS) and bool(tokens & AMOUNT_TOKENS)


def sum_vat_columns(frame: pd.DataFrame, table_index: int = 0) -> list[VATColumn]:
    """Sum every VAT column of one table. Unparseable cells are skipped."""
    columns = []
    for position, name in enumerate(frame.columns):
        if not is_vat_column(name):
            continue
        total = Decimal("0")
        parsed_rows = 0
        non_zero = 0
        for cell in frame.iloc[:, position]:
            amount = to_amount(cell)
            if amount is None:
                continue
            parsed_rows += 1
            total += amount
            if amount != 0:
                non_zero += 1
        columns.append(VATColumn(
            table_index=table_index,
            name=str(name),
            total=total,
            rows=parsed_rows,
            non_zero_rows=non_zero,
        ))
    return columns


class TabularStrategy:
    """Sum VAT/tax amount columns across every decoded table."""

    name = StrategyName.TABULAR

    def run(self, decoded: DecodedDocument) -> StrategyOutcome:
        if not decoded.tables:
            return StrategyOutcome(
                strategy=self.name,
                status=StrategyStatus.SKIPPED,
                reasons=["No tabular data"],
            )

        matched: list[VATColumn] = []
        for index, frame in enumerate(decoded.tables):
            matched.extend(sum_vat_columns(frame, table_index=index))

        if not matched:
            return StrategyOutcome(
                strategy=self.name,
                status=StrategyStatus.EMPTY,
                reasons=["No VAT/tax amount column in table headers"],
            )

        if not any(col.non_zero_rows for col in matched):
            return StrategyOutcome(
                strategy=self.name,
                status=StrategyStatus.EMPTY,
                reasons=[f"VAT columns found but all values are zero: {', '.join(c.name for c in matched)}"],
            )

        total = quantize_money(sum((col.total for col in matched), Decimal("0")))
        source = "columns:" + "+".join(col.name for col in matched)
        candidate = CandidateAmount(
            value=total,
            source_pattern=source,
            priority=1,
            strategy=self.name,
        )

        logger.info(
            "tabular_vat_summed",
            columns=[col.name for col in matched],
            column_totals=[str(col.total) for col in matched],
            total=str(total),
        )

        return StrategyOutcome(
            strategy=self.name,
            status=StrategyStatus.SUCCESS,
            candidates=[candidate],
            evidence=[candidate],
            reasons=[
                f"Summed {len(matched)} VAT column(s): "
                + ", ".join(f"{col.name}={col.total}" for col in matched)
            ],
        )
