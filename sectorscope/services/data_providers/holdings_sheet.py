"""Fund holdings workbook parsing.

Issuer holdings files open with a few rows of fund metadata before the
table itself, so the header row is located by content rather than position.
"""

from __future__ import annotations

import zipfile
from io import BytesIO
from typing import Any, Optional

from openpyxl import load_workbook

from sectorscope.core.exceptions import InvalidPayloadError
from sectorscope.core.logging import get_logger
from sectorscope.domain import Holding

logger = get_logger("holdings_sheet")

PLACEHOLDER_TICKERS = frozenset({"", "-", "--", "N/A", "NA", "CASH", "CASH_USD", "USD"})


def _cell_text(value: Any) -> str:
    return str(value).strip() if value is not None else ""


def _find_column(header: list[str], name: str) -> Optional[int]:
    for i, cell in enumerate(header):
        if cell.lower() == name:
            return i
    return None


def _parse_weight(value: Any) -> float:
    if value is None:
        return 0.0
    if isinstance(value, (int, float)):
        weight = float(value)
    else:
        text = str(value).strip().rstrip("%").replace(",", "")
        try:
            weight = float(text)
        except ValueError:
            return 0.0
    return weight if weight > 0 else 0.0


def parse_holdings_rows(rows: list[tuple[Any, ...]]) -> list[Holding]:
    """
    Turn sheet rows into holdings.

    The header is the first row with a cell reading "ticker" (any case).
    "weight" and "name" columns are optional; weight is a percent of fund
    and 0 when unknown.

    Raises:
        InvalidPayloadError: No header row
    """
    header_at = None
    header: list[str] = []
    for i, row in enumerate(rows):
        cells = [_cell_text(v) for v in row]
        if any(c.lower() == "ticker" for c in cells):
            header_at, header = i, cells
            break
    if header_at is None:
        raise InvalidPayloadError("Holdings sheet has no ticker header")

    ticker_col = _find_column(header, "ticker")
    weight_col = _find_column(header, "weight")
    name_col = _find_column(header, "name")

    holdings: list[Holding] = []
    seen: set[str] = set()
    for row in rows[header_at + 1:]:
        if ticker_col >= len(row):
            continue
        ticker = _cell_text(row[ticker_col]).upper()
        if ticker in PLACEHOLDER_TICKERS or ticker in seen:
            continue
        seen.add(ticker)
        weight = _parse_weight(row[weight_col]) if weight_col is not None and weight_col < len(row) else 0.0
        name = _cell_text(row[name_col]) if name_col is not None and name_col < len(row) else ""
        holdings.append(Holding(ticker=ticker, name=name, weight=weight))
    return holdings


def parse_holdings_sheet(content: bytes) -> list[Holding]:
    """Parse the first worksheet of an xlsx holdings workbook."""
    try:
        workbook = load_workbook(BytesIO(content), read_only=True, data_only=True)
    except (zipfile.BadZipFile, KeyError, ValueError, OSError) as e:
        raise InvalidPayloadError(f"Unreadable holdings workbook: {e}")

    try:
        sheet = workbook.worksheets[0]
        rows = [tuple(row) for row in sheet.iter_rows(values_only=True)]
    finally:
        workbook.close()

    holdings = parse_holdings_rows(rows)
    logger.debug(f"Parsed {len(holdings)} holdings from {len(rows)} rows")
    return holdings
