"""Manifest parser for pasted packing lists.

Input is whatever an operator copies out of a spreadsheet or chat window:
tab-separated or space-aligned, with or without a header, with the
recipient name anywhere in the row. Output is one ``ParsedRow`` per line
that has a recipient name; everything else becomes a warning.
"""

from __future__ import annotations

import asyncio
import logging
import re
from typing import Iterator, Literal, Optional, Sequence

from ...config import settings
from ...models.domain import ParsedRow, ParseResult
from ..sanitizer import clean, looks_like_date, parse_date
from .columns import detect_header
from .patterns import (
    extract_phone,
    extract_phone_from,
    is_courier,
    is_number,
    looks_like_name,
    parse_qty,
    parse_weight,
    region_from_name,
)

Delimiter = Literal["TAB", "SPACE"]

_GHOST_RE = re.compile(r"[\s,]*")
_SPACE_RUN_RE = re.compile(r"\s{2,}")

# Roles read straight from a mapped column as cleaned text.
_TEXT_ROLES = (
    "courier",
    "region",
    "address",
    "nationality",
    "classification",
    "feature",
    "invoice",
    "cargo_category",
    "cargo_desc",
    "remark",
)


def _content_lines(raw_text: str) -> list[tuple[int, str]]:
    """Return ``(line_number, line)`` pairs, dropping ghost rows."""
    lines: list[tuple[int, str]] = []
    for number, line in enumerate(raw_text.splitlines(), start=1):
        if _GHOST_RE.fullmatch(line):
            continue
        lines.append((number, line))
    return lines


def split_cells(line: str, delimiter: Delimiter) -> list[str]:
    if delimiter == "TAB":
        # Positions matter for header mapping, so empty cells are kept.
        return [clean(cell) for cell in line.rstrip("\r\n").split("\t")]
    return [clean(cell) for cell in _SPACE_RUN_RE.split(line.strip()) if cell.strip()]


def _cell(cells: Sequence[str], index: Optional[int]) -> str:
    if index is None or index < 0 or index >= len(cells):
        return ""
    return cells[index]


def _row_from_columns(line_number: int, cells: list[str], columns: dict[str, int]) -> Optional[ParsedRow]:
    name = _cell(cells, columns.get("name"))
    if not name:
        return None

    values: dict[str, Optional[str]] = {role: _cell(cells, columns.get(role)) or None for role in _TEXT_ROLES}

    qty = parse_qty(_cell(cells, columns.get("qty"))) or 1
    weight = parse_weight(_cell(cells, columns.get("weight")))
    arrival_date = parse_date(_cell(cells, columns.get("arrival_date"))) or None

    phone_cell = _cell(cells, columns.get("phone"))
    phone: Optional[str] = None
    if phone_cell:
        phone = extract_phone(phone_cell) or (phone_cell if any(ch.isdigit() for ch in phone_cell) else None)
    if not phone:
        phone = extract_phone_from(
            (values["feature"], values["remark"], values["cargo_desc"], " ".join(cell for cell in cells if cell))
        )

    region = values["region"] or region_from_name(name)

    return ParsedRow(
        row_index=line_number,
        raw_name=name,
        qty=qty,
        phone=phone,
        region=region,
        address=values["address"],
        weight=weight,
        courier=values["courier"],
        nationality=values["nationality"],
        classification=values["classification"],
        feature=values["feature"],
        invoice=values["invoice"],
        cargo_category=values["cargo_category"],
        cargo_desc=values["cargo_desc"],
        remark=values["remark"],
        arrival_date=arrival_date,
        raw_cells=tuple(cells),
    )


def _row_from_heuristics(line_number: int, cells: list[str]) -> Optional[ParsedRow]:
    """Classify cells left to right when no header tells us the layout."""
    courier: Optional[str] = None
    qty: Optional[int] = None
    weight: Optional[float] = None
    phone: Optional[str] = None
    arrival_date: Optional[str] = None
    name = ""
    remarks: list[str] = []

    for cell in cells:
        if not cell:
            continue
        if courier is None and is_courier(cell):
            courier = cell
            continue
        if qty is None and cell.isascii() and cell.isdigit() and 1 <= int(cell) <= 999:
            qty = int(cell)
            continue
        if arrival_date is None and looks_like_date(cell):
            arrival_date = parse_date(cell)
            continue
        if weight is None and is_number(cell) and 0 < float(cell) < 10000:
            weight = float(cell)
            continue
        if phone is None:
            found = extract_phone(cell)
            if found:
                phone = found
                continue
        if not name and looks_like_name(cell):
            name = cell
            continue
        if name:
            remarks.append(cell)

    if not name:
        for cell in cells:
            if cell and not is_number(cell) and not is_courier(cell):
                name = cell
                break
    if not name:
        return None

    remark = " ".join(remarks) or None
    if phone is None:
        phone = extract_phone_from((remark, " ".join(cell for cell in cells if cell)))

    return ParsedRow(
        row_index=line_number,
        raw_name=name,
        qty=qty or 1,
        phone=phone,
        region=region_from_name(name),
        weight=weight,
        courier=courier,
        remark=remark,
        arrival_date=arrival_date,
        raw_cells=tuple(cells),
    )


def iter_row_chunks(raw_text: str, result: ParseResult, chunk_size: Optional[int] = None) -> Iterator[list[ParsedRow]]:
    """Parse ``raw_text`` into ``result`` and yield after every chunk of rows.

    ``result`` is filled in place (header flags, columns, warnings) so the
    caller can resume between chunks and still read the full outcome.
    """
    size = chunk_size or settings.parse_chunk_size
    lines = _content_lines(raw_text or "")
    if not lines:
        result.warnings.append("No data to parse.")
        return

    result.delimiter = "TAB" if "\t" in raw_text else "SPACE"
    first_cells = split_cells(lines[0][1], result.delimiter)
    has_header, columns = detect_header(first_cells)
    result.has_header = has_header
    if has_header:
        result.headers = tuple(first_cells)
        result.columns = columns
        lines = lines[1:]
        if "name" not in columns:
            result.warnings.append("Header row has no name column; detecting columns per row.")

    chunk: list[ParsedRow] = []
    for line_number, line in lines:
        cells = split_cells(line, result.delimiter)
        if not any(cells):
            continue
        if "name" in result.columns:
            row = _row_from_columns(line_number, cells, result.columns)
        else:
            row = _row_from_heuristics(line_number, cells)

        if row is None:
            result.warnings.append(f"Row {line_number}: no recipient name found.")
            continue

        chunk.append(row)
        if len(chunk) >= size:
            result.rows.extend(chunk)
            yield chunk
            chunk = []

    if chunk:
        result.rows.extend(chunk)
        yield chunk


def parse_manifest(raw_text: str, chunk_size: Optional[int] = None) -> ParseResult:
    result = ParseResult(rows=[], has_header=False)
    for _ in iter_row_chunks(raw_text, result, chunk_size):
        pass
    _log_result(result)
    return result


async def parse_manifest_async(raw_text: str, chunk_size: Optional[int] = None) -> ParseResult:
    """Same as :func:`parse_manifest`, handing control back to the loop between chunks."""
    result = ParseResult(rows=[], has_header=False)
    for _ in iter_row_chunks(raw_text, result, chunk_size):
        await asyncio.sleep(0)
    _log_result(result)
    return result


def _log_result(result: ParseResult) -> None:
    for warning in result.warnings:
        logging.debug(f"Manifest parse warning: {warning}")
    logging.info(
        f"Parsed manifest: {len(result.rows)} rows, header={'yes' if result.has_header else 'no'}, "
        f"{len(result.warnings)} warnings"
    )
