"""Convert uploaded spreadsheets into the tab-separated text the parser reads."""

from __future__ import annotations

import csv
import zipfile
from datetime import date, datetime
from io import BytesIO, StringIO
from pathlib import Path
from typing import Any, Iterable

from openpyxl import load_workbook
from openpyxl.utils.exceptions import InvalidFileException

SUPPORTED_SUFFIXES = {".xlsx", ".csv", ".tsv", ".txt"}


def _cell_text(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, datetime):
        return value.date().isoformat()
    if isinstance(value, date):
        return value.isoformat()
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value).replace("\t", " ").replace("\n", " ")


def _join_rows(rows: Iterable[Iterable[Any]]) -> str:
    return "\n".join("\t".join(_cell_text(cell) for cell in row) for row in rows)


def rows_from_workbook(payload: bytes) -> str:
    """Read the active sheet of an ``.xlsx`` workbook as tab-separated text."""
    try:
        workbook = load_workbook(filename=BytesIO(payload), read_only=True, data_only=True)
    except (InvalidFileException, zipfile.BadZipFile, KeyError, OSError) as exc:
        raise ValueError(f"Could not read the uploaded workbook: {exc}") from exc
    try:
        worksheet = workbook.active
        return _join_rows(worksheet.iter_rows(values_only=True))
    finally:
        workbook.close()


def rows_from_csv(payload: bytes) -> str:
    text = payload.decode("utf-8-sig")
    return _join_rows(csv.reader(StringIO(text)))


def upload_to_text(filename: str, payload: bytes) -> str:
    suffix = Path(filename).suffix.lower()
    if suffix not in SUPPORTED_SUFFIXES:
        raise ValueError(f"Unsupported manifest file type '{suffix or filename}'.")
    if suffix == ".xlsx":
        return rows_from_workbook(payload)
    if suffix == ".csv":
        return rows_from_csv(payload)
    return payload.decode("utf-8-sig")
