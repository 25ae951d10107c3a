"""Manifest parsing."""

from .columns import detect_header
from .parser import iter_row_chunks, parse_manifest, parse_manifest_async, split_cells
from .patterns import extract_phone, is_courier, looks_like_name
from .uploads import rows_from_workbook, upload_to_text

__all__ = [
    "detect_header",
    "extract_phone",
    "is_courier",
    "iter_row_chunks",
    "looks_like_name",
    "parse_manifest",
    "parse_manifest_async",
    "rows_from_workbook",
    "split_cells",
    "upload_to_text",
]
