"""Cell cleaning helpers for pasted spreadsheet text.

Pasted cells routinely carry HTML fragments from web views, zero-width
characters from messengers, and error tokens left over from broken
formulas. Everything here is pure and never raises.
"""

from __future__ import annotations

import html
import re
from datetime import date, timedelta
from typing import Any

SPREADSHEET_EPOCH = date(1899, 12, 30)

_TAG_RE = re.compile(r"<[^>]*>")
_INVISIBLE_RE = re.compile(r"[\u200b-\u200f\u2060-\u2064\ufeff\u00ad]")
_FORMULA_ERROR_RE = re.compile(
    r"#(?:N/A|REF!|VALUE!|DIV/0!|NAME\?|NUM!|NULL!|ERROR!|SPILL!|CALC!|GETTING_DATA)",
    re.IGNORECASE,
)
_SERIAL_RE = re.compile(r"\d{5}")
_YMD_RE = re.compile(r"(\d{4})\s*[.\-/]\s*(\d{1,2})\s*[.\-/]\s*(\d{1,2})\.?")


def is_formula_error(text: str) -> bool:
    return bool(_FORMULA_ERROR_RE.fullmatch(text.strip()))


def clean(text: Any) -> str:
    """Return ``text`` stripped of tags, invisible characters and error tokens."""
    if text is None:
        return ""
    value = str(text)
    value = _TAG_RE.sub("", value)
    value = html.unescape(value)
    value = _INVISIBLE_RE.sub("", value)
    value = value.replace("\u00a0", " ").strip()
    if is_formula_error(value):
        return ""
    return value


def parse_date(text: Any) -> str:
    """Normalize a date cell to ``YYYY-MM-DD`` when it is recognisable.

    Five-digit integers are spreadsheet serials counted from 1899-12-30.
    ``2025.1.5``, ``2025/01/05`` and ``2025-1-05`` become ``2025-01-05``.
    Anything else comes back cleaned but otherwise unchanged.
    """
    value = clean(text)
    if not value:
        return value

    if _SERIAL_RE.fullmatch(value):
        return (SPREADSHEET_EPOCH + timedelta(days=int(value))).isoformat()

    match = _YMD_RE.fullmatch(value)
    if match:
        year, month, day = (int(part) for part in match.groups())
        try:
            return date(year, month, day).isoformat()
        except ValueError:
            return value
    return value


def looks_like_date(text: str) -> bool:
    value = clean(text)
    return bool(value) and parse_date(value) != value
