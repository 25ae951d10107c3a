"""Cell classification patterns for manifest rows."""

from __future__ import annotations

import re
from typing import Iterable, Optional

COURIER_PATTERNS: tuple[str, ...] = (
    # Korean carriers
    "로젠", "CJ", "씨제이", "한진", "우체국", "롯데", "쿠팡",
    "경동", "대신", "합동", "건영", "천일", "용차", "직배",
    # Latin spellings
    "LOGEN", "HANJIN", "COUPANG", "POST", "YONGCHA",
    # Generic delivery words
    "택배", "배송", "퀵", "화물",
)

# Most specific first; the first pattern that finds a number wins.
PHONE_PATTERNS: tuple[re.Pattern[str], ...] = (
    re.compile(r"01[0-9]-?\d{3,4}-?\d{4}"),  # domestic mobile
    re.compile(r"02-?\d{3,4}-?\d{4}"),  # Seoul landline
    re.compile(r"0[3-6][1-9]-?\d{3,4}-?\d{4}"),  # regional landline
    re.compile(r"070-?\d{3,4}-?\d{4}"),  # VoIP
    re.compile(r"050[0-9]-?\d{3,4}-?\d{4}"),  # relay numbers
    re.compile(r"0[1-9]{2}\s?\d{3}\s?\d{3,4}"),  # Cambodian local
    re.compile(r"\+855\s?\d{2,3}\s?\d{3}\s?\d{3,4}"),  # Cambodian international
    re.compile(r"\+82\s?\d{1,2}\s?\d{3,4}\s?\d{4}"),  # Korean international
    re.compile(r"(?<!\d)\d{10,11}(?!\d)"),  # bare digits
)

QTY_RE = re.compile(r"\d+")
NUMBER_RE = re.compile(r"\d+\.?\d*")
HANGUL_RE = re.compile(r"[가-힣]")
ENGLISH_NAME_RE = re.compile(r"(Mr|Ms|Mrs|Miss)?\.?\s*[A-Z][a-z]+")
PARENTHETICAL_RE = re.compile(r"\(([^)]+)\)")


def is_courier(text: str) -> bool:
    upper = text.strip().upper()
    if not upper:
        return False
    for pattern in COURIER_PATTERNS:
        if pattern in upper:
            return True
        # "CJ대한통운" contains CJ; a bare "한" must not count as 한진
        if len(upper) >= 2 and upper in pattern:
            return True
    return False


def extract_phone(text: Optional[str]) -> Optional[str]:
    if not text:
        return None
    for pattern in PHONE_PATTERNS:
        match = pattern.search(text)
        if match:
            return match.group(0).strip()
    return None


def extract_phone_from(fields: Iterable[Optional[str]]) -> Optional[str]:
    """Return the first phone number found, scanning ``fields`` in order."""
    for value in fields:
        phone = extract_phone(value)
        if phone:
            return phone
    return None


def is_number(text: str) -> bool:
    return bool(NUMBER_RE.fullmatch(text))


def looks_like_name(text: str) -> bool:
    """Heuristic recipient-name test: Hangul, a capitalised Latin word, or 3+ characters."""
    if not text or len(text) < 2:
        return False
    if is_number(text) or is_courier(text):
        return False
    if HANGUL_RE.search(text):
        return True
    if ENGLISH_NAME_RE.match(text):
        return True
    return len(text) >= 3


def region_from_name(name: str) -> Optional[str]:
    match = PARENTHETICAL_RE.search(name)
    if match:
        region = match.group(1).strip()
        return region or None
    return None


def parse_qty(text: str) -> Optional[int]:
    match = QTY_RE.search(text.replace(",", ""))
    if not match:
        return None
    value = int(match.group(0))
    return value if value >= 1 else None


def parse_weight(text: str) -> Optional[float]:
    cleaned = text.replace(",", "").lower().replace("kg", "").strip()
    if not is_number(cleaned):
        return None
    value = float(cleaned)
    return value if value > 0 else None
