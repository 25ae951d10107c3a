"""Header detection and column-role mapping."""

from __future__ import annotations

import re
from typing import Optional, Sequence

# Family order breaks ties between keywords found at the same position.
# Latin keywords must match a whole word; Hangul keywords match anywhere.
COLUMN_KEYWORDS: dict[str, tuple[str, ...]] = {
    "name": ("이름", "성명", "수령인", "받는분", "받는사람", "고객명", "name", "recipient", "consignee", "receiver"),
    "phone": ("연락처", "전화", "핸드폰", "휴대폰", "phone", "tel", "contact", "mobile"),
    "qty": ("수량", "qty", "quantity", "ctn", "pcs"),
    "weight": ("중량", "무게", "weight"),
    "courier": ("택배", "배송사", "courier", "carrier"),
    "arrival_date": ("입고일", "도착일", "날짜", "일자", "date", "arrival"),
    "region": ("지역", "동네", "region", "area", "city"),
    "address": ("주소", "address", "addr"),
    "nationality": ("국적", "nationality"),
    "classification": ("분류", "구분", "classification"),
    "invoice": ("송장", "운송장", "invoice", "tracking", "waybill"),
    "cargo_category": ("카테고리", "품목", "category"),
    "remark": ("비고", "메모", "remark", "memo", "note"),
    "feature": ("특징", "특이사항", "feature", "marking"),
    "cargo_desc": ("화물설명", "내용물", "설명", "description", "contents", "cargo"),
}

_TOKEN_RE = re.compile(r"[a-z]+|[0-9]+|[가-힣]+")
_DIGIT_RE = re.compile(r"\d")


def normalize_header(cell: str) -> str:
    return "".join(_TOKEN_RE.findall(cell.lower()))


def _keyword_position(keyword: str, compact: str, words: Sequence[tuple[int, str]]) -> int:
    if keyword.isascii():
        for offset, word in words:
            if word == keyword or word == f"{keyword}s":
                return offset
        return -1
    return compact.find(keyword)


def header_roles(cell: str) -> list[str]:
    """Return every role a header cell could belong to, head noun first.

    The keyword found furthest right wins, so ``받는분 전화`` is a phone
    column and ``Contact Name`` a name column.
    """
    words: list[tuple[int, str]] = []
    offset = 0
    for token in _TOKEN_RE.findall(cell.lower()):
        words.append((offset, token))
        offset += len(token)
    compact = "".join(token for _, token in words)
    if not compact:
        return []

    found: list[tuple[int, int, str]] = []
    for order, (role, keywords) in enumerate(COLUMN_KEYWORDS.items()):
        position = max(_keyword_position(keyword, compact, words) for keyword in keywords)
        if position >= 0:
            found.append((-position, order, role))
    return [role for _, _, role in sorted(found)]


def classify_header(cell: str) -> Optional[str]:
    """Return the column role a header cell belongs to, if any."""
    roles = header_roles(cell)
    return roles[0] if roles else None


def map_columns(cells: Sequence[str]) -> dict[str, int]:
    columns: dict[str, int] = {}
    for index, cell in enumerate(cells):
        for role in header_roles(cell):
            if role not in columns:
                columns[role] = index
                break
    return columns


def detect_header(cells: Sequence[str]) -> tuple[bool, dict[str, int]]:
    """Decide whether ``cells`` is a header row and map its columns.

    A row with a name column is a header. Without one it takes at least two
    mapped columns and no digits anywhere, so a first data row holding a
    weight, a count or a phone number is never swallowed.
    """
    columns = map_columns(cells)
    if "name" in columns:
        return True, columns
    if len(columns) >= 2 and not any(_DIGIT_RE.search(cell) for cell in cells):
        return True, columns
    return False, {}
