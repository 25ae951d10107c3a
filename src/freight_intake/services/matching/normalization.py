"""Normalization and string similarity used by the matcher."""

from __future__ import annotations

import re
from typing import Optional

from rapidfuzz.distance import Levenshtein

_WHITESPACE_RE = re.compile(r"\s+")
_PARENTHETICAL_RE = re.compile(r"\([^)]*\)")
_NAME_PUNCT_RE = re.compile(r"[-_.]")
_NON_DIGIT_RE = re.compile(r"[^0-9]")


def normalize_phone(phone: Optional[str]) -> str:
    if not phone:
        return ""
    return _NON_DIGIT_RE.sub("", phone)


def is_valid_phone(phone: Optional[str], min_digits: int = 8) -> bool:
    return len(normalize_phone(phone)) >= min_digits


def normalize_name(name: Optional[str]) -> str:
    """Lowercase and drop whitespace, parenthetical suffixes, ``-``, ``_`` and ``.``."""
    if not name:
        return ""
    value = name.lower()
    value = _WHITESPACE_RE.sub("", value)
    value = _PARENTHETICAL_RE.sub("", value)
    return _NAME_PUNCT_RE.sub("", value)


def normalize_region(region: Optional[str]) -> str:
    if not region:
        return ""
    return _WHITESPACE_RE.sub("", region.lower())


def overlaps(a: str, b: str) -> bool:
    """True when both are non-empty and one equals or contains the other."""
    if not a or not b:
        return False
    return a == b or a in b or b in a


def normalized_similarity(a: str, b: str) -> float:
    """Similarity of two already-normalized strings."""
    if a == b:
        return 1.0
    if not a or not b:
        return 0.0
    max_len = max(len(a), len(b))
    return (max_len - Levenshtein.distance(a, b)) / max_len


def calculate_similarity(s1: Optional[str], s2: Optional[str]) -> float:
    """Levenshtein similarity of the normalized names, in ``[0, 1]``."""
    return normalized_similarity(normalize_name(s1), normalize_name(s2))
