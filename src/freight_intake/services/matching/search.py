"""Customer lookup for the manual candidate picker."""

from __future__ import annotations

from typing import Sequence

from ...models.domain import Customer

CHOSUNG = (
    "ㄱ", "ㄲ", "ㄴ", "ㄷ", "ㄸ", "ㄹ", "ㅁ", "ㅂ", "ㅃ", "ㅅ",
    "ㅆ", "ㅇ", "ㅈ", "ㅉ", "ㅊ", "ㅋ", "ㅌ", "ㅍ", "ㅎ",
)
_HANGUL_START = 0xAC00
_HANGUL_END = 0xD7A3
_SYLLABLES_PER_INITIAL = 588


def initial_consonants(text: str) -> str:
    """``고관영`` -> ``ㄱㄱㅇ``; non-Hangul characters are lowercased and kept."""
    out: list[str] = []
    for char in text:
        code = ord(char)
        if _HANGUL_START <= code <= _HANGUL_END:
            out.append(CHOSUNG[(code - _HANGUL_START) // _SYLLABLES_PER_INITIAL])
        else:
            out.append(char.lower())
    return "".join(out)


def matches_search(name: str, term: str) -> bool:
    needle = term.strip().lower()
    if not needle:
        return False
    if needle in name.lower():
        return True
    if all(char in CHOSUNG for char in needle):
        return needle in initial_consonants(name)
    return False


def search_customers(term: str, customers: Sequence[Customer], limit: int = 20) -> list[Customer]:
    results: list[Customer] = []
    for customer in customers:
        if not customer.is_active:
            continue
        if matches_search(customer.name, term) or (customer.name_en and matches_search(customer.name_en, term)):
            results.append(customer)
            if len(results) >= limit:
                break
    return results
