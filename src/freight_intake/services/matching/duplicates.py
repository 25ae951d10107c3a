"""Same-batch duplicate detection."""

from __future__ import annotations

from typing import Optional, Sequence

from ...config import settings
from ...models.domain import DuplicateGroup, MatchConfidence, ParsedRow
from .normalization import normalize_name, normalize_phone


def detect_duplicate_groups(rows: Sequence[ParsedRow], min_digits: Optional[int] = None) -> list[DuplicateGroup]:
    """Group rows that share a normalized phone number.

    Rows with fewer than ``min_digits`` digits never join a group. The
    first row of a group (in input order) is its primary row.
    """
    min_digits = min_digits or settings.phone_min_digits
    by_phone: dict[str, list[ParsedRow]] = {}
    for row in rows:
        phone = normalize_phone(row.phone)
        if len(phone) >= min_digits:
            by_phone.setdefault(phone, []).append(row)

    groups: list[DuplicateGroup] = []
    for phone, members in by_phone.items():
        if len(members) < 2:
            continue
        groups.append(
            DuplicateGroup(
                group_id=f"dup-{len(groups) + 1}",
                primary_row_index=members[0].row_index,
                member_row_indices=[row.row_index for row in members],
                merged_quantity=sum(row.qty for row in members),
                phone=phone,
                kind="phone",
                confidence=MatchConfidence(
                    score=0.95,
                    factors=("PHONE_MATCH",),
                    explanation=f"same phone ({phone})",
                    phone_score=1.0,
                ),
            )
        )
    return groups


def detect_name_duplicates(entries: Sequence[tuple[int, str, int]]) -> list[DuplicateGroup]:
    """Group ``(row_index, name, qty)`` entries whose normalized names are identical."""
    by_name: dict[str, list[tuple[int, int]]] = {}
    for row_index, name, qty in entries:
        key = normalize_name(name)
        if key:
            by_name.setdefault(key, []).append((row_index, qty))

    groups: list[DuplicateGroup] = []
    for members in by_name.values():
        if len(members) < 2:
            continue
        groups.append(
            DuplicateGroup(
                group_id=f"name-{len(groups) + 1}",
                primary_row_index=members[0][0],
                member_row_indices=[row_index for row_index, _ in members],
                merged_quantity=sum(qty for _, qty in members),
                kind="name",
            )
        )
    return groups
