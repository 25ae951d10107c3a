"""Pure state transitions for staging records.

Every function takes a record (plus whatever the event carries) and returns
a new record; nothing here reads settings-dependent state beyond matching
thresholds or touches persistence.
"""

from __future__ import annotations

from dataclasses import replace
from typing import NamedTuple, Optional, Sequence

from ...config import settings
from ...models.domain import (
    Conflict,
    ConflictResolution,
    Customer,
    EditedFields,
    MatchConfidence,
    MatchStatus,
    ParsedRow,
    SimilarCandidate,
    StagingRecord,
    WarningFlag,
)
from ..matching.matcher import diff_fields, find_name_match, match_customer, score_customer
from ..matching.normalization import normalize_name
from .errors import InvalidTransitionError

_DIFF_FLAGS: dict[str, WarningFlag] = {
    "phone": "PHONE_MISMATCH",
    "region": "REGION_MISMATCH",
}


class Outcome(NamedTuple):
    status: MatchStatus
    customer: Optional[Customer]
    confidence: MatchConfidence
    candidates: tuple[SimilarCandidate, ...] = ()
    conflict: Optional[Conflict] = None


def new_record(row: ParsedRow, staging_id: str) -> StagingRecord:
    return StagingRecord(
        staging_id=staging_id,
        raw=row,
        edited=EditedFields(name=row.raw_name, phone=row.phone, region=row.region, address=row.address),
        match_status="NEW_CUSTOMER",
    )


def _name_outcome(edited: EditedFields, customer: Customer, exact: bool) -> Outcome:
    confidence = score_customer(edited.name, edited.phone, edited.region, customer)
    diffs = diff_fields(customer, edited.phone, edited.region, edited.address)
    if diffs:
        return Outcome("CONFLICT", customer, confidence, conflict=Conflict(customer_id=customer.customer_id, fields=diffs))
    if not exact:
        confidence = replace(
            confidence,
            score=max(confidence.score, settings.verified_threshold),
            factors=confidence.factors + ("PARTIAL_NAME",),
            explanation=", ".join(confidence.factors + ("PARTIAL_NAME",)),
        )
    return Outcome("VERIFIED", customer, confidence)


def classify(edited: EditedFields, customers: Sequence[Customer]) -> Outcome:
    """Decide status, customer and conflict for the given (edited) fields.

    An exact name match is checked field by field first, so a known
    customer with a different phone, region or address is a CONFLICT
    rather than a silent VERIFIED. Phone matches come next, then partial
    name matches, then the plain scorer result.
    """
    name_match = find_name_match(edited.name, customers)
    if name_match and name_match[1]:
        return _name_outcome(edited, name_match[0], exact=True)

    result = match_customer(edited.name, edited.phone, edited.region, customers)
    if result.status == "VERIFIED":
        return Outcome("VERIFIED", result.matched_customer, result.confidence)
    if name_match:
        return _name_outcome(edited, name_match[0], exact=False)
    return Outcome(result.status, result.matched_customer, result.confidence, result.candidates)


def _warning_flags(record: StagingRecord, customer: Optional[Customer]) -> tuple[WarningFlag, ...]:
    kept = tuple(flag for flag in record.warning_flags if flag not in _DIFF_FLAGS.values())
    if customer is None:
        return kept
    edited = record.edited
    diffs = diff_fields(customer, edited.phone, edited.region, edited.address)
    return kept + tuple(_DIFF_FLAGS[diff.field] for diff in diffs if diff.field in _DIFF_FLAGS)


def evaluate(record: StagingRecord, customers: Sequence[Customer]) -> StagingRecord:
    """Re-run matching for one record from its edited fields."""
    outcome = classify(record.edited, customers)
    verified = outcome.status == "VERIFIED"
    updated = replace(
        record,
        match_status=outcome.status,
        matched_customer=outcome.customer,
        confidence=outcome.confidence,
        similar_candidates=outcome.candidates if outcome.status == "SIMILAR" else (),
        conflict=outcome.conflict,
        warning_flags=tuple(flag for flag in record.warning_flags if flag == "DUPLICATE_NAME"),
        is_selected=verified,
        is_resolved=verified,
    )
    return replace(updated, warning_flags=_warning_flags(updated, outcome.customer))


def mark_duplicate(
    record: StagingRecord,
    group_id: str,
    customer: Optional[Customer] = None,
    flag: Optional[WarningFlag] = None,
) -> StagingRecord:
    flags = tuple(f for f in record.warning_flags if f != "DUPLICATE_NAME")
    if flag:
        flags += (flag,)
    return replace(
        record,
        match_status="DUPLICATE",
        matched_customer=customer,
        confidence=MatchConfidence(),
        similar_candidates=(),
        conflict=None,
        duplicate_group_id=group_id,
        warning_flags=flags,
        is_selected=False,
        is_resolved=False,
    )


def apply_edit(
    record: StagingRecord,
    customers: Sequence[Customer],
    *,
    name: Optional[str] = None,
    phone: Optional[str] = None,
    region: Optional[str] = None,
    address: Optional[str] = None,
) -> StagingRecord:
    """Apply user corrections and re-match; a duplicate row leaves its group."""
    edited = record.edited
    if name is not None:
        name = name.strip()
        if not name:
            raise InvalidTransitionError("Name cannot be empty.")
    edited = EditedFields(
        name=edited.name if name is None else name,
        phone=edited.phone if phone is None else (phone.strip() or None),
        region=edited.region if region is None else (region.strip() or None),
        address=edited.address if address is None else (address.strip() or None),
    )
    updated = replace(record, edited=edited)
    if record.match_status == "DUPLICATE":
        updated = replace(
            updated,
            duplicate_group_id=None,
            warning_flags=tuple(f for f in record.warning_flags if f != "DUPLICATE_NAME"),
        )
    return evaluate(updated, customers)


def select_candidate(record: StagingRecord, customer: Customer) -> StagingRecord:
    if record.match_status == "DUPLICATE":
        raise InvalidTransitionError("Duplicate rows follow their primary row and cannot be linked directly.")
    edited = record.edited
    updated = replace(
        record,
        match_status="VERIFIED",
        matched_customer=customer,
        confidence=score_customer(edited.name, edited.phone, edited.region, customer),
        similar_candidates=(),
        conflict=None,
        is_selected=True,
        is_resolved=True,
    )
    return replace(updated, warning_flags=_warning_flags(updated, customer))


def registration_applies(record: StagingRecord, customer: Customer) -> bool:
    """A new customer satisfies every open row whose name equals or is contained in its name."""
    if record.match_status not in ("NEW_CUSTOMER", "SIMILAR"):
        return False
    record_name = normalize_name(record.edited.name)
    customer_name = normalize_name(customer.name)
    return bool(record_name) and record_name in customer_name


def register_customer(record: StagingRecord, customer: Customer) -> StagingRecord:
    """Link a newly registered customer; records it does not apply to come back unchanged."""
    if not registration_applies(record, customer):
        return record
    edited = record.edited
    return replace(
        record,
        match_status="VERIFIED",
        matched_customer=customer,
        confidence=score_customer(edited.name, edited.phone, edited.region, customer),
        similar_candidates=(),
        conflict=None,
        is_selected=True,
        is_resolved=True,
    )


def resolve_conflict(record: StagingRecord, resolution: ConflictResolution) -> StagingRecord:
    if record.match_status != "CONFLICT" or record.conflict is None:
        raise InvalidTransitionError(f"Record '{record.staging_id}' has no conflict to resolve.")
    if resolution not in ("UPDATE_MASTER", "USE_ONCE"):
        raise InvalidTransitionError(f"Unsupported conflict resolution '{resolution}'.")
    return replace(
        record,
        conflict=replace(record.conflict, resolution=resolution),
        is_selected=True,
        is_resolved=True,
    )


def link_duplicates(members: Sequence[StagingRecord], customer: Optional[Customer]) -> list[StagingRecord]:
    """Point duplicate rows at their primary's customer; returns only the rows that changed."""
    return [
        replace(member, matched_customer=customer)
        for member in members
        if member.matched_customer != customer
    ]
