"""Multi-factor customer matching.

Each manifest row is scored against every active customer:

* phone match (either normalized number contains the other, both at least
  ``phone_min_digits`` long) scores 0.95, even when the names disagree;
* an exact normalized name scores 1.0;
* a fuzzy name (similarity >= 0.7) scores ``similarity * 0.9``;
* a region match lifts a name similarity >= 0.5 to ``(similarity + 0.1) * 0.9``.

The customer with the highest score wins; ties keep the first one seen.
"""

from __future__ import annotations

from typing import Optional, Sequence

from ...config import settings
from ...models.domain import (
    Customer,
    FieldDiff,
    MatchConfidence,
    MatchFactor,
    MatchResult,
    MatchStatus,
    SimilarCandidate,
)
from .normalization import (
    normalize_name,
    normalize_phone,
    normalize_region,
    normalized_similarity,
    overlaps,
)

FIELD_LABELS = {
    "phone": "연락처",
    "region": "지역",
    "address": "주소",
}


def score_customer(
    name: str,
    phone: Optional[str],
    region: Optional[str],
    customer: Customer,
    *,
    min_digits: Optional[int] = None,
) -> MatchConfidence:
    """Score one customer against a name/phone/region triple."""
    min_digits = min_digits or settings.phone_min_digits
    factors: list[MatchFactor] = []
    score = 0.0

    input_phone = normalize_phone(phone)
    customer_phone = normalize_phone(customer.phone)
    phone_match = (
        len(input_phone) >= min_digits
        and len(customer_phone) >= min_digits
        and (input_phone in customer_phone or customer_phone in input_phone)
    )
    if phone_match:
        factors.append("PHONE_MATCH")
        score = max(score, 0.95)

    name_score = normalized_similarity(normalize_name(name), normalize_name(customer.name))
    if name_score == 1.0:
        factors.append("EXACT_NAME")
        score = max(score, 1.0)
    elif name_score >= settings.fuzzy_name_threshold:
        factors.append("FUZZY_NAME")
        score = max(score, name_score * 0.9)

    region_score = 0.0
    if overlaps(normalize_region(region), normalize_region(customer.region)):
        factors.append("REGION_MATCH")
        region_score = 1.0
        if name_score >= settings.region_boost_min_similarity:
            score = max(score, (name_score + 0.1) * 0.9)

    return MatchConfidence(
        score=score,
        factors=tuple(factors),
        explanation=", ".join(factors),
        name_score=name_score,
        phone_score=1.0 if phone_match else 0.0,
        region_score=region_score,
    )


def status_for_score(score: float) -> MatchStatus:
    if score >= settings.verified_threshold:
        return "VERIFIED"
    if score >= settings.similar_threshold:
        return "SIMILAR"
    return "NEW_CUSTOMER"


def _candidate_reason(confidence: MatchConfidence) -> str:
    if "PHONE_MATCH" in confidence.factors:
        reason = "phone match"
    else:
        reason = f"name similarity {round(confidence.name_score * 100)}%"
    if "REGION_MATCH" in confidence.factors:
        reason += ", same region"
    return reason


def rank_candidates(
    name: str,
    phone: Optional[str],
    region: Optional[str],
    customers: Sequence[Customer],
    limit: Optional[int] = None,
) -> list[SimilarCandidate]:
    """Customers scoring at least the SIMILAR threshold, best first."""
    limit = settings.max_similar_candidates if limit is None else limit
    scored: list[tuple[float, int, Customer, MatchConfidence]] = []
    for position, customer in enumerate(customers):
        if not customer.is_active:
            continue
        confidence = score_customer(name, phone, region, customer)
        if confidence.score >= settings.similar_threshold:
            scored.append((confidence.score, position, customer, confidence))
    scored.sort(key=lambda item: (-item[0], item[1]))
    return [
        SimilarCandidate(customer=customer, similarity=round(score, 4), reason=_candidate_reason(confidence))
        for score, _, customer, confidence in scored[:limit]
    ]


def match_customer(
    name: str,
    phone: Optional[str],
    region: Optional[str],
    customers: Sequence[Customer],
) -> MatchResult:
    """Find the best matching customer and classify the match."""
    best_customer: Optional[Customer] = None
    best = MatchConfidence()

    for customer in customers:
        if not customer.is_active:
            continue
        confidence = score_customer(name, phone, region, customer)
        if confidence.score > best.score:
            best_customer = customer
            best = confidence

    status = status_for_score(best.score)
    if status == "NEW_CUSTOMER":
        return MatchResult(matched_customer=None, confidence=best, status=status)

    candidates: tuple[SimilarCandidate, ...] = ()
    if status == "SIMILAR":
        candidates = tuple(rank_candidates(name, phone, region, customers))
    return MatchResult(matched_customer=best_customer, confidence=best, status=status, candidates=candidates)


def find_name_match(name: str, customers: Sequence[Customer]) -> Optional[tuple[Customer, bool]]:
    """Return ``(customer, exact)`` for the first exact, else first partial, name match."""
    target = normalize_name(name)
    if not target:
        return None

    partial: Optional[Customer] = None
    for customer in customers:
        if not customer.is_active:
            continue
        candidate = normalize_name(customer.name)
        if not candidate:
            continue
        if candidate == target:
            return customer, True
        if partial is None and min(len(candidate), len(target)) >= 2 and (target in candidate or candidate in target):
            partial = customer
    if partial is not None:
        return partial, False
    return None


def diff_fields(
    customer: Customer,
    phone: Optional[str],
    region: Optional[str],
    address: Optional[str],
) -> tuple[FieldDiff, ...]:
    """Fields where the imported values disagree with the master record."""
    diffs: list[FieldDiff] = []
    comparisons = (
        ("phone", customer.phone, phone, normalize_phone),
        ("region", customer.region, region, normalize_region),
        ("address", customer.address_detail, address, normalize_region),
    )
    for field_name, master_value, imported_value, normalize in comparisons:
        master_norm = normalize(master_value)
        imported_norm = normalize(imported_value)
        if not master_norm or not imported_norm:
            continue
        if overlaps(master_norm, imported_norm):
            continue
        diffs.append(
            FieldDiff(
                field=field_name,
                label=FIELD_LABELS[field_name],
                master_value=(master_value or "").strip(),
                imported_value=(imported_value or "").strip(),
            )
        )
    return tuple(diffs)
