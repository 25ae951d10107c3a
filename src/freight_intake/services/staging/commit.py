"""Batched commit of eligible staging records."""

from __future__ import annotations

import logging
from typing import Callable, Iterable, Iterator, Optional, Sequence, TypeVar

from ...config import settings
from ...models.domain import CommitResult, ShipmentRecord, StagingRecord
from ...persistence.base import IntakeBackend
from .errors import BackendNotConfiguredError

logger = logging.getLogger(__name__)

T = TypeVar("T")

ProgressCallback = Callable[[int, str], None]

# Master column written for each conflicting field.
MASTER_COLUMNS = {
    "phone": "phone",
    "region": "region",
    "address": "address_detail",
}


def chunked(items: Sequence[T], size: int) -> Iterator[list[T]]:
    if size < 1:
        raise ValueError("Batch size must be at least 1.")
    for start in range(0, len(items), size):
        yield list(items[start:start + size])


def _memo(record: StagingRecord) -> Optional[str]:
    parts: list[str] = []
    if record.raw.courier:
        parts.append(f"courier: {record.raw.courier}")
    if record.raw.weight is not None:
        parts.append(f"weight: {record.raw.weight:g}kg")
    return ", ".join(parts) or None


def build_shipment(record: StagingRecord, *, voyage_id: Optional[str] = None, quantity: Optional[int] = None) -> ShipmentRecord:
    """Snapshot the matched customer onto a shipment row.

    When a conflict was resolved the row carries the imported values;
    otherwise master values win and imported values only fill gaps.
    """
    customer = record.matched_customer
    edited = record.edited
    use_imported = record.conflict is not None and record.conflict.resolution != "PENDING"

    def pick(master_value: Optional[str], imported_value: Optional[str]) -> str:
        if use_imported:
            return imported_value or master_value or ""
        return master_value or imported_value or ""

    return ShipmentRecord(
        staging_id=record.staging_id,
        voyage_id=voyage_id,
        customer_id=customer.customer_id if customer else None,
        customer_name=customer.name if customer else edited.name,
        pod_code=customer.pod_code if customer else 0,
        quantity=record.raw.qty if quantity is None else quantity,
        phone=pick(customer.phone if customer else None, edited.phone),
        region=pick(customer.region if customer else None, edited.region),
        address=pick(customer.address_detail if customer else None, edited.address),
        discount_percent=customer.discount_percent if customer else 0.0,
        discount_reason=customer.discount_info if customer else None,
        weight=record.raw.weight,
        courier=record.raw.courier,
        arrival_date=record.raw.arrival_date,
        invoice=record.raw.invoice,
        cargo_category=record.raw.cargo_category,
        cargo_desc=record.raw.cargo_desc,
        memo=_memo(record),
        raw_input=record.raw.raw_text,
        warning_flags=tuple(record.warning_flags),
    )


def _apply_master_updates(records: Iterable[StagingRecord], backend: IntakeBackend) -> int:
    """Push UPDATE_MASTER resolutions to the directory. Failures are logged, not fatal."""
    updated = 0
    for record in records:
        conflict = record.conflict
        if conflict is None or conflict.resolution != "UPDATE_MASTER":
            continue
        fields = {MASTER_COLUMNS[diff.field]: diff.imported_value for diff in conflict.fields if diff.field in MASTER_COLUMNS}
        if not fields:
            continue
        try:
            backend.update_customer_fields(conflict.customer_id, fields)
            updated += 1
        except Exception as e:
            logger.warning(f"Failed to update master customer {conflict.customer_id}: {e}")
    return updated


def commit_records(
    records: Sequence[StagingRecord],
    backend: Optional[IntakeBackend],
    *,
    voyage_id: Optional[str] = None,
    quantities: Optional[dict[str, int]] = None,
    batch_size: Optional[int] = None,
    on_progress: Optional[ProgressCallback] = None,
) -> CommitResult:
    """Write every eligible record as a shipment, one batch at a time.

    A failed batch is recorded and the remaining batches still run; only
    records in successful batches end up in ``committed_ids``.

    Args:
        records: Staging records in row order. Ineligible ones are skipped.
        backend: Persistence backend; ``None`` means not configured.
        voyage_id: Voyage the shipments belong to.
        quantities: Optional per-record quantity overrides (merged duplicates).
        batch_size: Rows per write, defaults to ``settings.commit_batch_size``.
        on_progress: Called after each batch with ``(percent, message)``.
    """
    if backend is None:
        logger.error("Commit requested but no persistence backend is configured")
        raise BackendNotConfiguredError("Persistence backend is not configured; nothing was written.")

    batch_size = batch_size or settings.commit_batch_size
    quantities = quantities or {}
    eligible = [record for record in records if record.is_eligible]
    result = CommitResult()
    if not eligible:
        return result

    result.master_updates = _apply_master_updates(eligible, backend)

    shipments = [
        build_shipment(record, voyage_id=voyage_id, quantity=quantities.get(record.staging_id))
        for record in eligible
    ]
    batches = list(chunked(shipments, batch_size))
    result.batch_count = len(batches)
    logger.info(f"Committing {len(eligible)} eligible records in {len(batches)} batches")

    for index, batch in enumerate(batches, start=1):
        try:
            outcome = backend.commit_shipments(batch)
        except Exception as e:
            logger.warning(f"Commit batch {index}/{len(batches)} failed: {e}")
            result.failed_batches.append(index)
            result.errors.extend(f"{shipment.customer_name}: {e}" for shipment in batch)
        else:
            result.saved_count += outcome.saved_count
            result.errors.extend(outcome.errors)
            result.committed_ids.extend(shipment.staging_id for shipment in batch)
            logger.info(f"Batch {index}/{len(batches)}: saved {outcome.saved_count} shipments")
        if on_progress:
            on_progress(round(index * 100 / len(batches)), f"Processed batch {index} of {len(batches)}")

    if voyage_id and result.saved_count:
        try:
            backend.record_voyage_totals(voyage_id, result.saved_count)
        except Exception as e:
            logger.warning(f"Failed to update voyage totals for {voyage_id}: {e}")

    logger.info(
        f"Committed {result.saved_count} shipments in {result.batch_count} batches "
        f"({len(result.failed_batches)} failed, {result.master_updates} master updates)"
    )
    return result
