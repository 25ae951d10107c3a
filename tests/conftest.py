from typing import Any, Sequence

import pytest

from freight_intake.models.domain import BatchWriteResult, Customer, ShipmentRecord
from freight_intake.persistence.base import IntakeBackend


class FakeBackend(IntakeBackend):
    """Records every write; batches listed in ``fail_batches`` (1-based) raise."""

    def __init__(self, fail_batches: Sequence[int] = ()) -> None:
        self.fail_batches = set(fail_batches)
        self.customers: list[Customer] = []
        self.master_updates: list[tuple[str, dict[str, Any]]] = []
        self.batches: list[list[ShipmentRecord]] = []
        self.calls = 0
        self.voyage_totals: list[tuple[str, int]] = []

    def upsert_customer(self, customer: Customer) -> None:
        self.customers.append(customer)

    def update_customer_fields(self, customer_id: str, fields: dict[str, Any]) -> None:
        self.master_updates.append((customer_id, dict(fields)))

    def commit_shipments(self, batch: Sequence[ShipmentRecord]) -> BatchWriteResult:
        self.calls += 1
        if self.calls in self.fail_batches:
            raise RuntimeError("transaction aborted")
        self.batches.append(list(batch))
        return BatchWriteResult(saved_count=len(batch))

    def record_voyage_totals(self, voyage_id: str, shipment_count: int) -> None:
        self.voyage_totals.append((voyage_id, shipment_count))

    @property
    def shipments(self) -> list[ShipmentRecord]:
        return [shipment for batch in self.batches for shipment in batch]


@pytest.fixture
def backend() -> FakeBackend:
    return FakeBackend()
