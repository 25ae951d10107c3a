"""Persistence contract used by registration and commit."""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any, Sequence

from ..models.domain import BatchWriteResult, Customer, ShipmentRecord


class IntakeBackend(ABC):
    """The only write paths out of the reconciliation engine."""

    @abstractmethod
    def upsert_customer(self, customer: Customer) -> None:
        raise NotImplementedError

    @abstractmethod
    def update_customer_fields(self, customer_id: str, fields: dict[str, Any]) -> None:
        raise NotImplementedError

    @abstractmethod
    def commit_shipments(self, batch: Sequence[ShipmentRecord]) -> BatchWriteResult:
        """Write one batch atomically; raise if the batch as a whole failed."""
        raise NotImplementedError

    def record_voyage_totals(self, voyage_id: str, shipment_count: int) -> None:
        """Bump voyage counters after a commit. Optional for backends."""
        return None
