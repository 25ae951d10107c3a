"""Supabase persistence for customers, shipments and voyage totals."""

from __future__ import annotations

import logging
from dataclasses import asdict
from typing import Any, Optional, Sequence

from ..config import settings
from ..db.supabase import get_supabase_client
from ..models.domain import BatchWriteResult, Customer, ShipmentRecord
from .base import IntakeBackend


def customer_to_row(customer: Customer) -> dict[str, Any]:
    return asdict(customer)


def customer_from_row(row: dict[str, Any]) -> Customer:
    return Customer(
        customer_id=str(row.get("customer_id") or row.get("id") or ""),
        name=(row.get("name") or "").strip(),
        pod_code=int(row.get("pod_code") or 0),
        phone=row.get("phone") or None,
        region=row.get("region") or None,
        address_detail=row.get("address_detail") or None,
        name_en=row.get("name_en") or None,
        discount_info=row.get("discount_info") or None,
        discount_percent=float(row.get("discount_percent") or 0.0),
        is_active=row.get("is_active", True) is not False,
    )


def shipment_to_row(shipment: ShipmentRecord) -> dict[str, Any]:
    row = asdict(shipment)
    row["warning_flags"] = list(shipment.warning_flags)
    return row


def load_customers_from_database() -> list[Customer]:
    """Retrieve the customer directory from Supabase.

    Returns:
        Customers ordered by POD code; empty when not configured or on failure.
    """
    supabase = get_supabase_client()
    if not supabase:
        return []

    try:
        response = supabase.table(settings.customers_table).select("*").order("pod_code").execute()
        rows = response.data or []
        customers = [customer_from_row(row) for row in rows if row.get("name")]
        logging.info(f"Retrieved {len(customers)} customers from database")
        return customers
    except Exception as e:
        logging.warning(f"Failed to retrieve customers from database: {e}")
        return []


class SupabaseIntakeBackend(IntakeBackend):
    """Writes through the shared Supabase client.

    Exceptions from the client propagate so callers can decide whether a
    failure aborts (registration) or is recorded per batch (commit).
    """

    def __init__(self, client: Optional[Any] = None) -> None:
        self._client = client

    @property
    def client(self) -> Any:
        client = self._client or get_supabase_client()
        if client is None:
            raise RuntimeError("Supabase is not configured. Set FI_SUPABASE_URL and FI_SUPABASE_KEY.")
        return client

    def upsert_customer(self, customer: Customer) -> None:
        self.client.table(settings.customers_table).upsert(customer_to_row(customer), on_conflict="customer_id").execute()

    def update_customer_fields(self, customer_id: str, fields: dict[str, Any]) -> None:
        self.client.table(settings.customers_table).update(fields).eq("customer_id", customer_id).execute()

    def commit_shipments(self, batch: Sequence[ShipmentRecord]) -> BatchWriteResult:
        # One insert call is one statement, so the batch lands or fails as a whole.
        rows = [shipment_to_row(shipment) for shipment in batch]
        response = self.client.table(settings.shipments_table).insert(rows).execute()
        return BatchWriteResult(saved_count=len(response.data or rows))

    def record_voyage_totals(self, voyage_id: str, shipment_count: int) -> None:
        table = self.client.table(settings.voyages_table)
        response = table.select("total_shipments").eq("id", voyage_id).limit(1).execute()
        if not response.data:
            logging.warning(f"Voyage {voyage_id} not found - totals not updated")
            return
        current = int(response.data[0].get("total_shipments") or 0)
        self.client.table(settings.voyages_table).update(
            {"total_shipments": current + shipment_count}
        ).eq("id", voyage_id).execute()


def get_backend() -> Optional[SupabaseIntakeBackend]:
    """Backend for the configured database, or ``None`` when Supabase is not set up."""
    if get_supabase_client() is None:
        return None
    return SupabaseIntakeBackend()
