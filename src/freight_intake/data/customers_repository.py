"""Data access helpers for loading the customer directory."""

from __future__ import annotations

import csv
import functools
from pathlib import Path
from typing import Iterable, Optional

from ..config import settings
from ..db.supabase import is_supabase_configured
from ..models.domain import Customer
from ..persistence.supabase_backend import load_customers_from_database


def _coerce_float(value: Optional[str]) -> float:
    if value is None or value.strip() == "":
        return 0.0
    try:
        return float(value.replace(",", "").replace("%", ""))
    except ValueError as exc:
        raise ValueError(f"Unable to parse float from value '{value}'") from exc


def _coerce_int(value: Optional[str]) -> int:
    if value is None or value.strip() == "":
        return 0
    try:
        return int(float(value.replace(",", "")))
    except ValueError as exc:
        raise ValueError(f"Unable to parse integer from value '{value}'") from exc


def _coerce_bool(value: Optional[str]) -> bool:
    if value is None or value.strip() == "":
        return True
    return value.strip().lower() not in {"0", "false", "no", "n", "inactive"}


def _text(row: dict[str, str], *keys: str) -> Optional[str]:
    for key in keys:
        value = row.get(key)
        if value and value.strip():
            return value.strip()
    return None


def load_customers_from_csv(csv_path: Path) -> tuple[Customer, ...]:
    """Load customers from a CSV export of the directory."""
    if not csv_path.exists():
        raise FileNotFoundError(f"Customer file not found: {csv_path}")

    customers: list[Customer] = []
    with csv_path.open(mode="r", encoding="utf-8-sig", newline="") as handle:
        reader = csv.DictReader(handle)
        if not reader.fieldnames:
            raise ValueError(f"Customer file '{csv_path}' is missing a header row.")
        for position, row in enumerate(reader, start=1):
            name = _text(row, "name", "Name", "customer_name", "고객명", "이름")
            if not name:
                continue  # ignore records without a name
            customers.append(
                Customer(
                    customer_id=_text(row, "customer_id", "CustomerId", "id") or f"csv-{position}",
                    name=name,
                    pod_code=_coerce_int(_text(row, "pod_code", "PodCode", "pod")),
                    phone=_text(row, "phone", "Phone", "연락처", "전화번호"),
                    region=_text(row, "region", "Region", "지역"),
                    address_detail=_text(row, "address_detail", "address", "Address", "주소"),
                    name_en=_text(row, "name_en", "NameEn", "영문명"),
                    discount_info=_text(row, "discount_info", "할인정보"),
                    discount_percent=_coerce_float(_text(row, "discount_percent", "할인율")),
                    is_active=_coerce_bool(_text(row, "is_active", "active")),
                )
            )
    return tuple(customers)


@functools.lru_cache(maxsize=1)
def load_customers(source: Optional[Path] = None) -> tuple[Customer, ...]:
    """Load the customer directory from Supabase when configured, else from CSV."""
    if source is None and is_supabase_configured():
        return tuple(load_customers_from_database())
    return load_customers_from_csv(source or settings.customer_file)


def next_pod_code(customers: Iterable[Customer]) -> int:
    """POD codes are assigned sequentially: one past the highest in use."""
    return max((customer.pod_code for customer in customers), default=0) + 1


def set_active_customer_file(path: Path) -> None:
    """Update the active customer CSV and clear the directory cache."""

    settings.customer_file = path
    load_customers.cache_clear()
