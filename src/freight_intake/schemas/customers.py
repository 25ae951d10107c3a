"""Customer-facing API schemas."""

from __future__ import annotations

from typing import List

from pydantic import BaseModel

from ..models.domain import Customer


class CustomerModel(BaseModel):
    customer_id: str
    name: str
    pod_code: int
    phone: str | None = None
    region: str | None = None
    address_detail: str | None = None
    name_en: str | None = None
    discount_percent: float = 0.0
    is_active: bool = True

    @classmethod
    def from_customer(cls, customer: Customer) -> "CustomerModel":
        return cls(
            customer_id=customer.customer_id,
            name=customer.name,
            pod_code=customer.pod_code,
            phone=customer.phone,
            region=customer.region,
            address_detail=customer.address_detail,
            name_en=customer.name_en,
            discount_percent=customer.discount_percent,
            is_active=customer.is_active,
        )


class CustomerSearchResponse(BaseModel):
    items: List[CustomerModel]
    total: int
