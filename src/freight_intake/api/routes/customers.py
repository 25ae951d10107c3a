"""Customer directory endpoints."""

from __future__ import annotations

from fastapi import APIRouter, HTTPException, Query, status

from ...data.customers_repository import load_customers, next_pod_code
from ...schemas.customers import CustomerModel, CustomerSearchResponse
from ...services.matching.search import search_customers

router = APIRouter(prefix="/customers", tags=["customers"])


def _directory():
    try:
        return load_customers()
    except FileNotFoundError as exc:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=str(exc)) from exc


@router.get("/search", response_model=CustomerSearchResponse, status_code=status.HTTP_200_OK)
def search(
    q: str = Query(..., min_length=1, description="Name fragment or Korean initial consonants"),
    limit: int = Query(default=20, ge=1, le=200),
) -> CustomerSearchResponse:
    matches = search_customers(q, _directory(), limit=limit)
    return CustomerSearchResponse(items=[CustomerModel.from_customer(customer) for customer in matches], total=len(matches))


@router.get("/next-pod-code", status_code=status.HTTP_200_OK)
def get_next_pod_code() -> dict:
    return {"pod_code": next_pod_code(_directory())}
