"""Health endpoints."""

from __future__ import annotations

from fastapi import APIRouter, status

from ...config import settings
from ...db.supabase import get_supabase_client

router = APIRouter(tags=["health"])


@router.get("/health", status_code=status.HTTP_200_OK)
def health_root() -> dict:
    """Simple health check endpoint that doesn't require any dependencies."""
    return {"status": "ok"}


@router.get("/health/database", status_code=status.HTTP_200_OK)
def check_database() -> dict:
    """Check that the customer directory is reachable."""
    supabase = get_supabase_client()
    if not supabase:
        return {
            "configured": False,
            "message": "Supabase not configured. Set FI_SUPABASE_URL and FI_SUPABASE_KEY environment variables.",
        }

    try:
        response = supabase.table(settings.customers_table).select("customer_id", count="exact").limit(1).execute()
        return {
            "configured": True,
            "connected": True,
            "customers_count": response.count or 0,
            "message": f"Database connected. Found {response.count or 0} customers.",
        }
    except Exception as exc:
        return {
            "configured": True,
            "connected": False,
            "error": str(exc),
            "message": f"Database connection error: {exc}",
        }
