"""Application configuration and settings management."""

from pathlib import Path
from typing import Any, Optional

import json
from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Runtime configuration loaded from environment variables or defaults."""

    model_config = SettingsConfigDict(
        env_prefix="FI_",
        case_sensitive=False,
        env_file=".env",
        env_file_encoding="utf-8",
    )

    app_name: str = "Freight Intake API"
    api_prefix: str = "/api"
    data_root: Path = Field(default=Path("data"), description="Root directory for reports and local data files.")
    customer_file: Path = Field(
        default=Path("data/customers.csv"),
        description="Master customer list used when no database is configured.",
    )
    frontend_allowed_origins: tuple[str, ...] = Field(
        default=(
            "http://localhost:3000",
            "http://127.0.0.1:3000",
            "http://localhost:5173",
            "http://127.0.0.1:5173",
        ),
        description="Permitted web origins for browser clients (CORS).",
    )

    # Supabase configuration
    supabase_url: Optional[str] = Field(
        default=None,
        description="Supabase project URL (e.g., https://xxx.supabase.co).",
    )
    supabase_key: Optional[str] = Field(
        default=None,
        description="Supabase service role key for backend operations.",
    )
    customers_table: str = "customers"
    shipments_table: str = "shipments"
    voyages_table: str = "voyages"

    # Commit pipeline
    commit_batch_size: int = Field(
        default=400,
        ge=1,
        le=500,
        description="Shipments per write batch; the store accepts at most 500 per transaction.",
    )
    write_commit_reports: bool = Field(
        default=False,
        description="Write summary.json/errors.csv for every commit under data_root/reports.",
    )

    # Staging sessions
    max_open_sessions: int = Field(
        default=50,
        ge=1,
        description="Open staging sessions kept in memory; the oldest is discarded beyond this.",
    )

    # Parsing
    parse_chunk_size: int = Field(default=50, ge=1, description="Rows parsed between yield points.")

    # Matching
    phone_min_digits: int = Field(default=8, ge=1)
    verified_threshold: float = Field(default=0.95, ge=0.0, le=1.0)
    similar_threshold: float = Field(default=0.70, ge=0.0, le=1.0)
    fuzzy_name_threshold: float = Field(default=0.7, ge=0.0, le=1.0)
    region_boost_min_similarity: float = Field(default=0.5, ge=0.0, le=1.0)
    max_similar_candidates: int = Field(default=3, ge=0)
    rematch_suppress_duplicate_names: bool = Field(
        default=True,
        description="Re-match all marks a repeated edited name as DUPLICATE of its first occurrence.",
    )

    @field_validator("data_root", "customer_file", mode="before")
    @classmethod
    def _expand_path(cls, value: Any) -> Path:
        path_value = value if isinstance(value, Path) else Path(str(value))
        return path_value.expanduser().resolve()

    @field_validator("frontend_allowed_origins", mode="before")
    @classmethod
    def _parse_str_tuple_from_env(cls, value: Any) -> tuple[str, ...]:
        """Parse string tuple from environment variable (comma-separated or JSON array)."""
        if isinstance(value, tuple):
            return value
        if isinstance(value, list):
            return tuple(str(item) for item in value)
        if isinstance(value, str):
            # Try JSON first
            try:
                parsed = json.loads(value)
                if isinstance(parsed, list):
                    return tuple(str(item) for item in parsed)
            except (json.JSONDecodeError, TypeError):
                pass
            if "," in value:
                return tuple(item.strip() for item in value.split(",") if item.strip())
            if value.strip():
                return (value.strip(),)
        return tuple()


settings = Settings()
