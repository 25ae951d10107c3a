"""Staging API schemas."""

from __future__ import annotations

from typing import List, Literal, Optional

from pydantic import BaseModel, Field

from ..models.domain import CommitResult, StagingRecord, StagingStats
from .customers import CustomerModel


class CreateSessionRequest(BaseModel):
    raw_text: str = Field(..., description="Manifest rows as pasted from a spreadsheet or chat.")
    voyage_id: Optional[str] = None


class EditRecordRequest(BaseModel):
    name: Optional[str] = None
    phone: Optional[str] = None
    region: Optional[str] = None
    address: Optional[str] = None


class SelectCandidateRequest(BaseModel):
    customer_id: str


class ResolveConflictRequest(BaseModel):
    resolution: Literal["UPDATE_MASTER", "USE_ONCE"]


class RegisterCustomerRequest(BaseModel):
    name: str
    phone: Optional[str] = None
    region: Optional[str] = None
    address: Optional[str] = None
    name_en: Optional[str] = None


class ConfidenceModel(BaseModel):
    score: float
    factors: List[str]
    explanation: str


class CandidateModel(BaseModel):
    customer: CustomerModel
    similarity: float
    reason: str


class FieldDiffModel(BaseModel):
    field: str
    label: str
    master_value: str
    imported_value: str


class ConflictModel(BaseModel):
    customer_id: str
    fields: List[FieldDiffModel]
    resolution: str


class StagingRecordModel(BaseModel):
    staging_id: str
    row_index: int
    raw_text: str
    name: str
    phone: Optional[str] = None
    region: Optional[str] = None
    address: Optional[str] = None
    qty: int
    weight: Optional[float] = None
    courier: Optional[str] = None
    arrival_date: Optional[str] = None
    match_status: str
    matched_customer: Optional[CustomerModel] = None
    confidence: ConfidenceModel
    similar_candidates: List[CandidateModel] = []
    conflict: Optional[ConflictModel] = None
    duplicate_group_id: Optional[str] = None
    warning_flags: List[str] = []
    is_selected: bool
    is_resolved: bool
    is_edited: bool
    is_eligible: bool

    @classmethod
    def from_record(cls, record: StagingRecord) -> "StagingRecordModel":
        conflict = None
        if record.conflict is not None:
            conflict = ConflictModel(
                customer_id=record.conflict.customer_id,
                fields=[
                    FieldDiffModel(
                        field=diff.field,
                        label=diff.label,
                        master_value=diff.master_value,
                        imported_value=diff.imported_value,
                    )
                    for diff in record.conflict.fields
                ],
                resolution=record.conflict.resolution,
            )
        return cls(
            staging_id=record.staging_id,
            row_index=record.row_index,
            raw_text=record.raw.raw_text,
            name=record.edited.name,
            phone=record.edited.phone,
            region=record.edited.region,
            address=record.edited.address,
            qty=record.raw.qty,
            weight=record.raw.weight,
            courier=record.raw.courier,
            arrival_date=record.raw.arrival_date,
            match_status=record.match_status,
            matched_customer=CustomerModel.from_customer(record.matched_customer) if record.matched_customer else None,
            confidence=ConfidenceModel(
                score=record.confidence.score,
                factors=list(record.confidence.factors),
                explanation=record.confidence.explanation,
            ),
            similar_candidates=[
                CandidateModel(
                    customer=CustomerModel.from_customer(candidate.customer),
                    similarity=candidate.similarity,
                    reason=candidate.reason,
                )
                for candidate in record.similar_candidates
            ],
            conflict=conflict,
            duplicate_group_id=record.duplicate_group_id,
            warning_flags=list(record.warning_flags),
            is_selected=record.is_selected,
            is_resolved=record.is_resolved,
            is_edited=record.is_edited,
            is_eligible=record.is_eligible,
        )


class StagingStatsModel(BaseModel):
    total: int
    verified: int
    conflict: int
    similar: int
    new_customer: int
    duplicate: int
    eligible: int
    unresolved: int
    total_qty: int

    @classmethod
    def from_stats(cls, stats: StagingStats) -> "StagingStatsModel":
        return cls(
            total=stats.total,
            verified=stats.verified,
            conflict=stats.conflict,
            similar=stats.similar,
            new_customer=stats.new_customer,
            duplicate=stats.duplicate,
            eligible=stats.eligible,
            unresolved=stats.unresolved,
            total_qty=stats.total_qty,
        )


class StagingSessionResponse(BaseModel):
    session_id: str
    voyage_id: Optional[str] = None
    has_header: bool
    warnings: List[str]
    summary: str
    stats: StagingStatsModel
    records: List[StagingRecordModel]


class RegisterCustomerResponse(BaseModel):
    customer: CustomerModel
    linked: List[StagingRecordModel]


class CommitResponse(BaseModel):
    saved_count: int
    batch_count: int
    failed_batches: List[int]
    master_updates: int
    errors: List[str]
    summary: str
    remaining: int

    @classmethod
    def from_result(cls, result: CommitResult, summary: str, remaining: int) -> "CommitResponse":
        return cls(
            saved_count=result.saved_count,
            batch_count=result.batch_count,
            failed_batches=list(result.failed_batches),
            master_updates=result.master_updates,
            errors=list(result.errors),
            summary=summary,
            remaining=remaining,
        )
