"""Domain models for manifest intake, matching and staging."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Literal, Optional

MatchStatus = Literal["VERIFIED", "CONFLICT", "SIMILAR", "NEW_CUSTOMER", "DUPLICATE"]
ConflictResolution = Literal["PENDING", "UPDATE_MASTER", "USE_ONCE"]
MatchFactor = Literal["PHONE_MATCH", "EXACT_NAME", "FUZZY_NAME", "REGION_MATCH", "PARTIAL_NAME"]
WarningFlag = Literal["PHONE_MISMATCH", "REGION_MISMATCH", "DUPLICATE_NAME"]


@dataclass(slots=True, frozen=True)
class Customer:
    """Master customer record owned by the customer directory."""

    customer_id: str
    name: str
    pod_code: int = 0
    phone: Optional[str] = None
    region: Optional[str] = None
    address_detail: Optional[str] = None
    name_en: Optional[str] = None
    discount_info: Optional[str] = None
    discount_percent: float = 0.0
    is_active: bool = True


@dataclass(slots=True, frozen=True)
class ParsedRow:
    """One manifest line exactly as pasted, after cell cleaning."""

    row_index: int
    raw_name: str
    qty: int = 1
    phone: Optional[str] = None
    region: Optional[str] = None
    address: Optional[str] = None
    weight: Optional[float] = None
    courier: Optional[str] = None
    nationality: Optional[str] = None
    classification: Optional[str] = None
    feature: Optional[str] = None
    invoice: Optional[str] = None
    cargo_category: Optional[str] = None
    cargo_desc: Optional[str] = None
    remark: Optional[str] = None
    arrival_date: Optional[str] = None
    raw_cells: tuple[str, ...] = ()

    @property
    def raw_text(self) -> str:
        return "\t".join(self.raw_cells)


@dataclass(slots=True)
class ParseResult:
    rows: list[ParsedRow]
    has_header: bool
    delimiter: Literal["TAB", "SPACE"] = "TAB"
    headers: Optional[tuple[str, ...]] = None
    columns: dict[str, int] = field(default_factory=dict)
    warnings: list[str] = field(default_factory=list)

    @property
    def success(self) -> bool:
        return bool(self.rows)

    @property
    def name_column(self) -> int:
        return self.columns.get("name", -1)


@dataclass(slots=True, frozen=True)
class MatchConfidence:
    """Multi-factor confidence for one customer comparison."""

    score: float = 0.0
    factors: tuple[MatchFactor, ...] = ()
    explanation: str = ""
    name_score: float = 0.0
    phone_score: float = 0.0
    region_score: float = 0.0


@dataclass(slots=True, frozen=True)
class SimilarCandidate:
    customer: Customer
    similarity: float
    reason: str


@dataclass(slots=True, frozen=True)
class MatchResult:
    matched_customer: Optional[Customer]
    confidence: MatchConfidence
    status: MatchStatus
    candidates: tuple[SimilarCandidate, ...] = ()


@dataclass(slots=True, frozen=True)
class FieldDiff:
    """A master field that disagrees with the imported value."""

    field: str
    label: str
    master_value: str
    imported_value: str


@dataclass(slots=True, frozen=True)
class Conflict:
    customer_id: str
    fields: tuple[FieldDiff, ...]
    resolution: ConflictResolution = "PENDING"

    @property
    def field_names(self) -> list[str]:
        return [diff.field for diff in self.fields]


@dataclass(slots=True)
class DuplicateGroup:
    """Manifest rows inferred to belong to the same recipient."""

    group_id: str
    primary_row_index: int
    member_row_indices: list[int]
    merged_quantity: int
    phone: str = ""
    kind: Literal["phone", "name"] = "phone"
    matched_customer: Optional[Customer] = None
    confidence: Optional[MatchConfidence] = None


@dataclass(slots=True, frozen=True)
class EditedFields:
    name: str
    phone: Optional[str] = None
    region: Optional[str] = None
    address: Optional[str] = None


@dataclass(slots=True, frozen=True)
class StagingRecord:
    """Per-row working unit awaiting adjudication before commit."""

    staging_id: str
    raw: ParsedRow
    edited: EditedFields
    match_status: MatchStatus
    matched_customer: Optional[Customer] = None
    confidence: MatchConfidence = MatchConfidence()
    similar_candidates: tuple[SimilarCandidate, ...] = ()
    conflict: Optional[Conflict] = None
    duplicate_group_id: Optional[str] = None
    warning_flags: tuple[WarningFlag, ...] = ()
    is_selected: bool = False
    is_resolved: bool = False

    @property
    def row_index(self) -> int:
        return self.raw.row_index

    @property
    def is_edited(self) -> bool:
        return (
            self.edited.name != self.raw.raw_name
            or self.edited.phone != self.raw.phone
            or self.edited.region != self.raw.region
            or self.edited.address != self.raw.address
        )

    @property
    def is_eligible(self) -> bool:
        if not (self.is_selected and self.is_resolved):
            return False
        if self.match_status == "DUPLICATE":
            return False
        if self.conflict is not None and self.conflict.resolution == "PENDING":
            return False
        return True


@dataclass(slots=True)
class ShipmentRecord:
    """Cargo row written at commit, carrying a snapshot of the customer."""

    staging_id: str
    voyage_id: Optional[str]
    customer_id: Optional[str]
    customer_name: str
    pod_code: int
    quantity: int
    phone: str = ""
    region: str = ""
    address: str = ""
    discount_percent: float = 0.0
    discount_reason: Optional[str] = None
    weight: Optional[float] = None
    courier: Optional[str] = None
    arrival_date: Optional[str] = None
    invoice: Optional[str] = None
    cargo_category: Optional[str] = None
    cargo_desc: Optional[str] = None
    memo: Optional[str] = None
    raw_input: str = ""
    status: str = "PENDING"
    warning_flags: tuple[str, ...] = ()


@dataclass(slots=True)
class BatchWriteResult:
    saved_count: int = 0
    errors: list[str] = field(default_factory=list)


@dataclass(slots=True)
class CommitResult:
    saved_count: int = 0
    errors: list[str] = field(default_factory=list)
    batch_count: int = 0
    failed_batches: list[int] = field(default_factory=list)
    master_updates: int = 0
    committed_ids: list[str] = field(default_factory=list)


@dataclass(slots=True)
class StagingStats:
    total: int = 0
    verified: int = 0
    conflict: int = 0
    similar: int = 0
    new_customer: int = 0
    duplicate: int = 0
    eligible: int = 0
    unresolved: int = 0
    total_qty: int = 0
