"""Staging session: one pasted manifest awaiting adjudication and commit."""

from __future__ import annotations

import functools
import logging
import threading
import uuid
from dataclasses import replace
from typing import Optional, Sequence

from ...config import settings
from ...data.customers_repository import next_pod_code
from ...models.domain import (
    CommitResult,
    ConflictResolution,
    Customer,
    DuplicateGroup,
    ParseResult,
    StagingRecord,
    StagingStats,
)
from ...persistence.base import IntakeBackend
from ..manifest.parser import parse_manifest, parse_manifest_async
from ..matching.duplicates import detect_duplicate_groups, detect_name_duplicates
from .commit import ProgressCallback, commit_records
from .errors import CommitInProgressError, InvalidTransitionError
from .store import StagingStore
from .transitions import (
    apply_edit,
    evaluate,
    link_duplicates,
    mark_duplicate,
    new_record,
    register_customer,
    resolve_conflict,
    select_candidate,
)


def _locked(method):
    """Serialize a session method against every other locked method."""

    @functools.wraps(method)
    def wrapper(self, *args, **kwargs):
        with self._lock:
            return method(self, *args, **kwargs)

    return wrapper


class StagingSession:
    """Owns the staging records for one manifest and every transition on them.

    Records are only replaced through the transition functions, and a
    duplicate row always mirrors the customer of its group's primary row
    once that row is resolved.
    """

    def __init__(
        self,
        customers: Sequence[Customer],
        *,
        backend: Optional[IntakeBackend] = None,
        voyage_id: Optional[str] = None,
        session_id: Optional[str] = None,
    ) -> None:
        self.session_id = session_id or uuid.uuid4().hex[:12]
        self.customers: list[Customer] = list(customers)
        self.backend = backend
        self.voyage_id = voyage_id
        self.parse_result: Optional[ParseResult] = None
        self.store = StagingStore()
        self.groups: dict[str, DuplicateGroup] = {}
        self._commit_lock = threading.Lock()
        self._lock = threading.RLock()

    @classmethod
    def from_text(cls, raw_text: str, customers: Sequence[Customer], **kwargs) -> "StagingSession":
        session = cls(customers, **kwargs)
        session.load(parse_manifest(raw_text))
        return session

    @classmethod
    async def from_text_async(cls, raw_text: str, customers: Sequence[Customer], **kwargs) -> "StagingSession":
        session = cls(customers, **kwargs)
        session.load(await parse_manifest_async(raw_text))
        return session

    # ------------------------------------------------------------------
    # Building
    # ------------------------------------------------------------------
    @_locked
    def load(self, result: ParseResult) -> list[StagingRecord]:
        """Replace the session contents with records built from a parse result."""
        self.parse_result = result
        self.store.clear()
        self.groups = {group.group_id: group for group in detect_duplicate_groups(result.rows)}

        member_group: dict[int, str] = {}
        primary_group: dict[int, str] = {}
        for group in self.groups.values():
            primary_group[group.primary_row_index] = group.group_id
            for row_index in group.member_row_indices[1:]:
                member_group[row_index] = group.group_id

        for row in result.rows:
            record = new_record(row, f"{self.session_id}-{row.row_index}")
            if row.row_index in member_group:
                record = mark_duplicate(record, member_group[row.row_index])
            else:
                record = evaluate(replace(record, duplicate_group_id=primary_group.get(row.row_index)), self.customers)
            self.store.put(record)

        self._sync_groups()
        logging.info(
            f"Staging session {self.session_id}: {len(self.store)} records, {len(self.groups)} duplicate groups"
        )
        return self.records()

    def _sync_groups(self) -> None:
        """Mirror each primary row's resolved customer onto its duplicate rows."""
        for group in self.groups.values():
            primary = self.store.by_row_index(group.primary_row_index)
            resolved = primary is not None and primary.is_resolved
            group.matched_customer = primary.matched_customer if resolved else None
            if resolved and primary.match_status != "DUPLICATE":
                group.confidence = primary.confidence

        members: dict[str, list[StagingRecord]] = {}
        for record in self.store.records():
            if record.match_status == "DUPLICATE" and record.duplicate_group_id is not None:
                members.setdefault(record.duplicate_group_id, []).append(record)
        for group_id, rows in members.items():
            group = self.groups.get(group_id)
            for linked in link_duplicates(rows, group.matched_customer if group else None):
                self.store.put(linked)

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------
    @_locked
    def records(self) -> list[StagingRecord]:
        return self.store.records()

    def get(self, staging_id: str) -> StagingRecord:
        return self.store.get(staging_id)

    @_locked
    def eligible(self) -> list[StagingRecord]:
        return [record for record in self.store.records() if record.is_eligible]

    @_locked
    def merged_quantity(self, record: StagingRecord) -> int:
        """Quantity of a row plus every duplicate row that points at it."""
        return record.raw.qty + sum(member.raw.qty for member in self._merged_members(record))

    def _merged_members(self, record: StagingRecord) -> list[StagingRecord]:
        members: list[StagingRecord] = []
        for other in self.store.records():
            if other.match_status != "DUPLICATE" or other.duplicate_group_id is None:
                continue
            group = self.groups.get(other.duplicate_group_id)
            if group and group.primary_row_index == record.row_index:
                members.append(other)
        return members

    @_locked
    def stats(self) -> StagingStats:
        stats = StagingStats()
        for record in self.store.records():
            stats.total += 1
            stats.total_qty += record.raw.qty
            if record.match_status == "VERIFIED":
                stats.verified += 1
            elif record.match_status == "CONFLICT":
                stats.conflict += 1
            elif record.match_status == "SIMILAR":
                stats.similar += 1
            elif record.match_status == "NEW_CUSTOMER":
                stats.new_customer += 1
            elif record.match_status == "DUPLICATE":
                stats.duplicate += 1
            if record.is_eligible:
                stats.eligible += 1
            elif record.match_status != "DUPLICATE":
                stats.unresolved += 1
        return stats

    # ------------------------------------------------------------------
    # Transitions
    # ------------------------------------------------------------------
    def _replace(self, record: StagingRecord) -> StagingRecord:
        logging.debug(f"Record {record.staging_id} -> {record.match_status}")
        self.store.put(record)
        self._sync_groups()
        return self.store.get(record.staging_id)

    @_locked
    def edit(
        self,
        staging_id: str,
        *,
        name: Optional[str] = None,
        phone: Optional[str] = None,
        region: Optional[str] = None,
        address: Optional[str] = None,
    ) -> StagingRecord:
        record = self.store.get(staging_id)
        updated = apply_edit(record, self.customers, name=name, phone=phone, region=region, address=address)
        return self._replace(updated)

    @_locked
    def rematch(self, staging_id: str) -> StagingRecord:
        record = self.store.get(staging_id)
        if record.match_status == "DUPLICATE":
            return record
        return self._replace(evaluate(record, self.customers))

    @_locked
    def select(self, staging_id: str, customer_id: str) -> StagingRecord:
        record = self.store.get(staging_id)
        customer = self.find_customer(customer_id)
        if customer is None:
            raise InvalidTransitionError(f"Customer '{customer_id}' is not in the customer directory.")
        return self._replace(select_candidate(record, customer))

    @_locked
    def resolve(self, staging_id: str, resolution: ConflictResolution) -> StagingRecord:
        record = self.store.get(staging_id)
        return self._replace(resolve_conflict(record, resolution))

    @_locked
    def remove(self, staging_id: str) -> StagingRecord:
        """Drop a record; a removed group primary hands its group to the next row."""
        record = self.store.remove(staging_id)
        self._detach(record)
        self._sync_groups()
        return record

    def _detach(self, record: StagingRecord) -> None:
        for group_id, group in list(self.groups.items()):
            was_primary = group.primary_row_index == record.row_index
            if record.row_index in group.member_row_indices:
                group.member_row_indices.remove(record.row_index)
                group.merged_quantity -= record.raw.qty
            elif not was_primary:
                continue

            rows = [self.store.by_row_index(row_index) for row_index in group.member_row_indices]
            if not was_primary and group.primary_row_index not in group.member_row_indices:
                rows.insert(0, self.store.by_row_index(group.primary_row_index))
            rows = [row for row in rows if row is not None]

            if len(rows) < 2:
                del self.groups[group_id]
                for row in rows:
                    self.store.put(self._release(row, group_id, None))
                logging.info(f"Duplicate group {group_id} dissolved after removing row {record.row_index}")
            elif was_primary:
                group.primary_row_index = rows[0].row_index
                self.store.put(self._release(rows[0], group_id, group_id))
                logging.info(f"Row {rows[0].row_index} is now the primary of duplicate group {group_id}")

    def _release(self, record: StagingRecord, group_id: str, new_group_id: Optional[str]) -> StagingRecord:
        if record.duplicate_group_id != group_id:
            return record
        if record.match_status == "DUPLICATE":
            return evaluate(replace(record, duplicate_group_id=new_group_id, warning_flags=()), self.customers)
        return replace(record, duplicate_group_id=new_group_id)

    def find_customer(self, customer_id: str) -> Optional[Customer]:
        for customer in self.customers:
            if customer.customer_id == customer_id:
                return customer
        return None

    @_locked
    def register_customer(
        self,
        name: str,
        *,
        phone: Optional[str] = None,
        region: Optional[str] = None,
        address: Optional[str] = None,
        name_en: Optional[str] = None,
        customer_id: Optional[str] = None,
    ) -> tuple[Customer, list[StagingRecord]]:
        """Create a master customer and link every open row it satisfies.

        The customer is written through the backend first; a failed write
        propagates and leaves the session unchanged. Without a backend the
        customer only joins this session's directory snapshot.
        """
        name = name.strip()
        if not name:
            raise InvalidTransitionError("Customer name is required.")
        customer = Customer(
            customer_id=customer_id or f"cust-{uuid.uuid4().hex[:12]}",
            name=name,
            pod_code=next_pod_code(self.customers),
            phone=(phone or "").strip() or None,
            region=(region or "").strip() or None,
            address_detail=(address or "").strip() or None,
            name_en=(name_en or "").strip() or None,
        )
        if self.backend is not None:
            self.backend.upsert_customer(customer)
        else:
            logging.warning(f"No persistence backend configured - customer '{name}' kept in session only")
        self.customers.append(customer)

        linked: list[StagingRecord] = []
        for record in self.store.records():
            updated = register_customer(record, customer)
            if updated is not record:
                linked.append(self.store.put(updated))
        self._sync_groups()
        logging.info(f"Registered customer '{name}' (POD {customer.pod_code}); linked {len(linked)} rows")
        return customer, [self.store.get(record.staging_id) for record in linked]

    @_locked
    def rematch_all(self) -> list[StagingRecord]:
        """Rebuild duplicate groups from edited values and re-evaluate every row.

        Conflict resolutions are reset. With name suppression enabled, a
        repeated edited name becomes a DUPLICATE of its first occurrence
        before phone grouping runs over the remaining rows.
        """
        records = self.store.records()
        name_groups: list[DuplicateGroup] = []
        if settings.rematch_suppress_duplicate_names:
            name_groups = detect_name_duplicates(
                [(record.row_index, record.edited.name, record.raw.qty) for record in records]
            )
        name_member: dict[int, str] = {}
        for group in name_groups:
            for row_index in group.member_row_indices[1:]:
                name_member[row_index] = group.group_id

        remaining = [record for record in records if record.row_index not in name_member]
        phone_groups = detect_duplicate_groups([replace(record.raw, phone=record.edited.phone) for record in remaining])
        phone_member: dict[int, str] = {}
        primary_group: dict[int, str] = {}
        phone_primary = {group.group_id: group.primary_row_index for group in phone_groups}
        for group in phone_groups:
            primary_group[group.primary_row_index] = group.group_id
            for row_index in group.member_row_indices[1:]:
                phone_member[row_index] = group.group_id

        # A name group whose first row is itself a phone duplicate folds into that phone group.
        for group in name_groups:
            if group.primary_row_index in phone_member:
                group.primary_row_index = phone_primary[phone_member[group.primary_row_index]]
            else:
                primary_group.setdefault(group.primary_row_index, group.group_id)

        self.groups = {group.group_id: group for group in [*phone_groups, *name_groups]}
        for record in records:
            base = replace(record, conflict=None, duplicate_group_id=None)
            if record.row_index in name_member:
                updated = mark_duplicate(base, name_member[record.row_index], flag="DUPLICATE_NAME")
            elif record.row_index in phone_member:
                updated = mark_duplicate(base, phone_member[record.row_index])
            else:
                cleared = replace(base, warning_flags=(), duplicate_group_id=primary_group.get(record.row_index))
                updated = evaluate(cleared, self.customers)
            self.store.put(updated)

        self._sync_groups()
        logging.info(f"Re-matched {len(records)} records in session {self.session_id}")
        return self.records()

    # ------------------------------------------------------------------
    # Commit
    # ------------------------------------------------------------------
    def commit(
        self,
        *,
        batch_size: Optional[int] = None,
        on_progress: Optional[ProgressCallback] = None,
    ) -> CommitResult:
        """Commit eligible rows; successfully written rows and their merged duplicates leave the session."""
        if not self._commit_lock.acquire(blocking=False):
            raise CommitInProgressError(f"A commit for session {self.session_id} is already running.")
        try:
            with self._lock:
                return self._commit(batch_size, on_progress)
        finally:
            self._commit_lock.release()

    def _commit(self, batch_size: Optional[int], on_progress: Optional[ProgressCallback]) -> CommitResult:
        eligible = self.eligible()
        quantities = {record.staging_id: self.merged_quantity(record) for record in eligible}
        merged = {record.staging_id: self._merged_members(record) for record in eligible}
        result = commit_records(
            eligible,
            self.backend,
            voyage_id=self.voyage_id,
            quantities=quantities,
            batch_size=batch_size,
            on_progress=on_progress,
        )
        for staging_id in result.committed_ids:
            for member in merged.get(staging_id, []):
                if member.staging_id in self.store:
                    self.store.remove(member.staging_id)
            if staging_id in self.store:
                self.store.remove(staging_id)
        self._sync_groups()
        return result
