"""Staging reconciliation and commit."""

from .commit import build_shipment, chunked, commit_records
from .errors import (
    BackendNotConfiguredError,
    CommitInProgressError,
    InvalidTransitionError,
    StagingRecordNotFound,
)
from .session import StagingSession
from .store import StagingStore
from .summary import summarize_commit, summarize_parse, write_commit_report

__all__ = [
    "BackendNotConfiguredError",
    "CommitInProgressError",
    "InvalidTransitionError",
    "StagingRecordNotFound",
    "StagingSession",
    "StagingStore",
    "build_shipment",
    "chunked",
    "commit_records",
    "summarize_commit",
    "summarize_parse",
    "write_commit_report",
]
