"""Errors raised by staging transitions and the commit step."""

from __future__ import annotations


class StagingRecordNotFound(KeyError):
    def __init__(self, staging_id: str):
        super().__init__(staging_id)
        self.staging_id = staging_id

    def __str__(self) -> str:
        return f"Staging record '{self.staging_id}' not found."


class InvalidTransitionError(ValueError):
    """The requested transition is not allowed from the record's current state."""


class BackendNotConfiguredError(RuntimeError):
    """Commit was requested without a working persistence backend."""


class CommitInProgressError(RuntimeError):
    """Another commit for the same staging session has not returned yet."""
