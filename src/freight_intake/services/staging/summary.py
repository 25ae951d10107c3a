"""Human-readable summaries of parse and commit outcomes."""

from __future__ import annotations

import csv
import io
from dataclasses import asdict
from pathlib import Path
from typing import Optional

from ...models.domain import CommitResult, ParseResult, StagingStats
from ...persistence.filesystem import FileStorage

PREVIEW_LIMIT = 3


def _preview(items: list[str], limit: int = PREVIEW_LIMIT) -> str:
    shown = "; ".join(items[:limit])
    if len(items) > limit:
        shown += f" (+{len(items) - limit} more)"
    return shown


def summarize_parse(result: ParseResult) -> str:
    header = "header detected" if result.has_header else "no header"
    text = f"{len(result.rows)} rows parsed ({header}, {result.delimiter.lower()} delimited)"
    if result.warnings:
        text += f"; {len(result.warnings)} warnings: {_preview(result.warnings)}"
    return text


def summarize_commit(result: CommitResult) -> str:
    text = f"Saved {result.saved_count} shipments in {result.batch_count} batches"
    if result.master_updates:
        text += f", updated {result.master_updates} master records"
    if result.failed_batches:
        failed = ", ".join(str(index) for index in result.failed_batches)
        text += f"; failed batches: {failed}"
    if result.errors:
        text += f"; {len(result.errors)} errors: {_preview(result.errors)}"
    return text


def write_commit_report(
    session_id: str,
    result: CommitResult,
    stats: StagingStats,
    storage: Optional[FileStorage] = None,
) -> Path:
    """Store a commit summary (JSON) and its error rows (CSV) under a run directory."""
    storage = storage or FileStorage()
    run_dir = storage.make_run_directory(prefix=f"commit_{session_id}")
    storage.write_json(
        run_dir / "summary.json",
        {
            "session_id": session_id,
            "summary": summarize_commit(result),
            "result": asdict(result),
            "stats_before_commit": asdict(stats),
        },
    )
    if result.errors:
        buffer = io.StringIO()
        writer = csv.writer(buffer)
        writer.writerow(["error"])
        writer.writerows([error] for error in result.errors)
        storage.write_csv(run_dir / "errors.csv", buffer.getvalue())
    return run_dir
