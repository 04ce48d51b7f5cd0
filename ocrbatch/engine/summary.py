"""Derived, display-ready views over a batch."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Sequence

from ocrbatch.models.dto import BatchItem, ItemStatus

GENERIC_FAILURE = "Processing failed"

_STATUS_TEXT = {
    ItemStatus.PENDING: "Waiting...",
    ItemStatus.PROCESSING: "Processing...",
    ItemStatus.SUCCESS: "Completed successfully",
    ItemStatus.SKIPPED: "Skipped",
}


@dataclass(frozen=True)
class QueueSummary:
    total: int
    completed: int
    success: int
    failed: int
    skipped: int

    @property
    def pending(self) -> int:
        return self.total - self.completed


def summarize_queue(items: Sequence[BatchItem]) -> QueueSummary:
    success = sum(1 for item in items if item.status == ItemStatus.SUCCESS)
    failed = sum(1 for item in items if item.status == ItemStatus.FAILED)
    skipped = sum(1 for item in items if item.status == ItemStatus.SKIPPED)
    return QueueSummary(
        total=len(items),
        completed=success + failed + skipped,
        success=success,
        failed=failed,
        skipped=skipped,
    )


def item_status_text(item: BatchItem) -> str:
    """Inline text for one item; failures show the server's reason when known."""
    if item.status == ItemStatus.FAILED:
        reason = item.error or (item.result.error if item.result else None)
        return reason or GENERIC_FAILURE
    return _STATUS_TEXT[item.status]
