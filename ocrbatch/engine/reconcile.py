"""
Pure reconciliation of the local batch against server-reported records.

Every function takes the current items and returns a new list; nothing
here performs I/O or touches engine state, so each merge step can be
tested on its own.
"""

from __future__ import annotations

from typing import Optional, Sequence

from ocrbatch.core.exceptions import DuplicateFilenameError
from ocrbatch.models.dto import BatchItem, ItemStatus, ResultRecord

UPLOAD_PLACEHOLDER_PROGRESS = 50


def build_batch(names: Sequence[str], stamp: int) -> list[BatchItem]:
    """
    Create one pending item per submitted file.

    Ids are `<stamp>-<index>`; the stamp is a millisecond clock reading
    that the caller keeps monotonic so ids never repeat in a session.

    Args:
      names: Original filenames in submission order.
      stamp: Monotonic millisecond value for this submission.

    Returns:
      Pending items with progress 0.

    Raises:
      DuplicateFilenameError: When two files share a name.
    """
    seen: set[str] = set()
    duplicates: set[str] = set()
    for name in names:
        if name in seen:
            duplicates.add(name)
        seen.add(name)
    if duplicates:
        raise DuplicateFilenameError(sorted(duplicates))

    return [
        BatchItem(id=f"{stamp}-{index}", name=name)
        for index, name in enumerate(names)
    ]


def batch_id_of(items: Sequence[BatchItem]) -> Optional[str]:
    """Return the shared id stamp of a batch, or None for an empty batch."""
    if not items:
        return None
    return items[0].id.rsplit("-", 1)[0]


def mark_uploading(items: Sequence[BatchItem]) -> list[BatchItem]:
    return [
        item.model_copy(
            update={"status": ItemStatus.PROCESSING, "progress": UPLOAD_PLACEHOLDER_PROGRESS}
        )
        for item in items
    ]


def apply_upload_progress(items: Sequence[BatchItem], sent: int, total: int) -> list[BatchItem]:
    """Spread a measured upload percentage over every non-terminal item."""
    if total <= 0:
        return list(items)
    percent = max(0, min(100, round(sent * 100 / total)))
    return [
        item if item.is_terminal else item.model_copy(update={"progress": percent})
        for item in items
    ]


def _match_upload_record(
    item: BatchItem, index: int, records: Sequence[ResultRecord]
) -> Optional[ResultRecord]:
    for record in records:
        if record.original_filename == item.name:
            return record
    if index < len(records):
        return records[index]
    return None


def apply_upload_results(
    items: Sequence[BatchItem], records: Sequence[ResultRecord]
) -> list[BatchItem]:
    """
    Merge the upload response into the batch.

    Items are joined by filename, falling back to the record at the same
    position. A matched record without a status marks the item failed.
    Items with no record at all are left as they are and converge later
    through polling.
    """
    updated: list[BatchItem] = []
    for index, item in enumerate(items):
        record = _match_upload_record(item, index, records)
        if record is None:
            updated.append(item)
            continue
        status = record.status if record.status is not None else ItemStatus.FAILED
        updated.append(
            item.model_copy(
                update={
                    "status": status,
                    "progress": 100,
                    "result": record,
                    "error": record.error if status != ItemStatus.SUCCESS else None,
                }
            )
        )
    return updated


def apply_poll_snapshot(
    items: Sequence[BatchItem], records: Sequence[ResultRecord]
) -> list[BatchItem]:
    """
    Merge one polled server snapshot into the batch.

    Only items that are not terminal yet are touched. When the server
    reports a status it replaces the local one and progress jumps to 100;
    a record without status only refreshes the stored result. Applying the
    same snapshot twice yields the same items.

    Items are joined by filename and the first record in server order wins.
    The result list is the server's full history, so an older record with
    the same filename from an earlier batch shadows a newer one and can
    finish a new item.
    """
    by_name: dict[str, ResultRecord] = {}
    for record in records:
        if record.original_filename is not None:
            by_name.setdefault(record.original_filename, record)

    updated: list[BatchItem] = []
    for item in items:
        record = None if item.is_terminal else by_name.get(item.name)
        if record is None:
            updated.append(item)
            continue
        changes = {"result": record}
        if record.status is not None:
            changes["status"] = record.status
            changes["progress"] = 100
            if record.status == ItemStatus.FAILED and record.error:
                changes["error"] = record.error
        updated.append(item.model_copy(update=changes))
    return updated


def fail_batch(items: Sequence[BatchItem], message: str) -> list[BatchItem]:
    """Force every item to failed after the upload call itself broke."""
    return [
        item.model_copy(update={"status": ItemStatus.FAILED, "error": message})
        for item in items
    ]


def is_batch_complete(items: Sequence[BatchItem]) -> bool:
    return len(items) > 0 and all(item.is_terminal for item in items)
