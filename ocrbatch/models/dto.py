"""
Typed contracts shared by the engine, the overlay renderer and the UI.

Server-owned records (`ResultRecord`, `DetailRecord`, `Statistics`) are
parsed leniently: unexpected values fall back to defaults instead of
failing validation, because a single odd record must not abort
reconciliation. Client-owned records (`BatchItem`, `UIState`) are frozen
and are replaced, never mutated.
"""

from __future__ import annotations

import logging
import math
from enum import Enum
from typing import Any, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from ocrbatch.core.exceptions import MalformedServerRecord

logger = logging.getLogger(__name__)

# Value used for numeric server fields that are missing or unusable.
UNAVAILABLE = None

MIN_BATCH_SIZE = 1
MAX_BATCH_SIZE = 10
DEFAULT_BATCH_SIZE = 5

Tab = Literal["upload", "processing", "statistics", "review", "results"]
TABS: tuple[str, ...] = ("upload", "processing", "statistics", "review", "results")
DEFAULT_TAB: Tab = "upload"


class ItemStatus(str, Enum):
    PENDING = "pending"
    PROCESSING = "processing"
    SUCCESS = "success"
    FAILED = "failed"
    SKIPPED = "skipped"


TERMINAL_STATUSES = frozenset({ItemStatus.SUCCESS, ItemStatus.FAILED, ItemStatus.SKIPPED})


def clamp_batch_size(value: int) -> int:
    """Clamp a requested concurrency hint into the accepted 1..10 range."""
    return max(MIN_BATCH_SIZE, min(MAX_BATCH_SIZE, int(value)))


def _to_status(value: Any) -> Optional[ItemStatus]:
    if isinstance(value, ItemStatus):
        return value
    if isinstance(value, str):
        try:
            return ItemStatus(value.strip().lower())
        except ValueError:
            return None
    return None


def _to_number(value: Any, kind: type) -> Any:
    if value is None or isinstance(value, bool):
        return UNAVAILABLE
    try:
        number = float(value)
    except (TypeError, ValueError):
        return UNAVAILABLE
    if math.isnan(number) or math.isinf(number):
        return UNAVAILABLE
    return int(number) if kind is int else number


def _to_text(value: Any) -> Optional[str]:
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, (str, int, float)):
        return str(value)
    return None


class ResultRecord(BaseModel):
    """
    One processed file as reported by the backend (read-only).
    """

    model_config = ConfigDict(frozen=True)

    original_filename: Optional[str] = None
    status: Optional[ItemStatus] = None
    stem: Optional[str] = None
    timestamp: Optional[str] = None
    processing_time: Optional[float] = UNAVAILABLE
    blocks_count: Optional[int] = UNAVAILABLE
    text_length: Optional[int] = UNAVAILABLE
    error: Optional[str] = None

    @field_validator("status", mode="before")
    @classmethod
    def _status(cls, v: Any) -> Optional[ItemStatus]:
        return _to_status(v)

    @field_validator("processing_time", mode="before")
    @classmethod
    def _float_fields(cls, v: Any) -> Optional[float]:
        return _to_number(v, float)

    @field_validator("blocks_count", "text_length", mode="before")
    @classmethod
    def _int_fields(cls, v: Any) -> Optional[int]:
        return _to_number(v, int)

    @field_validator("original_filename", "stem", "timestamp", "error", mode="before")
    @classmethod
    def _text_fields(cls, v: Any) -> Optional[str]:
        return _to_text(v)


class Block(BaseModel):
    """
    One detected text region. `bbox` is kept raw and checked by the renderer.
    """

    model_config = ConfigDict(frozen=True, extra="allow")

    bbox: Any = None


class DetailRecord(BaseModel):
    """
    Detail payload for one result: its stem plus detected regions, in
    detection order and in the original image's pixel space.
    """

    model_config = ConfigDict(frozen=True, extra="allow")

    stem: Optional[str] = None
    blocks: list[Block] = Field(default_factory=list)

    @field_validator("stem", mode="before")
    @classmethod
    def _stem(cls, v: Any) -> Optional[str]:
        return _to_text(v)

    @field_validator("blocks", mode="before")
    @classmethod
    def _blocks(cls, v: Any) -> list:
        if not isinstance(v, list):
            return []
        return [b if isinstance(b, (dict, Block)) else {"bbox": None} for b in v]


class Statistics(BaseModel):
    """
    Aggregate counters reported by `GET /stats`.
    """

    model_config = ConfigDict(frozen=True)

    total: int = 0
    success: int = 0
    failed: int = 0
    total_time: float = 0.0
    avg_time: float = 0.0

    @field_validator("total", "success", "failed", mode="before")
    @classmethod
    def _counts(cls, v: Any) -> int:
        number = _to_number(v, int)
        return 0 if number is UNAVAILABLE else number

    @field_validator("total_time", "avg_time", mode="before")
    @classmethod
    def _times(cls, v: Any) -> float:
        number = _to_number(v, float)
        return 0.0 if number is UNAVAILABLE else number

    @property
    def success_rate(self) -> float:
        return (self.success / self.total) * 100 if self.total > 0 else 0.0

    @property
    def failure_rate(self) -> float:
        return (self.failed / self.total) * 100 if self.total > 0 else 0.0


class BatchItem(BaseModel):
    """
    Client-side lifecycle record of one submitted file.
    """

    model_config = ConfigDict(frozen=True)

    id: str
    name: str
    status: ItemStatus = ItemStatus.PENDING
    progress: int = Field(default=0, ge=0, le=100)
    result: Optional[ResultRecord] = None
    error: Optional[str] = None

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_STATUSES


class UIState(BaseModel):
    """
    Everything the engine persists between runs.
    """

    model_config = ConfigDict(frozen=True)

    active_tab: Tab = DEFAULT_TAB
    batch: list[BatchItem] = Field(default_factory=list)
    is_processing: bool = False
    batch_size: int = DEFAULT_BATCH_SIZE

    @field_validator("batch_size", mode="before")
    @classmethod
    def _clamp(cls, v: Any) -> int:
        return clamp_batch_size(v)


def parse_result_list(payload: Any) -> list[ResultRecord]:
    """
    Parse a `{results: [...]}` response into records.

    Entries that are not objects become blank records so positional
    matching against the submitted files keeps its indexes.

    Args:
      payload: Decoded JSON body.

    Returns:
      Parsed records in server order.
    """
    if not isinstance(payload, dict) or not isinstance(payload.get("results"), list):
        err = MalformedServerRecord("result list", "missing 'results' array")
        logger.warning(err.message, extra={"error_code": err.error_code})
        return []

    records: list[ResultRecord] = []
    for index, entry in enumerate(payload["results"]):
        if not isinstance(entry, dict):
            err = MalformedServerRecord("result record", f"entry {index} is not an object")
            logger.warning(err.message, extra={"error_code": err.error_code})
            records.append(ResultRecord())
            continue
        records.append(ResultRecord.model_validate(entry))
    return records


def parse_detail(payload: Any) -> DetailRecord:
    """
    Parse a `GET /result/{stem}` response.
    """
    if not isinstance(payload, dict):
        err = MalformedServerRecord("detail record", "body is not an object")
        logger.warning(err.message, extra={"error_code": err.error_code})
        return DetailRecord()
    return DetailRecord.model_validate(payload)


def parse_statistics(payload: Any) -> Statistics:
    if not isinstance(payload, dict):
        err = MalformedServerRecord("statistics", "body is not an object")
        logger.warning(err.message, extra={"error_code": err.error_code})
        return Statistics()
    return Statistics.model_validate(payload)
