"""Durable storage for the persisted UI state.

The snapshot lives under a single key whose name carries the schema
version, so a future incompatible layout is simply never read. Restores
are field by field: a broken field is skipped and the rest still apply.
"""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any, Optional, Protocol

from pydantic import ValidationError

from ocrbatch.core.exceptions import CorruptPersistedState
from ocrbatch.models.dto import (
    DEFAULT_BATCH_SIZE,
    TABS,
    BatchItem,
    UIState,
    clamp_batch_size,
)
from ocrbatch.utils.io_utils import write_text_atomic

logger = logging.getLogger(__name__)

STATE_KEY = "ocrbatch_ui_state_v1"


class StateStore(Protocol):
    """Key-less durable slot holding one serialized snapshot."""

    def read(self) -> Optional[str]: ...

    def write(self, raw: str) -> None: ...


class FileStateStore:
    """Keeps the snapshot in `<state_dir>/<STATE_KEY>.json`."""

    def __init__(self, state_dir: Path, key: str = STATE_KEY) -> None:
        self.path = Path(state_dir) / f"{key}.json"

    def read(self) -> Optional[str]:
        try:
            return self.path.read_text(encoding="utf-8")
        except FileNotFoundError:
            return None
        except (OSError, UnicodeDecodeError) as e:
            logger.warning("Cannot read persisted UI state from %s: %s", self.path, e)
            return None

    def write(self, raw: str) -> None:
        write_text_atomic(self.path, raw)


class MemoryStateStore:
    """In-process store, used by tests and by hosts with their own persistence."""

    def __init__(self, raw: Optional[str] = None) -> None:
        self.raw = raw
        self.writes = 0

    def read(self) -> Optional[str]:
        return self.raw

    def write(self, raw: str) -> None:
        self.raw = raw
        self.writes += 1


def dump_ui_state(state: UIState) -> str:
    payload = {
        "activeTab": state.active_tab,
        "processingQueue": [item.model_dump(mode="json") for item in state.batch],
        "isProcessing": state.is_processing,
        "batchSize": state.batch_size,
    }
    return json.dumps(payload, ensure_ascii=False)


def _skip(field: str, reason: str) -> None:
    err = CorruptPersistedState(reason, field=field)
    logger.warning(err.message, extra={"error_code": err.error_code})


def load_ui_state(raw: Optional[str], default_batch_size: int = DEFAULT_BATCH_SIZE) -> UIState:
    """
    Rebuild UI state from a persisted snapshot.

    Args:
      raw: Serialized snapshot, or None when nothing was stored.
      default_batch_size: Batch size used when the snapshot has none.

    Returns:
      Restored state; defaults for anything missing or unusable. Never raises.
    """
    fields: dict[str, Any] = {"batch_size": clamp_batch_size(default_batch_size)}
    if raw is None:
        return UIState(**fields)

    try:
        data = json.loads(raw)
    except (TypeError, ValueError) as e:
        _skip("*", f"not valid JSON ({e})")
        return UIState(**fields)
    if not isinstance(data, dict):
        _skip("*", "snapshot is not an object")
        return UIState(**fields)

    tab = data.get("activeTab")
    if isinstance(tab, str) and tab in TABS:
        fields["active_tab"] = tab
    elif tab is not None:
        _skip("activeTab", f"unknown tab {tab!r}")

    queue = data.get("processingQueue")
    if isinstance(queue, list):
        try:
            fields["batch"] = [BatchItem.model_validate(item) for item in queue]
        except ValidationError as e:
            _skip("processingQueue", f"invalid item ({e.error_count()} errors)")
    elif queue is not None:
        _skip("processingQueue", "not a list")

    processing = data.get("isProcessing")
    if isinstance(processing, bool):
        fields["is_processing"] = processing
    elif processing is not None:
        _skip("isProcessing", "not a boolean")

    size = data.get("batchSize")
    if isinstance(size, int) and not isinstance(size, bool):
        fields["batch_size"] = clamp_batch_size(size)
    elif size is not None:
        _skip("batchSize", "not an integer")

    # An in-flight flag without items could never complete.
    if fields.get("is_processing") and not fields.get("batch"):
        fields["is_processing"] = False

    return UIState(**fields)
