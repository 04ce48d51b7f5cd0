"""
Job reconciliation engine.

Owns the client's view of the current batch and of the persisted UI
state. Every mutation goes through `_commit`, which persists the full
snapshot and notifies listeners. Server truth arrives from the upload
response and, while a batch is in flight, from periodic polls of the
full result list.
"""

from __future__ import annotations

import asyncio
import logging
import time
from typing import Callable, Optional, Sequence

from ocrbatch.clients.backend_client import BackendClient, UploadFile
from ocrbatch.core.exceptions import BatchInProgressError, TransportFailure
from ocrbatch.core.settings import engine_settings
from ocrbatch.engine import reconcile
from ocrbatch.engine.poller import RepeatingTask
from ocrbatch.engine.state_store import StateStore, dump_ui_state, load_ui_state
from ocrbatch.models.dto import (
    TABS,
    BatchItem,
    ItemStatus,
    ResultRecord,
    Statistics,
    UIState,
    clamp_batch_size,
)

logger = logging.getLogger(__name__)

REFRESHING_TABS = frozenset({"results", "review", "statistics"})

ChangeListener = Callable[[UIState], None]
CompleteListener = Callable[[list[BatchItem]], None]
ErrorListener = Callable[[str], None]


class ReconciliationEngine:
    """
    Client-side owner of the batch lifecycle.

    Args:
        client: Open backend client; the engine never closes it.
        store: Durable slot for the UI snapshot.
        poll_interval: Seconds between polls while a batch is in flight.
        default_batch_size: Batch size when nothing was persisted.
    """

    def __init__(
        self,
        client: BackendClient,
        store: StateStore,
        *,
        poll_interval: Optional[float] = None,
        default_batch_size: Optional[int] = None,
    ):
        self._client = client
        self._store = store
        self._default_batch_size = clamp_batch_size(
            engine_settings.OCR_BATCH_DEFAULT_BATCH_SIZE
            if default_batch_size is None
            else default_batch_size
        )
        interval = (
            engine_settings.OCR_BATCH_POLL_INTERVAL_SECONDS
            if poll_interval is None
            else poll_interval
        )
        self._state = UIState(batch_size=self._default_batch_size)
        self._poller = RepeatingTask("ocrbatch-poll", interval, self.poll_once)
        self._last_stamp = 0
        self._uploading = False
        self._poll_in_flight = False
        self._closed = False

        self.results: list[ResultRecord] = []
        self.statistics = Statistics()

        self._on_change: list[ChangeListener] = []
        self._on_complete: list[CompleteListener] = []
        self._on_error: list[ErrorListener] = []

    # --- read access ---

    @property
    def state(self) -> UIState:
        return self._state

    @property
    def batch(self) -> list[BatchItem]:
        return list(self._state.batch)

    @property
    def is_processing(self) -> bool:
        return self._state.is_processing

    @property
    def is_polling(self) -> bool:
        return self._poller.running

    @property
    def success_results(self) -> list[ResultRecord]:
        return [r for r in self.results if r.status == ItemStatus.SUCCESS]

    @property
    def failed_results(self) -> list[ResultRecord]:
        return [r for r in self.results if r.status == ItemStatus.FAILED]

    def subscribe(
        self,
        on_change: Optional[ChangeListener] = None,
        on_complete: Optional[CompleteListener] = None,
        on_error: Optional[ErrorListener] = None,
    ) -> None:
        if on_change is not None:
            self._on_change.append(on_change)
        if on_complete is not None:
            self._on_complete.append(on_complete)
        if on_error is not None:
            self._on_error.append(on_error)

    # --- state plumbing ---

    def _commit(self, **changes) -> None:
        new_state = self._state.model_copy(update=changes)
        if new_state == self._state:
            return
        self._state = new_state
        try:
            self._store.write(dump_ui_state(new_state))
        except Exception as e:
            # Persistence is best-effort; the in-memory state stays authoritative.
            logger.debug("Persisting UI state failed: %s", e, extra=self._log_extra())
        for listener in self._on_change:
            listener(new_state)

    def _next_stamp(self) -> int:
        stamp = max(int(time.time() * 1000), self._last_stamp + 1)
        self._last_stamp = stamp
        return stamp

    def _log_extra(self, **extra) -> dict:
        extra.setdefault("batch_id", reconcile.batch_id_of(self._state.batch))
        return extra

    # --- lifecycle ---

    async def start(self) -> None:
        """
        Restore the persisted snapshot, load server data and resume polling
        for a batch that was in flight when the previous run stopped.
        """
        self._state = load_ui_state(self._store.read(), self._default_batch_size)
        restored_id = reconcile.batch_id_of(self._state.batch)
        if restored_id is not None and restored_id.isdigit():
            self._last_stamp = int(restored_id)
        for listener in self._on_change:
            listener(self._state)

        await self.refresh()

        if self._state.is_processing:
            logger.info(
                "Resuming in-flight batch of %d items",
                len(self._state.batch),
                extra=self._log_extra(),
            )
            self._poller.start()

    async def aclose(self) -> None:
        """Tear down polling; later ticks or responses change nothing."""
        self._closed = True
        await self._poller.stop()

    # --- operations ---

    async def submit_batch(
        self, files: Sequence[UploadFile], batch_size: Optional[int] = None
    ) -> list[BatchItem]:
        """
        Submit files as a new batch and merge the upload response.

        Args:
          files: Files to upload; an empty sequence changes nothing.
          batch_size: Concurrency hint for the backend, clamped to 1..10.

        Returns:
          The batch after the upload phase.

        Raises:
          BatchInProgressError: When another batch is still in flight.
          DuplicateFilenameError: When two files share a name.
          Exception: Any non-transport upload error, re-raised after the
            batch was failed and processing ended.
        """
        if not files:
            return self.batch
        if self._closed:
            raise RuntimeError("Engine is closed")
        if self._state.is_processing:
            raise BatchInProgressError(reconcile.batch_id_of(self._state.batch) or "")

        size = clamp_batch_size(self._state.batch_size if batch_size is None else batch_size)
        items = reconcile.build_batch([f.name for f in files], self._next_stamp())
        batch_id = reconcile.batch_id_of(items)

        self._commit(batch=items, is_processing=True, batch_size=size, active_tab="processing")
        logger.info(
            "Submitting batch of %d files",
            len(items),
            extra={"batch_id": batch_id},
        )
        self._commit(batch=reconcile.mark_uploading(self._state.batch))

        def on_progress(sent: int, total: int) -> None:
            if not self._closed and reconcile.batch_id_of(self._state.batch) == batch_id:
                self._commit(batch=reconcile.apply_upload_progress(self._state.batch, sent, total))

        self._uploading = True
        try:
            records = await self._client.upload(files, size, on_progress=on_progress)
        except TransportFailure as e:
            logger.error(
                "Upload failed, marking all %d items failed: %s",
                len(items),
                e.message,
                extra=self._log_extra(error_code=e.error_code, endpoint=e.endpoint),
            )
            self._commit(batch=reconcile.fail_batch(self._state.batch, e.message))
            for listener in self._on_error:
                listener(f"Failed to process files: {e.message}")
            await self._finish_processing(completed=False)
            return self.batch
        except Exception as e:
            logger.exception(
                "Upload aborted, marking all %d items failed",
                len(items),
                extra=self._log_extra(),
            )
            self._commit(batch=reconcile.fail_batch(self._state.batch, str(e) or type(e).__name__))
            await self._finish_processing(completed=False)
            raise
        finally:
            self._uploading = False

        if self._closed:
            return self.batch

        self._commit(batch=reconcile.apply_upload_results(self._state.batch, records))
        if reconcile.is_batch_complete(self._state.batch):
            await self._finish_processing(completed=True)
        else:
            await self.refresh()
            self._poller.start()
        return self.batch

    async def poll_once(self) -> None:
        """
        Fetch the server result list once and reconcile the batch with it.

        Transport failures are logged and ignored; the next tick retries.
        """
        if self._closed or self._uploading or self._poll_in_flight:
            return
        if not self._state.is_processing:
            return

        batch_id = reconcile.batch_id_of(self._state.batch)
        self._poll_in_flight = True
        try:
            records = await self._client.get_results()
        except TransportFailure as e:
            logger.info(
                "Poll failed, retrying on next tick: %s",
                e.message,
                extra=self._log_extra(error_code=e.error_code, endpoint=e.endpoint),
            )
            return
        finally:
            self._poll_in_flight = False

        # Drop responses that arrive after shutdown or for a replaced batch.
        if self._closed or not self._state.is_processing:
            return
        if reconcile.batch_id_of(self._state.batch) != batch_id:
            return

        self._commit(batch=reconcile.apply_poll_snapshot(self._state.batch, records))
        if reconcile.is_batch_complete(self._state.batch):
            await self._finish_processing(completed=True)

    async def _finish_processing(self, *, completed: bool) -> None:
        self._poller.cancel()
        changes: dict = {"is_processing": False}
        if completed:
            changes["active_tab"] = "results"
        self._commit(**changes)

        if completed:
            batch = self.batch
            logger.info(
                "Batch complete: %d success, %d failed, %d skipped",
                sum(1 for i in batch if i.status == ItemStatus.SUCCESS),
                sum(1 for i in batch if i.status == ItemStatus.FAILED),
                sum(1 for i in batch if i.status == ItemStatus.SKIPPED),
                extra=self._log_extra(),
            )
            for listener in self._on_complete:
                listener(batch)

        await self.refresh()

    async def refresh(self) -> bool:
        """
        Reload the full result list and statistics.

        Returns:
          True when both calls succeeded; on failure the previous data is kept.
        """
        if self._closed:
            return False
        results, stats = await asyncio.gather(
            self._client.get_results(),
            self._client.get_statistics(),
            return_exceptions=True,
        )
        for outcome in (results, stats):
            if isinstance(outcome, TransportFailure):
                logger.warning(
                    "Error loading data: %s",
                    outcome.message,
                    extra={"error_code": outcome.error_code, "endpoint": outcome.endpoint},
                )
                return False
            if isinstance(outcome, BaseException):
                raise outcome

        self.results = results
        self.statistics = stats
        for listener in self._on_change:
            listener(self._state)
        return True

    async def set_active_tab(self, tab: str) -> None:
        if tab not in TABS:
            raise ValueError(f"Unknown tab: {tab!r}")
        self._commit(active_tab=tab)
        if tab in REFRESHING_TABS:
            await self.refresh()

    def set_batch_size(self, value: int) -> int:
        size = clamp_batch_size(value)
        self._commit(batch_size=size)
        return size

    async def clear_results(self) -> None:
        """
        Drop every server-side result and empty the local batch.

        Raises:
          TransportFailure: When the backend refuses the clear request.
        """
        await self._client.clear()
        logger.info("Server results cleared", extra=self._log_extra())
        if self._state.is_processing:
            self._poller.cancel()
        self._commit(batch=[], is_processing=False)
        await self.refresh()
