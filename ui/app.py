"""
Streamlit UI for the OCR batch client.

Five tabs over one reconciliation engine: upload a batch, watch it being
processed, read server statistics, review detected text regions on top of
the original image, and download the generated PDFs.
"""

import asyncio
import io
import threading
import time

import streamlit as st
from PIL import Image

from ocrbatch.clients.backend_client import BackendClient, UploadFile
from ocrbatch.core.exceptions import BaseError, TransportFailure
from ocrbatch.core.logging_config import configure_structured_logging
from ocrbatch.core.settings import app_settings, engine_settings
from ocrbatch.engine import FileStateStore, ReconciliationEngine
from ocrbatch.engine.summary import item_status_text, summarize_queue
from ocrbatch.models.dto import MAX_BATCH_SIZE, MIN_BATCH_SIZE, TABS, ItemStatus
from ocrbatch.overlay import OverlayView, Size, fit_within

TAB_LABELS = {
    "upload": "Upload",
    "processing": "Processing",
    "statistics": "Statistics",
    "review": "Review",
    "results": "Results",
}
REVIEW_MAX_WIDTH = 720

STATUS_ICONS = {
    ItemStatus.PENDING: "⏳",
    ItemStatus.PROCESSING: "🔄",
    ItemStatus.SUCCESS: "✅",
    ItemStatus.FAILED: "❌",
    ItemStatus.SKIPPED: "⏭️",
}


class EngineHost:
    """Runs the engine on a private event loop that outlives script reruns."""

    def __init__(self) -> None:
        self.loop = asyncio.new_event_loop()
        self._thread = threading.Thread(target=self.loop.run_forever, daemon=True, name="ocrbatch-loop")
        self._thread.start()
        self.client = BackendClient()
        self.client.open()
        self.engine = ReconciliationEngine(self.client, FileStateStore(engine_settings.state_dir))
        self.errors: list[str] = []
        self.engine.subscribe(on_error=self.errors.append)
        self.run(self.engine.start())

    def run(self, coro):
        return asyncio.run_coroutine_threadsafe(coro, self.loop).result()


@st.cache_resource
def get_host() -> EngineHost:
    configure_structured_logging(level=app_settings.LOG_LEVEL, json_format=app_settings.LOG_JSON)
    return EngineHost()


# --- Page setup ---
st.set_page_config(page_title="Batch OCR to PDF", layout="wide")
st.title("Batch OCR to PDF")

st.markdown(
    """
<style>
.block-container{max-width:1180px;padding-top:1.25rem;}
.meta{color:#6b7280;font-size:0.92rem;margin:0.25rem 0 1rem 0;}
.stButton>button{border-radius:10px;padding:.55rem 1rem;font-weight:600;}
.stDownloadButton>button{border-radius:10px;}
</style>
""",
    unsafe_allow_html=True,
)

host = get_host()
engine = host.engine

while host.errors:
    st.error(host.errors.pop(0))

# --- Navigation ---
current = engine.state.active_tab
chosen = st.radio(
    "View",
    TABS,
    index=TABS.index(current),
    format_func=TAB_LABELS.get,
    horizontal=True,
    label_visibility="collapsed",
)
if chosen != current:
    host.run(engine.set_active_tab(chosen))
    st.rerun()


def render_upload() -> None:
    st.subheader("Upload images")
    batch_size = st.slider(
        "Batch size (files processed concurrently)",
        min_value=MIN_BATCH_SIZE,
        max_value=MAX_BATCH_SIZE,
        value=engine.state.batch_size,
    )
    if batch_size != engine.state.batch_size:
        host.loop.call_soon_threadsafe(engine.set_batch_size, batch_size)

    with st.form("upload_form", clear_on_submit=True):
        uploaded = st.file_uploader(
            "Select images or ZIP archives",
            type=["png", "jpg", "jpeg", "tif", "tiff", "bmp", "webp", "zip"],
            accept_multiple_files=True,
        )
        submitted = st.form_submit_button(
            "Process files", type="primary", disabled=engine.is_processing
        )

    if submitted:
        if not uploaded:
            st.warning("Please attach at least one file")
            return
        files = [
            UploadFile(name=f.name, content=f.getvalue(), content_type=f.type or "application/octet-stream")
            for f in uploaded
        ]
        with st.spinner(f"Uploading {len(files)} files..."):
            try:
                host.run(engine.submit_batch(files, batch_size))
            except BaseError as e:
                st.error(e.message)
                return
        st.rerun()


def render_processing() -> None:
    st.subheader("Processing queue")
    batch = engine.batch
    if not batch:
        st.info("No files in the queue. Upload some on the Upload tab.")
        return

    summary = summarize_queue(batch)
    st.progress(summary.completed / summary.total, text=f"{summary.completed} of {summary.total} files completed")
    col1, col2, col3 = st.columns(3)
    col1.metric("Success", summary.success)
    col2.metric("Failed", summary.failed)
    col3.metric("Pending", summary.pending)

    for item in batch:
        icon = STATUS_ICONS[item.status]
        line = f"{icon} **{item.name}** · {item_status_text(item)}"
        if item.result is not None and item.result.processing_time is not None:
            line += f" · {item.result.processing_time:.2f}s"
        st.markdown(line)
        if not item.is_terminal:
            st.progress(item.progress / 100)


def render_statistics() -> None:
    st.subheader("Statistics")
    stats = engine.statistics
    col1, col2, col3, col4 = st.columns(4)
    col1.metric("Total processed", stats.total)
    col2.metric("Successful", stats.success, f"{stats.success_rate:.1f}%")
    col3.metric("Failed", stats.failed, f"{stats.failure_rate:.1f}%", delta_color="inverse")
    col4.metric("Avg time", f"{stats.avg_time:.2f}s")

    failed = engine.failed_results
    if failed:
        st.markdown("**Failed files**")
        for record in failed:
            st.write(f"- {record.original_filename or record.stem}: {record.error or 'Processing failed'}")


def _overlay_view() -> OverlayView:
    if "overlay_view" not in st.session_state:
        st.session_state.overlay_view = OverlayView()
    return st.session_state.overlay_view


def render_review() -> None:
    st.subheader("Review detected text")
    reviewable = [r for r in engine.success_results if r.stem and r.original_filename]
    if not reviewable:
        st.info("No successfully processed files to review yet.")
        return

    labels = {r.stem: r.original_filename for r in reviewable}
    stem = st.selectbox("File", list(labels), format_func=labels.get)
    record = next(r for r in reviewable if r.stem == stem)

    col1, col2, col3 = st.columns(3)
    col1.caption(f"Blocks: {record.blocks_count if record.blocks_count is not None else 'n/a'}")
    col2.caption(f"Characters: {record.text_length if record.text_length is not None else 'n/a'}")
    if record.processing_time is not None:
        col3.caption(f"Time: {record.processing_time:.2f}s")

    view = _overlay_view()
    try:
        view.on_image_reset()
        host.run(view.load(host.client, stem))
        image = Image.open(io.BytesIO(host.run(host.client.get_image(record.original_filename))))
    except TransportFailure as e:
        st.error(f"Could not load {record.original_filename}: {e.message}")
        return

    natural = Size(*image.size)
    view.on_image_loaded(natural, fit_within(natural, REVIEW_MAX_WIDTH))
    st.image(view.surface.composite_onto(image), caption=f"{len(view.boxes)} text regions")

    try:
        pdf = host.run(host.client.download_pdf(stem))
    except TransportFailure as e:
        st.caption(f"PDF unavailable: {e.message}")
        return
    st.download_button("Download PDF", pdf, file_name=f"{stem}.pdf", mime="application/pdf")


def render_results() -> None:
    st.subheader("Results")
    results = engine.success_results
    col1, col2 = st.columns(2)
    with col1:
        if results:
            try:
                archive = host.run(host.client.download_all())
            except TransportFailure as e:
                st.caption(f"Archive unavailable: {e.message}")
            else:
                st.download_button("Download all PDFs", archive, file_name="ocr_results.zip", mime="application/zip")
    with col2:
        if st.button("Clear all results", disabled=engine.is_processing):
            try:
                host.run(engine.clear_results())
            except TransportFailure as e:
                st.error(f"Failed to clear results: {e.message}")
            else:
                st.success("All results cleared successfully!")
                st.session_state.pop("overlay_view", None)
                st.rerun()

    if not results:
        st.info("No results yet.")
        return

    for record in results:
        with st.container(border=True):
            st.markdown(f"**{record.original_filename}**")
            st.markdown(
                f"<div class='meta'>{record.timestamp or ''} · "
                f"{record.blocks_count if record.blocks_count is not None else 'n/a'} blocks</div>",
                unsafe_allow_html=True,
            )
            if record.stem:
                st.link_button("Open PDF", host.client.pdf_url(record.stem))


RENDERERS = {
    "upload": render_upload,
    "processing": render_processing,
    "statistics": render_statistics,
    "review": render_review,
    "results": render_results,
}
RENDERERS[engine.state.active_tab]()

# Keep the page in step with the background poller while a batch is in flight.
if engine.is_processing:
    time.sleep(engine_settings.OCR_BATCH_POLL_INTERVAL_SECONDS)
    st.rerun()
