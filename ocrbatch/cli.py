"""
Command-line front end for the OCR batch client.

Usage:
    ocr-batch submit scans/*.png --batch-size 3
    ocr-batch resume
    ocr-batch stats
    ocr-batch overlay <stem> --image scan.png --width 800 --out preview.png
"""

from __future__ import annotations

import argparse
import asyncio
import io
import logging
import sys
from pathlib import Path
from typing import Optional

from PIL import Image

from ocrbatch.clients.backend_client import BackendClient, UploadFile
from ocrbatch.core.exceptions import BaseError
from ocrbatch.core.logging_config import configure_structured_logging
from ocrbatch.core.settings import app_settings, backend_settings, engine_settings
from ocrbatch.engine.engine import ReconciliationEngine
from ocrbatch.engine.state_store import FileStateStore
from ocrbatch.engine.summary import item_status_text, summarize_queue
from ocrbatch.models.dto import BatchItem, ItemStatus
from ocrbatch.overlay.geometry import Size, fit_within
from ocrbatch.overlay.renderer import OverlayView
from ocrbatch.utils.io_utils import write_bytes

logger = logging.getLogger(__name__)


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="ocr-batch",
        description="Submit images to the OCR-to-PDF service and track them to completion.",
    )
    parser.add_argument("--api-url", default=None, help="Backend API base URL")
    parser.add_argument("--state-dir", type=Path, default=None, help="Directory for persisted state")
    parser.add_argument("--poll-interval", type=float, default=None, help="Seconds between polls")
    parser.add_argument("--log-level", default=None, help="DEBUG, INFO, WARNING, ERROR")
    sub = parser.add_subparsers(dest="command", required=True)

    submit = sub.add_parser("submit", help="Upload files as one batch and wait for the outcome")
    submit.add_argument("files", nargs="+", type=Path)
    submit.add_argument("--batch-size", type=int, default=None, help="Concurrent processing hint (1-10)")

    sub.add_parser("resume", help="Continue tracking a batch left in flight")
    sub.add_parser("stats", help="Print server statistics")

    clear = sub.add_parser("clear", help="Delete every server-side result")
    clear.add_argument("--yes", action="store_true", help="Confirm the deletion")

    download = sub.add_parser("download", help="Download one PDF, or all of them as ZIP")
    download.add_argument("stem", nargs="?", help="Result stem; omit to download everything")
    download.add_argument("--out", type=Path, required=True)

    overlay = sub.add_parser("overlay", help="Render detected regions over the original image")
    overlay.add_argument("stem")
    source = overlay.add_mutually_exclusive_group(required=True)
    source.add_argument("--image", type=Path, help="Local copy of the original image")
    source.add_argument("--filename", help="Original filename; the image is fetched from the server")
    overlay.add_argument("--width", type=int, default=800, help="Maximum displayed width")
    overlay.add_argument("--out", type=Path, required=True)
    return parser


def _print_batch(items: list[BatchItem]) -> None:
    summary = summarize_queue(items)
    print(f"{summary.completed} of {summary.total} files completed")
    for item in items:
        took = ""
        if item.result is not None and item.result.processing_time is not None:
            took = f" ({item.result.processing_time:.2f}s)"
        print(f"  [{item.status.value:>10}] {item.name}: {item_status_text(item)}{took}")
    print(f"Success: {summary.success}  Failed: {summary.failed}  Pending: {summary.pending}")


async def _track(engine: ReconciliationEngine, files: Optional[list[Path]], batch_size: Optional[int]) -> int:
    finished = asyncio.Event()

    def on_change(state) -> None:
        if not state.is_processing:
            finished.set()

    engine.subscribe(
        on_change=on_change,
        on_error=lambda message: print(f"Error: {message}", file=sys.stderr),
    )
    await engine.start()

    if files is not None:
        uploads = [UploadFile.from_path(p) for p in files]
        await engine.submit_batch(uploads, batch_size)
    elif not engine.is_processing:
        print("No batch in flight.")
        if engine.batch:
            _print_batch(engine.batch)
        return 0

    if engine.is_processing:
        finished.clear()
        await finished.wait()

    _print_batch(engine.batch)
    return 1 if any(item.status == ItemStatus.FAILED for item in engine.batch) else 0


async def _render_overlay(client: BackendClient, args: argparse.Namespace) -> None:
    view = OverlayView()
    await view.load(client, args.stem)
    if args.image is not None:
        image = Image.open(args.image)
    else:
        image = Image.open(io.BytesIO(await client.get_image(args.filename)))
    out: Path = args.out
    natural = Size(*image.size)
    displayed = fit_within(natural, args.width)
    view.on_image_loaded(natural, displayed)
    out.parent.mkdir(parents=True, exist_ok=True)
    view.surface.composite_onto(image).save(out)
    print(f"{len(view.boxes)} text regions drawn -> {out}")


async def _run(args: argparse.Namespace) -> int:
    state_dir = args.state_dir or engine_settings.state_dir
    async with BackendClient(base_url=args.api_url) as client:
        if args.command in ("submit", "resume"):
            engine = ReconciliationEngine(
                client, FileStateStore(state_dir), poll_interval=args.poll_interval
            )
            try:
                files = args.files if args.command == "submit" else None
                batch_size = getattr(args, "batch_size", None)
                return await _track(engine, files, batch_size)
            finally:
                await engine.aclose()

        if args.command == "stats":
            stats = await client.get_statistics()
            print(f"Total processed: {stats.total}")
            print(f"Successful:      {stats.success} ({stats.success_rate:.1f}%)")
            print(f"Failed:          {stats.failed} ({stats.failure_rate:.1f}%)")
            print(f"Avg time:        {stats.avg_time:.2f}s")
            return 0

        if args.command == "clear":
            if not args.yes:
                print("Refusing to clear all results without --yes", file=sys.stderr)
                return 2
            await client.clear()
            print("All results cleared successfully!")
            return 0

        if args.command == "download":
            data = await (client.download_pdf(args.stem) if args.stem else client.download_all())
            print(f"Saved {len(data)} bytes -> {write_bytes(args.out, data)}")
            return 0

        if args.command == "overlay":
            await _render_overlay(client, args)
            return 0

    raise ValueError(f"Unsupported command: {args.command}")


def main(argv: list[str] | None = None) -> int:
    parser = _build_parser()
    args = parser.parse_args(argv)
    configure_structured_logging(
        level=args.log_level or app_settings.LOG_LEVEL,
        json_format=app_settings.LOG_JSON,
    )
    logger.debug("Using backend %s", args.api_url or backend_settings.OCR_BATCH_API_URL)

    for path in getattr(args, "files", None) or []:
        if not path.is_file():
            print(f"Error: file not found: {path}", file=sys.stderr)
            return 2

    try:
        return asyncio.run(_run(args))
    except BaseError as exc:
        print(f"Error: {exc.message}", file=sys.stderr)
        return 2
    except KeyboardInterrupt:
        print("Interrupted; an in-flight batch resumes with `ocr-batch resume`.", file=sys.stderr)
        return 130


if __name__ == "__main__":
    raise SystemExit(main())
