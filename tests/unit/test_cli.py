"""Unit tests for the ocr-batch command line."""

from __future__ import annotations

from pathlib import Path

import httpx
import pytest
from PIL import Image

from ocrbatch import cli
from ocrbatch.clients.backend_client import BackendClient

BASE = "https://ocr.example.com/api"


@pytest.fixture
def backend(monkeypatch, restore_root_logger):
    """Route every client the CLI opens to an in-memory handler."""
    state: dict = {
        "upload": [],
        "results": [],
        "stats": {"total": 4, "success": 3, "failed": 1, "total_time": 8.0, "avg_time": 2.0},
        "detail": {"stem": "a", "blocks": [{"bbox": [10, 10, 40, 20]}, {"bbox": [1, 2]}]},
        "cleared": False,
    }

    def handler(request: httpx.Request) -> httpx.Response:
        path = request.url.path.removeprefix("/api")
        if path == "/upload":
            return httpx.Response(200, json={"results": state["upload"]})
        if path == "/results":
            return httpx.Response(200, json={"results": state["results"]})
        if path == "/stats":
            return httpx.Response(200, json=state["stats"])
        if path == "/result/a":
            return httpx.Response(200, json=state["detail"])
        if path == "/pdf/a":
            return httpx.Response(200, content=b"%PDF-1.4")
        if path == "/clear":
            state["cleared"] = True
            return httpx.Response(200, json={"message": "ok"})
        return httpx.Response(404, json={"detail": "not found"})

    def make_client(base_url=None):
        return BackendClient(base_url=BASE, transport=httpx.MockTransport(handler))

    monkeypatch.setattr(cli, "BackendClient", make_client)
    return state


def _image(path: Path, size=(200, 100)) -> Path:
    Image.new("RGB", size, (0, 128, 255)).save(path)
    return path


def test_submit_prints_final_statuses(backend, tmp_path: Path, capsys) -> None:
    backend["upload"] = [
        {"original_filename": "a.png", "status": "success", "processing_time": 1.5},
        {"original_filename": "b.png", "status": "skipped"},
    ]
    files = [_image(tmp_path / "a.png"), _image(tmp_path / "b.png")]

    code = cli.main(["--state-dir", str(tmp_path / "state"), "submit", *map(str, files), "--batch-size", "2"])

    out = capsys.readouterr().out
    assert code == 0
    assert "2 of 2 files completed" in out
    assert "a.png: Completed successfully (1.50s)" in out
    assert (tmp_path / "state" / "ocrbatch_ui_state_v1.json").exists()


def test_submit_with_failures_exits_one(backend, tmp_path: Path, capsys) -> None:
    backend["upload"] = [{"original_filename": "a.png", "status": "failed", "error": "unreadable"}]

    code = cli.main(["--state-dir", str(tmp_path), "submit", str(_image(tmp_path / "a.png"))])

    assert code == 1
    assert "a.png: unreadable" in capsys.readouterr().out


def test_submit_missing_file(backend, tmp_path: Path, capsys) -> None:
    code = cli.main(["--state-dir", str(tmp_path), "submit", str(tmp_path / "nope.png")])

    assert code == 2
    assert "file not found" in capsys.readouterr().err


def test_resume_without_batch(backend, tmp_path: Path, capsys) -> None:
    code = cli.main(["--state-dir", str(tmp_path), "resume"])

    assert code == 0
    assert "No batch in flight." in capsys.readouterr().out


def test_stats(backend, capsys) -> None:
    assert cli.main(["stats"]) == 0

    out = capsys.readouterr().out
    assert "Total processed: 4" in out
    assert "(75.0%)" in out


def test_clear_requires_confirmation(backend, capsys) -> None:
    assert cli.main(["clear"]) == 2
    assert backend["cleared"] is False

    assert cli.main(["clear", "--yes"]) == 0
    assert backend["cleared"] is True


def test_download_pdf(backend, tmp_path: Path) -> None:
    out = tmp_path / "pdfs" / "a.pdf"

    assert cli.main(["download", "a", "--out", str(out)]) == 0
    assert out.read_bytes() == b"%PDF-1.4"


def test_overlay_from_local_image(backend, tmp_path: Path, capsys) -> None:
    image = _image(tmp_path / "a.png", size=(400, 200))
    out = tmp_path / "preview.png"

    code = cli.main(["overlay", "a", "--image", str(image), "--width", "200", "--out", str(out)])

    assert code == 0
    assert "1 text regions drawn" in capsys.readouterr().out
    with Image.open(out) as preview:
        assert preview.size == (200, 100)
        assert preview.getpixel((5, 10)) == (255, 255, 255, 255)


def test_transport_error_exits_two(backend, capsys) -> None:
    assert cli.main(["download", "missing", "--out", "x.pdf"]) == 2
    assert "HTTP 404" in capsys.readouterr().err
