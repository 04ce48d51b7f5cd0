from __future__ import annotations

import httpx
import pytest

from ocrbatch.clients.backend_client import BackendClient, UploadFile
from ocrbatch.core.exceptions import TransportFailure
from ocrbatch.models.dto import ItemStatus

BASE = "https://ocr.example.com/api"


def _client(handler) -> BackendClient:
    return BackendClient(base_url=BASE, timeout=5, verify=True, transport=httpx.MockTransport(handler))


@pytest.mark.asyncio
async def test_upload_sends_files_and_batch_size() -> None:
    seen: dict = {}

    def handler(request: httpx.Request) -> httpx.Response:  # type: ignore[override]
        if request.method == "POST" and request.url.path == "/api/upload":
            seen["body"] = request.content
            seen["content_type"] = request.headers["content-type"]
            return httpx.Response(
                200,
                json={
                    "results": [
                        {"original_filename": "a.png", "status": "success", "stem": "a", "processing_time": 1.5},
                        {"original_filename": "b.png", "status": "failed", "error": "no text"},
                    ]
                },
            )
        return httpx.Response(404, json={"detail": "not found"})

    progress: list[tuple[int, int]] = []
    files = [UploadFile("a.png", b"A" * 300, "image/png"), UploadFile("b.png", b"B" * 100, "image/png")]

    async with _client(handler) as client:
        records = await client.upload(files, 3, on_progress=lambda s, t: progress.append((s, t)))

    assert seen["content_type"].startswith("multipart/form-data")
    assert b'name="batch_size"' in seen["body"]
    assert b'name="files"; filename="a.png"' in seen["body"]
    assert b'name="files"; filename="b.png"' in seen["body"]
    assert [r.status for r in records] == [ItemStatus.SUCCESS, ItemStatus.FAILED]
    assert records[0].processing_time == 1.5
    assert progress and progress[-1] == (400, 400)


@pytest.mark.asyncio
async def test_polled_endpoints_bypass_caches() -> None:
    requests: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:  # type: ignore[override]
        requests.append(request)
        if request.url.path == "/api/results":
            return httpx.Response(200, json={"results": []})
        if request.url.path == "/api/stats":
            return httpx.Response(200, json={"total": 4, "success": 3, "failed": 1, "avg_time": 2.0})
        if request.url.path == "/api/result/scan 1":
            return httpx.Response(200, json={"stem": "scan 1", "blocks": [{"bbox": [1, 2, 3, 4], "text": "hi"}]})
        return httpx.Response(404)

    async with _client(handler) as client:
        assert await client.get_results() == []
        stats = await client.get_statistics()
        detail = await client.get_result("scan 1")

    assert stats.success_rate == 75.0
    assert detail.blocks[0].bbox == [1, 2, 3, 4]
    for request in requests:
        assert "_ts" in request.url.params
        assert request.headers["cache-control"] == "no-cache"


@pytest.mark.asyncio
async def test_http_error_maps_to_transport_failure() -> None:
    def handler(request: httpx.Request) -> httpx.Response:  # type: ignore[override]
        return httpx.Response(500, json={"detail": "disk full"})

    async with _client(handler) as client:
        with pytest.raises(TransportFailure) as exc_info:
            await client.get_results()

    err = exc_info.value
    assert err.http_status == 500
    assert err.endpoint == "/results"
    assert "disk full" in err.message
    assert err.retryable is True


@pytest.mark.asyncio
async def test_connection_error_maps_to_transport_failure() -> None:
    def handler(request: httpx.Request) -> httpx.Response:  # type: ignore[override]
        raise httpx.ConnectError("connection refused", request=request)

    async with _client(handler) as client:
        with pytest.raises(TransportFailure) as exc_info:
            await client.upload([UploadFile("a.png", b"x")], 5)

    assert exc_info.value.http_status is None
    assert "ConnectError" in exc_info.value.message


@pytest.mark.asyncio
async def test_non_json_body_is_transport_failure() -> None:
    def handler(request: httpx.Request) -> httpx.Response:  # type: ignore[override]
        return httpx.Response(200, text="<html>gateway</html>")

    async with _client(handler) as client:
        with pytest.raises(TransportFailure):
            await client.get_statistics()


@pytest.mark.asyncio
async def test_missing_results_array_yields_empty_list() -> None:
    def handler(request: httpx.Request) -> httpx.Response:  # type: ignore[override]
        return httpx.Response(200, json={"message": "ok"})

    async with _client(handler) as client:
        assert await client.get_results() == []


@pytest.mark.asyncio
async def test_binary_downloads_and_clear() -> None:
    def handler(request: httpx.Request) -> httpx.Response:  # type: ignore[override]
        if request.url.path == "/api/pdf/a":
            return httpx.Response(200, content=b"%PDF-1.4")
        if request.url.path == "/api/download-all":
            return httpx.Response(200, content=b"PK\x03\x04")
        if request.url.path == "/api/image/a.png":
            return httpx.Response(200, content=b"\x89PNG")
        if request.method == "POST" and request.url.path == "/api/clear":
            return httpx.Response(200, json={"message": "cleared"})
        return httpx.Response(404)

    async with _client(handler) as client:
        assert await client.download_pdf("a") == b"%PDF-1.4"
        assert await client.download_all() == b"PK\x03\x04"
        assert await client.get_image("a.png") == b"\x89PNG"
        assert await client.clear() == {"message": "cleared"}


def test_urls_are_built_from_base() -> None:
    client = BackendClient(base_url=BASE + "/")

    assert client.pdf_url("my scan") == f"{BASE}/pdf/my%20scan"
    assert client.image_url("a.png") == f"{BASE}/image/a.png"
    assert client.download_all_url() == f"{BASE}/download-all"


@pytest.mark.asyncio
async def test_request_before_open_raises() -> None:
    client = BackendClient(base_url=BASE)

    with pytest.raises(RuntimeError, match="Client not started"):
        await client.get_results()
