"""Async HTTP client for the OCR-to-PDF backend.

Endpoints (relative to the configured API base URL):
- POST /upload           multipart `files` parts + `batch_size` -> {"results": [...]}
- GET  /results          full result corpus (polled, cache-busted)
- GET  /result/{stem}    detail record with detected blocks (cache-busted)
- GET  /stats            aggregate counters (cache-busted)
- GET  /pdf/{stem}, /download-all, /image/{filename}  binary payloads
- POST /clear            drop every server-side result

Every transport-level problem surfaces as `TransportFailure`; callers
decide whether it is fatal (upload) or transient (polling).
"""

from __future__ import annotations

import io
import logging
import mimetypes
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Callable, Optional, Sequence
from urllib.parse import quote

import httpx

from ocrbatch.core.exceptions import TransportFailure
from ocrbatch.core.settings import backend_settings
from ocrbatch.models.dto import (
    DetailRecord,
    ResultRecord,
    Statistics,
    parse_detail,
    parse_result_list,
    parse_statistics,
)

logger = logging.getLogger(__name__)

ProgressCallback = Callable[[int, int], None]


@dataclass(frozen=True)
class UploadFile:
    """A file queued for submission."""

    name: str
    content: bytes
    content_type: str = "application/octet-stream"

    @classmethod
    def from_path(cls, path: str | Path) -> "UploadFile":
        path = Path(path)
        content_type = mimetypes.guess_type(path.name)[0] or "application/octet-stream"
        return cls(name=path.name, content=path.read_bytes(), content_type=content_type)


class _UploadProgress:
    """Counts multipart body bytes as httpx reads them."""

    def __init__(self, total: int, callback: Optional[ProgressCallback]):
        self.total = total
        self.sent = 0
        self._callback = callback

    def advance(self, n: int) -> None:
        self.sent = min(self.total, self.sent + n)
        if self._callback is not None:
            self._callback(self.sent, self.total)


class _ProgressReader(io.BytesIO):
    def __init__(self, content: bytes, progress: _UploadProgress):
        super().__init__(content)
        self._progress = progress

    def read(self, size: int | None = -1) -> bytes:
        chunk = super().read(size)
        if chunk:
            self._progress.advance(len(chunk))
        return chunk


def _error_detail(response: httpx.Response) -> str:
    try:
        body = response.json()
    except ValueError:
        return response.text[:200]
    if isinstance(body, dict):
        return str(body.get("detail") or body.get("error") or body)
    return str(body)


class BackendClient:
    def __init__(
        self,
        base_url: Optional[str] = None,
        timeout: Optional[float] = None,
        verify: Optional[bool] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.base_url = (base_url or backend_settings.OCR_BATCH_API_URL).rstrip("/")
        self.timeout = backend_settings.OCR_BATCH_HTTP_TIMEOUT if timeout is None else timeout
        self.verify = backend_settings.OCR_BATCH_VERIFY_SSL if verify is None else verify
        self._transport = transport
        self._client: Optional[httpx.AsyncClient] = None

    async def __aenter__(self) -> "BackendClient":
        self.open()
        return self

    async def __aexit__(self, *args) -> None:
        await self.aclose()

    def open(self) -> None:
        if self._client is None:
            self._client = httpx.AsyncClient(
                base_url=self.base_url,
                timeout=self.timeout,
                verify=self.verify,
                transport=self._transport,
            )

    async def aclose(self) -> None:
        if self._client is not None:
            await self._client.aclose()
            self._client = None

    async def _request(
        self,
        method: str,
        path: str,
        *,
        cache_bust: bool = False,
        **kwargs: Any,
    ) -> httpx.Response:
        if self._client is None:
            raise RuntimeError("Client not started")

        if cache_bust:
            params = dict(kwargs.pop("params", None) or {})
            params["_ts"] = int(time.time() * 1000)
            headers = dict(kwargs.pop("headers", None) or {})
            headers["Cache-Control"] = "no-cache"
            kwargs["params"] = params
            kwargs["headers"] = headers

        started = time.perf_counter()
        try:
            resp = await self._client.request(method, path, **kwargs)
            resp.raise_for_status()
        except httpx.HTTPStatusError as e:
            status = e.response.status_code
            raise TransportFailure(
                path, f"HTTP {status}: {_error_detail(e.response)}", http_status=status
            ) from e
        except httpx.HTTPError as e:
            raise TransportFailure(path, f"{type(e).__name__}: {e}") from e

        logger.debug(
            "%s %s -> %d",
            method,
            path,
            resp.status_code,
            extra={
                "endpoint": path,
                "http_status": resp.status_code,
                "duration_ms": round((time.perf_counter() - started) * 1000, 1),
            },
        )
        return resp

    async def _json(self, method: str, path: str, **kwargs: Any) -> Any:
        resp = await self._request(method, path, **kwargs)
        try:
            return resp.json()
        except ValueError as e:
            raise TransportFailure(
                path, "Response body is not valid JSON", http_status=resp.status_code
            ) from e

    async def health(self) -> dict:
        return await self._json("GET", "/health")

    async def upload(
        self,
        files: Sequence[UploadFile],
        batch_size: int,
        on_progress: Optional[ProgressCallback] = None,
    ) -> list[ResultRecord]:
        """
        Upload a batch and return the records the server reports for it.

        Args:
          files: Files to submit, in submission order.
          batch_size: Concurrency hint forwarded as the `batch_size` field.
          on_progress: Called with (bytes_sent, bytes_total) while the
            multipart body is streamed.

        Returns:
          Parsed records from the response's `results` list (empty when the
          response carries none).
        """
        progress = _UploadProgress(sum(len(f.content) for f in files), on_progress)
        parts = [
            ("files", (f.name, _ProgressReader(f.content, progress), f.content_type))
            for f in files
        ]
        payload = await self._json(
            "POST", "/upload", files=parts, data={"batch_size": str(batch_size)}
        )
        return parse_result_list(payload)

    async def get_results(self) -> list[ResultRecord]:
        payload = await self._json("GET", "/results", cache_bust=True)
        return parse_result_list(payload)

    async def get_result(self, stem: str) -> DetailRecord:
        payload = await self._json("GET", f"/result/{quote(stem)}", cache_bust=True)
        return parse_detail(payload)

    async def get_statistics(self) -> Statistics:
        payload = await self._json("GET", "/stats", cache_bust=True)
        return parse_statistics(payload)

    async def clear(self) -> dict:
        payload = await self._json("POST", "/clear")
        return payload if isinstance(payload, dict) else {}

    async def download_pdf(self, stem: str) -> bytes:
        resp = await self._request("GET", f"/pdf/{quote(stem)}")
        return resp.content

    async def download_all(self) -> bytes:
        resp = await self._request("GET", "/download-all")
        return resp.content

    async def get_image(self, filename: str) -> bytes:
        resp = await self._request("GET", f"/image/{quote(filename)}")
        return resp.content

    def pdf_url(self, stem: str) -> str:
        return f"{self.base_url}/pdf/{quote(stem)}"

    def image_url(self, filename: str) -> str:
        return f"{self.base_url}/image/{quote(filename)}"

    def download_all_url(self) -> str:
        return f"{self.base_url}/download-all"
