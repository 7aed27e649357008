"""Content pinning client: send one file to ``POST /api/upload/ipfs``.

Upload progress is reported while the multipart body is streamed to the server.
An ``asyncio.Event`` passed as ``cancel`` aborts the request; the caller then gets
``UploadCancelled`` and no response is processed.
"""

import asyncio
from dataclasses import dataclass
from pathlib import Path
from typing import AsyncIterator, Callable, Optional

import httpx
import structlog

from docanchor.client.exceptions import MalformedResponse, NoResponse, UploadCancelled
from docanchor.client.http import NO_RESPONSE_MESSAGE, BackendClient

logger = structlog.get_logger()

PIN_PATH = "/api/upload/ipfs"
CHUNK_SIZE = 64 * 1024

ProgressCallback = Callable[[int], None]

_CONTENT_TYPES = {
    ".pdf": "application/pdf",
    ".png": "image/png",
    ".jpg": "image/jpeg",
    ".jpeg": "image/jpeg",
}


@dataclass(frozen=True)
class LocalFile:
    """A file selected for upload."""

    name: str
    content_type: str
    content: bytes

    @property
    def size(self) -> int:
        return len(self.content)

    @classmethod
    def from_path(cls, path: Path, content_type: Optional[str] = None) -> "LocalFile":
        """Read ``path``; the MIME type is guessed from the extension when not given."""
        guessed = _CONTENT_TYPES.get(path.suffix.lower(), "application/octet-stream")
        return cls(name=path.name, content_type=content_type or guessed, content=path.read_bytes())


@dataclass(frozen=True)
class PinnedContent:
    content_id: str
    pin_size_bytes: Optional[int]
    pinned_at: Optional[str]


class _ProgressStream:
    """Replays an encoded body in chunks, reporting whole percentages once each."""

    def __init__(self, body: bytes, on_progress: Optional[ProgressCallback]):
        self.body = body
        self.on_progress = on_progress
        self.last_percent = -1

    def _report(self, sent: int) -> None:
        total = len(self.body)
        percent = 100 if total == 0 else round(sent * 100 / total)
        if self.on_progress is not None and percent > self.last_percent:
            self.last_percent = percent
            self.on_progress(percent)

    async def __aiter__(self) -> AsyncIterator[bytes]:
        if not self.body:
            self._report(0)
            return
        for start in range(0, len(self.body), CHUNK_SIZE):
            chunk = self.body[start : start + CHUNK_SIZE]
            yield chunk
            self._report(start + len(chunk))


class PinningClient(BackendClient):
    """Client for the backend pinning gateway."""

    def __init__(
        self,
        server_url: str,
        timeout: float = 120.0,
        http_client: Optional[httpx.AsyncClient] = None,
    ):
        super().__init__(server_url, timeout, http_client)

    def _build_request(
        self, client: httpx.AsyncClient, file: LocalFile, on_progress: Optional[ProgressCallback]
    ) -> httpx.Request:
        encoded = client.build_request(
            "POST",
            self.url(PIN_PATH),
            files={"file": (file.name, file.content, file.content_type)},
        )
        body = encoded.read()
        return client.build_request(
            "POST",
            self.url(PIN_PATH),
            content=_ProgressStream(body, on_progress),
            headers={
                "Content-Type": encoded.headers["Content-Type"],
                "Content-Length": str(len(body)),
            },
            timeout=self.timeout,
        )

    async def upload(
        self,
        file: LocalFile,
        on_progress: Optional[ProgressCallback] = None,
        cancel: Optional[asyncio.Event] = None,
    ) -> PinnedContent:
        """Upload ``file`` and return the pinned content identifier.

        Raises:
            UploadCancelled: ``cancel`` was set before the server answered
            ServerRejected: Non-2xx response (carries the server's message)
            NoResponse: Timeout or network failure
            MalformedResponse: 2xx body without a content identifier
        """
        if cancel is not None and cancel.is_set():
            raise UploadCancelled("Upload cancelled")

        logger.info("pinning_client.upload_started", file_name=file.name, size=file.size)
        async with self._client() as client:
            request = self._build_request(client, file, on_progress)
            try:
                response = await self._send(client, request, cancel)
            except httpx.TransportError as e:
                logger.warning("pinning_client.no_response", error=str(e))
                raise NoResponse(NO_RESPONSE_MESSAGE) from e

        self.raise_for_status(response)

        try:
            body = response.json()
        except ValueError as e:
            raise MalformedResponse(
                f"Unexpected response from server: {response.text[:200]}"
            ) from e

        if not isinstance(body, dict):
            body = {}
        data = body.get("data")
        if not (body.get("success") and isinstance(data, dict) and data.get("contentId")):
            raise MalformedResponse(f"Unexpected response from server: {body!r}"[:300])

        pinned = PinnedContent(
            content_id=data["contentId"],
            pin_size_bytes=data.get("pinSizeBytes"),
            pinned_at=data.get("pinnedAt"),
        )
        logger.info("pinning_client.upload_succeeded", cid=pinned.content_id)
        return pinned

    async def _send(
        self, client: httpx.AsyncClient, request: httpx.Request, cancel: Optional[asyncio.Event]
    ) -> httpx.Response:
        if cancel is None:
            return await client.send(request)

        send_task = asyncio.create_task(client.send(request))
        cancel_task = asyncio.create_task(cancel.wait())
        try:
            await asyncio.wait({send_task, cancel_task}, return_when=asyncio.FIRST_COMPLETED)
        finally:
            for task in (send_task, cancel_task):
                if not task.done():
                    task.cancel()

        if not send_task.done() or send_task.cancelled():
            await asyncio.gather(send_task, return_exceptions=True)
            logger.info("pinning_client.upload_cancelled")
            raise UploadCancelled("Upload cancelled")
        return send_task.result()
