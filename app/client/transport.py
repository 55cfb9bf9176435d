import contextlib
from dataclasses import dataclass
from typing import Any, AsyncIterator, Callable, Optional, Protocol, Sequence
import httpx
from app.client.models import StagedFile

# Called with (bytes_sent, bytes_total); total is None when unknown
ProgressCallback = Callable[[int, Optional[int]], None]


@dataclass
class TransportResponse:
    status_code: int
    payload: Any = None


class UploadTransport(Protocol):
    async def send(self, files: Sequence[StagedFile], on_progress: ProgressCallback) -> TransportResponse:
        ...


class ProgressStream(httpx.AsyncByteStream):
    """
    Wraps a request body stream and reports how many bytes have been
    handed to the connection after each chunk.
    """

    def __init__(self, stream: Any, total: Optional[int], on_progress: ProgressCallback):
        self._stream = stream
        self._total = total
        self._on_progress = on_progress

    async def __aiter__(self) -> AsyncIterator[bytes]:
        sent = 0
        async for chunk in self._stream:
            sent += len(chunk)
            yield chunk
            self._on_progress(sent, self._total)


class HttpUploadTransport:
    """
    Posts staged files as multipart/form-data, every file under the same
    field name, and reports upload progress while the body is sent.

    Cancelling the task running `send` aborts the request.
    """

    def __init__(
        self,
        url: str,
        field_name: str = "files",
        timeout: Optional[float] = None,
        client: Optional[httpx.AsyncClient] = None,
    ):
        self.url = url
        self.field_name = field_name
        self._http = client or httpx.AsyncClient(timeout=timeout)

    async def close(self) -> None:
        """Close HTTP client."""
        await self._http.aclose()

    async def __aenter__(self) -> "HttpUploadTransport":
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.close()

    async def send(self, files: Sequence[StagedFile], on_progress: ProgressCallback) -> TransportResponse:
        with contextlib.ExitStack() as stack:
            parts = [
                (self.field_name, (staged.display_name, stack.enter_context(staged.open())))
                for staged in files
            ]
            request = self._http.build_request("POST", self.url, files=parts)

            content_length = request.headers.get("Content-Length")
            total = int(content_length) if content_length else None
            request.stream = ProgressStream(request.stream, total, on_progress)

            response = await self._http.send(request)

        try:
            payload = response.json()
        except ValueError:
            payload = None
        return TransportResponse(status_code=response.status_code, payload=payload)
