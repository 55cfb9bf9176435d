import enum
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, AsyncIterator, Dict, List, Optional, Tuple
import aiofiles
from python_multipart.exceptions import MultipartParseError
from python_multipart.multipart import MultipartParser, parse_options_header
from app.utils.file_utils import base_name, ensure_directory_exists, stored_file_name

# Configure logging
logging.basicConfig(level=logging.INFO)
logger = logging.getLogger("upload_service")


class UploadError(Exception):
    """
    Raised when an upload request cannot be parsed or one of its files
    cannot be written. Files saved before the failure are kept.
    """


class _Message(enum.Enum):
    PART_BEGIN = 1
    PART_DATA = 2
    PART_END = 3
    HEADER_FIELD = 4
    HEADER_VALUE = 5
    HEADER_END = 6
    HEADERS_FINISHED = 7


@dataclass
class _ParseState:
    headers: Dict[bytes, bytes] = field(default_factory=dict)
    header_field: bytes = b""
    header_value: bytes = b""
    in_part: bool = False
    file: Any = None
    current: Optional[Dict[str, Any]] = None
    stored: List[Dict[str, Any]] = field(default_factory=list)


class UploadService:
    """
    Stream-parses multipart/form-data bodies and writes every file part
    to the upload directory under a generated name.

    The body is consumed chunk by chunk; each chunk is fed to the push
    parser and the resulting part data is written to disk before the next
    chunk is read, so memory use does not grow with the upload size.
    """

    def __init__(
        self,
        upload_dir: Path,
        field_name: str = "files",
        max_files: Optional[int] = None,
        max_file_size: Optional[int] = None,
    ):
        self.upload_dir = Path(upload_dir)
        self.field_name = field_name
        self.max_files = max_files
        self.max_file_size = max_file_size

        self._messages: List[Tuple[_Message, bytes]] = []

    async def save_files(self, content_type: Optional[str], body: AsyncIterator[bytes]) -> List[Dict[str, Any]]:
        """
        Save every file part found in a multipart body.

        Returns one dict per stored file with its original name, the
        generated name on disk and its size in bytes.
        """
        boundary = self._get_boundary(content_type)

        try:
            ensure_directory_exists(self.upload_dir)
        except OSError as e:
            raise UploadError(f"Upload directory {self.upload_dir} is not usable: {e}") from e

        callbacks = {
            "on_part_begin": self._on_part_begin,
            "on_part_data": self._on_part_data,
            "on_part_end": self._on_part_end,
            "on_header_field": self._on_header_field,
            "on_header_value": self._on_header_value,
            "on_header_end": self._on_header_end,
            "on_headers_finished": self._on_headers_finished,
        }
        parser = MultipartParser(boundary, callbacks)
        state = _ParseState()
        self._messages = []

        try:
            async for chunk in body:
                parser.write(chunk)
                await self._process_messages(state)
            parser.finalize()
            await self._process_messages(state)

            if state.in_part:
                raise UploadError("Multipart body ended before the last part was complete")
        except (MultipartParseError, UnicodeDecodeError) as e:
            raise UploadError(f"Malformed multipart body: {e}") from e
        except OSError as e:
            raise UploadError(f"Could not write uploaded file: {e}") from e
        finally:
            if state.file is not None:
                await state.file.close()

        return state.stored

    def _get_boundary(self, content_type: Optional[str]) -> bytes:
        content_type_value, options = parse_options_header(content_type)
        if content_type_value.lower() != b"multipart/form-data":
            raise UploadError(f"Expected multipart/form-data, got {content_type!r}")

        boundary = options.get(b"boundary")
        if not boundary:
            raise UploadError("Missing boundary in multipart/form-data content type")
        return boundary

    # Parser callbacks run synchronously inside parser.write(); they only
    # record what they saw and the async writes happen in _process_messages.

    def _on_part_begin(self) -> None:
        self._messages.append((_Message.PART_BEGIN, b""))

    def _on_part_data(self, data: bytes, start: int, end: int) -> None:
        self._messages.append((_Message.PART_DATA, data[start:end]))

    def _on_part_end(self) -> None:
        self._messages.append((_Message.PART_END, b""))

    def _on_header_field(self, data: bytes, start: int, end: int) -> None:
        self._messages.append((_Message.HEADER_FIELD, data[start:end]))

    def _on_header_value(self, data: bytes, start: int, end: int) -> None:
        self._messages.append((_Message.HEADER_VALUE, data[start:end]))

    def _on_header_end(self) -> None:
        self._messages.append((_Message.HEADER_END, b""))

    def _on_headers_finished(self) -> None:
        self._messages.append((_Message.HEADERS_FINISHED, b""))

    async def _process_messages(self, state: _ParseState) -> None:
        messages = self._messages
        self._messages = []

        for message, data in messages:
            if message is _Message.PART_BEGIN:
                state.in_part = True
                state.headers = {}
            elif message is _Message.HEADER_FIELD:
                state.header_field += data
            elif message is _Message.HEADER_VALUE:
                state.header_value += data
            elif message is _Message.HEADER_END:
                state.headers[state.header_field.lower()] = state.header_value
                state.header_field = b""
                state.header_value = b""
            elif message is _Message.HEADERS_FINISHED:
                await self._open_part(state)
            elif message is _Message.PART_DATA:
                await self._write_part_data(state, data)
            elif message is _Message.PART_END:
                await self._close_part(state)

    async def _open_part(self, state: _ParseState) -> None:
        disposition = state.headers.get(b"content-disposition")
        if disposition is None:
            raise UploadError("Multipart part is missing its Content-Disposition header")

        _, options = parse_options_header(disposition)
        field_name = options.get(b"name", b"").decode("utf-8")

        # Plain form fields carry no filename and are ignored
        if b"filename" not in options:
            return

        if field_name != self.field_name:
            raise UploadError(f"Unexpected file field: {field_name!r}")

        if self.max_files is not None and len(state.stored) >= self.max_files:
            raise UploadError(f"Too many files, at most {self.max_files} allowed")

        original_name = base_name(options[b"filename"].decode("utf-8"))
        stored_name = stored_file_name(original_name)

        state.file = await aiofiles.open(self.upload_dir / stored_name, "wb")
        state.current = {
            "original_name": original_name,
            "stored_name": stored_name,
            "size_bytes": 0,
        }

    async def _write_part_data(self, state: _ParseState, data: bytes) -> None:
        if state.file is None:
            return

        state.current["size_bytes"] += len(data)
        if self.max_file_size is not None and state.current["size_bytes"] > self.max_file_size:
            raise UploadError(
                f"File {state.current['original_name']!r} exceeds the limit of {self.max_file_size} bytes"
            )

        await state.file.write(data)

    async def _close_part(self, state: _ParseState) -> None:
        state.in_part = False
        if state.file is None:
            return

        await state.file.close()
        state.file = None

        stored = state.current
        state.current = None
        state.stored.append(stored)
        logger.info(f"Stored {stored['original_name']} as {stored['stored_name']} ({stored['size_bytes']} bytes)")
