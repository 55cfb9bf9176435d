import enum
import io
from dataclasses import dataclass
from pathlib import Path
from typing import Any, BinaryIO, Optional, Union


class UploadState(enum.Enum):
    IDLE = "idle"
    UPLOADING = "uploading"
    SUCCESS = "success"
    ERROR = "error"
    CANCELED = "canceled"

    @property
    def is_terminal(self) -> bool:
        return self in (UploadState.SUCCESS, UploadState.ERROR, UploadState.CANCELED)


@dataclass(frozen=True)
class StagedFile:
    """
    A file selected for upload but not yet sent.

    `content` is either the bytes themselves or a path read lazily when
    the upload starts.
    """
    id: str
    display_name: str
    size_bytes: int
    content: Union[bytes, Path]

    def open(self) -> BinaryIO:
        if isinstance(self.content, Path):
            return self.content.open("rb")
        return io.BytesIO(self.content)


@dataclass(frozen=True)
class UploadSucceeded:
    status_code: int
    payload: Any = None


@dataclass(frozen=True)
class UploadFailed:
    reason: str
    status_code: Optional[int] = None


@dataclass(frozen=True)
class UploadCanceled:
    reason: str


UploadResult = Union[UploadSucceeded, UploadFailed, UploadCanceled]
