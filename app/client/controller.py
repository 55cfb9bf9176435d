import asyncio
import logging
import math
import uuid
from pathlib import Path
from typing import Awaitable, Callable, Iterable, List, Optional, Tuple, Union
import httpx
from app.client.models import (
    StagedFile,
    UploadCanceled,
    UploadFailed,
    UploadResult,
    UploadState,
    UploadSucceeded,
)
from app.client.transport import UploadTransport
from app.core.config import settings

logger = logging.getLogger("upload_controller")

CANCEL_REASON = "Upload canceled by the user."
LEAVE_WARNING = "You have an upload in progress. Are you sure you want to leave?"

# Either a path on disk or an in-memory (name, content) pair
FileSource = Union[str, Path, Tuple[str, bytes]]


def compute_progress(loaded: int, total: Optional[int]) -> int:
    """
    Percentage of the body sent, rounded half up.

    An unknown or zero total counts as 1, so progress can read far above
    100 in that case.
    """
    return math.floor(loaded * 100 / (total or 1) + 0.5)


class CancellationHandle:
    """Ability to abort the task performing the current transfer."""

    def __init__(self, task: "asyncio.Future"):
        self.task = task
        self.signaled = False
        self.reason: Optional[str] = None

    def cancel(self, reason: str = CANCEL_REASON) -> bool:
        # A task that already finished keeps its outcome
        if not self.task.cancel(reason):
            return False
        self.signaled = True
        self.reason = reason
        return True


class UploadController:
    """
    Owns the staged files and drives one upload attempt at a time.

    State moves IDLE -> UPLOADING -> SUCCESS | ERROR | CANCELED and back
    to IDLE through reset(). The single cancellation handle slot is set
    when an upload starts and cleared as soon as the transfer settles.
    """

    def __init__(
        self,
        transport: UploadTransport,
        success_delay: Optional[float] = None,
        cancel_cutoff: Optional[int] = None,
        on_change: Optional[Callable[["UploadController"], None]] = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        self.transport = transport
        if success_delay is None:
            success_delay = settings.SUCCESS_DISPLAY_DELAY_SECONDS
        if cancel_cutoff is None:
            cancel_cutoff = settings.CANCEL_CUTOFF_PERCENT

        self.success_delay = success_delay
        self.cancel_cutoff = cancel_cutoff
        self.on_change = on_change
        self._sleep = sleep

        self._files: List[StagedFile] = []
        self._state = UploadState.IDLE
        self._progress = 0
        self._cancel_handle: Optional[CancellationHandle] = None

    @property
    def files(self) -> Tuple[StagedFile, ...]:
        return tuple(self._files)

    @property
    def state(self) -> UploadState:
        return self._state

    @property
    def progress(self) -> int:
        return self._progress

    @property
    def staged_total_bytes(self) -> int:
        return sum(staged.size_bytes for staged in self._files)

    @property
    def cancel_available(self) -> bool:
        return (
            self._state is UploadState.UPLOADING
            and self._cancel_handle is not None
            and self._progress < self.cancel_cutoff
        )

    def stage(self, new_files: Iterable[FileSource]) -> List[StagedFile]:
        """
        Append files to the staged list, each under a fresh id.
        Nothing is deduplicated; the same file may be staged twice.
        """
        added = []
        for source in new_files:
            if isinstance(source, tuple):
                name, content = source
                staged = StagedFile(str(uuid.uuid4()), name, len(content), bytes(content))
            else:
                path = Path(source)
                staged = StagedFile(str(uuid.uuid4()), path.name, path.stat().st_size, path)
            added.append(staged)

        self._files.extend(added)
        self._notify()
        return added

    def unstage(self, file_id: str) -> bool:
        for index, staged in enumerate(self._files):
            if staged.id == file_id:
                del self._files[index]
                self._notify()
                return True
        return False

    def report_progress(self, loaded: int, total: Optional[int]) -> None:
        self._progress = compute_progress(loaded, total)
        self._notify()

    async def start_upload(self) -> Optional[UploadResult]:
        """
        Send every staged file in one request and wait for the outcome.

        Returns None without doing anything when nothing is staged or an
        upload is already running. A 200 response moves to SUCCESS only
        after the display delay.
        """
        if not self._files:
            logger.info("No files staged, upload not started")
            return None
        if self._state is UploadState.UPLOADING:
            logger.info("An upload is already in progress")
            return None

        self._progress = 0
        task = asyncio.create_task(self.transport.send(list(self._files), self.report_progress))
        handle = CancellationHandle(task)
        self._cancel_handle = handle
        self._set_state(UploadState.UPLOADING)

        try:
            result = await self._settle(handle)
        except asyncio.CancelledError:
            # The caller was cancelled from outside, not through the handle
            self._set_state(UploadState.CANCELED)
            raise
        finally:
            self._cancel_handle = None

        if isinstance(result, UploadSucceeded):
            await self._sleep(self.success_delay)
            self._set_state(UploadState.SUCCESS)
        elif isinstance(result, UploadCanceled):
            self._set_state(UploadState.CANCELED)
        else:
            logger.warning(f"Upload failed: {result.reason}")
            self._set_state(UploadState.ERROR)
        return result

    def cancel_upload(self, reason: str = CANCEL_REASON) -> bool:
        if self._cancel_handle is None:
            return False
        logger.info("Cancel requested for the current upload")
        return self._cancel_handle.cancel(reason)

    def reset(self) -> bool:
        if not self._state.is_terminal:
            return False
        self._files.clear()
        self._progress = 0
        self._set_state(UploadState.IDLE)
        return True

    def leave_warning(self) -> Optional[str]:
        """Confirmation prompt to show before leaving while an upload runs."""
        if self._state is UploadState.UPLOADING:
            return LEAVE_WARNING
        return None

    async def _settle(self, handle: CancellationHandle) -> UploadResult:
        try:
            response = await handle.task
        except asyncio.CancelledError:
            if not handle.signaled:
                raise
            return UploadCanceled(handle.reason or CANCEL_REASON)
        except (httpx.HTTPError, OSError) as e:
            return UploadFailed(reason=str(e) or type(e).__name__)
        except Exception as e:
            logger.exception("Upload transfer raised an unexpected error")
            return UploadFailed(reason=str(e) or type(e).__name__)

        if response.status_code == 200:
            return UploadSucceeded(status_code=response.status_code, payload=response.payload)
        return UploadFailed(
            reason=f"Server responded with status {response.status_code}",
            status_code=response.status_code,
        )

    def _set_state(self, state: UploadState) -> None:
        if state is not self._state:
            logger.info(f"Upload state {self._state.value} -> {state.value}")
        self._state = state
        self._notify()

    def _notify(self) -> None:
        if self.on_change is not None:
            self.on_change(self)
