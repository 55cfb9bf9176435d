import argparse
import asyncio
import logging
import signal
import sys
import threading
from pathlib import Path
from typing import List, Optional, Sequence
from app.client.controller import UploadController
from app.client.models import UploadState
from app.client.transport import HttpUploadTransport
from app.core.config import settings
from app.utils.file_utils import format_bytes

PROGRESS_BAR_WIDTH = 40

RESULT_MESSAGES = {
    UploadState.SUCCESS: "Files uploaded successfully!",
    UploadState.ERROR: "An error occurred while sending the files!",
    UploadState.CANCELED: "Upload canceled!",
}


class ExitGuard:
    """
    Asks for confirmation when Ctrl+C is pressed during an upload and
    cancels the upload if the user confirms. Outside an upload, Ctrl+C
    keeps its usual behaviour.

    The prompt waits for input on a daemon thread so the upload keeps
    running on the event loop while the question is open.
    """

    def __init__(self, controller: UploadController):
        self.controller = controller
        self._loop: Optional[asyncio.AbstractEventLoop] = None
        self._prompting = False

    def install(self) -> bool:
        loop = asyncio.get_running_loop()
        try:
            loop.add_signal_handler(signal.SIGINT, self._on_interrupt)
        except (NotImplementedError, RuntimeError):
            # No signal handlers on this platform's event loop
            return False
        self._loop = loop
        return True

    def remove(self) -> None:
        if self._loop is not None:
            self._loop.remove_signal_handler(signal.SIGINT)
            self._loop = None

    def _on_interrupt(self) -> Optional[threading.Thread]:
        warning = self.controller.leave_warning()
        if warning is None or self._prompting:
            return None

        self._prompting = True
        sys.stdout.write("\n")
        prompt = threading.Thread(
            target=self._ask,
            args=(f"{warning} [y/N] ", asyncio.get_running_loop()),
            daemon=True
        )
        prompt.start()
        return prompt

    def _ask(self, question: str, loop: asyncio.AbstractEventLoop) -> None:
        try:
            answer = input(question)
        except EOFError:
            answer = ""

        try:
            loop.call_soon_threadsafe(self._answered, answer)
        except RuntimeError:
            # The loop closed while the question was open
            pass

    def _answered(self, answer: str) -> None:
        self._prompting = False
        if answer.strip().lower() in ("y", "yes"):
            self.controller.cancel_upload()


def render(controller: UploadController) -> None:
    if controller.state is not UploadState.UPLOADING:
        return

    progress = controller.progress
    filled = min(progress, 100) * PROGRESS_BAR_WIDTH // 100
    bar = "#" * filled + "." * (PROGRESS_BAR_WIDTH - filled)
    hint = "  (Ctrl+C to cancel)" if controller.cancel_available else ""
    sys.stdout.write(f"\rSending... [{bar}] {progress}%{hint}")
    sys.stdout.flush()


def print_staged(controller: UploadController) -> None:
    for staged in controller.files:
        print(f"  {staged.display_name:<50} {format_bytes(staged.size_bytes):>12}")
    print(f"  {len(controller.files)} file(s), {format_bytes(controller.staged_total_bytes)}")


def ask_retry() -> bool:
    if not sys.stdin.isatty():
        return False
    try:
        answer = input("Try again? [y/N] ")
    except EOFError:
        return False
    return answer.strip().lower() in ("y", "yes")


async def run(paths: Sequence[Path], url: str) -> int:
    async with HttpUploadTransport(
        url,
        field_name=settings.UPLOAD_FIELD_NAME,
        timeout=settings.REQUEST_TIMEOUT_SECONDS
    ) as transport:
        controller = UploadController(transport, on_change=render)
        guard = ExitGuard(controller)

        while True:
            controller.stage(paths)
            print_staged(controller)

            guard.install()
            try:
                await controller.start_upload()
            finally:
                guard.remove()

            sys.stdout.write("\n")
            state = controller.state
            print(RESULT_MESSAGES[state])
            controller.reset()

            if state is UploadState.SUCCESS or not ask_retry():
                return 0 if state is UploadState.SUCCESS else 1


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Upload files to the upload endpoint")
    parser.add_argument("files", nargs="+", type=Path, help="Files to upload")
    parser.add_argument("--url", default=settings.UPLOAD_URL, help="Upload endpoint URL")
    return parser


def main(argv: Optional[List[str]] = None) -> int:
    logging.basicConfig(level=logging.WARNING)
    parser = build_parser()
    args = parser.parse_args(argv)

    missing = [str(path) for path in args.files if not path.is_file()]
    if missing:
        parser.error(f"not a file: {', '.join(missing)}")

    return asyncio.run(run(args.files, args.url))


if __name__ == "__main__":
    sys.exit(main())
