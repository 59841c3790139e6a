"""
Purpose:
- Owns the session's InteractionState and drives the story pipeline from user actions.
- select_file -> read/validate -> GENERATING -> background run -> RESOLVED
- reset() drops interest in an outstanding run; its result is discarded on arrival.

Notes:
- One run per session at a time (guarded by phase, not a lock).
- Each run gets a monotonically increasing token; only the current token may resolve state.
"""

from __future__ import annotations
from dataclasses import dataclass
from typing import Optional, Union
import asyncio
import logging

from ..core.errors import ImageRejectedError, SessionBusyError
from ..core.settings import settings
from ..pipeline.orchestrator import PipelineOrchestrator, unexpected_failure
from ..pipeline.schema import Failure, Success
from ..vlm.payload import UploadedFile, read_image_file, size_message
from .state import (
    IDLE,
    FileRejected,
    InteractionState,
    Phase,
    Reset,
    RunResolved,
    RunStarted,
    transition,
)

logger = logging.getLogger(__name__)

@dataclass(frozen=True)
class DownloadArtifact:
    filename: str
    content: bytes
    media_type: str = "text/plain; charset=utf-8"

class InteractionController:
    def __init__(self, orchestrator: PipelineOrchestrator, max_bytes: int | None = None):
        self.orchestrator = orchestrator
        self.max_bytes = settings.max_image_bytes if max_bytes is None else max_bytes
        self.state: InteractionState = IDLE
        self._token = 0
        self._task: Optional[asyncio.Task] = None
        self._background: set[asyncio.Task] = set()

    def _apply(self, event) -> InteractionState:
        self.state = transition(self.state, event)
        return self.state

    async def select_file(self, upload: UploadedFile) -> Optional[asyncio.Task]:
        """
        Validate + encode the upload and start a run. Returns the run task without awaiting it,
        or None when the file was rejected (state.error says why).
        """
        if self.state.phase is Phase.GENERATING:
            raise SessionBusyError()

        # size first: oversized files never get decoded
        if upload.size > self.max_bytes:
            logger.info("upload rejected: %s is %d bytes (limit %d)", upload.filename, upload.size, self.max_bytes)
            self._apply(FileRejected(size_message(self.max_bytes)))
            return None

        try:
            image = await asyncio.to_thread(read_image_file, upload, self.max_bytes)
        except ImageRejectedError as e:
            logger.info("upload rejected: %s (%s)", upload.filename, e.message)
            self._apply(FileRejected(e.message))
            return None

        # another selection may have started a run while we were decoding
        if self.state.phase is Phase.GENERATING:
            raise SessionBusyError()

        self._token += 1
        token = self._token
        self._apply(RunStarted(image))
        logger.info("story run %d started (%s, %d bytes)", token, image.mime_type, image.byte_size)
        self._task = asyncio.create_task(self._run(token, image), name=f"story-run-{token}")
        # reset() forgets _task; keep a strong ref until the run finishes
        self._background.add(self._task)
        self._task.add_done_callback(self._background.discard)
        return self._task

    async def _run(self, token: int, image) -> Union[Success, Failure]:
        try:
            result = await self.orchestrator.run(image)
        except Exception:
            # run() maps its own failures; this only catches a broken orchestrator
            logger.exception("story run %d crashed", token)
            result = unexpected_failure()

        if token != self._token:
            logger.debug("discarding stale result of story run %d (current %d)", token, self._token)
            return result

        self._apply(RunResolved(result))
        logger.info("story run %d resolved: %s", token, result.kind)
        return result

    async def wait(self) -> InteractionState:
        """Await the outstanding run, if any, and return the state afterwards."""
        task = self._task
        if task is not None and not task.done():
            await asyncio.shield(task)
        return self.state

    def download(self) -> Optional[DownloadArtifact]:
        story = self.state.story
        if not story:
            return None
        return DownloadArtifact(filename=settings.download_filename, content=story.encode("utf-8"))

    def reset(self) -> InteractionState:
        """
        Back to IDLE. An outstanding run keeps going but its result will be ignored.
        """
        if self.state.phase is Phase.GENERATING:
            logger.info("reset during story run %d; its result will be discarded", self._token)
        self._token += 1
        self._task = None
        return self._apply(Reset())
