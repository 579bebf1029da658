"""Scan session: ties file selection, engine readiness and the pipeline together."""

import asyncio
import logging
import threading
from typing import Optional

from docscan.config import ScanConfig
from docscan.engines.handle import EngineHandle
from docscan.errors import EngineUnavailable, InvalidInputKind, RunCancelled, ScanError
from docscan.loader import ImageLoader
from docscan.models import (
    Download,
    ImageFile,
    PreviewView,
    ProcessedImage,
    ProcessingState,
    SourceImage,
)
from docscan.preprocessing.scan_pipeline import PipelineRunner
from docscan.presenter import Presenter

logger = logging.getLogger(__name__)


class ScanSession:
    """
    One user's scan preview.

    A new selection supersedes any run still in flight: the old run is
    cancelled cooperatively and anything it produces afterwards is discarded,
    so the displayed result always belongs to the latest accepted file.

    Usage:
        session = ScanSession(EngineHandle(OpenCVEngine))
        session.start_engine()
        await session.select(ImageFile.from_path("photo.jpg"))
        result = await session.wait()
        download = session.download()
    """

    def __init__(
        self,
        handle: EngineHandle,
        config: Optional[ScanConfig] = None,
        presenter: Optional[Presenter] = None,
        loader: Optional[ImageLoader] = None,
    ):
        self.handle = handle
        self.config = config or ScanConfig()
        self.presenter = presenter or Presenter()
        self.loader = loader or ImageLoader()

        self.state = ProcessingState.IDLE
        self.source: Optional[SourceImage] = None
        self.result: Optional[ProcessedImage] = None
        self.message: Optional[str] = None

        self._original_handle: Optional[str] = None
        self._generation = 0
        self._task: Optional[asyncio.Task] = None
        self._cancel: Optional[threading.Event] = None

    @property
    def original_handle(self) -> Optional[str]:
        return self._original_handle

    def view(self) -> PreviewView:
        return PreviewView(
            state=self.state,
            original_handle=self._original_handle,
            processed=self.result,
            engine_ready=self.handle.is_ready,
            message=self.message,
        )

    def start_engine(self) -> asyncio.Future:
        """Begin loading the vision engine. Must be called from a running loop."""
        waiter = self.handle.start()
        self._render()
        return waiter

    async def select(self, file: Optional[ImageFile]) -> Optional[asyncio.Task]:
        """
        Handle a file chosen through a picker or dropped on the page.

        Returns the task processing the file, or None if it was rejected.
        """
        try:
            blob = self.loader.accept(file)
        except InvalidInputKind as exc:
            logger.warning("Selection rejected: %s", exc)
            self.presenter.notify(exc.user_message)
            if self.state is ProcessingState.FAILED:
                self.message = None
                self._set_state(ProcessingState.IDLE)
            return None

        self._supersede()
        self.loader.release(self._original_handle)
        self._original_handle = blob
        self.source = None
        self.result = None
        self.message = None

        self._generation += 1
        cancel = threading.Event()
        self._cancel = cancel
        if self.handle.is_ready:
            self._set_state(ProcessingState.RUNNING)
        else:
            self._set_state(ProcessingState.AWAITING_ENGINE)

        logger.info("Selected %s (run %d)", file.name, self._generation)
        self._task = asyncio.create_task(self._run(self._generation, file, blob, cancel))
        return self._task

    async def wait(self) -> Optional[ProcessedImage]:
        """Wait for the current run and return its result, if it produced one."""
        task = self._task
        if task is None:
            return self.result
        await asyncio.wait({task})
        if task.cancelled():
            return None
        return task.result()

    def download(self) -> Optional[Download]:
        """The current result as a PNG download, or None if there is none."""
        if self.result is None:
            return None
        return Download(data=self.result.to_png(), filename=self.config.download_filename)

    def close(self) -> None:
        """Cancel any run in flight and release the original image."""
        self._supersede()
        self.loader.release(self._original_handle)
        self._original_handle = None

    async def _run(
        self,
        generation: int,
        file: ImageFile,
        blob: str,
        cancel: threading.Event,
    ) -> Optional[ProcessedImage]:
        loop = asyncio.get_running_loop()
        try:
            engine = await self.handle.wait_ready(self.config.engine_timeout)
            if not self._is_current(generation):
                return None
            if self.state is not ProcessingState.RUNNING:
                self._set_state(ProcessingState.RUNNING)

            source = await loop.run_in_executor(None, self.loader.decode, engine, file, blob)
            if not self._is_current(generation):
                return None
            self.source = source

            runner = PipelineRunner(engine, self.config)
            result = await loop.run_in_executor(
                None, runner.run, source.pixels, source.name, cancel
            )
        except RunCancelled:
            logger.debug("Run %d cancelled", generation)
            return None
        except EngineUnavailable as exc:
            logger.error("Run %d: %s", generation, exc)
            self._fail(generation, exc.user_message)
            return None
        except ScanError as exc:
            logger.error("Run %d failed: %s", generation, exc)
            self._fail(generation, exc.user_message)
            return None

        if not self._is_current(generation):
            logger.debug("Discarding stale result of run %d", generation)
            return None

        self.result = result
        self._set_state(ProcessingState.DONE)
        logger.info("Run %d done: %s", generation, file.name)
        return result

    def _supersede(self) -> None:
        if self._cancel is not None:
            self._cancel.set()
        if self._task is not None and not self._task.done():
            self._task.cancel()
        self._task = None
        self._cancel = None

    def _is_current(self, generation: int) -> bool:
        return generation == self._generation

    def _fail(self, generation: int, message: str) -> None:
        if not self._is_current(generation):
            return
        self.result = None
        self.message = message
        self.presenter.notify(message)
        self._set_state(ProcessingState.FAILED)

    def _set_state(self, state: ProcessingState) -> None:
        self.state = state
        self._render()

    def _render(self) -> None:
        self.presenter.render(self.view())
