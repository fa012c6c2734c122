"""Progress and lifecycle tracking around a single conversion at a time."""

from __future__ import annotations

import asyncio
from collections.abc import Callable
from dataclasses import dataclass, replace
from enum import Enum

from pagepress.errors import ErrorCategory, ProcessingError, wrap_error
from pagepress.utils.concurrency import ProgressReporter
from pagepress.utils.log_utils import logger

from .base import FileProcessor, InputFile, ProcessOptions, ProcessResult
from .factory import ProcessorFactory


class ProcessingStatus(str, Enum):
    IDLE = "idle"
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"


@dataclass
class ProcessingState:
    total_pages: int = 0
    processed_pages: int = 0
    is_processing: bool = False
    error: ProcessingError | None = None
    status: ProcessingStatus = ProcessingStatus.IDLE


class ProcessingController:
    """Run conversions and expose their progress.

    The controller acts as the `ProgressReporter` handed to processors, so
    ``total_pages`` becomes known as soon as a document is parsed and
    ``processed_pages`` advances after every page. Counters and the last
    error are reset at the start of each run. Runs on the same controller
    are serialized: a second call waits for the first to finish.
    """

    def __init__(
        self,
        factory: ProcessorFactory | None = None,
        *,
        reporter: ProgressReporter | None = None,
    ) -> None:
        self._factory = factory
        self._reporter = reporter
        self._downstream: list[ProgressReporter] = []
        self._state = ProcessingState()
        self._lock = asyncio.Lock()

    @property
    def factory(self) -> ProcessorFactory:
        if self._factory is None:
            self._factory = ProcessorFactory()
        return self._factory

    @property
    def total_pages(self) -> int:
        return self._state.total_pages

    @property
    def processed_pages(self) -> int:
        return self._state.processed_pages

    @property
    def is_processing(self) -> bool:
        return self._state.is_processing

    @property
    def error(self) -> ProcessingError | None:
        return self._state.error

    @property
    def status(self) -> ProcessingStatus:
        return self._state.status

    def snapshot(self) -> ProcessingState:
        return replace(self._state)

    # ProgressReporter protocol

    def start(self, total: int) -> None:
        self._state.total_pages = total
        for reporter in self._downstream:
            reporter.start(total)

    def increment(self) -> None:
        self._state.processed_pages += 1
        for reporter in self._downstream:
            reporter.increment()

    def close(self) -> None:
        for reporter in self._downstream:
            reporter.close()

    async def run(
        self,
        processor: FileProcessor,
        file: InputFile,
        options: ProcessOptions | None = None,
    ) -> ProcessResult:
        """Process ``file`` with an explicit processor."""
        return await self._execute(lambda: processor, file, options)

    async def convert(self, file: InputFile, options: ProcessOptions | None = None) -> ProcessResult:
        """Dispatch ``file`` through the factory and process it."""
        return await self._execute(lambda: self.factory.get_processor(file), file, options)

    async def _execute(
        self,
        resolve: Callable[[], FileProcessor],
        file: InputFile,
        options: ProcessOptions | None,
    ) -> ProcessResult:
        async with self._lock:
            options = options or ProcessOptions()
            self._begin(options)
            try:
                processor = resolve()
                result = await processor.process(file, replace(options, progress_reporter=self))
            except ProcessingError as exc:
                self._fail(exc)
                raise
            except Exception as exc:
                wrapped = wrap_error(exc, ErrorCategory.RESOURCE, f"Processing {file.name} failed")
                self._fail(wrapped)
                raise wrapped from exc
            except asyncio.CancelledError as exc:
                self._fail(
                    ProcessingError(
                        f"Processing {file.name} was cancelled",
                        ErrorCategory.CANCELLED,
                        recoverable=True,
                        cause=exc,
                    )
                )
                raise
            finally:
                self._state.is_processing = False
                self.close()
                self._downstream = []

            self._state.status = ProcessingStatus.COMPLETED
            logger.debug(
                f"{file.name} completed: {self._state.processed_pages}/{self._state.total_pages}"
            )
            return result

    def _begin(self, options: ProcessOptions) -> None:
        self._state = ProcessingState(is_processing=True, status=ProcessingStatus.PROCESSING)
        self._downstream = [
            reporter
            for reporter in (self._reporter, options.progress_reporter)
            if reporter is not None
        ]

    def _fail(self, error: ProcessingError) -> None:
        self._state.error = error
        self._state.status = ProcessingStatus.FAILED


__all__ = ["ProcessingController", "ProcessingState", "ProcessingStatus"]
