from __future__ import annotations

import asyncio

import pytest

from pagepress.config import ConversionSettings
from pagepress.errors import ErrorCategory, ProcessingError
from pagepress.processors.base import FileProcessor, InputFile, ProcessOptions, ProcessResult
from pagepress.processors.controller import (
    ProcessingController,
    ProcessingState,
    ProcessingStatus,
)
from pagepress.processors.document import DocumentProcessor
from pagepress.processors.factory import ProcessorFactory


LETTER = (612.0, 792.0)


class _ScriptedProcessor(FileProcessor):
    """Reports ``pages`` units of progress, optionally failing after ``fail_after``."""

    def __init__(
        self,
        controller: ProcessingController | None = None,
        *,
        pages: int = 2,
        fail_after: int | None = None,
        error: Exception | None = None,
        delay: float = 0.0,
    ) -> None:
        super().__init__(ConversionSettings(), locale="en")
        self.controller = controller
        self.pages = pages
        self.fail_after = fail_after
        self.error = error
        self.delay = delay
        self.entry_states: list[ProcessingState] = []
        self.active = 0
        self.peak_active = 0

    def can_process(self, file: InputFile) -> bool:
        return True

    async def process(self, file: InputFile, options: ProcessOptions | None = None) -> ProcessResult:
        assert options is not None and options.progress_reporter is not None
        if self.controller is not None:
            self.entry_states.append(self.controller.snapshot())
        self.active += 1
        self.peak_active = max(self.peak_active, self.active)
        try:
            reporter = options.progress_reporter
            reporter.start(self.pages)
            for number in range(1, self.pages + 1):
                await asyncio.sleep(self.delay)
                if self.fail_after is not None and number > self.fail_after:
                    raise self.error or ProcessingError(
                        "render failed", ErrorCategory.DOCUMENT_RENDER
                    )
                reporter.increment()
            return ProcessResult(blob=b"page-1")
        finally:
            self.active -= 1


class _RecordingReporter:
    def __init__(self) -> None:
        self.events: list[tuple[str, int]] = []

    def start(self, total: int) -> None:
        self.events.append(("start", total))

    def increment(self) -> None:
        self.events.append(("increment", 1))

    def close(self) -> None:
        self.events.append(("close", 0))


def test_initial_state_is_idle() -> None:
    controller = ProcessingController()

    assert controller.status is ProcessingStatus.IDLE
    assert controller.total_pages == 0
    assert controller.processed_pages == 0
    assert controller.is_processing is False
    assert controller.error is None


@pytest.mark.asyncio
async def test_successful_run_tracks_pages() -> None:
    controller = ProcessingController()
    processor = _ScriptedProcessor(pages=4)

    result = await controller.run(processor, InputFile("a.pdf", "application/pdf", b""))

    assert result.blob == b"page-1"
    assert controller.status is ProcessingStatus.COMPLETED
    assert controller.total_pages == 4
    assert controller.processed_pages == 4
    assert controller.is_processing is False
    assert controller.error is None


@pytest.mark.asyncio
async def test_failure_records_error_and_reraises() -> None:
    controller = ProcessingController()
    processor = _ScriptedProcessor(pages=5, fail_after=2)

    with pytest.raises(ProcessingError) as exc_info:
        await controller.run(processor, InputFile("a.pdf", "application/pdf", b""))

    assert controller.status is ProcessingStatus.FAILED
    assert controller.error is exc_info.value
    assert controller.is_processing is False
    assert controller.total_pages == 5
    assert controller.processed_pages == 2


@pytest.mark.asyncio
async def test_state_resets_between_runs() -> None:
    controller = ProcessingController()
    failing = _ScriptedProcessor(controller, pages=3, fail_after=1)
    succeeding = _ScriptedProcessor(controller, pages=2)
    file = InputFile("a.pdf", "application/pdf", b"")

    with pytest.raises(ProcessingError):
        await controller.run(failing, file)
    await controller.run(succeeding, file)

    for state in failing.entry_states + succeeding.entry_states:
        assert state.total_pages == 0
        assert state.processed_pages == 0
        assert state.is_processing is True
        assert state.error is None
        assert state.status is ProcessingStatus.PROCESSING
    assert controller.processed_pages == 2
    assert controller.error is None


@pytest.mark.asyncio
async def test_unexpected_exception_is_wrapped_as_resource() -> None:
    controller = ProcessingController()
    processor = _ScriptedProcessor(pages=2, fail_after=0, error=MemoryError("out of memory"))

    with pytest.raises(ProcessingError) as exc_info:
        await controller.run(processor, InputFile("a.pdf", "application/pdf", b""))

    assert exc_info.value.category is ErrorCategory.RESOURCE
    assert isinstance(exc_info.value.__cause__, MemoryError)
    assert controller.error is exc_info.value


@pytest.mark.asyncio
async def test_runs_are_serialized() -> None:
    controller = ProcessingController()
    processor = _ScriptedProcessor(pages=3, delay=0.01)
    file = InputFile("a.pdf", "application/pdf", b"")

    await asyncio.gather(controller.run(processor, file), controller.run(processor, file))

    assert processor.peak_active == 1


@pytest.mark.asyncio
async def test_downstream_reporters_receive_events() -> None:
    constructor_reporter = _RecordingReporter()
    option_reporter = _RecordingReporter()
    controller = ProcessingController(reporter=constructor_reporter)

    await controller.run(
        _ScriptedProcessor(pages=2),
        InputFile("a.pdf", "application/pdf", b""),
        ProcessOptions(progress_reporter=option_reporter),
    )

    expected = [("start", 2), ("increment", 1), ("increment", 1), ("close", 0)]
    assert constructor_reporter.events == expected
    assert option_reporter.events == expected


@pytest.mark.asyncio
async def test_convert_dispatches_and_tracks_real_document(
    conversion_settings: ConversionSettings, pdf_file
) -> None:
    controller = ProcessingController(ProcessorFactory(settings=conversion_settings, locale="en"))
    observed: list[tuple[int, int]] = []

    def on_progress(current: int, total: int) -> None:
        observed.append((controller.processed_pages, controller.total_pages))

    result = await controller.convert(
        pdf_file([LETTER, LETTER, LETTER]), ProcessOptions(on_progress=on_progress)
    )

    assert result.total_pages == 3
    assert observed == [(1, 3), (2, 3), (3, 3)]
    assert controller.status is ProcessingStatus.COMPLETED


@pytest.mark.asyncio
async def test_convert_records_dispatch_failure(conversion_settings: ConversionSettings) -> None:
    controller = ProcessingController(ProcessorFactory(settings=conversion_settings, locale="en"))

    with pytest.raises(ProcessingError):
        await controller.convert(InputFile("a.txt", "text/plain", b"hi"))

    assert controller.status is ProcessingStatus.FAILED
    assert controller.error is not None
    assert controller.error.category is ErrorCategory.FILE_VALIDATION


@pytest.mark.asyncio
async def test_corrupt_document_fails_before_any_progress(
    conversion_settings: ConversionSettings,
) -> None:
    controller = ProcessingController()
    processor = DocumentProcessor(conversion_settings, locale="en")

    with pytest.raises(ProcessingError) as exc_info:
        await controller.run(processor, InputFile("bad.pdf", "application/pdf", b"garbage"))

    assert exc_info.value.category is ErrorCategory.DECODE
    assert controller.total_pages == 0
    assert controller.processed_pages == 0


@pytest.mark.asyncio
async def test_cancelled_run_ends_in_failed_state() -> None:
    controller = ProcessingController()
    processor = _ScriptedProcessor(controller, pages=3, delay=10)

    task = asyncio.create_task(
        controller.run(processor, InputFile("a.pdf", "application/pdf", b""))
    )
    while not processor.entry_states:
        await asyncio.sleep(0)
    task.cancel()
    with pytest.raises(asyncio.CancelledError):
        await task

    assert controller.status is ProcessingStatus.FAILED
    assert controller.is_processing is False
    assert controller.total_pages == 3
    assert controller.error is not None
    assert controller.error.category is ErrorCategory.CANCELLED
    assert controller.error.recoverable is True


@pytest.mark.asyncio
async def test_timed_out_run_releases_controller() -> None:
    controller = ProcessingController()
    file = InputFile("a.pdf", "application/pdf", b"")

    with pytest.raises(asyncio.TimeoutError):
        await asyncio.wait_for(controller.run(_ScriptedProcessor(pages=2, delay=10), file), 0.05)
    result = await controller.run(_ScriptedProcessor(pages=1), file)

    assert result.blob == b"page-1"
    assert controller.status is ProcessingStatus.COMPLETED
    assert controller.error is None
