"""Base file processor class and the data types shared by all processors."""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
import inspect
import mimetypes
from pathlib import Path

from pagepress.config import ConversionSettings, get_settings
from pagepress.errors import ErrorCategory, ProcessingError
from pagepress.utils.concurrency import CancellationToken, ProgressReporter


ProgressCallback = Callable[[int, int], None | Awaitable[None]]

_FALLBACK_MEDIA_TYPES = {
    ".pdf": "application/pdf",
    ".webp": "image/webp",
    ".avif": "image/avif",
}


def normalize_media_type(media_type: str | None) -> str:
    """Lower-case a media type and strip parameters such as ``; charset=...``."""
    if not media_type:
        return ""
    return media_type.split(";", 1)[0].strip().lower()


def guess_media_type(path: str | Path) -> str:
    suffix = Path(path).suffix.lower()
    guessed, _ = mimetypes.guess_type(f"file{suffix}")
    return guessed or _FALLBACK_MEDIA_TYPES.get(suffix, "application/octet-stream")


@dataclass(frozen=True)
class InputFile:
    """An uploaded file: raw bytes plus the declared media type."""

    name: str
    media_type: str
    data: bytes = field(repr=False)

    @property
    def size(self) -> int:
        return len(self.data)

    @classmethod
    def from_path(cls, path: str | Path, media_type: str | None = None) -> InputFile:
        path = Path(path)
        return cls(
            name=path.name,
            media_type=media_type or guess_media_type(path),
            data=path.read_bytes(),
        )


@dataclass
class ProcessOptions:
    """Per-call options. Unset values fall back to the processor's settings."""

    quality: float | None = None
    target_height: int | None = None
    target_width: int | None = None
    on_progress: ProgressCallback | None = None
    progress_reporter: ProgressReporter | None = None
    cancel_token: CancellationToken | None = None

    def validate(self) -> None:
        if self.quality is not None and not 0 < self.quality <= 1:
            raise ProcessingError(
                f"Quality must be in (0, 1], got {self.quality}",
                ErrorCategory.CONFIGURATION,
            )
        for name in ("target_height", "target_width"):
            value = getattr(self, name)
            if value is not None and value <= 0:
                raise ProcessingError(
                    f"{name} must be a positive pixel count, got {value}",
                    ErrorCategory.CONFIGURATION,
                )


@dataclass
class ProcessedPage:
    page_number: int
    blob: bytes = field(repr=False)
    path: str | None = None
    width: int | None = None
    height: int | None = None


@dataclass
class ProcessResult:
    """Output of a processor.

    ``blob`` is always set. Multi-page documents also populate ``pages``, in
    which case ``blob`` holds the first page.
    """

    blob: bytes = field(repr=False)
    pages: list[ProcessedPage] | None = None
    metadata: dict[str, object] = field(default_factory=dict)

    @property
    def total_pages(self) -> int:
        return len(self.pages) if self.pages is not None else 1


async def notify_progress(callback: ProgressCallback | None, current: int, total: int) -> None:
    if callback is None:
        return
    result = callback(current, total)
    if inspect.isawaitable(result):
        await result


class FileProcessor(ABC):
    """Base class for all file processors."""

    media_types: tuple[str, ...] = ()

    def __init__(
        self,
        settings: ConversionSettings | None = None,
        *,
        locale: str | None = None,
    ) -> None:
        if settings is None or locale is None:
            snapshot = get_settings()
            settings = settings or snapshot.conversion
            locale = locale or snapshot.locale
        self.settings = settings
        self.locale = locale

    @abstractmethod
    def can_process(self, file: InputFile) -> bool:
        """Return True if this processor handles the file's declared media type."""

    @abstractmethod
    async def process(self, file: InputFile, options: ProcessOptions | None = None) -> ProcessResult:
        """Convert ``file`` into encoded page images.

        Raises:
            ProcessingError: on any failure; no partial result is returned.
        """

    def get_processor_name(self) -> str:
        return type(self).__name__

    def _resolve_options(self, options: ProcessOptions | None) -> ProcessOptions:
        options = options or ProcessOptions()
        try:
            options.validate()
        except ProcessingError as exc:
            raise self._error(exc.message, exc.category) from None
        return options

    def _quality(self, options: ProcessOptions) -> float:
        return options.quality if options.quality is not None else self.settings.default_quality

    def _error(
        self,
        message: str,
        category: ErrorCategory,
        cause: BaseException | None = None,
        *,
        recoverable: bool = False,
    ) -> ProcessingError:
        return ProcessingError(
            message,
            category,
            recoverable=recoverable,
            cause=cause,
            locale=self.locale,
        )


__all__ = [
    "FileProcessor",
    "InputFile",
    "ProcessOptions",
    "ProcessResult",
    "ProcessedPage",
    "ProgressCallback",
    "guess_media_type",
    "normalize_media_type",
    "notify_progress",
]
