"""Processor factory: picks the processor for a file from an ordered registry."""

from __future__ import annotations

from collections.abc import Sequence
from importlib import import_module

from pagepress.config import ConversionSettings
from pagepress.errors import ErrorCategory, ProcessingError
from pagepress.utils.log_utils import logger

from .base import FileProcessor, InputFile, normalize_media_type
from .image import ImageProcessor


class ProcessorFactory:
    """Select the first registered processor whose ``can_process`` matches.

    Registration order is the tie-breaker when several processors accept the
    same file. The PDF processor is imported on first use so that PyMuPDF is
    only loaded when a PDF actually arrives; it is appended after whatever
    has been registered at that point.
    """

    _LAZY_REGISTRY: dict[str, str] = {
        "application/pdf": "pagepress.processors.document:DocumentProcessor",
    }

    _CACHE: dict[str, type[FileProcessor]] = {}

    def __init__(
        self,
        processors: Sequence[FileProcessor] | None = None,
        *,
        settings: ConversionSettings | None = None,
        locale: str | None = None,
    ) -> None:
        self._settings = settings
        self._locale = locale
        if processors is None:
            self._processors: list[FileProcessor] = [ImageProcessor(settings, locale=locale)]
            self._lazy_pending = dict(self._LAZY_REGISTRY)
        else:
            self._processors = list(processors)
            self._lazy_pending = {}

    def get_processor(self, file: InputFile) -> FileProcessor:
        """Return the processor for ``file``.

        Raises:
            ProcessingError: with category ``file_validation`` if nothing matches.
        """
        media_type = normalize_media_type(file.media_type)
        if media_type in self._lazy_pending:
            self._load_lazy(media_type)

        for processor in self._processors:
            if processor.can_process(file):
                logger.debug(f"{processor.get_processor_name()} selected for {file.name}")
                return processor

        supported = ", ".join(self.supported_media_types())
        raise ProcessingError(
            f"No processor found for file type: {file.media_type or 'unknown'}. "
            f"Supported types: {supported}",
            ErrorCategory.FILE_VALIDATION,
            locale=self._locale,
        )

    def register_processor(self, processor: FileProcessor) -> None:
        self._processors.append(processor)

    def get_processors(self) -> list[FileProcessor]:
        return list(self._processors)

    def can_process(self, file: InputFile) -> bool:
        if normalize_media_type(file.media_type) in self._lazy_pending:
            return True
        return any(processor.can_process(file) for processor in self._processors)

    def supported_media_types(self) -> list[str]:
        seen: dict[str, None] = {}
        for processor in self._processors:
            for media_type in processor.media_types:
                seen.setdefault(media_type, None)
        for media_type in self._lazy_pending:
            seen.setdefault(media_type, None)
        return list(seen)

    def _load_lazy(self, media_type: str) -> None:
        target = self._lazy_pending.pop(media_type)
        processor_class = self._load_class(target)
        self._processors.append(processor_class(self._settings, locale=self._locale))
        logger.debug(f"Loaded {processor_class.__name__} for {media_type}")

    @classmethod
    def _load_class(cls, target: str) -> type[FileProcessor]:
        if target in cls._CACHE:
            return cls._CACHE[target]
        module_path, class_name = target.split(":", 1)
        module = import_module(module_path)
        processor_class = getattr(module, class_name)
        cls._CACHE[target] = processor_class
        return processor_class


__all__ = ["ProcessorFactory"]
