"""File processors package."""

from importlib import import_module
from typing import TYPE_CHECKING


__all__ = [
    "DocumentProcessor",
    "FileProcessor",
    "ImageProcessor",
    "InputFile",
    "ProcessOptions",
    "ProcessResult",
    "ProcessedPage",
    "ProcessingController",
    "ProcessingState",
    "ProcessingStatus",
    "ProcessorFactory",
]

_LAZY_MAP = {
    "DocumentProcessor": "pagepress.processors.document:DocumentProcessor",
    "FileProcessor": "pagepress.processors.base:FileProcessor",
    "ImageProcessor": "pagepress.processors.image:ImageProcessor",
    "InputFile": "pagepress.processors.base:InputFile",
    "ProcessOptions": "pagepress.processors.base:ProcessOptions",
    "ProcessResult": "pagepress.processors.base:ProcessResult",
    "ProcessedPage": "pagepress.processors.base:ProcessedPage",
    "ProcessingController": "pagepress.processors.controller:ProcessingController",
    "ProcessingState": "pagepress.processors.controller:ProcessingState",
    "ProcessingStatus": "pagepress.processors.controller:ProcessingStatus",
    "ProcessorFactory": "pagepress.processors.factory:ProcessorFactory",
}

_CACHE: dict[str, object] = {}

if TYPE_CHECKING:
    from .base import FileProcessor, InputFile, ProcessedPage, ProcessOptions, ProcessResult
    from .controller import ProcessingController, ProcessingState, ProcessingStatus
    from .document import DocumentProcessor
    from .factory import ProcessorFactory
    from .image import ImageProcessor


def __getattr__(name: str) -> object:
    if name not in _LAZY_MAP:
        raise AttributeError(f"module 'pagepress.processors' has no attribute '{name}'")
    if name in _CACHE:
        return _CACHE[name]
    module_path, attr = _LAZY_MAP[name].split(":", 1)
    module = import_module(module_path)
    resolved = getattr(module, attr)
    _CACHE[name] = resolved
    return resolved


def __dir__() -> list[str]:
    return sorted(__all__)
