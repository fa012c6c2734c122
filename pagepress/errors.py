"""Error types raised by the conversion pipeline."""

from __future__ import annotations

from enum import Enum


class ErrorCategory(str, Enum):
    CONFIGURATION = "configuration"
    DECODE = "decode"
    DOCUMENT_RENDER = "document_render"
    DOCUMENT_ENCODE = "document_encode"
    IMAGE_CONVERSION = "image_conversion"
    RESOURCE = "resource"
    FILE_VALIDATION = "file_validation"
    CANCELLED = "cancelled"


# User-facing messages per locale. Turkish is the primary audience.
USER_MESSAGES: dict[str, dict[ErrorCategory, str]] = {
    "tr": {
        ErrorCategory.CONFIGURATION: "Görsel işleme hatası oluştu.",
        ErrorCategory.DECODE: "Dosya okunamadı. Dosya bozuk veya desteklenmiyor olabilir.",
        ErrorCategory.DOCUMENT_RENDER: "PDF işlenirken bir hata oluştu.",
        ErrorCategory.DOCUMENT_ENCODE: "PDF dönüştürülürken bir hata oluştu.",
        ErrorCategory.IMAGE_CONVERSION: "Görüntü işlenirken bir hata oluştu.",
        ErrorCategory.RESOURCE: "Dosya dönüştürme işlemi başarısız oldu.",
        ErrorCategory.FILE_VALIDATION: "Desteklenmeyen dosya türü.",
        ErrorCategory.CANCELLED: "İşlem iptal edildi.",
    },
    "en": {
        ErrorCategory.CONFIGURATION: "An image processing error occurred.",
        ErrorCategory.DECODE: "The file could not be read. It may be corrupt or unsupported.",
        ErrorCategory.DOCUMENT_RENDER: "An error occurred while rendering the PDF.",
        ErrorCategory.DOCUMENT_ENCODE: "An error occurred while converting the PDF.",
        ErrorCategory.IMAGE_CONVERSION: "An error occurred while processing the image.",
        ErrorCategory.RESOURCE: "File conversion failed.",
        ErrorCategory.FILE_VALIDATION: "Unsupported file type.",
        ErrorCategory.CANCELLED: "The operation was cancelled.",
    },
}

DEFAULT_LOCALE = "tr"


def user_message_for(category: ErrorCategory, locale: str | None = None) -> str:
    """Return the localized message for ``category``, falling back to Turkish."""
    catalog = USER_MESSAGES.get((locale or DEFAULT_LOCALE).lower(), USER_MESSAGES[DEFAULT_LOCALE])
    return catalog[category]


class ProcessingError(RuntimeError):
    """Raised when a file cannot be converted into encoded page images.

    Carries a technical ``message`` for logs, a ``category`` from
    `ErrorCategory`, a localized ``user_message`` safe to show to operators,
    and whether retrying the same input could succeed. The underlying
    exception, when there is one, is kept on ``cause``.
    """

    def __init__(
        self,
        message: str,
        category: ErrorCategory,
        user_message: str | None = None,
        *,
        recoverable: bool = False,
        cause: BaseException | None = None,
        locale: str | None = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.category = ErrorCategory(category)
        self.user_message = user_message or user_message_for(self.category, locale)
        self.recoverable = recoverable
        self.cause = cause
        if cause is not None and self.__cause__ is None:
            self.__cause__ = cause

    def __repr__(self) -> str:
        return f"ProcessingError(category={self.category.value!r}, message={self.message!r})"


def wrap_error(
    exc: BaseException,
    category: ErrorCategory,
    context: str,
    *,
    locale: str | None = None,
) -> ProcessingError:
    """Normalise ``exc`` into a `ProcessingError`, passing existing ones through."""
    if isinstance(exc, ProcessingError):
        return exc
    detail = str(exc) or type(exc).__name__
    return ProcessingError(f"{context}: {detail}", category, cause=exc, locale=locale)


def describe_error(error: BaseException, *, debug: bool = False, locale: str | None = None) -> str:
    """Format ``error`` for display.

    Only the localized message is shown unless ``debug`` is set, in which
    case the category, technical message and cause are appended.
    """
    if not isinstance(error, ProcessingError):
        message = user_message_for(ErrorCategory.RESOURCE, locale)
        return f"{message}\n{type(error).__name__}: {error}" if debug else message

    if not debug:
        return error.user_message

    lines = [error.user_message, f"[{error.category.value}] {error.message}"]
    if error.cause is not None:
        lines.append(f"caused by {type(error.cause).__name__}: {error.cause}")
    return "\n".join(lines)


__all__ = [
    "ErrorCategory",
    "ProcessingError",
    "USER_MESSAGES",
    "describe_error",
    "user_message_for",
    "wrap_error",
]
