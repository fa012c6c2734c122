"""Storage key helpers for callers that persist converted pages."""

from __future__ import annotations

from pagepress.config import StorageNamingSettings, get_settings
from pagepress.processors.base import ProcessResult


def pages_folder(prefix: str) -> str:
    prefix = prefix.strip("/")
    return f"{prefix}/pages" if prefix else "pages"


def page_storage_key(
    page_number: int,
    *,
    prefix: str,
    naming: StorageNamingSettings | None = None,
) -> str:
    """Build ``<prefix>/pages/<page_prefix><padded number><extension>``."""
    if isinstance(page_number, bool) or not isinstance(page_number, int) or page_number < 1:
        raise ValueError(f"Invalid page number: {page_number!r}")
    naming = naming or get_settings().storage
    padded = str(page_number).zfill(naming.page_padding)
    return f"{pages_folder(prefix)}/{naming.page_prefix}{padded}{naming.extension}"


def assign_page_paths(
    result: ProcessResult,
    prefix: str,
    *,
    naming: StorageNamingSettings | None = None,
) -> list[str]:
    """Fill ``path`` on every page of ``result`` and return the keys in page order.

    Single-image results get one key for page 1.
    """
    if not result.pages:
        return [page_storage_key(1, prefix=prefix, naming=naming)]
    keys: list[str] = []
    for page in result.pages:
        page.path = page_storage_key(page.page_number, prefix=prefix, naming=naming)
        keys.append(page.path)
    return keys


__all__ = ["assign_page_paths", "page_storage_key", "pages_folder"]
