"""Processor that renders every page of a PDF into an encoded raster image.

Pages are handled strictly one after another so that at most one page
surface is alive at a time, which keeps memory flat for long documents.
All MuPDF calls run on a single dedicated worker thread: the event loop is
never blocked by rendering, and the document handle is only ever touched
from one thread.
"""

from __future__ import annotations

import asyncio
from collections.abc import AsyncIterator, Awaitable
from concurrent.futures import ThreadPoolExecutor
from contextlib import asynccontextmanager
from dataclasses import dataclass
import math
from typing import TypeVar

import fitz  # PyMuPDF
from PIL import Image

from pagepress.errors import ErrorCategory, ProcessingError
from pagepress.utils.concurrency import CancellationToken
from pagepress.utils.image.encode import encode_surface, pixel_surface
from pagepress.utils.log_utils import logger

from .base import (
    FileProcessor,
    InputFile,
    ProcessedPage,
    ProcessOptions,
    ProcessResult,
    normalize_media_type,
    notify_progress,
)


PDF_MEDIA_TYPE = "application/pdf"

_MUPDF_EXECUTOR = ThreadPoolExecutor(max_workers=1, thread_name_prefix="pagepress-mupdf")

_T = TypeVar("_T")


@dataclass(frozen=True, slots=True)
class PageViewport:
    """Mapping from a page's native size (points) to a scaled pixel size."""

    scale: float
    width: float
    height: float

    @property
    def surface_size(self) -> tuple[int, int]:
        # Round away float noise (300.00000000000006) before taking the ceiling.
        return math.ceil(round(self.width, 6)), math.ceil(round(self.height, 6))


def compute_viewport(
    intrinsic_width: float,
    intrinsic_height: float,
    *,
    target_height: int | None = None,
    target_width: int | None = None,
) -> PageViewport:
    """Scale a page to ``target_height`` (or ``target_width``) keeping its aspect ratio."""
    if intrinsic_width <= 0 or intrinsic_height <= 0:
        raise ValueError(f"Page has no area ({intrinsic_width}x{intrinsic_height})")
    if target_height is not None:
        scale = target_height / intrinsic_height
    elif target_width is not None:
        scale = target_width / intrinsic_width
    else:
        raise ValueError("Either target_height or target_width is required")
    return PageViewport(
        scale=scale,
        width=intrinsic_width * scale,
        height=intrinsic_height * scale,
    )


def open_document(data: bytes) -> fitz.Document:
    document = fitz.open(stream=data, filetype="pdf")
    if document.needs_pass:
        document.close()
        raise ValueError("Document is encrypted and requires a password")
    return document


def count_pages(document: fitz.Document) -> int:
    return document.page_count


def page_viewport(
    document: fitz.Document,
    index: int,
    target_height: int | None,
    target_width: int | None,
) -> PageViewport:
    page = document.load_page(index)
    rect = page.rect
    return compute_viewport(
        rect.width, rect.height, target_height=target_height, target_width=target_width
    )


def render_page_into(
    document: fitz.Document,
    index: int,
    viewport: PageViewport,
    surface: Image.Image,
) -> None:
    """Render page ``index`` at ``viewport.scale`` onto ``surface``."""
    page = document.load_page(index)
    pixmap = page.get_pixmap(
        matrix=fitz.Matrix(viewport.scale, viewport.scale),
        colorspace=fitz.csRGB,
        alpha=False,
    )
    rendered = Image.frombytes("RGB", (pixmap.width, pixmap.height), pixmap.samples)
    del pixmap
    try:
        surface.paste(rendered, (0, 0))
    finally:
        rendered.close()


async def _finish_before_release(work: Awaitable[_T]) -> _T:
    """Await worker-thread work that holds a page surface.

    On cancellation the caller still sees `asyncio.CancelledError`, but only
    after the worker has returned, so the surface is never closed under it.
    """
    future = asyncio.ensure_future(work)
    try:
        return await asyncio.shield(future)
    except asyncio.CancelledError:
        await asyncio.wait({future})
        if not future.cancelled():
            # Mark the outcome as retrieved; the run is being abandoned.
            future.exception()
        raise


class DocumentProcessor(FileProcessor):
    """Convert each page of a PDF into an encoded image, in page order."""

    media_types = (PDF_MEDIA_TYPE,)

    def can_process(self, file: InputFile) -> bool:
        return normalize_media_type(file.media_type) == PDF_MEDIA_TYPE

    async def process(self, file: InputFile, options: ProcessOptions | None = None) -> ProcessResult:
        options = self._resolve_options(options)
        quality = self._quality(options)
        output_type = self.settings.output_media_type
        target_height = options.target_height
        if target_height is None and options.target_width is None:
            target_height = self.settings.default_target_height
        reporter = options.progress_reporter

        try:
            async with self._document_scope(file) as document:
                total_pages = await self._count_pages(file, document)
                if total_pages == 0:
                    raise self._error(f"{file.name} contains no pages", ErrorCategory.DECODE)
                if reporter is not None:
                    reporter.start(total_pages)
                logger.debug(f"Rendering {total_pages} page(s) of {file.name}")

                pages: list[ProcessedPage] = []
                for page_number in range(1, total_pages + 1):
                    self._check_cancelled(options.cancel_token, page_number, total_pages)
                    page = await self._convert_page(
                        document,
                        page_number,
                        target_height=target_height,
                        target_width=options.target_width,
                        quality=quality,
                        output_type=output_type,
                    )
                    pages.append(page)
                    if reporter is not None:
                        reporter.increment()
                    try:
                        await notify_progress(options.on_progress, page_number, total_pages)
                    except Exception as exc:
                        raise self._error(
                            f"Progress callback failed on page {page_number}: {exc}",
                            ErrorCategory.RESOURCE,
                            exc,
                        ) from exc
        except ProcessingError as exc:
            logger.error(f"PDF processing failed for {file.name}: {exc.message}")
            raise
        except Exception as exc:
            logger.error(f"PDF processing failed for {file.name}: {exc}")
            raise self._error(
                f"PDF processing failed: {exc}", ErrorCategory.RESOURCE, exc
            ) from exc

        logger.info(f"Converted {file.name}: {total_pages} page(s)")
        if target_height is not None:
            scale_target = {"target_height": target_height}
        else:
            scale_target = {"target_width": options.target_width}
        return ProcessResult(
            blob=pages[0].blob,
            pages=pages,
            metadata={
                "page_count": total_pages,
                "file_name": file.name,
                "original_type": file.media_type,
                **scale_target,
            },
        )

    async def _count_pages(self, file: InputFile, document: fitz.Document) -> int:
        loop = asyncio.get_running_loop()
        try:
            return await loop.run_in_executor(_MUPDF_EXECUTOR, count_pages, document)
        except Exception as exc:
            raise self._error(
                f"Failed to read page tree of {file.name}: {exc}", ErrorCategory.DECODE, exc
            ) from exc

    @asynccontextmanager
    async def _document_scope(self, file: InputFile) -> AsyncIterator[fitz.Document]:
        loop = asyncio.get_running_loop()
        try:
            document = await loop.run_in_executor(_MUPDF_EXECUTOR, open_document, file.data)
        except Exception as exc:
            raise self._error(
                f"Failed to load PDF {file.name}: {exc}", ErrorCategory.DECODE, exc
            ) from exc
        try:
            yield document
        finally:
            await loop.run_in_executor(_MUPDF_EXECUTOR, document.close)

    async def _convert_page(
        self,
        document: fitz.Document,
        page_number: int,
        *,
        target_height: int | None,
        target_width: int | None,
        quality: float,
        output_type: str,
    ) -> ProcessedPage:
        loop = asyncio.get_running_loop()
        index = page_number - 1
        try:
            viewport = await loop.run_in_executor(
                _MUPDF_EXECUTOR, page_viewport, document, index, target_height, target_width
            )
        except Exception as exc:
            raise self._error(
                f"Failed to load page {page_number}: {exc}", ErrorCategory.DOCUMENT_RENDER, exc
            ) from exc
        width, height = viewport.surface_size

        # The surface is released before the next page is touched.
        with pixel_surface(width, height) as surface:
            try:
                await _finish_before_release(
                    loop.run_in_executor(
                        _MUPDF_EXECUTOR, render_page_into, document, index, viewport, surface
                    )
                )
            except Exception as exc:
                raise self._error(
                    f"Failed to render page {page_number}: {exc}",
                    ErrorCategory.DOCUMENT_RENDER,
                    exc,
                ) from exc
            try:
                blob = await _finish_before_release(encode_surface(surface, quality, output_type))
            except Exception as exc:
                raise self._error(
                    f"Failed to encode page {page_number}: {exc}",
                    ErrorCategory.DOCUMENT_ENCODE,
                    exc,
                ) from exc

        if blob is None:
            raise self._error(
                f"Failed to convert page {page_number} surface to blob",
                ErrorCategory.DOCUMENT_ENCODE,
            )
        logger.debug(f"Page {page_number}: {width}x{height} -> {len(blob)} bytes")
        return ProcessedPage(page_number=page_number, blob=blob, width=width, height=height)

    def _check_cancelled(
        self, token: CancellationToken | None, page_number: int, total_pages: int
    ) -> None:
        if token is None or not token.cancelled:
            return
        reason = f" ({token.reason})" if token.reason else ""
        raise self._error(
            f"Conversion cancelled before page {page_number} of {total_pages}{reason}",
            ErrorCategory.CANCELLED,
            recoverable=True,
        )


__all__ = [
    "DocumentProcessor",
    "PDF_MEDIA_TYPE",
    "PageViewport",
    "compute_viewport",
    "count_pages",
    "open_document",
    "page_viewport",
    "render_page_into",
]
