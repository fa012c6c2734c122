"""Processor that converts a single raster image into one encoded page."""

from __future__ import annotations

import asyncio
from io import BytesIO

from PIL import Image, ImageOps

from pagepress.errors import ErrorCategory, ProcessingError
from pagepress.utils.image.encode import (
    draw_image,
    encode_surface_sync,
    pixel_surface,
    surface_mode_for,
)
from pagepress.utils.log_utils import logger

from .base import FileProcessor, InputFile, ProcessOptions, ProcessResult, normalize_media_type


class ImageProcessor(FileProcessor):
    """Re-encode a raster image at its intrinsic size (no scaling)."""

    media_types = (
        "image/jpeg",
        "image/png",
        "image/webp",
        "image/gif",
        "image/bmp",
        "image/tiff",
    )

    def can_process(self, file: InputFile) -> bool:
        return normalize_media_type(file.media_type).startswith("image/")

    async def process(self, file: InputFile, options: ProcessOptions | None = None) -> ProcessResult:
        options = self._resolve_options(options)
        quality = self._quality(options)
        output_type = self.settings.output_media_type
        reporter = options.progress_reporter

        if reporter is not None:
            reporter.start(1)

        try:
            blob, width, height = await asyncio.to_thread(
                self._convert, file, quality, output_type
            )
        except ProcessingError as exc:
            logger.error(f"Image processing failed for {file.name}: {exc.message}")
            raise
        except Exception as exc:
            logger.error(f"Image processing failed for {file.name}: {exc}")
            raise self._error(
                f"Image processing failed: {exc}", ErrorCategory.IMAGE_CONVERSION, exc
            ) from exc

        if reporter is not None:
            reporter.increment()

        logger.debug(
            f"Converted {file.name} ({width}x{height}, {file.media_type}) to {len(blob)} bytes"
        )
        return ProcessResult(
            blob=blob,
            metadata={
                "original_width": width,
                "original_height": height,
                "original_type": file.media_type,
                "file_name": file.name,
            },
        )

    def _convert(self, file: InputFile, quality: float, output_type: str) -> tuple[bytes, int, int]:
        # The buffer is a temporary view the decoder reads from; closed on every path.
        buffer = BytesIO(file.data)
        try:
            with self._decode(buffer) as image:
                width, height = image.size
                try:
                    mode = surface_mode_for(image, output_type)
                    with pixel_surface(width, height, mode) as surface:
                        draw_image(surface, image)
                        blob = encode_surface_sync(surface, quality, output_type)
                except (OSError, ValueError) as exc:
                    raise self._error(
                        f"Failed to convert image to {output_type}: {exc}",
                        ErrorCategory.IMAGE_CONVERSION,
                        exc,
                    ) from exc
                if blob is None:
                    raise self._error(
                        "Failed to convert surface to blob", ErrorCategory.IMAGE_CONVERSION
                    )
                return blob, width, height
        finally:
            buffer.close()

    def _decode(self, buffer: BytesIO) -> Image.Image:
        image: Image.Image | None = None
        try:
            image = Image.open(buffer)
            image.load()
            ImageOps.exif_transpose(image, in_place=True)
        except (OSError, SyntaxError, ValueError, Image.DecompressionBombError) as exc:
            if image is not None:
                image.close()
            raise self._error(
                f"Failed to load image: {exc}", ErrorCategory.IMAGE_CONVERSION, exc
            ) from exc
        return image


__all__ = ["ImageProcessor"]
