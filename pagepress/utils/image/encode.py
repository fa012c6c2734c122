"""Shared raster encoder: pixel surfaces and surface-to-blob serialization."""

from __future__ import annotations

import asyncio
from collections.abc import Iterator
from contextlib import contextmanager
from io import BytesIO

from PIL import Image

from pagepress.utils.log_utils import logger


PIL_FORMATS: dict[str, str] = {
    "image/webp": "WEBP",
    "image/jpeg": "JPEG",
    "image/png": "PNG",
}

_ALPHA_MODES = {"RGBA", "LA", "PA", "La", "RGBa"}


def pil_format_for(media_type: str) -> str:
    """Map an output media type to the Pillow format name."""
    try:
        return PIL_FORMATS[media_type.lower()]
    except KeyError:
        raise ValueError(f"Unsupported output media type: {media_type}") from None


def has_alpha(image: Image.Image) -> bool:
    if image.mode in _ALPHA_MODES:
        return True
    return image.mode == "P" and "transparency" in image.info


def surface_mode_for(image: Image.Image, media_type: str) -> str:
    """Pick the surface mode: keep transparency unless the target format drops it."""
    if has_alpha(image) and pil_format_for(media_type) != "JPEG":
        return "RGBA"
    return "RGB"


@contextmanager
def pixel_surface(width: int, height: int, mode: str = "RGB") -> Iterator[Image.Image]:
    """Allocate a blank surface and drop its pixel buffer when the scope exits."""
    if width <= 0 or height <= 0:
        raise ValueError(f"Surface dimensions must be positive, got {width}x{height}")
    background = (255, 255, 255, 0) if mode == "RGBA" else "white"
    surface = Image.new(mode, (width, height), background)
    try:
        yield surface
    finally:
        surface.close()


def draw_image(surface: Image.Image, image: Image.Image, origin: tuple[int, int] = (0, 0)) -> None:
    """Draw ``image`` onto ``surface`` once, at its own size."""
    if image.mode == surface.mode:
        surface.paste(image, origin)
        return
    converted = image.convert("RGBA" if has_alpha(image) else surface.mode)
    try:
        if converted.mode == "RGBA" and surface.mode != "RGBA":
            surface.paste(converted, origin, mask=converted.getchannel("A"))
        else:
            surface.paste(converted, origin)
    finally:
        if converted is not image:
            converted.close()


def quality_to_pil(quality: float) -> int:
    """Translate a (0, 1] quality fraction into Pillow's 1-100 scale."""
    return max(1, min(100, round(quality * 100)))


def _encode_sync(surface: Image.Image, quality: float, media_type: str) -> bytes:
    fmt = pil_format_for(media_type)
    buffer = BytesIO()
    try:
        if fmt == "PNG":
            surface.save(buffer, format=fmt, optimize=True)
        else:
            surface.save(buffer, format=fmt, quality=quality_to_pil(quality))
        return buffer.getvalue()
    finally:
        buffer.close()


def encode_surface_sync(surface: Image.Image, quality: float, media_type: str) -> bytes | None:
    """Serialize ``surface``; returns ``None`` when the encoder produced no data."""
    data = _encode_sync(surface, quality, media_type)
    if not data:
        logger.debug(f"Encoder returned no data for {surface.width}x{surface.height} surface")
        return None
    return data


async def encode_surface(surface: Image.Image, quality: float, media_type: str) -> bytes | None:
    """Serialize ``surface`` off the event loop.

    Failure to produce output is signalled by returning ``None``; callers
    decide which error category that maps to.
    """
    return await asyncio.to_thread(encode_surface_sync, surface, quality, media_type)


__all__ = [
    "PIL_FORMATS",
    "draw_image",
    "encode_surface",
    "encode_surface_sync",
    "has_alpha",
    "pil_format_for",
    "pixel_surface",
    "quality_to_pil",
    "surface_mode_for",
]
