"""Shared fixtures: in-memory PDFs and images built with PyMuPDF and Pillow."""

from __future__ import annotations

from collections.abc import Callable, Sequence
from io import BytesIO

import fitz
from PIL import Image
import pytest

from pagepress.config import ConversionSettings
from pagepress.processors.base import InputFile


LETTER = (612.0, 792.0)


def build_pdf(page_sizes: Sequence[tuple[float, float]]) -> bytes:
    doc = fitz.open()
    try:
        for number, (width, height) in enumerate(page_sizes, start=1):
            page = doc.new_page(width=width, height=height)
            page.insert_text((36, 72), f"Page {number}", fontsize=24)
            page.draw_rect(fitz.Rect(36, 100, width - 36, 140), color=(0, 0, 1), fill=(0, 0, 1))
        return doc.tobytes()
    finally:
        doc.close()


def build_image(
    size: tuple[int, int], *, mode: str = "RGB", fmt: str = "PNG", color: object = "red"
) -> bytes:
    buffer = BytesIO()
    with Image.new(mode, size, color) as image:
        image.save(buffer, format=fmt)
    return buffer.getvalue()


@pytest.fixture
def conversion_settings() -> ConversionSettings:
    return ConversionSettings(
        default_quality=0.85,
        default_target_height=200,
        output_media_type="image/webp",
    )


@pytest.fixture
def pdf_file() -> Callable[..., InputFile]:
    def _make(
        page_sizes: Sequence[tuple[float, float]] = (LETTER,),
        name: str = "issue.pdf",
    ) -> InputFile:
        return InputFile(name=name, media_type="application/pdf", data=build_pdf(page_sizes))

    return _make


@pytest.fixture
def image_file() -> Callable[..., InputFile]:
    def _make(
        size: tuple[int, int] = (40, 30),
        *,
        mode: str = "RGB",
        fmt: str = "PNG",
        media_type: str = "image/png",
        name: str = "cover.png",
        color: object = "red",
    ) -> InputFile:
        data = build_image(size, mode=mode, fmt=fmt, color=color)
        return InputFile(name=name, media_type=media_type, data=data)

    return _make
