"""Async file loading helpers."""

from __future__ import annotations

from pathlib import Path

import aiofiles

from pagepress.processors.base import InputFile, guess_media_type


async def load_input_file_async(path: str | Path, media_type: str | None = None) -> InputFile:
    """Read ``path`` into an `InputFile` without blocking the event loop."""
    path = Path(path)
    async with aiofiles.open(path, "rb") as file_obj:
        data = await file_obj.read()
    return InputFile(name=path.name, media_type=media_type or guess_media_type(path), data=data)


__all__ = ["load_input_file_async"]
