from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path

import aiofiles

from pagepress.config import get_settings
from pagepress.errors import ProcessingError, describe_error
from pagepress.processors.base import ProcessOptions
from pagepress.processors.controller import ProcessingController
from pagepress.utils.concurrency import TqdmProgressReporter
from pagepress.utils.image.io import load_input_file_async
from pagepress.utils.log_utils import logger
from pagepress.utils.storage_paths import assign_page_paths, page_storage_key


@dataclass(slots=True)
class ConvertOptions:
    input_file: Path
    output_dir: Path
    prefix: str
    media_type: str | None
    quality: float | None
    target_height: int | None
    target_width: int | None
    dry_run: bool


async def _write_blob(path: Path, blob: bytes) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    async with aiofiles.open(path, "wb") as file_obj:
        await file_obj.write(blob)


async def run(options: ConvertOptions) -> int:
    settings = get_settings()
    file = await load_input_file_async(options.input_file, options.media_type)
    controller = ProcessingController(reporter=TqdmProgressReporter(f"convert {file.name}"))

    if not controller.factory.can_process(file):
        logger.error(
            f"Unsupported media type '{file.media_type}'. "
            f"Supported: {', '.join(controller.factory.supported_media_types())}"
        )
        return 2

    process_options = ProcessOptions(
        quality=options.quality,
        target_height=options.target_height,
        target_width=options.target_width,
    )
    try:
        result = await controller.convert(file, process_options)
    except ProcessingError as exc:
        logger.error(describe_error(exc, debug=settings.debug, locale=settings.locale))
        return 1

    if result.pages:
        keys = assign_page_paths(result, options.prefix, naming=settings.storage)
        blobs = [page.blob for page in result.pages]
    else:
        keys = [page_storage_key(1, prefix=options.prefix, naming=settings.storage)]
        blobs = [result.blob]

    for key, blob in zip(keys, blobs, strict=True):
        destination = options.output_dir / key
        if options.dry_run:
            logger.info(f"DRY RUN: {destination} ({len(blob)} bytes)")
            continue
        await _write_blob(destination, blob)

    logger.info(f"Converted {file.name}: {len(keys)} page(s) under {options.output_dir}")
    return 0
