from __future__ import annotations

import asyncio
from collections.abc import Callable, Coroutine
from functools import wraps
from pathlib import Path
from typing import Any, ParamSpec, TypeVar

import typer  # type: ignore[import]

from pagepress.processors.factory import ProcessorFactory
from pagepress.utils.log_utils import logger

from . import convert


app = typer.Typer(
    help="pagepress command-line interface",
)


_P = ParamSpec("_P")
_T = TypeVar("_T")


def _synchronous(handler: Callable[_P, Coroutine[Any, Any, _T]]) -> Callable[_P, _T]:
    @wraps(handler)
    def wrapper(*args: _P.args, **kwargs: _P.kwargs) -> _T:
        try:
            return asyncio.run(handler(*args, **kwargs))
        except KeyboardInterrupt as err:
            logger.info("Interrupted by user")
            raise typer.Exit(code=130) from err

    return wrapper


@app.command("convert")
@_synchronous
async def convert_command(
    input_file: Path = typer.Argument(
        ...,
        help="PDF or image file to convert.",
        exists=True,
        file_okay=True,
        dir_okay=False,
        readable=True,
    ),
    output_dir: Path = typer.Option(
        ...,
        "--output-dir",
        help="Destination directory for encoded pages (created if missing).",
        file_okay=False,
        dir_okay=True,
        writable=True,
    ),
    prefix: str = typer.Option(
        "",
        "--prefix",
        help="Storage prefix placed before 'pages/' (e.g. an issue number).",
    ),
    media_type: str | None = typer.Option(
        None,
        "--media-type",
        help="Override the media type guessed from the file suffix.",
    ),
    quality: float | None = typer.Option(
        None,
        "--quality",
        min=0.01,
        max=1.0,
        help="Encoding quality in (0, 1]. Defaults to PAGEPRESS_IMAGE_QUALITY.",
    ),
    target_height: int | None = typer.Option(
        None,
        "--target-height",
        min=1,
        help="Rendered PDF page height in pixels. Defaults to PAGEPRESS_TARGET_HEIGHT.",
    ),
    target_width: int | None = typer.Option(
        None,
        "--target-width",
        min=1,
        help="Rendered PDF page width in pixels; used only without --target-height.",
    ),
    dry_run: bool = typer.Option(
        False,
        "--dry-run",
        help="Convert but only log the destinations instead of writing files.",
    ),
) -> None:
    options = convert.ConvertOptions(
        input_file=input_file,
        output_dir=output_dir,
        prefix=prefix,
        media_type=media_type,
        quality=quality,
        target_height=target_height,
        target_width=target_width,
        dry_run=dry_run,
    )
    exit_code = await convert.run(options)
    if exit_code:
        raise typer.Exit(code=exit_code)


@app.command("formats")
def formats_command() -> None:
    """List the input media types that can be converted."""
    for media_type in ProcessorFactory().supported_media_types():
        typer.echo(media_type)


def main() -> None:
    app()


if __name__ == "__main__":
    main()
