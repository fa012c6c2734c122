"""Centralised environment configuration for pagepress.

This module ensures `.env` loading happens in one place and exposes a
typed snapshot of the conversion defaults (quality, target page height,
output format), storage naming and presentation knobs. Processors receive
`ConversionSettings` at construction instead of reading module-level
constants, which keeps tests free to override behaviour.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from functools import lru_cache
import os
from pathlib import Path

from dotenv import load_dotenv


_DEFAULT_ENV_PATH = Path(__file__).resolve().parents[2] / ".env"

DEFAULT_QUALITY = 0.9
DEFAULT_TARGET_HEIGHT = 2400
DEFAULT_OUTPUT_MEDIA_TYPE = "image/webp"
DEFAULT_PAGE_PREFIX = "sayfa_"
DEFAULT_PAGE_PADDING = 3
DEFAULT_LOCALE = "tr"
DEFAULT_ENVIRONMENT = "production"

# Output media types the raster encoder knows how to produce.
OUTPUT_EXTENSIONS: dict[str, str] = {
    "image/webp": ".webp",
    "image/jpeg": ".jpg",
    "image/png": ".png",
}


def _coerce_int(value: str | None) -> int | None:
    if value is None or value == "":
        return None
    try:
        return int(value)
    except ValueError:
        return None


def _coerce_float(value: str | None) -> float | None:
    if value is None or value == "":
        return None
    try:
        return float(value)
    except ValueError:
        return None


@dataclass(frozen=True)
class ConversionSettings:
    """Defaults applied when `ProcessOptions` leaves a value unset."""

    default_quality: float = DEFAULT_QUALITY
    default_target_height: int = DEFAULT_TARGET_HEIGHT
    output_media_type: str = DEFAULT_OUTPUT_MEDIA_TYPE

    @property
    def output_extension(self) -> str:
        return OUTPUT_EXTENSIONS.get(self.output_media_type, ".bin")


@dataclass(frozen=True)
class StorageNamingSettings:
    page_prefix: str = DEFAULT_PAGE_PREFIX
    page_padding: int = DEFAULT_PAGE_PADDING
    extension: str = OUTPUT_EXTENSIONS[DEFAULT_OUTPUT_MEDIA_TYPE]


@dataclass(frozen=True)
class PagepressSettings:
    """Top-level snapshot of configuration values."""

    env_file: Path
    conversion: ConversionSettings = field(default_factory=ConversionSettings)
    storage: StorageNamingSettings = field(default_factory=StorageNamingSettings)
    locale: str = DEFAULT_LOCALE
    environment: str = DEFAULT_ENVIRONMENT

    @property
    def debug(self) -> bool:
        return self.environment.lower() in {"development", "dev"}


def _resolve_env_path(env_file: os.PathLike[str] | str | None) -> Path:
    if env_file is None:
        return _DEFAULT_ENV_PATH
    return Path(env_file).resolve()


def _load_quality() -> float:
    quality = _coerce_float(os.getenv("PAGEPRESS_IMAGE_QUALITY"))
    if quality is None or not 0 < quality <= 1:
        return DEFAULT_QUALITY
    return quality


def _load_target_height() -> int:
    height = _coerce_int(os.getenv("PAGEPRESS_TARGET_HEIGHT"))
    if height is None or height <= 0:
        return DEFAULT_TARGET_HEIGHT
    return height


def _load_output_media_type() -> str:
    media_type = (os.getenv("PAGEPRESS_OUTPUT_FORMAT") or DEFAULT_OUTPUT_MEDIA_TYPE).strip().lower()
    if media_type not in OUTPUT_EXTENSIONS:
        return DEFAULT_OUTPUT_MEDIA_TYPE
    return media_type


@lru_cache(maxsize=4)
def _load_settings(env_path: Path) -> PagepressSettings:
    # Load the environment file once per unique path. We avoid override=True so
    # that existing environment variables take precedence over `.env` defaults.
    load_dotenv(dotenv_path=env_path, override=False)

    conversion = ConversionSettings(
        default_quality=_load_quality(),
        default_target_height=_load_target_height(),
        output_media_type=_load_output_media_type(),
    )

    padding = _coerce_int(os.getenv("PAGEPRESS_PAGE_PADDING"))
    storage = StorageNamingSettings(
        page_prefix=os.getenv("PAGEPRESS_PAGE_PREFIX", DEFAULT_PAGE_PREFIX),
        page_padding=padding if padding and padding > 0 else DEFAULT_PAGE_PADDING,
        extension=conversion.output_extension,
    )

    return PagepressSettings(
        env_file=env_path,
        conversion=conversion,
        storage=storage,
        locale=os.getenv("PAGEPRESS_LOCALE", DEFAULT_LOCALE).strip().lower() or DEFAULT_LOCALE,
        environment=os.getenv("PAGEPRESS_ENV", DEFAULT_ENVIRONMENT).strip().lower()
        or DEFAULT_ENVIRONMENT,
    )


def get_settings(
    env_file: os.PathLike[str] | str | None = None,
    *,
    reload: bool = False,
) -> PagepressSettings:
    """Return the cached settings snapshot.

    Args:
        env_file: Optional explicit path to a `.env` file. When omitted the repo
            root `.env` file is used.
        reload: When True the cached snapshot is cleared before loading.
    """
    env_path = _resolve_env_path(env_file)
    if reload:
        _load_settings.cache_clear()
    return _load_settings(env_path)
