"""Pillow helpers that turn a source PNG/JPEG into the mip levels to encode."""

from __future__ import annotations

import io
import logging
from typing import List

from PIL import Image, UnidentifiedImageError

from squisher.config.constants import DEFAULT_MAX_SIZE
from squisher.error_handling import FormatError

logger = logging.getLogger(__name__)


def _to_8bit(img: Image.Image) -> Image.Image:
    """Rescale 16/32-bit integer grayscale into 8 bits; ``convert`` would clip it."""
    return img.convert("I").point(lambda v: v * (1 / 256)).convert("L")


def decode_rgba(data: bytes) -> Image.Image:
    """Decode PNG/JPEG bytes into a fully loaded RGBA image."""
    try:
        with Image.open(io.BytesIO(data)) as img:
            img.load()
            if img.mode.startswith("I"):
                return _to_8bit(img).convert("RGBA")
            return img.convert("RGBA")
    except Image.DecompressionBombError as exc:
        raise FormatError(f"Image is too large to decode: {exc}", cause=exc) from exc
    except (UnidentifiedImageError, OSError, ValueError) as exc:
        raise FormatError(f"Unable to decode image: {exc}", cause=exc) from exc


def fit_to_max_size(img: Image.Image, max_size: int = DEFAULT_MAX_SIZE) -> Image.Image:
    """Downscale so neither side exceeds ``max_size``, keeping aspect ratio."""
    width, height = img.size
    if width <= max_size and height <= max_size:
        return img

    scale = max_size / max(width, height)
    new_size = (max(1, round(width * scale)), max(1, round(height * scale)))
    logger.warning(
        "Image is too large! (%dx%d), resizing to %dx%d",
        width,
        height,
        new_size[0],
        new_size[1],
    )
    return img.resize(new_size, Image.Resampling.LANCZOS)


def mip_chain(img: Image.Image) -> List[Image.Image]:
    """Full mip chain from ``img`` down to 1x1, each level half the last."""
    levels = [img]
    width, height = img.size
    while width > 1 or height > 1:
        width, height = max(1, width // 2), max(1, height // 2)
        levels.append(img.resize((width, height), Image.Resampling.LANCZOS))
    return levels


def prepare_levels(data: bytes, max_size: int, mipmaps: bool) -> List[Image.Image]:
    img = fit_to_max_size(decode_rgba(data), max_size)
    return mip_chain(img) if mipmaps else [img]
