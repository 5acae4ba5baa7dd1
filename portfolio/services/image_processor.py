"""Recompress oversized uploads with Pillow."""
from __future__ import annotations

import io
import logging
from dataclasses import dataclass
from typing import Optional, Tuple

from PIL import Image as PILImage, UnidentifiedImageError

logger = logging.getLogger(__name__)

QUALITY_FORMATS = {"JPEG", "WEBP"}


@dataclass
class ResizeConstraints:
    """Targets for recompression"""

    max_bytes: int
    max_width: int = 2400
    max_height: int = 2400
    start_quality: int = 90
    min_quality: int = 70
    quality_step: int = 5

    @classmethod
    def from_settings(cls, settings) -> "ResizeConstraints":
        return cls(
            max_bytes=settings.resize_threshold_bytes,
            max_width=settings.resize_max_width,
            max_height=settings.resize_max_height,
            start_quality=settings.resize_start_quality,
            min_quality=settings.resize_min_quality,
            quality_step=settings.resize_quality_step,
        )


@dataclass
class ProcessedImage:
    """Result of resize_image"""

    data: bytes
    width: Optional[int] = None
    height: Optional[int] = None
    quality: Optional[int] = None
    reached_floor: bool = False
    changed: bool = False


def image_dimensions(data: bytes) -> Optional[Tuple[int, int]]:
    """(width, height) when Pillow can read the header, otherwise None"""
    try:
        with PILImage.open(io.BytesIO(data)) as img:
            return img.size
    except (UnidentifiedImageError, OSError, ValueError):
        return None


def _encode(img: PILImage.Image, image_format: str, quality: Optional[int]) -> bytes:
    out = io.BytesIO()
    if image_format == "JPEG":
        if img.mode not in ("RGB", "L"):
            img = img.convert("RGB")
        img.save(out, format="JPEG", quality=quality, optimize=True)
    elif image_format == "WEBP":
        img.save(out, format="WEBP", quality=quality)
    else:
        img.save(out, format="PNG", optimize=True, compress_level=9)
    return out.getvalue()


def resize_image(data: bytes, constraints: ResizeConstraints) -> ProcessedImage:
    """
    Shrink an image until it fits ``constraints.max_bytes``.

    The image is first scaled to fit inside max_width x max_height, keeping
    its aspect ratio. JPEG and WebP are then re-encoded at decreasing quality
    until the output fits or ``min_quality`` is reached; the floor result is
    returned as-is. PNG is re-encoded once at maximum compression. Formats
    other than JPEG, PNG and WebP are returned unchanged.

    Raises:
        UnidentifiedImageError / OSError: Pillow cannot decode the input
    """
    if len(data) <= constraints.max_bytes:
        logger.debug("Image is already under size limit, skipping processing")
        return ProcessedImage(data=data)

    with PILImage.open(io.BytesIO(data)) as source:
        image_format = (source.format or "").upper()
        if image_format not in QUALITY_FORMATS | {"PNG"}:
            logger.info(f"Not recompressing {image_format or 'unknown'} image")
            return ProcessedImage(data=data, width=source.width, height=source.height)

        logger.info(f"Processing large image: {source.width}x{source.height}, {len(data)} bytes")
        img = source.copy()

    if img.width > constraints.max_width or img.height > constraints.max_height:
        img.thumbnail((constraints.max_width, constraints.max_height), PILImage.Resampling.LANCZOS)
        logger.info(f"Resized to {img.width}x{img.height}")

    if image_format not in QUALITY_FORMATS:
        processed = _encode(img, image_format, None)
        return ProcessedImage(
            data=processed,
            width=img.width,
            height=img.height,
            reached_floor=len(processed) > constraints.max_bytes,
            changed=True,
        )

    quality = constraints.start_quality
    step = max(1, constraints.quality_step)
    while True:
        processed = _encode(img, image_format, quality)
        logger.debug(f"Quality {quality}: {len(processed)} bytes")
        if len(processed) <= constraints.max_bytes:
            break
        if quality - step < constraints.min_quality:
            logger.warning(
                f"Quality floor {constraints.min_quality} reached at {len(processed)} bytes; accepting result"
            )
            return ProcessedImage(
                data=processed, width=img.width, height=img.height,
                quality=quality, reached_floor=True, changed=True,
            )
        quality -= step

    logger.info(
        f"Processing complete. Original: {len(data)} bytes, Processed: {len(processed)} bytes, "
        f"Reduction: {round((1 - len(processed) / len(data)) * 100)}%"
    )
    return ProcessedImage(data=processed, width=img.width, height=img.height, quality=quality, changed=True)
