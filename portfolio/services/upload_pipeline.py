"""Upload pipeline: validate, recompress, store, record"""
from __future__ import annotations

import asyncio
import logging
import re
import secrets
import time
from dataclasses import dataclass
from pathlib import PurePosixPath
from typing import Any, Dict, Optional

from PIL import UnidentifiedImageError

from portfolio.exceptions import PartialFailure, ValidationError
from portfolio.models import Photo
from portfolio.services.image_processor import ResizeConstraints, image_dimensions, resize_image
from portfolio.services.photo_store import OPTIONAL_FIELDS, PhotoMetadataStore, validate_required
from portfolio.storage.paths import PathNormalizer

logger = logging.getLogger(__name__)

_NON_ALNUM = re.compile(r"[^a-z0-9]+")


def sanitize_name(value: str) -> str:
    """Lowercase, runs of non-alphanumerics become a single '-'"""
    return _NON_ALNUM.sub("-", (value or "").lower()).strip("-")


def generate_storage_name(original_filename: str, title: str = "", now_ms: Optional[int] = None) -> str:
    """
    Build ``{epoch_ms}-{random}-{name}{ext}`` for a new upload.

    The millisecond timestamp plus 24 random bits keep concurrent uploads of
    the same file apart.
    """
    path = PurePosixPath((original_filename or "").replace("\\", "/"))
    stem = sanitize_name(path.stem) or sanitize_name(title) or "photo"
    suffix = path.suffix.lower()
    if suffix and not re.fullmatch(r"\.[a-z0-9]+", suffix):
        suffix = ""
    timestamp = now_ms if now_ms is not None else int(time.time() * 1000)
    return f"{timestamp}-{secrets.token_hex(3)}-{stem}{suffix}"


@dataclass
class UploadPolicy:
    """Limits applied before anything is written"""

    max_bytes: int = 50 * 1024 * 1024
    allowed_extensions: tuple = ("jpg", "jpeg", "png", "gif", "webp", "svg")
    default_width: int = 1600
    default_height: int = 1067

    @classmethod
    def from_settings(cls, settings) -> "UploadPolicy":
        return cls(
            max_bytes=settings.max_upload_size_bytes,
            allowed_extensions=tuple(settings.allowed_image_exts),
            default_width=settings.default_photo_width,
            default_height=settings.default_photo_height,
        )


class UploadPipeline:
    """Turn an uploaded file into a stored blob plus a photo record.

    The blob is always written before the record exists. A failed write stops
    the pipeline; a failed record after a successful write is reported as a
    PartialFailure carrying the storage path.
    """

    def __init__(
        self,
        store: PhotoMetadataStore,
        blob_store,
        normalizer: PathNormalizer,
        policy: UploadPolicy,
        constraints: ResizeConstraints,
    ):
        self.store = store
        self.blob_store = blob_store
        self.normalizer = normalizer
        self.policy = policy
        self.constraints = constraints

    def validate(self, data: bytes, original_filename: str, metadata: Dict[str, Any]) -> Dict[str, str]:
        required = validate_required(metadata)
        if not data:
            raise ValidationError("No file provided or file is empty", context={"filename": original_filename})
        if len(data) > self.policy.max_bytes:
            raise ValidationError(
                f"File too large: {len(data) // (1024 * 1024)}MB (max {self.policy.max_bytes // (1024 * 1024)}MB)",
                context={"filename": original_filename, "size": len(data)},
            )
        ext = PurePosixPath(original_filename or "").suffix.lower().lstrip(".")
        if ext and ext not in self.policy.allowed_extensions:
            raise ValidationError(f"Invalid file type: {ext}", context={"filename": original_filename})
        return required

    async def _prepare(self, data: bytes, original_filename: str):
        """Recompress when over the threshold; returns (bytes, width, height)"""
        if len(data) > self.constraints.max_bytes:
            try:
                processed = await asyncio.to_thread(resize_image, data, self.constraints)
                if processed.width and processed.height:
                    return processed.data, processed.width, processed.height
                data = processed.data
            except (UnidentifiedImageError, OSError, ValueError) as e:
                logger.warning(f"Could not process {original_filename}, uploading original: {e}")

        dimensions = await asyncio.to_thread(image_dimensions, data)
        if dimensions:
            return data, dimensions[0], dimensions[1]
        return data, self.policy.default_width, self.policy.default_height

    async def upload(self, data: bytes, original_filename: str, metadata: Dict[str, Any]) -> Photo:
        """
        Store a new photo

        Args:
            data: Raw file bytes
            original_filename: Name supplied by the client
            metadata: title, alt and optional year/location/camera/description

        Raises:
            ValidationError: missing title/alt, empty, oversized or disallowed file
            TransportFailure: the blob could not be written; nothing was recorded
            PartialFailure: blob written but the record could not be created
        """
        required = self.validate(data, original_filename, metadata)

        payload, width, height = await self._prepare(data, original_filename)

        storage_name = generate_storage_name(original_filename, required["title"])
        reference = self.normalizer.normalize(storage_name)
        storage_path = reference.canonical_storage_path

        logger.info(f"Uploading {original_filename} as {storage_path} ({len(payload)} bytes)")
        await self.blob_store.upload(storage_path, payload, overwrite=True)

        record = {
            "src": reference.canonical_public_path,
            "width": width,
            "height": height,
            **required,
            **{name: metadata.get(name) for name in OPTIONAL_FIELDS},
        }
        try:
            photo = await self.store.create(record)
        except Exception as e:
            logger.critical(f"Uploaded {storage_path} but could not record it: {e}")
            raise PartialFailure(
                "Photo was uploaded but its metadata could not be recorded",
                context={
                    "storage_path": storage_path,
                    "src": reference.canonical_public_path,
                    "step": "metadata_create",
                    "cause": str(e),
                },
            ) from e

        logger.info(f"Photo {photo.id} stored at {storage_path}")
        return photo
