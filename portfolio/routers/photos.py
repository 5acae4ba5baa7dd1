"""
API endpoints for photos: public listing and serving, admin management
"""
import logging
from typing import Any, Dict, Optional

from fastapi import APIRouter, Depends, File, Form, Query, UploadFile, status
from fastapi.responses import RedirectResponse, Response
from pydantic import BaseModel

from portfolio.auth import require_admin
from portfolio.config import settings
from portfolio.dependencies import (
    get_blob_store,
    get_normalizer,
    get_photo_store,
    get_resolver,
    get_upload_pipeline,
)
from portfolio.serializers import envelope, serialize_photo
from portfolio.services.photo_resolver import PhotoResolver
from portfolio.services.photo_store import PhotoMetadataStore, delete_photo
from portfolio.services.upload_pipeline import UploadPipeline
from portfolio.storage.paths import PathNormalizer

logger = logging.getLogger(__name__)

router = APIRouter(prefix=settings.api_photo_prefix, tags=["Photos"])


# ============================================================================
# Request Models
# ============================================================================

class PhotoUpdate(BaseModel):
    id: str
    title: Optional[str] = None
    alt: Optional[str] = None
    year: Optional[str] = None
    location: Optional[str] = None
    camera: Optional[str] = None
    description: Optional[str] = None


# ============================================================================
# Public Endpoints
# ============================================================================

@router.get("")
async def list_photos(
    store: PhotoMetadataStore = Depends(get_photo_store),
    normalizer: PathNormalizer = Depends(get_normalizer),
):
    """
    List all photos, newest first
    """
    photos = await store.list_photos()
    logger.info(f"Found {len(photos)} photos in database")
    return envelope([serialize_photo(photo, normalizer) for photo in photos])


def _placeholder_response() -> RedirectResponse:
    return RedirectResponse(
        url=settings.placeholder_url,
        status_code=status.HTTP_307_TEMPORARY_REDIRECT,
        headers={"Cache-Control": "no-store"},
    )


@router.get("/{filename:path}")
async def serve_photo(
    filename: str,
    resolver: PhotoResolver = Depends(get_resolver),
):
    """
    Serve photo bytes, or redirect to the placeholder when the photo cannot be found
    """
    try:
        resolution = await resolver.resolve(filename)
    except Exception:
        # Serving a photo never fails the page; the placeholder stands in
        logger.exception(f"Unexpected error serving photo {filename!r}")
        return _placeholder_response()

    if not resolution.found:
        return _placeholder_response()

    return Response(
        content=resolution.content,
        media_type=resolution.content_type,
        headers={"Cache-Control": settings.photo_cache_control},
    )


# ============================================================================
# Admin Endpoints
# ============================================================================

@router.post("", status_code=status.HTTP_201_CREATED)
async def upload_photo(
    file: Optional[UploadFile] = File(None),
    title: Optional[str] = Form(None),
    alt: Optional[str] = Form(None),
    year: Optional[str] = Form(None),
    location: Optional[str] = Form(None),
    camera: Optional[str] = Form(None),
    description: Optional[str] = Form(None),
    admin: Dict[str, Any] = Depends(require_admin),
    pipeline: UploadPipeline = Depends(get_upload_pipeline),
    normalizer: PathNormalizer = Depends(get_normalizer),
):
    """
    Upload a photo with its metadata
    """
    content = await file.read() if file is not None else b""
    original_filename = file.filename if file is not None else ""
    logger.info(f"Upload by {admin.get('email')}: {original_filename} ({len(content)} bytes)")

    photo = await pipeline.upload(
        content,
        original_filename,
        {
            "title": title,
            "alt": alt,
            "year": year,
            "location": location,
            "camera": camera,
            "description": description,
        },
    )
    return envelope(serialize_photo(photo, normalizer))


@router.put("")
async def update_photo(
    request: PhotoUpdate,
    admin: Dict[str, Any] = Depends(require_admin),
    store: PhotoMetadataStore = Depends(get_photo_store),
    normalizer: PathNormalizer = Depends(get_normalizer),
):
    """
    Update photo metadata (never the file or its src)
    """
    changes = request.model_dump(exclude_unset=True, exclude={"id"})
    photo = await store.update(request.id, changes)
    return envelope(serialize_photo(photo, normalizer))


@router.delete("")
async def remove_photo(
    id: str = Query(..., min_length=1),
    admin: Dict[str, Any] = Depends(require_admin),
    store: PhotoMetadataStore = Depends(get_photo_store),
    blob_store=Depends(get_blob_store),
    normalizer: PathNormalizer = Depends(get_normalizer),
):
    """
    Delete a photo's file from storage, then its record
    """
    photo = await delete_photo(store, blob_store, normalizer, id)
    logger.info(f"Photo {photo.id} deleted by {admin.get('email')}")
    return envelope({"id": photo.id})
