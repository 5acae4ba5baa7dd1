"""FastAPI dependencies wiring services to per-request state"""
from functools import lru_cache

from fastapi import Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession

from portfolio.config import settings
from portfolio.database import get_db
from portfolio.services.image_processor import ResizeConstraints
from portfolio.services.photo_resolver import PhotoResolver
from portfolio.services.photo_store import PhotoMetadataStore
from portfolio.services.photo_sync import PhotoSyncService
from portfolio.services.upload_pipeline import UploadPipeline, UploadPolicy
from portfolio.storage.paths import PathNormalizer


def get_blob_store(request: Request):
    """Blob store created by the application lifespan"""
    return request.app.state.blob_store


@lru_cache
def get_normalizer() -> PathNormalizer:
    return PathNormalizer.from_settings(settings)


def get_photo_store(db: AsyncSession = Depends(get_db)) -> PhotoMetadataStore:
    return PhotoMetadataStore(db)


def get_resolver(
    store: PhotoMetadataStore = Depends(get_photo_store),
    blob_store=Depends(get_blob_store),
    normalizer: PathNormalizer = Depends(get_normalizer),
) -> PhotoResolver:
    return PhotoResolver(blob_store, normalizer, store)


def get_upload_pipeline(
    store: PhotoMetadataStore = Depends(get_photo_store),
    blob_store=Depends(get_blob_store),
    normalizer: PathNormalizer = Depends(get_normalizer),
) -> UploadPipeline:
    return UploadPipeline(
        store,
        blob_store,
        normalizer,
        UploadPolicy.from_settings(settings),
        ResizeConstraints.from_settings(settings),
    )


def get_sync_service(
    store: PhotoMetadataStore = Depends(get_photo_store),
    blob_store=Depends(get_blob_store),
    normalizer: PathNormalizer = Depends(get_normalizer),
) -> PhotoSyncService:
    return PhotoSyncService(store, blob_store, normalizer)
