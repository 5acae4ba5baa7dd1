"""Service modules"""
from portfolio.services.image_processor import ProcessedImage, ResizeConstraints, resize_image
from portfolio.services.photo_resolver import PhotoResolver, Resolution, ResolutionOutcome
from portfolio.services.photo_store import PhotoMetadataStore, SocialSummary, delete_photo
from portfolio.services.photo_sync import PhotoSyncService, SyncReport
from portfolio.services.upload_pipeline import UploadPipeline, UploadPolicy, generate_storage_name

__all__ = [
    "ProcessedImage",
    "ResizeConstraints",
    "resize_image",
    "PhotoResolver",
    "Resolution",
    "ResolutionOutcome",
    "PhotoMetadataStore",
    "SocialSummary",
    "delete_photo",
    "PhotoSyncService",
    "SyncReport",
    "UploadPipeline",
    "UploadPolicy",
    "generate_storage_name",
]
