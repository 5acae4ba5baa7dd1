"""Storage integration modules"""
from portfolio.storage.nextcloud import BlobInfo, BlobStatus, NextcloudBlobStore
from portfolio.storage.paths import (
    NormalizedReference,
    PathNormalizer,
    content_type_for,
)

__all__ = [
    "BlobInfo",
    "BlobStatus",
    "NextcloudBlobStore",
    "NormalizedReference",
    "PathNormalizer",
    "content_type_for",
]
