"""Resolve a requested photo filename to bytes or the placeholder"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Optional

from sqlalchemy.exc import SQLAlchemyError

from portfolio.exceptions import BlobNotFound, InvalidReference, TransportFailure
from portfolio.services.photo_store import PhotoMetadataStore
from portfolio.storage.paths import NormalizedReference, PathNormalizer

logger = logging.getLogger(__name__)


class ResolutionOutcome(str, Enum):
    """How a request was answered"""
    DIRECT = "direct"
    LEGACY = "legacy"
    PLACEHOLDER = "placeholder"


@dataclass
class Resolution:
    """Bytes to serve, or a request for the placeholder"""

    outcome: ResolutionOutcome
    content: Optional[bytes] = None
    content_type: Optional[str] = None
    storage_path: Optional[str] = None
    reason: Optional[str] = None

    @property
    def found(self) -> bool:
        return self.outcome != ResolutionOutcome.PLACEHOLDER


class PhotoResolver:
    """Find the stored bytes behind a photo URL.

    The canonical storage path is always tried first. Legacy locations are
    only probed when a metadata record says the photo should exist, so
    arbitrary filenames cost a single store lookup.
    """

    def __init__(self, blob_store, normalizer: PathNormalizer, store: PhotoMetadataStore):
        self.blob_store = blob_store
        self.normalizer = normalizer
        self.store = store

    @staticmethod
    def _placeholder(reason: str, reference: Optional[NormalizedReference] = None) -> Resolution:
        return Resolution(
            outcome=ResolutionOutcome.PLACEHOLDER,
            reason=reason,
            storage_path=reference.canonical_storage_path if reference else None,
        )

    def _serve(self, outcome: ResolutionOutcome, reference: NormalizedReference, path: str, content: bytes) -> Resolution:
        logger.info(f"Serving {reference.basename} from {path} ({len(content)} bytes, {outcome.value})")
        return Resolution(
            outcome=outcome,
            content=content,
            content_type=reference.content_type,
            storage_path=path,
        )

    async def resolve(self, filename: str) -> Resolution:
        """
        Resolve a filename taken from the URL (already percent-decoded)

        Never raises for missing photos, unreachable storage or an unavailable
        metadata store; those all resolve to the placeholder.
        """
        try:
            reference = self.normalizer.normalize(filename)
        except InvalidReference as e:
            logger.info(f"Rejected photo reference {filename!r}: {e}")
            return self._placeholder("invalid_reference")

        if reference.upload_timestamp:
            logger.debug(f"{reference.basename} is a generated upload name ({reference.upload_timestamp})")

        # TRY_DIRECT_DOWNLOAD
        try:
            content = await self.blob_store.download(reference.canonical_storage_path)
            return self._serve(ResolutionOutcome.DIRECT, reference, reference.canonical_storage_path, content)
        except BlobNotFound:
            logger.info(f"{reference.basename} not at {reference.canonical_storage_path}; checking metadata")
        except TransportFailure as e:
            logger.warning(f"Storage unavailable while serving {reference.basename}: {e}")
            return self._placeholder("transport_failure", reference)

        # CHECK_METADATA
        try:
            record = await self.store.find_by_reference(reference)
        except SQLAlchemyError as e:
            logger.error(f"Metadata lookup failed for {reference.basename}: {e}")
            return self._placeholder("metadata_unavailable", reference)

        if record is None:
            logger.info(f"No photo record for {reference.basename}; serving placeholder")
            return self._placeholder("not_found", reference)

        # TRY_STORE_DOWNLOAD
        for path in reference.legacy_storage_paths:
            try:
                content = await self.blob_store.download(path)
            except BlobNotFound:
                logger.debug(f"{reference.basename} not at {path}")
                continue
            except TransportFailure as e:
                logger.warning(f"Storage unavailable while probing {path}: {e}")
                return self._placeholder("transport_failure", reference)
            logger.info(f"Legacy path mapping: {reference.basename} => {path} (photo {record.id})")
            return self._serve(ResolutionOutcome.LEGACY, reference, path, content)

        logger.warning(f"Photo {record.id} ({reference.basename}) has a record but no file in storage")
        return self._placeholder("blob_missing", reference)
