"""Reconcile photo records with the files present in Nextcloud"""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Tuple

from portfolio.exceptions import InvalidReference
from portfolio.services.photo_store import PhotoMetadataStore
from portfolio.storage.nextcloud import BlobStatus
from portfolio.storage.paths import PathNormalizer

logger = logging.getLogger(__name__)


@dataclass
class SyncReport:
    """Result of comparing the database with the photo root listing"""

    files_in_store: int
    records_before: int
    missing_files: List[Dict[str, Any]] = field(default_factory=list)
    removed: List[Dict[str, Any]] = field(default_factory=list)
    legacy_files: List[Dict[str, Any]] = field(default_factory=list)
    unverified: List[Dict[str, Any]] = field(default_factory=list)
    untracked_files: List[str] = field(default_factory=list)
    pruned: bool = False

    @property
    def records_after(self) -> int:
        return self.records_before - len(self.removed)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "filesInStore": self.files_in_store,
            "recordsBefore": self.records_before,
            "recordsAfter": self.records_after,
            "missingFiles": self.missing_files,
            "removed": self.removed,
            "legacyFiles": self.legacy_files,
            "unverified": self.unverified,
            "untrackedFiles": self.untracked_files,
            "pruned": self.pruned,
        }


class PhotoSyncService:
    """Find records without files and files without records.

    Only the configured photo root is listed. A record whose file is not
    there is checked against the legacy locations before it counts as
    missing; records that could not be checked are never pruned.
    """

    def __init__(self, store: PhotoMetadataStore, blob_store, normalizer: PathNormalizer):
        self.store = store
        self.blob_store = blob_store
        self.normalizer = normalizer

    async def _find_legacy(self, basename: str) -> Tuple[BlobStatus, Optional[str]]:
        """Status of the first legacy location that is present or unreachable"""
        for path in self.normalizer.normalize(basename).legacy_storage_paths:
            status = await self.blob_store.probe(path)
            if status != BlobStatus.MISSING:
                return status, path
        return BlobStatus.MISSING, None

    async def sync(self, prune: bool = False) -> SyncReport:
        files = await self.blob_store.list_files()
        available = {info.name for info in files}

        photos = await self.store.list_photos()
        report = SyncReport(files_in_store=len(files), records_before=len(photos), pruned=prune)

        tracked = set()
        for photo in photos:
            try:
                basename = self.normalizer.basename(photo.src)
            except InvalidReference:
                logger.warning(f"Photo {photo.id} has an unusable src: {photo.src!r}")
                continue
            tracked.add(basename)
            if basename in available:
                continue

            entry = {"id": photo.id, "title": photo.title, "filename": basename}
            status, legacy_path = await self._find_legacy(basename)
            if status == BlobStatus.UNREACHABLE:
                logger.warning(f"Could not check legacy locations for {basename}; keeping record {photo.id}")
                report.unverified.append(entry)
                continue
            if status == BlobStatus.PRESENT:
                report.legacy_files.append({**entry, "storagePath": legacy_path})
                continue

            report.missing_files.append(entry)
            if prune:
                await self.store.delete(photo.id)
                report.removed.append(entry)
                logger.info(f"Removed record {photo.id}: {basename} is not in storage")

        report.untracked_files = sorted(available - tracked)
        logger.info(
            f"Sync finished: {len(report.missing_files)} missing, {len(report.legacy_files)} in legacy locations, "
            f"{len(report.removed)} removed, {len(report.untracked_files)} untracked"
        )
        return report
