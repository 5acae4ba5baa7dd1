"""Metadata store gateway: photos, likes and comments"""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from sqlalchemy import delete, func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from portfolio.exceptions import (
    AlreadyLiked,
    PartialFailure,
    RecordNotFound,
    TransportFailure,
    ValidationError,
)
from portfolio.models import Comment, Like, Photo
from portfolio.storage.paths import NormalizedReference, PathNormalizer

logger = logging.getLogger(__name__)

REQUIRED_FIELDS = ("title", "alt")
OPTIONAL_FIELDS = ("year", "location", "camera", "description")
EDITABLE_FIELDS = REQUIRED_FIELDS + OPTIONAL_FIELDS


def _clean_optional(value: Any) -> Optional[str]:
    if value is None:
        return None
    value = str(value).strip()
    return value or None


def validate_required(metadata: Dict[str, Any], fields=REQUIRED_FIELDS) -> Dict[str, str]:
    """Return the required fields stripped, or raise ValidationError naming the missing ones."""
    cleaned = {name: (metadata.get(name) or "").strip() for name in fields}
    missing = [name for name, value in cleaned.items() if not value]
    if missing:
        raise ValidationError(
            f"{' and '.join(missing).capitalize()} {'is' if len(missing) == 1 else 'are'} required",
            context={"missing_fields": missing},
        )
    return cleaned


@dataclass
class SocialSummary:
    """Likes and comments shown under a photo"""

    photo_id: str
    likes: int
    is_liked: bool
    comments: List[Comment] = field(default_factory=list)


class PhotoMetadataStore:
    """CRUD over photo records and their social sub-resources"""

    def __init__(self, db: AsyncSession):
        self.db = db

    # ------------------------------------------------------------------
    # Photos
    # ------------------------------------------------------------------

    async def create(self, metadata: Dict[str, Any]) -> Photo:
        """
        Create a photo record

        Args:
            metadata: src, title, alt and optional width/height/year/location/camera/description

        Raises:
            ValidationError: title, alt or src missing
        """
        required = validate_required(metadata)
        src = (metadata.get("src") or "").strip()
        if not src:
            raise ValidationError("Src is required", context={"missing_fields": ["src"]})

        photo = Photo(
            src=src,
            title=required["title"],
            alt=required["alt"],
            width=metadata.get("width") or 1600,
            height=metadata.get("height") or 1067,
            **{name: _clean_optional(metadata.get(name)) for name in OPTIONAL_FIELDS},
        )
        self.db.add(photo)
        try:
            await self.db.commit()
        except IntegrityError as e:
            await self.db.rollback()
            raise ValidationError(f"A photo with src {src} already exists", context={"src": src}) from e
        await self.db.refresh(photo)

        logger.info(f"Created photo record {photo.id} for {photo.src}")
        return photo

    async def list_photos(self) -> List[Photo]:
        """All photos, newest first"""
        result = await self.db.execute(
            select(Photo).order_by(Photo.created_at.desc(), Photo.id)
        )
        return list(result.scalars().all())

    async def get(self, photo_id: str) -> Photo:
        photo = await self.db.get(Photo, photo_id)
        if photo is None:
            raise RecordNotFound(f"Photo not found: {photo_id}", context={"id": photo_id})
        return photo

    async def find_by_reference(self, reference: NormalizedReference) -> Optional[Photo]:
        """Record whose src is the canonical or legacy form of this reference"""
        result = await self.db.execute(
            select(Photo).where(Photo.src.in_(reference.accepted_sources)).limit(1)
        )
        return result.scalar_one_or_none()

    async def update(self, photo_id: str, changes: Dict[str, Any]) -> Photo:
        """
        Update editable metadata; src, id and dimensions are left alone

        Raises:
            RecordNotFound: no photo with this id
            ValidationError: title or alt supplied but empty
        """
        photo = await self.get(photo_id)

        present_required = [name for name in REQUIRED_FIELDS if name in changes]
        cleaned = validate_required(changes, present_required) if present_required else {}

        for name in present_required:
            setattr(photo, name, cleaned[name])
        for name in OPTIONAL_FIELDS:
            if name in changes:
                setattr(photo, name, _clean_optional(changes[name]))

        await self.db.commit()
        await self.db.refresh(photo)
        logger.info(f"Updated photo {photo_id}: {sorted(set(changes) & set(EDITABLE_FIELDS))}")
        return photo

    async def delete(self, photo_id: str) -> None:
        """Delete the record with its likes and comments. Metadata only."""
        photo = await self.get(photo_id)
        await self.db.delete(photo)
        await self.db.commit()
        logger.info(f"Deleted photo record {photo_id}")

    # ------------------------------------------------------------------
    # Likes
    # ------------------------------------------------------------------

    async def count_likes(self, photo_id: str) -> int:
        return await self.db.scalar(
            select(func.count(Like.id)).where(Like.photo_id == photo_id)
        ) or 0

    async def like_photo(self, photo_id: str, liker_key: str, user_id: Optional[str] = None) -> int:
        """
        Record a like and return the new count

        Raises:
            RecordNotFound: unknown photo
            AlreadyLiked: this liker already liked the photo
        """
        await self.get(photo_id)

        self.db.add(Like(photo_id=photo_id, liker_key=liker_key, user_id=user_id))
        try:
            await self.db.commit()
        except IntegrityError:
            await self.db.rollback()
            if not await self.has_liked(photo_id, liker_key):
                # Not the one-like constraint; a photo deleted meanwhile surfaces as RecordNotFound
                await self.get(photo_id)
                raise
            likes = await self.count_likes(photo_id)
            logger.info(f"Duplicate like for photo {photo_id} from {liker_key}")
            raise AlreadyLiked(photo_id, likes)

        return await self.count_likes(photo_id)

    async def unlike_photo(self, photo_id: str, liker_key: str) -> int:
        await self.get(photo_id)
        await self.db.execute(
            delete(Like).where(Like.photo_id == photo_id, Like.liker_key == liker_key)
        )
        await self.db.commit()
        return await self.count_likes(photo_id)

    async def has_liked(self, photo_id: str, liker_key: str) -> bool:
        found = await self.db.scalar(
            select(Like.id).where(Like.photo_id == photo_id, Like.liker_key == liker_key).limit(1)
        )
        return found is not None

    # ------------------------------------------------------------------
    # Comments
    # ------------------------------------------------------------------

    async def add_comment(
        self,
        photo_id: str,
        text: str,
        user_name: str = "Guest",
        user_id: Optional[str] = None,
    ) -> Comment:
        text = (text or "").strip()
        if not text:
            raise ValidationError("Comment text is required", context={"missing_fields": ["text"]})
        await self.get(photo_id)

        comment = Comment(photo_id=photo_id, text=text, user_name=user_name or "Guest", user_id=user_id)
        self.db.add(comment)
        await self.db.commit()
        await self.db.refresh(comment)
        return comment

    async def delete_comment(self, comment_id: int) -> None:
        comment = await self.db.get(Comment, comment_id)
        if comment is None:
            raise RecordNotFound(f"Comment not found: {comment_id}", context={"commentId": comment_id})
        await self.db.delete(comment)
        await self.db.commit()

    async def social_summary(self, photo_id: str, liker_key: Optional[str] = None) -> SocialSummary:
        await self.get(photo_id)
        result = await self.db.execute(
            select(Comment)
            .where(Comment.photo_id == photo_id)
            .order_by(Comment.created_at.desc(), Comment.id.desc())
        )
        return SocialSummary(
            photo_id=photo_id,
            likes=await self.count_likes(photo_id),
            is_liked=await self.has_liked(photo_id, liker_key) if liker_key else False,
            comments=list(result.scalars().all()),
        )


async def delete_photo(
    store: PhotoMetadataStore,
    blob_store,
    normalizer: PathNormalizer,
    photo_id: str,
) -> Photo:
    """
    Delete a photo's blob at every candidate location, then its record

    A missing blob counts as deleted. If the blob store fails, the record is
    kept so the photo is never left as an unreferenced file.

    Raises:
        RecordNotFound: no photo with this id
        PartialFailure: blob deletion failed; metadata kept
    """
    photo = await store.get(photo_id)
    reference = normalizer.normalize(photo.src)

    # The resolver serves legacy locations too, so every candidate goes
    for storage_path in reference.candidate_storage_paths:
        try:
            await blob_store.delete(storage_path)
        except TransportFailure as e:
            logger.critical(f"Blob delete failed for photo {photo_id} at {storage_path}; keeping metadata: {e}")
            raise PartialFailure(
                "Photo file could not be deleted from storage; metadata was kept",
                context={"id": photo_id, "storage_path": storage_path, "step": "blob_delete", "cause": str(e)},
            ) from e

    await store.delete(photo_id)
    return photo
