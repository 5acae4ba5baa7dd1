"""
API endpoints for likes and comments
"""
import logging
from typing import Any, Dict, Optional

from fastapi import APIRouter, Depends, Request, status
from pydantic import BaseModel, ConfigDict, Field

from portfolio.auth import get_current_user_optional, liker_identity, require_admin
from portfolio.dependencies import get_photo_store
from portfolio.serializers import envelope, serialize_comment, serialize_social
from portfolio.services.photo_store import PhotoMetadataStore

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/social", tags=["Social"])


# ============================================================================
# Request Models
# ============================================================================

class LikeRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    photo_id: str = Field(alias="photoId", min_length=1)


class CommentCreate(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    photo_id: str = Field(alias="photoId", min_length=1)
    text: str = ""


class CommentDelete(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    comment_id: int = Field(alias="commentId")


# ============================================================================
# Likes
# ============================================================================

@router.post("/like")
async def like_photo(
    body: LikeRequest,
    request: Request,
    user: Optional[Dict[str, Any]] = Depends(get_current_user_optional),
    store: PhotoMetadataStore = Depends(get_photo_store),
):
    """
    Like a photo; a repeated like answers 409 with the current count
    """
    identity = liker_identity(request, user)
    likes = await store.like_photo(body.photo_id, identity["liker_key"], identity["user_id"])
    return envelope({"photoId": body.photo_id, "likes": likes, "isLiked": True})


@router.delete("/like")
async def unlike_photo(
    body: LikeRequest,
    request: Request,
    user: Optional[Dict[str, Any]] = Depends(get_current_user_optional),
    store: PhotoMetadataStore = Depends(get_photo_store),
):
    """
    Remove the caller's like
    """
    identity = liker_identity(request, user)
    likes = await store.unlike_photo(body.photo_id, identity["liker_key"])
    return envelope({"photoId": body.photo_id, "likes": likes, "isLiked": False})


# ============================================================================
# Comments
# ============================================================================

@router.post("/comment", status_code=status.HTTP_201_CREATED)
async def create_comment(
    body: CommentCreate,
    request: Request,
    user: Optional[Dict[str, Any]] = Depends(get_current_user_optional),
    store: PhotoMetadataStore = Depends(get_photo_store),
):
    """
    Add a comment to a photo
    """
    identity = liker_identity(request, user)
    comment = await store.add_comment(
        body.photo_id,
        body.text,
        user_name=identity["user_name"] or "Guest",
        user_id=identity["user_id"],
    )
    return envelope(serialize_comment(comment))


@router.delete("/comment")
async def delete_comment(
    body: CommentDelete,
    admin: Dict[str, Any] = Depends(require_admin),
    store: PhotoMetadataStore = Depends(get_photo_store),
):
    """
    Delete a comment (admin only)
    """
    await store.delete_comment(body.comment_id)
    logger.info(f"Comment {body.comment_id} deleted by {admin.get('email')}")
    return envelope({"commentId": body.comment_id})


@router.get("/{photo_id}")
async def get_social_data(
    photo_id: str,
    request: Request,
    user: Optional[Dict[str, Any]] = Depends(get_current_user_optional),
    store: PhotoMetadataStore = Depends(get_photo_store),
):
    """
    Likes count, whether the caller liked it, and comments newest first
    """
    identity = liker_identity(request, user)
    summary = await store.social_summary(photo_id, identity["liker_key"])
    return envelope(serialize_social(summary))
