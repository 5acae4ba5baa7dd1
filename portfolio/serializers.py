"""JSON shapes returned by the API"""
from typing import Any, Dict, Optional

from portfolio.exceptions import InvalidReference
from portfolio.models import Comment, Photo
from portfolio.services.photo_store import SocialSummary
from portfolio.storage.paths import PathNormalizer


def envelope(data: Any = None) -> Dict[str, Any]:
    """Successful response body"""
    return {"success": True, "data": data}


def _iso(value) -> Optional[str]:
    return value.isoformat() if value else None


def serialize_photo(photo: Photo, normalizer: PathNormalizer) -> Dict[str, Any]:
    """Serialize a Photo; src is always reported in its canonical form."""
    try:
        src = normalizer.public_path(normalizer.basename(photo.src))
    except InvalidReference:
        src = photo.src

    return {
        "id": photo.id,
        "src": src,
        "title": photo.title,
        "alt": photo.alt,
        "width": photo.width,
        "height": photo.height,
        "year": photo.year,
        "location": photo.location,
        "camera": photo.camera,
        "description": photo.description,
        "createdAt": _iso(photo.created_at),
        "updatedAt": _iso(photo.updated_at),
    }


def serialize_comment(comment: Comment) -> Dict[str, Any]:
    return {
        "id": comment.id,
        "photoId": comment.photo_id,
        "text": comment.text,
        "userName": comment.user_name,
        "createdAt": _iso(comment.created_at),
    }


def serialize_social(summary: SocialSummary) -> Dict[str, Any]:
    return {
        "photoId": summary.photo_id,
        "likes": summary.likes,
        "isLiked": summary.is_liked,
        "comments": [serialize_comment(comment) for comment in summary.comments],
    }
