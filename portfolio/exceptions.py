"""Exception taxonomy shared by storage, services and routes."""
from typing import Any, Dict, Optional


class PortfolioError(Exception):
    """Base class for errors the API knows how to report."""

    status_code = 500

    def __init__(self, message: str, *, context: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.message = message
        self.context = context or {}


class InvalidReference(PortfolioError):
    """A photo reference that cannot name a file (empty, '.', '..')."""

    status_code = 400


class NotFound(PortfolioError):
    """Expected miss. Drives fallbacks and is never logged as an error."""

    status_code = 404


class BlobNotFound(NotFound):
    def __init__(self, path: str):
        super().__init__(f"Blob not found: {path}", context={"path": path})
        self.path = path


class RecordNotFound(NotFound):
    pass


class TransportFailure(PortfolioError):
    """The blob store could not be reached or refused the request."""

    status_code = 502

    def __init__(
        self,
        message: str,
        *,
        retryable: bool = True,
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message, context=context)
        self.retryable = retryable


class StoreAuthError(TransportFailure):
    """The blob store rejected our credentials (401/403)."""

    def __init__(self, message: str, *, context: Optional[Dict[str, Any]] = None):
        super().__init__(message, retryable=False, context=context)


class ValidationError(PortfolioError):
    """Missing or malformed input on create/update."""

    status_code = 400


class AuthorizationError(PortfolioError):
    status_code = 401

    def __init__(
        self,
        message: str = "Unauthorized",
        *,
        status_code: int = 401,
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message, context=context)
        self.status_code = status_code


class AlreadyLiked(PortfolioError):
    status_code = 409

    def __init__(self, photo_id: str, likes: int):
        super().__init__(
            "Already liked this photo",
            context={"photoId": photo_id, "likes": likes},
        )
        self.photo_id = photo_id
        self.likes = likes


class PartialFailure(PortfolioError):
    """One half of a two-step blob/metadata operation succeeded.

    Operators reconcile these by hand, so the context always names the
    storage path and the step that failed.
    """

    status_code = 500
