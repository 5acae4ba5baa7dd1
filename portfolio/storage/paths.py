"""Photo reference normalization and storage path candidates"""
from __future__ import annotations

import re
from dataclasses import dataclass
from pathlib import PurePosixPath
from typing import List, Optional, Tuple

from portfolio.exceptions import InvalidReference

# Compared case-insensitively, longest first so "Photos/Portfolio/" wins over "Photos/"
LEGACY_PREFIXES: Tuple[str, ...] = ("photos/portfolio/", "photos/", "portfolio/")

# Directories older uploads ended up in, relative to the WebDAV root
LEGACY_DIRECTORIES: Tuple[str, ...] = ("", "Photos", "Portfolio", "Photos/Portfolio")

LEGACY_PUBLIC_PREFIX = "/photos"

CONTENT_TYPES = {
    ".png": "image/png",
    ".svg": "image/svg+xml",
    ".webp": "image/webp",
    ".gif": "image/gif",
}
DEFAULT_CONTENT_TYPE = "image/jpeg"

_TIMESTAMP_PREFIX = re.compile(r"^(\d{13})-(.+)$")
_SEPARATORS = re.compile(r"[\\/]+")


def content_type_for(filename: str) -> str:
    """Guess the content type from the extension alone.

    Unknown or missing extensions are served as JPEG; the bytes are never
    inspected.
    """
    return CONTENT_TYPES.get(PurePosixPath(filename).suffix.lower(), DEFAULT_CONTENT_TYPE)


def _join(*parts: str) -> str:
    return "/".join(part.strip("/") for part in parts if part and part.strip("/"))


@dataclass(frozen=True)
class NormalizedReference:
    """A photo reference reduced to its basename plus where to look for it."""

    basename: str
    canonical_public_path: str
    candidate_storage_paths: List[str]
    upload_timestamp: Optional[int] = None

    @property
    def canonical_storage_path(self) -> str:
        return self.candidate_storage_paths[0]

    @property
    def legacy_storage_paths(self) -> List[str]:
        return self.candidate_storage_paths[1:]

    @property
    def accepted_sources(self) -> Tuple[str, str]:
        """src values a metadata record for this photo may carry."""
        return (self.canonical_public_path, f"{LEGACY_PUBLIC_PREFIX}/{self.basename}")

    @property
    def content_type(self) -> str:
        return content_type_for(self.basename)


class PathNormalizer:
    """Map any historical photo reference onto one canonical form."""

    def __init__(self, root: str = "/Photos/Portfolio", api_prefix: str = "/api/photos"):
        self.root = root.strip("/")
        self.api_prefix = "/" + api_prefix.strip("/")

    @classmethod
    def from_settings(cls, settings) -> "PathNormalizer":
        return cls(root=settings.nextcloud_photos_path, api_prefix=settings.api_photo_prefix)

    def normalize(self, reference: str) -> NormalizedReference:
        basename = self.basename(reference)
        match = _TIMESTAMP_PREFIX.match(basename)
        return NormalizedReference(
            basename=basename,
            canonical_public_path=self.public_path(basename),
            candidate_storage_paths=self.candidates(basename),
            upload_timestamp=int(match.group(1)) if match else None,
        )

    def basename(self, reference: str) -> str:
        if reference is None or "\x00" in reference:
            raise InvalidReference("Photo reference is empty or malformed",
                                   context={"reference": reference})

        cleaned = _SEPARATORS.sub("/", reference.strip())
        relative = cleaned.lstrip("/")

        api_prefix = self.api_prefix.lstrip("/").lower() + "/"
        if relative.lower().startswith(api_prefix):
            relative = relative[len(api_prefix):]
        else:
            stripped = True
            while stripped:
                stripped = False
                for prefix in LEGACY_PREFIXES:
                    if relative.lower().startswith(prefix):
                        relative = relative[len(prefix):].lstrip("/")
                        stripped = True
                        break

        segments = [segment for segment in relative.split("/") if segment]
        name = segments[-1] if segments else ""
        if name in ("", ".", ".."):
            raise InvalidReference(f"Photo reference has no filename: {reference!r}",
                                   context={"reference": reference})
        return name

    def public_path(self, basename: str) -> str:
        return f"{self.api_prefix}/{basename}"

    def storage_path(self, basename: str) -> str:
        """Where new uploads are written."""
        return _join(self.root, basename)

    def candidates(self, basename: str) -> List[str]:
        paths = [self.storage_path(basename)]
        paths.extend(_join(directory, basename) for directory in LEGACY_DIRECTORIES)
        # dict keeps first-seen order
        return list(dict.fromkeys(paths))
