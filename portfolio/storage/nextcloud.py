"""
Nextcloud WebDAV integration for photo storage
"""
import asyncio
import io
import logging
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Any, Awaitable, Callable, Dict, List, Optional

import httpx
from webdav4.client import Client, ClientError, HTTPError, ResourceNotFound

from portfolio.debug_utils import DebugTimer
from portfolio.exceptions import BlobNotFound, StoreAuthError, TransportFailure

logger = logging.getLogger(__name__)


class BlobStatus(str, Enum):
    """Outcome of probing a storage path"""
    PRESENT = "present"
    MISSING = "missing"
    UNREACHABLE = "unreachable"


@dataclass
class BlobInfo:
    """File entry returned by a directory listing"""

    name: str
    size: int
    last_modified: Optional[datetime] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "size": self.size,
            "lastModified": self.last_modified.isoformat() if self.last_modified else None,
        }


class NextcloudBlobStore:
    """Photo bytes in Nextcloud, addressed by paths under the WebDAV user root.

    Every call reports one of three outcomes: success, ``BlobNotFound`` for an
    absent object, or ``TransportFailure`` when the store could not answer.
    Writes retry transient failures; reads never retry.
    """

    def __init__(
        self,
        url: str,
        username: str,
        password: str,
        root: str = "/Photos/Portfolio",
        *,
        timeout: float = 30.0,
        upload_attempts: int = 3,
        backoff_base: float = 1.0,
        backoff_cap: float = 4.0,
        client: Optional[Client] = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        """
        Initialize Nextcloud blob store

        Args:
            url: Nextcloud URL (e.g., https://cloud.example.com)
            username: Nextcloud username
            password: Nextcloud password or app password
            root: Directory holding the portfolio photos
            timeout: Per-request timeout in seconds
            upload_attempts: Total attempts for a single upload
            backoff_base: First retry delay in seconds, doubled per attempt
            backoff_cap: Upper bound for a single retry delay
            client: Pre-built webdav4 client (tests)
            sleep: Coroutine used between retries (tests)
        """
        self.url = url.rstrip('/')
        self.username = username
        self.root = root.strip('/')
        self.upload_attempts = max(1, upload_attempts)
        self.backoff_base = backoff_base
        self.backoff_cap = backoff_cap
        self._sleep = sleep

        # WebDAV endpoint is at /remote.php/dav/files/username/
        webdav_url = f"{self.url}/remote.php/dav/files/{username}/"

        self.client = client or Client(
            base_url=webdav_url,
            auth=(username, password),
            timeout=timeout,
        )

    @classmethod
    def from_settings(cls, settings) -> "NextcloudBlobStore":
        return cls(
            url=settings.nextcloud_url,
            username=settings.nextcloud_username,
            password=settings.nextcloud_password,
            root=settings.nextcloud_photos_path,
            timeout=settings.nextcloud_timeout_seconds,
            upload_attempts=settings.upload_retry_attempts,
            backoff_base=settings.upload_backoff_base_seconds,
            backoff_cap=settings.upload_backoff_cap_seconds,
        )

    @staticmethod
    def _clean(path: str) -> str:
        """WebDAV path without leading/trailing or doubled slashes"""
        return "/".join(part for part in path.replace("\\", "/").split("/") if part)

    def _translate(self, exc: Exception, path: str, operation: str) -> Exception:
        """Map webdav4/httpx errors onto BlobNotFound or TransportFailure"""
        context = {"path": path, "operation": operation}

        if isinstance(exc, ResourceNotFound):
            return BlobNotFound(path)

        if isinstance(exc, (HTTPError, httpx.HTTPStatusError)):
            status = getattr(getattr(exc, "response", None), "status_code", None)
            context["status"] = status
            if status == 404:
                return BlobNotFound(path)
            if status in (401, 403):
                return StoreAuthError(f"Nextcloud rejected credentials during {operation}", context=context)
            retryable = status is None or status >= 500 or status == 429
            return TransportFailure(
                f"Nextcloud {operation} failed with HTTP {status}",
                retryable=retryable,
                context=context,
            )

        if isinstance(exc, httpx.TransportError):
            return TransportFailure(f"Nextcloud unreachable during {operation}: {exc}", context=context)

        if isinstance(exc, ClientError):
            return TransportFailure(f"Nextcloud {operation} failed: {exc}", retryable=False, context=context)

        return exc

    async def _call(self, operation: str, path: str, func: Callable, *args, **kwargs):
        """Run a blocking webdav4 call in a worker thread with error translation"""
        try:
            with DebugTimer(f"nextcloud {operation} {path}"):
                return await asyncio.to_thread(func, *args, **kwargs)
        except (ClientError, httpx.HTTPError) as e:
            translated = self._translate(e, path, operation)
            if translated is e:
                raise
            raise translated from e

    async def probe(self, path: str) -> BlobStatus:
        """Check a path without collapsing 'missing' and 'unreachable'"""
        full_path = self._clean(path)
        try:
            found = await self._call("exists", full_path, self.client.exists, full_path)
        except BlobNotFound:
            return BlobStatus.MISSING
        except TransportFailure as e:
            logger.warning(f"Could not probe {full_path}: {e}")
            return BlobStatus.UNREACHABLE
        return BlobStatus.PRESENT if found else BlobStatus.MISSING

    async def exists(self, path: str) -> bool:
        """True only when the store confirms the object; fails closed"""
        return await self.probe(path) == BlobStatus.PRESENT

    async def download(self, path: str) -> bytes:
        """
        Download an object into memory

        Raises:
            BlobNotFound: nothing stored at path
            TransportFailure: the store could not be reached
        """
        full_path = self._clean(path)
        buffer = io.BytesIO()
        await self._call("download", full_path, self.client.download_fileobj, full_path, buffer)
        data = buffer.getvalue()
        logger.debug(f"Downloaded {full_path} ({len(data)} bytes)")
        return data

    async def _ensure_parent(self, full_path: str) -> None:
        parent = full_path.rsplit("/", 1)[0] if "/" in full_path else ""
        if not parent:
            return
        try:
            if not await self._call("exists", parent, self.client.exists, parent):
                logger.info(f"Creating directory: {parent}")
                await self._call("mkdir", parent, self.client.makedirs, parent, exist_ok=True)
        except TransportFailure as e:
            # The upload itself reports the real problem if the directory is missing
            logger.debug(f"Directory check for {parent} skipped: {e}")

    async def upload(self, path: str, data: bytes, overwrite: bool = True) -> None:
        """
        Upload bytes, retrying transient transport failures

        Args:
            path: Storage path relative to the WebDAV root
            data: File contents
            overwrite: Replace an existing object at path

        Raises:
            TransportFailure: all attempts failed or the failure is not retryable
        """
        full_path = self._clean(path)
        if not data:
            raise TransportFailure(f"Refusing to upload empty file to {full_path}", retryable=False,
                                   context={"path": full_path, "operation": "upload"})

        await self._ensure_parent(full_path)

        attempt = 0
        while True:
            attempt += 1
            try:
                logger.info(f"Uploading {len(data)} bytes to {full_path} (attempt {attempt}/{self.upload_attempts})")
                await self._call(
                    "upload",
                    full_path,
                    self.client.upload_fileobj,
                    io.BytesIO(data),
                    full_path,
                    overwrite=overwrite,
                    size=len(data),
                )
                logger.info(f"Upload successful: {full_path}")
                return
            except TransportFailure as e:
                if not e.retryable or attempt >= self.upload_attempts:
                    logger.error(f"Upload of {full_path} failed after {attempt} attempt(s): {e}")
                    e.context["attempts"] = attempt
                    raise
                delay = min(self.backoff_base * (2 ** (attempt - 1)), self.backoff_cap)
                logger.warning(f"Upload of {full_path} failed ({e}); retrying in {delay:.1f}s")
                await self._sleep(delay)

    async def delete(self, path: str) -> None:
        """Delete an object; an already missing object counts as deleted"""
        full_path = self._clean(path)
        try:
            await self._call("delete", full_path, self.client.remove, full_path)
            logger.info(f"Deleted: {full_path}")
        except BlobNotFound:
            logger.info(f"Delete of {full_path} skipped: not present")

    async def list_files(self, directory: Optional[str] = None) -> List[BlobInfo]:
        """
        List files (not directories) in a directory

        Args:
            directory: Directory relative to the WebDAV root, defaults to the photo root

        Returns:
            List of BlobInfo entries
        """
        full_path = self._clean(self.root if directory is None else directory)
        logger.info(f"Listing files in: {full_path or '/'}")
        items = await self._call("list", full_path, self.client.ls, full_path, detail=True)

        files = []
        for item in items:
            if item.get("type") == "directory":
                continue
            files.append(BlobInfo(
                name=item["name"].rstrip("/").split("/")[-1],
                size=item.get("content_length") or 0,
                last_modified=item.get("modified"),
            ))

        logger.info(f"Found {len(files)} files")
        return files

    async def test_connection(self) -> Dict[str, Any]:
        """Check that the credentials work and the photo root is listable"""
        try:
            files = await self.list_files()
            return {
                "success": True,
                "message": f"Successfully connected to Nextcloud at {self.url}",
                "root": self.root,
                "files_in_root": len(files),
            }
        except (BlobNotFound, TransportFailure) as e:
            logger.error(f"Nextcloud connection test failed: {e}")
            return {
                "success": False,
                "message": f"Failed to connect to Nextcloud: {e}",
                "root": self.root,
            }

    def close(self) -> None:
        """Release the underlying HTTP connection pool"""
        http = getattr(self.client, "http", None)
        if http is not None:
            http.close()
