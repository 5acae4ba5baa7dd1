"""
Tests for the Nextcloud blob store with a mocked WebDAV client
"""
import asyncio
from datetime import datetime, timezone
from unittest.mock import MagicMock

import httpx
import pytest
from webdav4.client import HTTPError, ResourceNotFound

from portfolio.exceptions import BlobNotFound, StoreAuthError, TransportFailure
from portfolio.storage.nextcloud import BlobStatus, NextcloudBlobStore


def http_error(status: int) -> HTTPError:
    request = httpx.Request("PUT", "https://cloud.example.com/remote.php/dav/files/photographer/x.jpg")
    return HTTPError(httpx.Response(status, request=request))


def make_store(client=None, attempts=3):
    delays = []

    async def fake_sleep(delay):
        delays.append(delay)

    store = NextcloudBlobStore(
        "https://cloud.example.com/",
        "photographer",
        "secret",
        root="/Photos/Portfolio",
        upload_attempts=attempts,
        backoff_base=1.0,
        backoff_cap=4.0,
        client=client or MagicMock(),
        sleep=fake_sleep,
    )
    return store, delays


def test_download_returns_bytes():
    client = MagicMock()
    client.download_fileobj.side_effect = lambda path, buffer: buffer.write(b"jpeg-bytes")
    store, _ = make_store(client)

    assert asyncio.run(store.download("/Photos/Portfolio/a.jpg")) == b"jpeg-bytes"
    assert client.download_fileobj.call_args[0][0] == "Photos/Portfolio/a.jpg"


def test_download_missing_is_blob_not_found():
    client = MagicMock()
    client.download_fileobj.side_effect = ResourceNotFound("Photos/Portfolio/a.jpg")
    store, _ = make_store(client)

    with pytest.raises(BlobNotFound):
        asyncio.run(store.download("Photos/Portfolio/a.jpg"))


def test_download_404_status_is_blob_not_found():
    client = MagicMock()
    client.download_fileobj.side_effect = http_error(404)
    store, _ = make_store(client)

    with pytest.raises(BlobNotFound):
        asyncio.run(store.download("a.jpg"))


def test_download_transport_error_is_not_retried():
    """Reads surface the failure immediately"""
    client = MagicMock()
    client.download_fileobj.side_effect = httpx.ConnectError("connection refused")
    store, delays = make_store(client)

    with pytest.raises(TransportFailure) as exc_info:
        asyncio.run(store.download("a.jpg"))

    assert not isinstance(exc_info.value, BlobNotFound)
    assert client.download_fileobj.call_count == 1
    assert delays == []


def test_credentials_rejected_is_store_auth_error():
    client = MagicMock()
    client.download_fileobj.side_effect = http_error(401)
    store, _ = make_store(client)

    with pytest.raises(StoreAuthError) as exc_info:
        asyncio.run(store.download("a.jpg"))
    assert exc_info.value.retryable is False


def test_upload_retries_with_capped_backoff():
    client = MagicMock()
    client.exists.return_value = True
    client.upload_fileobj.side_effect = [http_error(503), http_error(503), None]
    store, delays = make_store(client, attempts=3)

    asyncio.run(store.upload("Photos/Portfolio/a.jpg", b"data"))

    assert client.upload_fileobj.call_count == 3
    assert delays == [1.0, 2.0]
    kwargs = client.upload_fileobj.call_args.kwargs
    assert kwargs["overwrite"] is True
    assert kwargs["size"] == 4


def test_upload_gives_up_after_attempts():
    client = MagicMock()
    client.exists.return_value = True
    client.upload_fileobj.side_effect = httpx.ReadTimeout("timed out")
    store, delays = make_store(client, attempts=4)

    with pytest.raises(TransportFailure) as exc_info:
        asyncio.run(store.upload("Photos/Portfolio/a.jpg", b"data"))

    assert client.upload_fileobj.call_count == 4
    assert delays == [1.0, 2.0, 4.0]
    assert exc_info.value.context["attempts"] == 4


def test_upload_does_not_retry_client_errors():
    client = MagicMock()
    client.exists.return_value = True
    client.upload_fileobj.side_effect = http_error(403)
    store, delays = make_store(client)

    with pytest.raises(StoreAuthError):
        asyncio.run(store.upload("Photos/Portfolio/a.jpg", b"data"))

    assert client.upload_fileobj.call_count == 1
    assert delays == []


def test_upload_creates_missing_directory():
    client = MagicMock()
    client.exists.return_value = False
    store, _ = make_store(client)

    asyncio.run(store.upload("Photos/Portfolio/a.jpg", b"data"))

    client.makedirs.assert_called_once_with("Photos/Portfolio", exist_ok=True)


def test_upload_refuses_empty_data():
    client = MagicMock()
    store, _ = make_store(client)

    with pytest.raises(TransportFailure):
        asyncio.run(store.upload("Photos/Portfolio/a.jpg", b""))
    client.upload_fileobj.assert_not_called()


def test_delete_missing_blob_is_idempotent():
    client = MagicMock()
    client.remove.side_effect = ResourceNotFound("a.jpg")
    store, _ = make_store(client)

    asyncio.run(store.delete("a.jpg"))
    asyncio.run(store.delete("a.jpg"))

    assert client.remove.call_count == 2


def test_delete_transport_failure_propagates():
    client = MagicMock()
    client.remove.side_effect = httpx.ConnectError("down")
    store, _ = make_store(client)

    with pytest.raises(TransportFailure):
        asyncio.run(store.delete("a.jpg"))


def test_probe_distinguishes_missing_and_unreachable():
    client = MagicMock()
    store, _ = make_store(client)

    client.exists.return_value = True
    assert asyncio.run(store.probe("a.jpg")) == BlobStatus.PRESENT

    client.exists.return_value = False
    assert asyncio.run(store.probe("a.jpg")) == BlobStatus.MISSING

    client.exists.side_effect = httpx.ConnectError("down")
    assert asyncio.run(store.probe("a.jpg")) == BlobStatus.UNREACHABLE
    assert asyncio.run(store.exists("a.jpg")) is False


def test_list_files_skips_directories():
    modified = datetime(2024, 5, 1, tzinfo=timezone.utc)
    client = MagicMock()
    client.ls.return_value = [
        {"name": "Photos/Portfolio/a.jpg", "type": "file", "content_length": 120, "modified": modified},
        {"name": "Photos/Portfolio/old", "type": "directory", "content_length": None, "modified": None},
        {"name": "Photos/Portfolio/b.png", "type": "file", "content_length": None, "modified": None},
    ]
    store, _ = make_store(client)

    files = asyncio.run(store.list_files())

    client.ls.assert_called_once_with("Photos/Portfolio", detail=True)
    assert [f.name for f in files] == ["a.jpg", "b.png"]
    assert files[0].size == 120
    assert files[1].size == 0
    assert files[0].to_dict()["lastModified"] == modified.isoformat()


def test_connection_test_reports_failure():
    client = MagicMock()
    client.ls.side_effect = http_error(401)
    store, _ = make_store(client)

    result = asyncio.run(store.test_connection())

    assert result["success"] is False
    assert result["root"] == "Photos/Portfolio"
