"""
Tests for the metadata store gateway
"""
import asyncio
from datetime import datetime, timedelta, timezone
from unittest.mock import AsyncMock

import pytest
from sqlalchemy.exc import IntegrityError

from portfolio.exceptions import AlreadyLiked, PartialFailure, RecordNotFound, ValidationError
from portfolio.models import Photo
from portfolio.services.photo_store import PhotoMetadataStore, delete_photo


def photo_fields(**overrides):
    fields = {"src": "/api/photos/a.jpg", "title": "Harbour", "alt": "Boats at dusk"}
    fields.update(overrides)
    return fields


def test_create_strips_and_defaults(run_db):
    async def scenario(db):
        return await PhotoMetadataStore(db).create(photo_fields(title="  Harbour ", location="  "))

    photo = run_db(scenario)

    assert photo.id
    assert photo.title == "Harbour"
    assert photo.location is None
    assert photo.width == 1600
    assert photo.height == 1067
    assert photo.created_at is not None


@pytest.mark.parametrize("missing", ["title", "alt"])
def test_create_requires_title_and_alt(run_db, missing):
    async def scenario(db):
        store = PhotoMetadataStore(db)
        with pytest.raises(ValidationError) as exc_info:
            await store.create(photo_fields(**{missing: "   "}))
        assert exc_info.value.context["missing_fields"] == [missing]
        return await store.list_photos()

    assert run_db(scenario) == []


def test_duplicate_src_is_rejected(run_db):
    async def scenario(db):
        store = PhotoMetadataStore(db)
        await store.create(photo_fields())
        with pytest.raises(ValidationError):
            await store.create(photo_fields(title="Copy"))
        return await store.list_photos()

    assert len(run_db(scenario)) == 1


def test_list_is_newest_first(run_db):
    now = datetime.now(timezone.utc)

    async def scenario(db):
        db.add_all([
            Photo(id="old", src="/api/photos/old.jpg", title="Old", alt="o", created_at=now - timedelta(days=2)),
            Photo(id="new", src="/api/photos/new.jpg", title="New", alt="n", created_at=now),
            Photo(id="mid", src="/api/photos/mid.jpg", title="Mid", alt="m", created_at=now - timedelta(days=1)),
        ])
        await db.commit()
        return [p.id for p in await PhotoMetadataStore(db).list_photos()]

    assert run_db(scenario) == ["new", "mid", "old"]


def test_update_leaves_src_alone(run_db):
    async def scenario(db):
        store = PhotoMetadataStore(db)
        photo = await store.create(photo_fields())
        return await store.update(photo.id, {"title": "Renamed", "camera": "X100V", "src": "/elsewhere.jpg"})

    photo = run_db(scenario)

    assert photo.title == "Renamed"
    assert photo.camera == "X100V"
    assert photo.src == "/api/photos/a.jpg"


def test_update_rejects_empty_alt(run_db):
    async def scenario(db):
        store = PhotoMetadataStore(db)
        photo = await store.create(photo_fields())
        with pytest.raises(ValidationError):
            await store.update(photo.id, {"alt": ""})
        return await store.get(photo.id)

    assert run_db(scenario).alt == "Boats at dusk"


def test_update_unknown_photo(run_db):
    async def scenario(db):
        await PhotoMetadataStore(db).update("missing", {"title": "x"})

    with pytest.raises(RecordNotFound):
        run_db(scenario)


def test_like_twice_conflicts(run_db):
    async def scenario(db):
        store = PhotoMetadataStore(db)
        photo_id = (await store.create(photo_fields())).id
        assert await store.like_photo(photo_id, "anon:1") == 1
        assert await store.like_photo(photo_id, "anon:2") == 2
        with pytest.raises(AlreadyLiked) as exc_info:
            await store.like_photo(photo_id, "anon:1")
        assert exc_info.value.likes == 2
        # rollback expired loaded instances; only ids are used from here on
        assert await store.unlike_photo(photo_id, "anon:1") == 1
        assert await store.unlike_photo(photo_id, "anon:1") == 1

    run_db(scenario)


def test_concurrent_likes_count_once(session_factory):
    """Two simultaneous likes by one liker: one succeeds, one conflicts"""
    async def scenario():
        async with session_factory() as db:
            photo = await PhotoMetadataStore(db).create(photo_fields())

        async def like():
            async with session_factory() as db:
                return await PhotoMetadataStore(db).like_photo(photo.id, "anon:same")

        results = await asyncio.gather(like(), like(), return_exceptions=True)
        async with session_factory() as db:
            total = await PhotoMetadataStore(db).count_likes(photo.id)
        return results, total

    results, total = asyncio.run(scenario())

    assert sorted(type(r).__name__ for r in results) == ["AlreadyLiked", "int"]
    assert total == 1


def test_comments_newest_first(run_db):
    async def scenario(db):
        store = PhotoMetadataStore(db)
        photo = await store.create(photo_fields())
        await store.add_comment(photo.id, "first")
        await store.add_comment(photo.id, "  second  ", user_name="Ada")
        return await store.social_summary(photo.id, "anon:1")

    summary = run_db(scenario)

    assert [c.text for c in summary.comments] == ["second", "first"]
    assert summary.comments[1].user_name == "Guest"
    assert summary.is_liked is False


def test_empty_comment_rejected(run_db):
    async def scenario(db):
        store = PhotoMetadataStore(db)
        photo = await store.create(photo_fields())
        await store.add_comment(photo.id, "   ")

    with pytest.raises(ValidationError):
        run_db(scenario)


def test_delete_removes_likes_and_comments(run_db):
    async def scenario(db):
        store = PhotoMetadataStore(db)
        photo = await store.create(photo_fields())
        await store.like_photo(photo.id, "anon:1")
        await store.add_comment(photo.id, "nice")
        await store.delete(photo.id)
        return await store.count_likes(photo.id), await store.list_photos()

    likes, photos = run_db(scenario)
    assert likes == 0
    assert photos == []


def test_delete_photo_keeps_metadata_when_blob_delete_fails(run_db, blob_store, normalizer):
    blob_store.files["Photos/Portfolio/a.jpg"] = b"x"
    blob_store.fail_deletes = True

    async def scenario(db):
        store = PhotoMetadataStore(db)
        photo = await store.create(photo_fields())
        with pytest.raises(PartialFailure) as exc_info:
            await delete_photo(store, blob_store, normalizer, photo.id)
        assert exc_info.value.context["storage_path"] == "Photos/Portfolio/a.jpg"
        assert exc_info.value.context["step"] == "blob_delete"
        return await store.list_photos()

    assert len(run_db(scenario)) == 1


def test_delete_photo_with_legacy_src(run_db, blob_store, normalizer):
    blob_store.files["Photos/Portfolio/a.jpg"] = b"x"

    async def scenario(db):
        store = PhotoMetadataStore(db)
        photo = await store.create(photo_fields(src="/photos/a.jpg"))
        await delete_photo(store, blob_store, normalizer, photo.id)
        return await store.list_photos()

    assert run_db(scenario) == []
    assert blob_store.files == {}


def test_delete_photo_removes_file_in_legacy_directory(run_db, blob_store, normalizer):
    """A file served from a legacy directory is deleted with its record"""
    blob_store.files["Photos/a.jpg"] = b"legacy-bytes"

    async def scenario(db):
        store = PhotoMetadataStore(db)
        photo = await store.create(photo_fields(src="/photos/a.jpg"))
        await delete_photo(store, blob_store, normalizer, photo.id)
        return await store.list_photos()

    assert run_db(scenario) == []
    assert blob_store.files == {}


def test_delete_photo_keeps_metadata_when_legacy_delete_fails(run_db, blob_store, normalizer):
    blob_store.files["Portfolio/a.jpg"] = b"legacy-bytes"
    blob_store.unreachable_paths.add("Portfolio/a.jpg")

    async def scenario(db):
        store = PhotoMetadataStore(db)
        photo = await store.create(photo_fields(src="/photos/a.jpg"))
        with pytest.raises(PartialFailure) as exc_info:
            await delete_photo(store, blob_store, normalizer, photo.id)
        assert exc_info.value.context["storage_path"] == "Portfolio/a.jpg"
        return await store.list_photos()

    assert len(run_db(scenario)) == 1
    assert "Portfolio/a.jpg" in blob_store.files


def test_like_integrity_error_other_than_duplicate_is_not_already_liked(run_db):
    """Only the one-like-per-liker constraint maps to AlreadyLiked"""
    async def scenario(db):
        store = PhotoMetadataStore(db)
        photo_id = (await store.create(photo_fields())).id
        db.commit = AsyncMock(side_effect=IntegrityError("INSERT", {}, Exception("FOREIGN KEY constraint failed")))
        with pytest.raises(IntegrityError):
            await store.like_photo(photo_id, "anon:1")

    run_db(scenario)


def test_like_on_photo_deleted_meanwhile_is_not_found(run_db):
    async def scenario(db):
        store = PhotoMetadataStore(db)
        photo = await store.create(photo_fields())
        store.get = AsyncMock(side_effect=[photo, RecordNotFound("Photo not found: gone")])
        db.commit = AsyncMock(side_effect=IntegrityError("INSERT", {}, Exception("FOREIGN KEY constraint failed")))
        with pytest.raises(RecordNotFound):
            await store.like_photo(photo.id, "anon:1")

    run_db(scenario)
