import io
import os

import pytest
from fastapi import UploadFile

from vidshare.clients import media_store
from vidshare.errors import Internal, InvalidArgument


def _upload(data=b"image-bytes", filename="picture.PNG"):
    return UploadFile(file=io.BytesIO(data), filename=filename)


async def test_upload_asset_keys_by_folder_and_extension(fake_s3, upload_dir):
    stored = await media_store.upload_asset(_upload(), "avatars")

    assert stored.key.startswith("avatars/")
    assert stored.key.endswith(".png")
    assert stored.size == len(b"image-bytes")
    assert stored.url == media_store.public_url(stored.key)
    assert fake_s3.objects[stored.key] == b"image-bytes"
    assert os.listdir(upload_dir) == []


async def test_upload_asset_rejects_empty_file(fake_s3, upload_dir):
    with pytest.raises(InvalidArgument):
        await media_store.upload_asset(_upload(data=b""), "avatars")
    assert fake_s3.objects == {}
    assert os.listdir(upload_dir) == []


async def test_upload_failure_removes_temp_file(fake_s3, upload_dir):
    fake_s3.fail_uploads = True
    with pytest.raises(Internal):
        await media_store.upload_asset(_upload(), "videos")
    assert os.listdir(upload_dir) == []


async def test_replace_asset_keeps_old_object_when_apply_fails(fake_s3):
    old = await media_store.upload_asset(_upload(b"old"), "thumbnails")

    async def apply(media):
        raise RuntimeError("database unavailable")

    with pytest.raises(RuntimeError):
        await media_store.replace_asset(_upload(b"new"), "thumbnails", old.key, apply)

    assert list(fake_s3.objects) == [old.key]
    assert old.key not in fake_s3.deleted


async def test_replace_asset_drops_old_object_after_apply(fake_s3):
    old = await media_store.upload_asset(_upload(b"old"), "thumbnails")
    applied = []

    async def apply(media):
        applied.append(media.key)

    new = await media_store.replace_asset(_upload(b"new"), "thumbnails", old.key, apply)

    assert applied == [new.key]
    assert fake_s3.deleted == [old.key]
    assert fake_s3.objects == {new.key: b"new"}


async def test_delete_asset_ignores_missing_key(fake_s3):
    assert await media_store.delete_asset(None) is False
    assert fake_s3.deleted == []


def test_media_store_requires_initialisation():
    media_store.set_s3_client(None)
    with pytest.raises(RuntimeError):
        media_store.get_s3()
