"""
MinIO (S3-compatible) client for media storage.

Stores video files, thumbnails, avatars and cover images as objects. The
database keeps both the public URL and the object key of every asset so the
object can be removed when it is replaced or its owner row is deleted.

Uploads are staged through a local temp file which is removed whether the
upload succeeds or fails.
"""
import asyncio
import functools
import logging
import os
import tempfile
import uuid
from dataclasses import dataclass
from typing import Awaitable, Callable, Optional

import boto3
from botocore.client import Config
from botocore.exceptions import BotoCoreError, ClientError
from fastapi import UploadFile
from opentelemetry import trace

from vidshare.config import settings
from vidshare.errors import Internal, InvalidArgument
from vidshare.telemetry import MEDIA_UPLOADS_TOTAL

logger = logging.getLogger(__name__)
tracer = trace.get_tracer(__name__)

_s3 = None


@dataclass
class StoredMedia:
    key: str
    url: str
    size: int


def init_media_store() -> None:
    """Create the S3 client and ensure the media bucket exists."""
    global _s3
    scheme = "https" if settings.minio_use_ssl else "http"
    _s3 = boto3.client(
        "s3",
        endpoint_url=f"{scheme}://{settings.minio_endpoint}",
        aws_access_key_id=settings.minio_access_key,
        aws_secret_access_key=settings.minio_secret_key,
        config=Config(signature_version="s3v4"),
        region_name="us-east-1",
    )

    existing = [b["Name"] for b in _s3.list_buckets().get("Buckets", [])]
    if settings.minio_bucket not in existing:
        _s3.create_bucket(Bucket=settings.minio_bucket)
        logger.info("Created MinIO bucket '%s'", settings.minio_bucket)
    else:
        logger.info("MinIO bucket '%s' already exists", settings.minio_bucket)


def set_s3_client(client) -> None:
    """Install an already-configured S3 client (used by tests and tools)."""
    global _s3
    _s3 = client


def get_s3():
    if _s3 is None:
        raise RuntimeError("Media store not initialised — call init_media_store() at startup")
    return _s3


def public_url(key: str) -> str:
    return f"{settings.media_base_url}/{key}"


def _object_key(folder: str, filename: Optional[str]) -> str:
    ext = os.path.splitext(filename or "")[1].lower()
    return f"{folder}/{uuid.uuid4().hex}{ext}"


async def _stage_to_disk(upload: UploadFile) -> tuple[str, int]:
    """Stream the multipart upload into a temp file; return (path, size)."""
    os.makedirs(settings.upload_temp_dir, exist_ok=True)
    fd, path = tempfile.mkstemp(dir=settings.upload_temp_dir, prefix="upload-")
    size = 0
    try:
        with os.fdopen(fd, "wb") as f:
            while True:
                chunk = await upload.read(settings.upload_chunk_size)
                if not chunk:
                    break
                size += len(chunk)
                f.write(chunk)
    except Exception:
        os.unlink(path)
        raise
    return path, size


async def upload_asset(upload: Optional[UploadFile], folder: str) -> StoredMedia:
    """
    Upload one multipart file to the media host under ``folder/``.

    The local temp copy is always removed. Any media-host failure surfaces
    as ``Internal`` so no record is ever written for an asset that does not
    exist.
    """
    if upload is None or not upload.filename:
        raise InvalidArgument(f"{folder} file is required")

    with tracer.start_as_current_span("media_upload") as span:
        span.set_attribute("media.folder", folder)
        path, size = await _stage_to_disk(upload)
        key = _object_key(folder, upload.filename)
        try:
            if size == 0:
                raise InvalidArgument(f"{folder} file is empty")
            extra = {"ContentType": upload.content_type} if upload.content_type else {}
            # boto3 is blocking; keep it off the event loop
            loop = asyncio.get_running_loop()
            await loop.run_in_executor(
                None,
                functools.partial(
                    get_s3().upload_file, path, settings.minio_bucket, key, ExtraArgs=extra
                ),
            )
        except (BotoCoreError, ClientError) as exc:
            MEDIA_UPLOADS_TOTAL.labels(folder=folder, outcome="error").inc()
            logger.error("Upload of %s to media host failed: %s", key, exc)
            raise Internal(f"Failed to upload {folder} file")
        finally:
            os.unlink(path)

        MEDIA_UPLOADS_TOTAL.labels(folder=folder, outcome="ok").inc()
        span.set_attribute("media.key", key)
        span.set_attribute("media.size", size)
        logger.debug("Uploaded media %s (%d bytes)", key, size)
        return StoredMedia(key=key, url=public_url(key), size=size)


async def delete_asset(key: Optional[str]) -> bool:
    """Best-effort removal of a hosted object; failures are only logged."""
    if not key:
        return False
    try:
        loop = asyncio.get_running_loop()
        await loop.run_in_executor(
            None,
            functools.partial(get_s3().delete_object, Bucket=settings.minio_bucket, Key=key),
        )
    except (BotoCoreError, ClientError) as exc:
        logger.warning("Failed to delete media %s: %s", key, exc)
        return False
    logger.debug("Deleted media %s", key)
    return True


async def replace_asset(
    upload: Optional[UploadFile],
    folder: str,
    old_key: Optional[str],
    apply: Callable[[StoredMedia], Awaitable[None]],
) -> StoredMedia:
    """
    Upload a new asset, let ``apply`` point the record at it, then drop the old one.

    ``apply`` must persist the record change (commit). If it raises, the new
    object is removed and the old one is left untouched.
    """
    media = await upload_asset(upload, folder)
    try:
        await apply(media)
    except Exception:
        await delete_asset(media.key)
        raise
    await delete_asset(old_key)
    return media
