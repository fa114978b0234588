import os
import tempfile

_TMP_DIR = tempfile.mkdtemp(prefix="vidshare-tests-")

# Settings are read at import time, so the environment must be ready first
os.environ.setdefault("DATABASE_URL", f"sqlite+aiosqlite:///{_TMP_DIR}/vidshare.db")
os.environ["UPLOAD_TEMP_DIR"] = os.path.join(_TMP_DIR, "uploads")
os.environ["OTEL_ENABLED"] = "false"
os.environ["BCRYPT_ROUNDS"] = "4"

import httpx  # noqa: E402
import pytest  # noqa: E402
from botocore.exceptions import ClientError  # noqa: E402

from vidshare import models  # noqa: E402,F401
from vidshare.clients import media_store  # noqa: E402
from vidshare.config import settings  # noqa: E402
from vidshare.database import AsyncSessionLocal, Base, engine  # noqa: E402
from vidshare.main import app  # noqa: E402


class FakeS3:
    """In-memory stand-in for the boto3 S3 client used by the media store."""

    def __init__(self):
        self.objects = {}
        self.deleted = []
        self.fail_uploads = False

    def upload_file(self, Filename, Bucket, Key, ExtraArgs=None):
        if self.fail_uploads:
            raise ClientError({"Error": {"Code": "500", "Message": "boom"}}, "PutObject")
        with open(Filename, "rb") as f:
            self.objects[Key] = f.read()

    def delete_object(self, Bucket, Key):
        self.deleted.append(Key)
        self.objects.pop(Key, None)


@pytest.fixture
async def db_setup():
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
    await engine.dispose()


@pytest.fixture
async def session(db_setup):
    async with AsyncSessionLocal() as s:
        yield s


@pytest.fixture
def fake_s3():
    s3 = FakeS3()
    media_store.set_s3_client(s3)
    yield s3
    media_store.set_s3_client(None)


@pytest.fixture
def upload_dir():
    return settings.upload_temp_dir


@pytest.fixture
async def client(db_setup, fake_s3):
    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://test") as c:
        yield c


def bearer(token):
    return {"Authorization": f"Bearer {token}"}


async def register_user(client, username, email=None, password="secret123", full_name=None):
    return await client.post(
        "/auth/register",
        data={
            "username": username,
            "email": email or f"{username}@example.com",
            "full_name": full_name or username.capitalize(),
            "password": password,
        },
        files={"avatar": ("avatar.png", b"avatar-bytes", "image/png")},
    )


async def login_user(client, username, password="secret123"):
    resp = await client.post("/auth/login", json={"username": username, "password": password})
    assert resp.status_code == 200, resp.text
    return resp.json()["data"]


async def make_user(client, username):
    resp = await register_user(client, username)
    assert resp.status_code == 201, resp.text
    data = await login_user(client, username)
    return {
        "id": data["user"]["id"],
        "headers": bearer(data["access_token"]),
        "access_token": data["access_token"],
        "refresh_token": data["refresh_token"],
    }


async def upload_video(client, headers, title="A video", description="Some description"):
    resp = await client.post(
        "/videos",
        headers=headers,
        data={"title": title, "description": description, "duration": "12.5"},
        files={
            "videoFile": ("clip.mp4", b"video-bytes", "video/mp4"),
            "thumbnail": ("thumb.png", b"thumb-bytes", "image/png"),
        },
    )
    assert resp.status_code == 201, resp.text
    return resp.json()["data"]


@pytest.fixture
async def alice(client):
    return await make_user(client, "alice")


@pytest.fixture
async def bob(client):
    return await make_user(client, "bob")
