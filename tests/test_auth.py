import uuid

from sqlalchemy import delete, func, select

from conftest import bearer, login_user, make_user, register_user
from vidshare.models import User
from vidshare.security import create_access_token


async def test_health_needs_no_token(client):
    resp = await client.get("/health")
    assert resp.status_code == 200
    body = resp.json()
    assert body["statusCode"] == 200
    assert body["success"] is True
    assert body["data"]["status"] == "ok"


async def test_register_returns_user_without_secrets(client, fake_s3):
    resp = await register_user(client, "Carol", email="Carol@Example.com")
    assert resp.status_code == 201
    body = resp.json()
    assert body["success"] is True
    user = body["data"]
    assert user["username"] == "carol"
    assert user["email"] == "carol@example.com"
    assert user["avatar"].endswith(".png")
    assert "password_hash" not in user
    assert "refresh_token" not in user
    assert len(fake_s3.objects) == 1


async def test_register_duplicate_email_conflicts_and_creates_nothing(client, session, fake_s3):
    first = await register_user(client, "dave", email="dave@example.com")
    assert first.status_code == 201

    resp = await register_user(client, "dave2", email="dave@example.com")
    assert resp.status_code == 409
    body = resp.json()
    assert body == {
        "statusCode": 409,
        "message": body["message"],
        "data": None,
        "success": False,
        "errors": [],
    }

    count = (await session.execute(select(func.count(User.id)))).scalar_one()
    assert count == 1
    # Rejected before the avatar was uploaded
    assert len(fake_s3.objects) == 1


async def test_register_requires_avatar(client):
    resp = await client.post(
        "/auth/register",
        data={"username": "erin", "email": "erin@example.com", "full_name": "Erin", "password": "pw123456"},
    )
    assert resp.status_code == 400
    assert resp.json()["message"] == "Avatar file is required"


async def test_register_rejects_blank_fields(client):
    resp = await client.post(
        "/auth/register",
        data={"username": "  ", "email": "x@example.com", "full_name": "X", "password": "pw123456"},
        files={"avatar": ("a.png", b"a", "image/png")},
    )
    assert resp.status_code == 400


async def test_login_unknown_user_and_bad_password(client):
    await register_user(client, "frank")

    missing = await client.post("/auth/login", json={"username": "nobody", "password": "x"})
    assert missing.status_code == 404

    wrong = await client.post("/auth/login", json={"username": "frank", "password": "wrong"})
    assert wrong.status_code == 401
    assert wrong.json()["success"] is False


async def test_login_returns_user_with_timestamps(client):
    await register_user(client, "hank")
    resp = await client.post("/auth/login", json={"username": "hank", "password": "secret123"})
    assert resp.status_code == 200, resp.text
    user = resp.json()["data"]["user"]
    assert user["username"] == "hank"
    assert user["created_at"]
    assert user["updated_at"]


async def test_login_by_email_sets_cookies(client):
    await register_user(client, "gina")
    resp = await client.post("/auth/login", json={"email": "GINA@example.com", "password": "secret123"})
    assert resp.status_code == 200
    data = resp.json()["data"]
    assert data["user"]["username"] == "gina"
    assert data["access_token"] and data["refresh_token"]
    set_cookie = resp.headers.get_list("set-cookie")
    assert any(c.startswith("accessToken=") and "HttpOnly" in c for c in set_cookie)
    assert any(c.startswith("refreshToken=") for c in set_cookie)


async def test_auth_gate_rejects_missing_and_invalid_tokens(client):
    missing = await client.get("/auth/me")
    assert missing.status_code == 401
    assert missing.json()["data"] is None

    garbage = await client.get("/auth/me", headers=bearer("not-a-jwt"))
    assert garbage.status_code == 401


async def test_auth_gate_accepts_cookie(client, alice):
    resp = await client.get("/auth/me", headers={"Cookie": f"accessToken={alice['access_token']}"})
    assert resp.status_code == 200
    assert resp.json()["data"]["id"] == alice["id"]


async def test_auth_gate_rejects_token_of_deleted_user(client, session, alice):
    await session.execute(delete(User).where(User.id == uuid.UUID(alice["id"])))
    await session.commit()

    resp = await client.get("/auth/me", headers=alice["headers"])
    assert resp.status_code == 401


async def test_refresh_token_type_is_not_an_access_token(client, alice):
    resp = await client.get("/auth/me", headers=bearer(alice["refresh_token"]))
    assert resp.status_code == 401


async def test_refresh_rotates_and_rejects_superseded_token(client, alice):
    old_refresh = alice["refresh_token"]

    first = await client.post("/auth/refresh-token", json={"refresh_token": old_refresh})
    assert first.status_code == 200
    new_pair = first.json()["data"]
    assert new_pair["refresh_token"] != old_refresh

    stale = await client.post("/auth/refresh-token", json={"refresh_token": old_refresh})
    assert stale.status_code == 401
    assert stale.json()["success"] is False

    again = await client.post("/auth/refresh-token", json={"refresh_token": new_pair["refresh_token"]})
    assert again.status_code == 200

    me = await client.get("/auth/me", headers=bearer(new_pair["access_token"]))
    assert me.status_code == 200


async def test_refresh_without_token(client):
    resp = await client.post("/auth/refresh-token")
    assert resp.status_code == 401


async def test_logout_invalidates_refresh_token(client, alice):
    resp = await client.post("/auth/logout", headers=alice["headers"])
    assert resp.status_code == 200

    refresh = await client.post("/auth/refresh-token", json={"refresh_token": alice["refresh_token"]})
    assert refresh.status_code == 401


async def test_change_password(client, alice):
    bad = await client.patch(
        "/auth/password",
        headers=alice["headers"],
        json={"old_password": "nope", "new_password": "another-secret"},
    )
    assert bad.status_code == 400

    ok = await client.patch(
        "/auth/password",
        headers=alice["headers"],
        json={"old_password": "secret123", "new_password": "another-secret"},
    )
    assert ok.status_code == 200
    data = await login_user(client, "alice", password="another-secret")
    assert data["user"]["username"] == "alice"


async def test_update_account_rejects_taken_email(client, alice, bob):
    taken = await client.patch(
        "/auth/account",
        headers=alice["headers"],
        json={"full_name": "Alice A.", "email": "bob@example.com"},
    )
    assert taken.status_code == 409

    ok = await client.patch(
        "/auth/account",
        headers=alice["headers"],
        json={"full_name": "Alice A.", "email": "alice@new.example.com"},
    )
    assert ok.status_code == 200
    assert ok.json()["data"]["full_name"] == "Alice A."
    assert ok.json()["data"]["email"] == "alice@new.example.com"


async def test_update_avatar_uploads_new_then_deletes_old(client, alice, fake_s3):
    me = (await client.get("/auth/me", headers=alice["headers"])).json()["data"]
    old_keys = set(fake_s3.objects)

    resp = await client.patch(
        "/auth/avatar",
        headers=alice["headers"],
        files={"avatar": ("new.jpg", b"new-avatar", "image/jpeg")},
    )
    assert resp.status_code == 200
    assert resp.json()["data"]["avatar"] != me["avatar"]
    assert resp.json()["data"]["avatar"].endswith(".jpg")
    assert len(fake_s3.deleted) == 1
    assert fake_s3.deleted[0] in old_keys


async def test_update_cover_image_requires_file(client, alice):
    resp = await client.patch("/auth/cover-image", headers=alice["headers"])
    assert resp.status_code == 400


async def test_access_token_for_unknown_subject(client, db_setup):
    ghost = User(
        id=uuid.uuid4(),
        username="ghost",
        email="ghost@example.com",
        full_name="Ghost",
        avatar="http://x/a.png",
        password_hash="x",
    )
    resp = await client.get("/auth/me", headers=bearer(create_access_token(ghost)))
    assert resp.status_code == 401


async def test_channel_profile_counts(client):
    alice = await make_user(client, "alice")
    bob = await make_user(client, "bob")
    await client.patch(f"/subscriptions/channel/{bob['id']}", headers=alice["headers"])

    resp = await client.get("/auth/channel/BOB", headers=alice["headers"])
    assert resp.status_code == 200
    profile = resp.json()["data"]
    assert profile["username"] == "bob"
    assert profile["subscribers_count"] == 1
    assert profile["subscribed_to_count"] == 0
    assert profile["is_subscribed"] is True

    own = (await client.get("/auth/channel/alice", headers=alice["headers"])).json()["data"]
    assert own["subscribed_to_count"] == 1
    assert own["is_subscribed"] is False

    missing = await client.get("/auth/channel/nobody", headers=alice["headers"])
    assert missing.status_code == 404
