import os
import uuid

from sqlalchemy import func, select

from conftest import upload_video
from vidshare.models import Comment, Like, PlaylistVideo, Video, WatchHistoryEntry


async def test_publish_video_stores_both_assets(client, alice, fake_s3):
    before = len(fake_s3.objects)
    video = await upload_video(client, alice["headers"], title="First", description="My first upload")

    assert video["owner_id"] == alice["id"]
    assert video["views"] == 0
    assert video["is_published"] is True
    assert video["duration"] == 12.5
    assert video["video_file"].endswith(".mp4")
    assert video["thumbnail"].endswith(".png")
    assert len(fake_s3.objects) == before + 2


async def test_publish_requires_fields_and_files(client, alice):
    no_title = await client.post(
        "/videos",
        headers=alice["headers"],
        data={"title": " ", "description": "d"},
        files={"videoFile": ("v.mp4", b"v", "video/mp4"), "thumbnail": ("t.png", b"t", "image/png")},
    )
    assert no_title.status_code == 400

    no_thumb = await client.post(
        "/videos",
        headers=alice["headers"],
        data={"title": "t", "description": "d"},
        files={"videoFile": ("v.mp4", b"v", "video/mp4")},
    )
    assert no_thumb.status_code == 400
    assert no_thumb.json()["message"] == "Thumbnail is required"


async def test_publish_upload_failure_leaves_nothing_behind(client, session, alice, fake_s3, upload_dir):
    fake_s3.fail_uploads = True

    resp = await client.post(
        "/videos",
        headers=alice["headers"],
        data={"title": "t", "description": "d"},
        files={"videoFile": ("v.mp4", b"v", "video/mp4"), "thumbnail": ("t.png", b"t", "image/png")},
    )
    assert resp.status_code == 500
    assert resp.json()["success"] is False

    count = (await session.execute(select(func.count(Video.id)))).scalar_one()
    assert count == 0
    assert os.listdir(upload_dir) == []


async def test_list_videos_pages_are_disjoint(client, alice):
    for i in range(15):
        await upload_video(client, alice["headers"], title=f"Video {i}")

    first = (await client.get("/videos", params={"page": 1, "limit": 10}, headers=alice["headers"])).json()["data"]
    second = (await client.get("/videos", params={"page": 2, "limit": 10}, headers=alice["headers"])).json()["data"]

    assert first["total"] == 15
    assert first["total_pages"] == 2
    assert first["has_next"] is True and first["next_page"] == 2
    assert len(first["items"]) == 10
    assert len(second["items"]) == 5
    assert second["has_next"] is False and second["prev_page"] == 1

    first_ids = {v["id"] for v in first["items"]}
    second_ids = {v["id"] for v in second["items"]}
    assert not first_ids & second_ids
    assert first["items"][0]["owner"]["username"] == "alice"


async def test_list_videos_search_is_case_insensitive(client, alice):
    await upload_video(client, alice["headers"], title="Cats at play", description="Fluffy")
    await upload_video(client, alice["headers"], title="Dogs running", description="Outdoors")

    resp = await client.get("/videos", params={"query": "cats"}, headers=alice["headers"])
    titles = [v["title"] for v in resp.json()["data"]["items"]]
    assert titles == ["Cats at play"]

    wildcard = await client.get("/videos", params={"query": "%"}, headers=alice["headers"])
    assert wildcard.json()["data"]["items"] == []


async def test_list_videos_sort_allow_list(client, alice):
    resp = await client.get("/videos", params={"sortBy": "password_hash"}, headers=alice["headers"])
    assert resp.status_code == 400

    bad_direction = await client.get(
        "/videos", params={"sortBy": "title", "sortType": "sideways"}, headers=alice["headers"]
    )
    assert bad_direction.status_code == 400


async def test_list_videos_sorted_by_title(client, alice):
    for title in ("b-side", "a-side", "c-side"):
        await upload_video(client, alice["headers"], title=title)

    resp = await client.get(
        "/videos", params={"sortBy": "title", "sortType": "asc"}, headers=alice["headers"]
    )
    assert [v["title"] for v in resp.json()["data"]["items"]] == ["a-side", "b-side", "c-side"]


async def test_list_videos_filters_owner_and_hides_unpublished(client, alice, bob):
    mine = await upload_video(client, alice["headers"], title="Alice's")
    await upload_video(client, bob["headers"], title="Bob's")
    hidden = await upload_video(client, bob["headers"], title="Bob's draft")
    await client.patch(f"/videos/toggle/publish/{hidden['id']}", headers=bob["headers"])

    only_alice = await client.get("/videos", params={"userId": alice["id"]}, headers=alice["headers"])
    assert [v["id"] for v in only_alice.json()["data"]["items"]] == [mine["id"]]

    everything = await client.get("/videos", headers=alice["headers"])
    assert hidden["id"] not in {v["id"] for v in everything.json()["data"]["items"]}
    assert everything.json()["data"]["total"] == 2


async def test_limit_above_maximum_is_rejected(client, alice):
    resp = await client.get("/videos", params={"limit": 1000}, headers=alice["headers"])
    assert resp.status_code == 400


async def test_get_video_visibility(client, alice, bob):
    video = await upload_video(client, alice["headers"])
    await client.patch(f"/videos/toggle/publish/{video['id']}", headers=alice["headers"])

    own = await client.get(f"/videos/{video['id']}", headers=alice["headers"])
    assert own.status_code == 200
    assert own.json()["data"]["owner"]["id"] == alice["id"]

    other = await client.get(f"/videos/{video['id']}", headers=bob["headers"])
    assert other.status_code == 404

    missing = await client.get(f"/videos/{uuid.uuid4()}", headers=alice["headers"])
    assert missing.status_code == 404


async def test_view_is_counted_once_per_user(client, alice, bob):
    video = await upload_video(client, alice["headers"])

    first = await client.patch(f"/videos/{video['id']}/view", headers=bob["headers"])
    assert first.json()["data"] == {"views": 1}

    again = await client.patch(f"/videos/{video['id']}/view", headers=bob["headers"])
    assert again.status_code == 200
    assert again.json()["message"] == "View already counted"

    own = await client.patch(f"/videos/{video['id']}/view", headers=alice["headers"])
    assert own.json()["data"] == {"views": 2}

    history = (await client.get("/auth/watch-history", headers=bob["headers"])).json()["data"]
    assert [h["id"] for h in history] == [video["id"]]
    assert history[0]["owner"]["username"] == "alice"


async def test_view_of_unpublished_video_counts_only_for_owner(client, session, alice, bob):
    video = await upload_video(client, alice["headers"])
    await client.patch(f"/videos/toggle/publish/{video['id']}", headers=alice["headers"])

    other = await client.patch(f"/videos/{video['id']}/view", headers=bob["headers"])
    assert other.status_code == 404
    history = (await client.get("/auth/watch-history", headers=bob["headers"])).json()["data"]
    assert history == []
    entries = (await session.execute(select(func.count()).select_from(WatchHistoryEntry))).scalar_one()
    assert entries == 0

    own = await client.patch(f"/videos/{video['id']}/view", headers=alice["headers"])
    assert own.json()["data"] == {"views": 1}


async def test_foreign_video_cannot_be_changed(client, alice, bob):
    video = await upload_video(client, alice["headers"])

    update = await client.patch(
        f"/videos/{video['id']}",
        headers=bob["headers"],
        data={"title": "mine now", "description": "x"},
    )
    assert update.status_code == 403

    toggle = await client.patch(f"/videos/toggle/publish/{video['id']}", headers=bob["headers"])
    assert toggle.status_code == 403

    delete = await client.delete(f"/videos/{video['id']}", headers=bob["headers"])
    assert delete.status_code == 403

    still_there = await client.get(f"/videos/{video['id']}", headers=alice["headers"])
    assert still_there.json()["data"]["title"] == video["title"]


async def test_update_details_without_thumbnail(client, alice, fake_s3):
    video = await upload_video(client, alice["headers"])

    resp = await client.patch(
        f"/videos/{video['id']}",
        headers=alice["headers"],
        data={"title": "Renamed", "description": "New words"},
    )
    assert resp.status_code == 200
    assert resp.json()["data"]["title"] == "Renamed"
    assert resp.json()["data"]["thumbnail"] == video["thumbnail"]
    assert fake_s3.deleted == []


async def test_replace_thumbnail_deletes_old_object(client, alice, fake_s3):
    video = await upload_video(client, alice["headers"])
    old_key = video["thumbnail"][video["thumbnail"].index("thumbnails/"):]

    resp = await client.patch(
        f"/videos/{video['id']}/thumbnail",
        headers=alice["headers"],
        files={"thumbnail": ("new.jpg", b"new-thumb", "image/jpeg")},
    )
    assert resp.status_code == 200
    assert resp.json()["data"]["thumbnail"] != video["thumbnail"]
    assert fake_s3.deleted == [old_key]
    assert old_key not in fake_s3.objects


async def test_delete_video_cascades(client, session, alice, bob, fake_s3):
    video = await upload_video(client, alice["headers"])
    comment = (
        await client.post(f"/comments/{video['id']}", headers=bob["headers"], json={"content": "nice"})
    ).json()["data"]
    await client.post(f"/likes/toggle/video/{video['id']}", headers=bob["headers"])
    await client.post(f"/likes/toggle/comment/{comment['id']}", headers=alice["headers"])
    await client.patch(f"/videos/{video['id']}/view", headers=bob["headers"])
    playlist = (
        await client.post("/playlists", headers=bob["headers"], json={"name": "Faves", "description": "best"})
    ).json()["data"]
    await client.patch(f"/playlists/add/{video['id']}/{playlist['id']}", headers=bob["headers"])

    resp = await client.delete(f"/videos/{video['id']}", headers=alice["headers"])
    assert resp.status_code == 200
    assert len(fake_s3.deleted) == 2

    for model in (Video, Comment, Like, WatchHistoryEntry, PlaylistVideo):
        count = (await session.execute(select(func.count()).select_from(model))).scalar_one()
        assert count == 0, model.__name__

    gone = await client.get(f"/videos/{video['id']}", headers=alice["headers"])
    assert gone.status_code == 404


async def test_toggle_publish(client, alice):
    video = await upload_video(client, alice["headers"])

    resp = await client.patch(f"/videos/toggle/publish/{video['id']}", headers=alice["headers"])
    assert resp.json()["data"]["is_published"] is False
    assert resp.json()["message"] == "Video unpublished"

    resp = await client.patch(f"/videos/toggle/publish/{video['id']}", headers=alice["headers"])
    assert resp.json()["data"]["is_published"] is True
