"""
Article endpoint tests: CRUD with ownership, the feed, image upload and
the like / dislike / block reactions.
"""
import pytest
from httpx import AsyncClient

from helpers import RICH_TEXT, article_payload, auth_headers
from readstack.config import settings


async def _create(client: AsyncClient, headers: dict, **kwargs) -> dict:
    resp = await client.post("/articles", json=article_payload(**kwargs), headers=headers)
    assert resp.status_code == 201, resp.text
    return resp.json()


# ---------------------------------------------------------------------------
# Authentication
# ---------------------------------------------------------------------------

@pytest.mark.asyncio
@pytest.mark.parametrize(
    "method,path",
    [
        ("GET", "/articles/feed"),
        ("GET", "/articles/my-articles"),
        ("GET", "/articles/1"),
        ("POST", "/articles/1/like"),
        ("PATCH", "/articles/1/block"),
        ("DELETE", "/articles/1"),
    ],
)
async def test_requires_bearer_token(async_client: AsyncClient, method, path):
    resp = await async_client.request(method, path)
    assert resp.status_code == 401
    assert resp.headers["www-authenticate"] == "Bearer"


@pytest.mark.asyncio
async def test_rejects_garbage_token(async_client: AsyncClient):
    resp = await async_client.get(
        "/articles/feed", headers={"Authorization": "Bearer not.a.token"}
    )
    assert resp.status_code == 401


# ---------------------------------------------------------------------------
# Create / read
# ---------------------------------------------------------------------------

@pytest.mark.asyncio
async def test_create_article(async_client: AsyncClient, db_session):
    user_id, headers = await auth_headers(db_session, "author@example.com")
    body = await _create(async_client, headers, featured_image="https://img/x.png", featured_image_id="x")

    assert body["title"] == "First Article"
    assert body["content"] == RICH_TEXT
    assert body["author_id"] == user_id
    assert body["author"]["email"] == "author@example.com"
    assert body["likes"] == [] and body["dislikes"] == []
    assert body["featured_image_id"] == "x"


@pytest.mark.asyncio
async def test_create_article_author_comes_from_token(async_client: AsyncClient, db_session):
    user_id, headers = await auth_headers(db_session, "author@example.com")
    payload = {**article_payload(), "authorId": user_id + 100}
    resp = await async_client.post("/articles", json=payload, headers=headers)
    assert resp.status_code == 201
    assert resp.json()["author_id"] == user_id


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "override",
    [
        {"title": "ab"},
        {"title": "x" * 151},
        {"category": "Astrology"},
        {"content": "<p>   </p>"},
        {"content": {"type": "doc", "content": []}},
    ],
)
async def test_create_article_validation(async_client: AsyncClient, db_session, override):
    _, headers = await auth_headers(db_session, "author@example.com")
    resp = await async_client.post("/articles", json={**article_payload(), **override}, headers=headers)
    assert resp.status_code == 400


@pytest.mark.asyncio
async def test_create_article_accepts_html_content(async_client: AsyncClient, db_session):
    _, headers = await auth_headers(db_session, "author@example.com")
    resp = await async_client.post(
        "/articles",
        json=article_payload(content="<p>Plain <b>HTML</b> body</p>"),
        headers=headers,
    )
    assert resp.status_code == 201


@pytest.mark.asyncio
async def test_get_article(async_client: AsyncClient, db_session):
    _, headers = await auth_headers(db_session, "author@example.com")
    created = await _create(async_client, headers)

    resp = await async_client.get(f"/articles/{created['id']}", headers=headers)
    assert resp.status_code == 200
    assert resp.json()["id"] == created["id"]


@pytest.mark.asyncio
async def test_get_missing_article(async_client: AsyncClient, db_session):
    _, headers = await auth_headers(db_session, "reader@example.com")
    resp = await async_client.get("/articles/9999", headers=headers)
    assert resp.status_code == 404


@pytest.mark.asyncio
async def test_my_articles_only_lists_own(async_client: AsyncClient, db_session):
    _, alice = await auth_headers(db_session, "alice@example.com")
    _, bob = await auth_headers(db_session, "bob@example.com")
    await _create(async_client, alice, title="Alice One")
    await _create(async_client, alice, title="Alice Two")
    await _create(async_client, bob, title="Bob One")

    resp = await async_client.get("/articles/my-articles", headers=alice)
    assert resp.status_code == 200
    assert [a["title"] for a in resp.json()] == ["Alice Two", "Alice One"]


# ---------------------------------------------------------------------------
# Feed
# ---------------------------------------------------------------------------

@pytest.mark.asyncio
async def test_feed_pagination(async_client: AsyncClient, db_session):
    _, headers = await auth_headers(db_session, "author@example.com")
    for i in range(5):
        await _create(async_client, headers, title=f"Article {i}")

    resp = await async_client.get("/articles/feed", params={"page": 1, "limit": 2}, headers=headers)
    assert resp.status_code == 200
    body = resp.json()
    assert body["total"] == 5
    assert body["pages"] == 3
    assert body["page"] == 1 and body["limit"] == 2
    assert [a["title"] for a in body["items"]] == ["Article 4", "Article 3"]

    last = await async_client.get("/articles/feed", params={"page": 3, "limit": 2}, headers=headers)
    assert [a["title"] for a in last.json()["items"]] == ["Article 0"]


@pytest.mark.asyncio
async def test_feed_limit_is_capped(async_client: AsyncClient, db_session):
    _, headers = await auth_headers(db_session, "author@example.com")
    resp = await async_client.get("/articles/feed", params={"limit": 1000}, headers=headers)
    assert resp.status_code == 200
    assert resp.json()["limit"] == settings.MAX_PAGE_SIZE


@pytest.mark.asyncio
async def test_feed_rejects_page_zero(async_client: AsyncClient, db_session):
    _, headers = await auth_headers(db_session, "author@example.com")
    resp = await async_client.get("/articles/feed", params={"page": 0}, headers=headers)
    assert resp.status_code == 400


@pytest.mark.asyncio
async def test_feed_empty(async_client: AsyncClient, db_session):
    _, headers = await auth_headers(db_session, "reader@example.com")
    body = (await async_client.get("/articles/feed", headers=headers)).json()
    assert body["items"] == []
    assert body["total"] == 0
    assert body["pages"] == 0


@pytest.mark.asyncio
async def test_feed_category_filter(async_client: AsyncClient, db_session):
    _, headers = await auth_headers(db_session, "author@example.com")
    await _create(async_client, headers, title="Gadgets", category="Technology")
    await _create(async_client, headers, title="Pasta", category="Food")

    resp = await async_client.get("/articles/feed", params={"category": "Food"}, headers=headers)
    assert [a["title"] for a in resp.json()["items"]] == ["Pasta"]

    # An unknown category is ignored rather than rejected.
    resp = await async_client.get("/articles/feed", params={"category": "Nope"}, headers=headers)
    assert resp.json()["total"] == 2


# ---------------------------------------------------------------------------
# Update / delete ownership
# ---------------------------------------------------------------------------

@pytest.mark.asyncio
async def test_update_article_by_author(async_client: AsyncClient, db_session):
    _, headers = await auth_headers(db_session, "author@example.com")
    created = await _create(async_client, headers)

    resp = await async_client.patch(
        f"/articles/{created['id']}", json={"title": "Renamed"}, headers=headers
    )
    assert resp.status_code == 200
    body = resp.json()
    assert body["title"] == "Renamed"
    assert body["category"] == created["category"]
    assert body["content"] == created["content"]


@pytest.mark.asyncio
async def test_update_article_by_stranger(async_client: AsyncClient, db_session):
    _, owner = await auth_headers(db_session, "owner@example.com")
    _, stranger = await auth_headers(db_session, "stranger@example.com")
    created = await _create(async_client, owner)

    resp = await async_client.patch(
        f"/articles/{created['id']}", json={"title": "Hijacked"}, headers=stranger
    )
    assert resp.status_code == 401

    fetched = await async_client.get(f"/articles/{created['id']}", headers=owner)
    assert fetched.json()["title"] == "First Article"


@pytest.mark.asyncio
async def test_update_missing_article(async_client: AsyncClient, db_session):
    _, headers = await auth_headers(db_session, "author@example.com")
    resp = await async_client.patch("/articles/9999", json={"title": "Nothing"}, headers=headers)
    assert resp.status_code == 404


@pytest.mark.asyncio
async def test_update_replaces_image_and_discards_old(async_client: AsyncClient, db_session, asset_host):
    _, headers = await auth_headers(db_session, "author@example.com")
    created = await _create(async_client, headers, featured_image="https://img/old.png", featured_image_id="old")

    resp = await async_client.patch(
        f"/articles/{created['id']}",
        json={"featuredImage": "https://img/new.png", "featuredImageId": "new"},
        headers=headers,
    )
    assert resp.status_code == 200
    assert resp.json()["featured_image_id"] == "new"
    assert asset_host.deleted == ["old"]


@pytest.mark.asyncio
async def test_update_survives_asset_cleanup_failure(async_client: AsyncClient, db_session, asset_host):
    _, headers = await auth_headers(db_session, "author@example.com")
    created = await _create(async_client, headers, featured_image="https://img/old.png", featured_image_id="old")
    asset_host.fail_delete = True

    resp = await async_client.patch(
        f"/articles/{created['id']}", json={"featuredImageId": "new"}, headers=headers
    )
    assert resp.status_code == 200
    assert resp.json()["featured_image_id"] == "new"


@pytest.mark.asyncio
async def test_delete_article_by_author(async_client: AsyncClient, db_session, asset_host):
    _, headers = await auth_headers(db_session, "author@example.com")
    created = await _create(async_client, headers, featured_image="https://img/x.png", featured_image_id="x")
    await async_client.post(f"/articles/{created['id']}/like", headers=headers)

    resp = await async_client.delete(f"/articles/{created['id']}", headers=headers)
    assert resp.status_code == 200
    assert asset_host.deleted == ["x"]

    gone = await async_client.get(f"/articles/{created['id']}", headers=headers)
    assert gone.status_code == 404


@pytest.mark.asyncio
async def test_delete_article_by_stranger(async_client: AsyncClient, db_session, asset_host):
    _, owner = await auth_headers(db_session, "owner@example.com")
    _, stranger = await auth_headers(db_session, "stranger@example.com")
    created = await _create(async_client, owner, featured_image_id="x")

    resp = await async_client.delete(f"/articles/{created['id']}", headers=stranger)
    assert resp.status_code == 401
    assert asset_host.deleted == []

    still_there = await async_client.get(f"/articles/{created['id']}", headers=owner)
    assert still_there.status_code == 200


# ---------------------------------------------------------------------------
# Image upload
# ---------------------------------------------------------------------------

@pytest.mark.asyncio
async def test_upload_image(async_client: AsyncClient, db_session, asset_host):
    _, headers = await auth_headers(db_session, "author@example.com")
    resp = await async_client.post(
        "/articles/upload-image",
        files={"image": ("cover.png", b"\x89PNG fake bytes", "image/png")},
        headers=headers,
    )
    assert resp.status_code == 200
    body = resp.json()
    assert body["public_id"] == asset_host.uploaded[0]
    assert body["url"].startswith("https://")


@pytest.mark.asyncio
async def test_upload_rejects_non_image(async_client: AsyncClient, db_session, asset_host):
    _, headers = await auth_headers(db_session, "author@example.com")
    resp = await async_client.post(
        "/articles/upload-image",
        files={"image": ("notes.txt", b"hello", "text/plain")},
        headers=headers,
    )
    assert resp.status_code == 400
    assert asset_host.uploaded == []


@pytest.mark.asyncio
async def test_upload_rejects_oversized(async_client: AsyncClient, db_session, asset_host, monkeypatch):
    monkeypatch.setattr(settings, "MAX_UPLOAD_BYTES", 16)
    _, headers = await auth_headers(db_session, "author@example.com")
    resp = await async_client.post(
        "/articles/upload-image",
        files={"image": ("big.jpg", b"x" * 17, "image/jpeg")},
        headers=headers,
    )
    assert resp.status_code == 400
    assert asset_host.uploaded == []


# ---------------------------------------------------------------------------
# Like / dislike
# ---------------------------------------------------------------------------

@pytest.mark.asyncio
async def test_like_is_idempotent(async_client: AsyncClient, db_session):
    user_id, headers = await auth_headers(db_session, "reader@example.com")
    created = await _create(async_client, headers)

    first = await async_client.post(f"/articles/{created['id']}/like", headers=headers)
    second = await async_client.post(f"/articles/{created['id']}/like", headers=headers)
    assert first.status_code == second.status_code == 200
    assert second.json()["likes"] == [user_id]
    assert second.json()["dislikes"] == []


@pytest.mark.asyncio
async def test_like_then_dislike_moves_user(async_client: AsyncClient, db_session):
    user_id, headers = await auth_headers(db_session, "reader@example.com")
    created = await _create(async_client, headers)

    await async_client.post(f"/articles/{created['id']}/like", headers=headers)
    resp = await async_client.post(f"/articles/{created['id']}/dislike", headers=headers)
    assert resp.json()["likes"] == []
    assert resp.json()["dislikes"] == [user_id]

    resp = await async_client.post(f"/articles/{created['id']}/like", headers=headers)
    assert resp.json()["likes"] == [user_id]
    assert resp.json()["dislikes"] == []


@pytest.mark.asyncio
async def test_votes_from_several_users_are_kept(async_client: AsyncClient, db_session):
    alice_id, alice = await auth_headers(db_session, "alice@example.com")
    bob_id, bob = await auth_headers(db_session, "bob@example.com")
    carol_id, carol = await auth_headers(db_session, "carol@example.com")
    created = await _create(async_client, alice)

    await async_client.post(f"/articles/{created['id']}/like", headers=alice)
    await async_client.post(f"/articles/{created['id']}/like", headers=bob)
    resp = await async_client.post(f"/articles/{created['id']}/dislike", headers=carol)

    assert sorted(resp.json()["likes"]) == sorted([alice_id, bob_id])
    assert resp.json()["dislikes"] == [carol_id]


@pytest.mark.asyncio
async def test_vote_on_missing_article(async_client: AsyncClient, db_session):
    _, headers = await auth_headers(db_session, "reader@example.com")
    assert (await async_client.post("/articles/9999/like", headers=headers)).status_code == 404
    assert (await async_client.post("/articles/9999/dislike", headers=headers)).status_code == 404


# ---------------------------------------------------------------------------
# Block
# ---------------------------------------------------------------------------

@pytest.mark.asyncio
async def test_block_hides_article_from_blocker_only(async_client: AsyncClient, db_session):
    _, author = await auth_headers(db_session, "author@example.com")
    _, reader = await auth_headers(db_session, "reader@example.com")
    created = await _create(async_client, author)

    resp = await async_client.patch(f"/articles/{created['id']}/block", headers=reader)
    assert resp.status_code == 200
    assert resp.json() == {"article_id": created["id"], "blocked": True, "message": "Article blocked"}

    reader_feed = (await async_client.get("/articles/feed", headers=reader)).json()
    assert reader_feed["items"] == [] and reader_feed["total"] == 0
    assert (await async_client.get(f"/articles/{created['id']}", headers=reader)).status_code == 404

    author_feed = (await async_client.get("/articles/feed", headers=author)).json()
    assert [a["id"] for a in author_feed["items"]] == [created["id"]]
    assert (await async_client.get(f"/articles/{created['id']}", headers=author)).status_code == 200


@pytest.mark.asyncio
async def test_block_twice_unblocks(async_client: AsyncClient, db_session):
    _, author = await auth_headers(db_session, "author@example.com")
    _, reader = await auth_headers(db_session, "reader@example.com")
    created = await _create(async_client, author)

    await async_client.patch(f"/articles/{created['id']}/block", headers=reader)
    resp = await async_client.patch(f"/articles/{created['id']}/block", headers=reader)
    assert resp.json()["blocked"] is False

    feed = (await async_client.get("/articles/feed", headers=reader)).json()
    assert [a["id"] for a in feed["items"]] == [created["id"]]


@pytest.mark.asyncio
async def test_block_missing_article(async_client: AsyncClient, db_session):
    _, headers = await auth_headers(db_session, "reader@example.com")
    resp = await async_client.patch("/articles/9999/block", headers=headers)
    assert resp.status_code == 404


@pytest.mark.asyncio
async def test_blocked_article_cannot_be_reached_through_reactions(async_client: AsyncClient, db_session):
    _, author = await auth_headers(db_session, "author@example.com")
    _, reader = await auth_headers(db_session, "reader@example.com")
    created = await _create(async_client, author)
    await async_client.patch(f"/articles/{created['id']}/block", headers=reader)

    like = await async_client.post(f"/articles/{created['id']}/like", headers=reader)
    dislike = await async_client.post(f"/articles/{created['id']}/dislike", headers=reader)
    assert like.status_code == dislike.status_code == 404
    assert "content" not in like.json()

    seen_by_author = (await async_client.get(f"/articles/{created['id']}", headers=author)).json()
    assert seen_by_author["likes"] == [] and seen_by_author["dislikes"] == []


@pytest.mark.asyncio
async def test_clearing_image_id_clears_url(async_client: AsyncClient, db_session, asset_host):
    _, headers = await auth_headers(db_session, "author@example.com")
    created = await _create(async_client, headers, featured_image="https://img/old.png", featured_image_id="old")

    resp = await async_client.patch(
        f"/articles/{created['id']}", json={"featuredImageId": None}, headers=headers
    )
    assert resp.status_code == 200
    assert resp.json()["featured_image_id"] is None
    assert resp.json()["featured_image"] is None
    assert asset_host.deleted == ["old"]
