"""
Comment endpoint tests: covers posting comments, input validation and the
honeypot, moderation (approve / delete behind the admin key) and the way
comments surface in article detail responses.
"""
import pytest
from httpx import AsyncClient

from blogcms.config import settings


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

async def _create_article(client: AsyncClient, headers: dict, published: bool = True) -> int:
    resp = await client.post(
        "/api/v1/articles",
        json={"title": "Commentable", "content": "Article content", "published": published},
        headers=headers,
    )
    assert resp.status_code == 201
    return resp.json()["id"]


async def _comment(client: AsyncClient, article_id: int, **fields):
    payload = {"author": "Reader", "content": "Great article!"}
    payload.update(fields)
    return await client.post(f"/api/v1/articles/{article_id}/comments", json=payload)


# ---------------------------------------------------------------------------
# Add comment: happy path
# ---------------------------------------------------------------------------

@pytest.mark.asyncio
async def test_add_comment(async_client: AsyncClient, admin_headers):
    """Posting a comment returns 201 with trimmed fields and no admin key needed."""
    article_id = await _create_article(async_client, admin_headers)

    resp = await _comment(async_client, article_id, author="  Reader  ", content="  Great article!  ")
    assert resp.status_code == 201
    comment = resp.json()
    assert comment["author"] == "Reader"
    assert comment["content"] == "Great article!"
    assert comment["article_id"] == article_id
    assert comment["approved"] is True
    assert "id" in comment


@pytest.mark.asyncio
async def test_article_detail_includes_comments(async_client: AsyncClient, admin_headers):
    """Approved comments appear in the article detail, newest first."""
    article_id = await _create_article(async_client, admin_headers)
    for text in ("First comment", "Second comment", "Third comment"):
        assert (await _comment(async_client, article_id, content=text)).status_code == 201

    detail = (await async_client.get(f"/api/v1/articles/{article_id}")).json()
    assert detail["comments_count"] == 3
    assert [c["content"] for c in detail["comments"]] == [
        "Third comment",
        "Second comment",
        "First comment",
    ]


@pytest.mark.asyncio
async def test_list_comments_paginated(async_client: AsyncClient, admin_headers):
    article_id = await _create_article(async_client, admin_headers)
    for i in range(3):
        await _comment(async_client, article_id, content=f"Comment {i}")

    data = (await async_client.get(f"/api/v1/articles/{article_id}/comments?limit=2")).json()
    assert data["total"] == 3
    assert data["pages"] == 2
    assert [c["content"] for c in data["items"]] == ["Comment 2", "Comment 1"]

    data = (await async_client.get(f"/api/v1/articles/{article_id}/comments?limit=1000")).json()
    assert data["limit"] == 100


# ---------------------------------------------------------------------------
# Add comment: validation
# ---------------------------------------------------------------------------

@pytest.mark.asyncio
async def test_comment_on_nonexistent_article(async_client: AsyncClient):
    resp = await _comment(async_client, 99999)
    assert resp.status_code == 404
    assert resp.json()["detail"] == "Article not found"


@pytest.mark.asyncio
async def test_comment_on_draft_is_not_found(async_client: AsyncClient, admin_headers):
    article_id = await _create_article(async_client, admin_headers, published=False)
    assert (await _comment(async_client, article_id)).status_code == 404
    resp = await async_client.get(f"/api/v1/articles/{article_id}/comments")
    assert resp.status_code == 404


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "fields",
    [
        {"author": "A"},
        {"author": "x" * 81},
        {"author": "   "},
        {"content": "x"},
        {"content": "x" * 2001},
        {"content": "  a  "},
    ],
)
async def test_comment_length_limits(async_client: AsyncClient, admin_headers, fields):
    """Author must be 2..80 characters and content 2..2000 after trimming."""
    article_id = await _create_article(async_client, admin_headers)
    resp = await _comment(async_client, article_id, **fields)
    assert resp.status_code == 422


@pytest.mark.asyncio
async def test_comment_missing_fields(async_client: AsyncClient, admin_headers):
    article_id = await _create_article(async_client, admin_headers)
    resp = await async_client.post(
        f"/api/v1/articles/{article_id}/comments", json={"content": "No author here"}
    )
    assert resp.status_code == 422
    resp = await async_client.post(
        f"/api/v1/articles/{article_id}/comments", json={"author": "Reader"}
    )
    assert resp.status_code == 422


@pytest.mark.asyncio
async def test_honeypot_rejects_comment(async_client: AsyncClient, admin_headers):
    """A filled-in hidden field marks the request as automated; nothing is stored."""
    article_id = await _create_article(async_client, admin_headers)

    resp = await _comment(async_client, article_id, hp="http://spam.example")
    assert resp.status_code == 400
    assert resp.json()["detail"] == "Invalid request."

    # An empty honeypot is what a real browser sends.
    assert (await _comment(async_client, article_id, hp="")).status_code == 201

    stats = (await async_client.get("/api/v1/stats")).json()
    assert stats["total_comments"] == 1


# ---------------------------------------------------------------------------
# Moderation
# ---------------------------------------------------------------------------

@pytest.mark.asyncio
async def test_held_comments_wait_for_approval(async_client: AsyncClient, admin_headers, monkeypatch):
    """With auto-approval off, new comments sit in the moderation queue."""
    monkeypatch.setattr(settings, "COMMENTS_AUTO_APPROVE", False)
    article_id = await _create_article(async_client, admin_headers)

    comment = (await _comment(async_client, article_id)).json()
    assert comment["approved"] is False

    detail = (await async_client.get(f"/api/v1/articles/{article_id}")).json()
    assert detail["comments"] == []
    assert detail["comments_count"] == 0

    resp = await async_client.get(f"/api/v1/articles/{article_id}/comments", params={"approved": False})
    assert resp.status_code == 401

    queue = (
        await async_client.get(
            f"/api/v1/articles/{article_id}/comments",
            params={"approved": False},
            headers=admin_headers,
        )
    ).json()
    assert [c["id"] for c in queue["items"]] == [comment["id"]]

    resp = await async_client.put(
        f"/api/v1/comments/{comment['id']}/approve", json={"approved": True}, headers=admin_headers
    )
    assert resp.status_code == 200
    assert resp.json()["approved"] is True

    detail = (await async_client.get(f"/api/v1/articles/{article_id}")).json()
    assert [c["id"] for c in detail["comments"]] == [comment["id"]]

    stats = (await async_client.get("/api/v1/stats")).json()
    assert stats["pending_comments"] == 0


@pytest.mark.asyncio
async def test_unapprove_hides_comment(async_client: AsyncClient, admin_headers):
    article_id = await _create_article(async_client, admin_headers)
    comment = (await _comment(async_client, article_id)).json()

    resp = await async_client.put(
        f"/api/v1/comments/{comment['id']}/approve", json={"approved": False}, headers=admin_headers
    )
    assert resp.json()["approved"] is False

    data = (await async_client.get(f"/api/v1/articles/{article_id}/comments")).json()
    assert data["total"] == 0


@pytest.mark.asyncio
async def test_moderation_requires_admin(async_client: AsyncClient, admin_headers):
    article_id = await _create_article(async_client, admin_headers)
    comment = (await _comment(async_client, article_id)).json()

    resp = await async_client.put(f"/api/v1/comments/{comment['id']}/approve", json={"approved": False})
    assert resp.status_code == 401
    resp = await async_client.delete(f"/api/v1/comments/{comment['id']}")
    assert resp.status_code == 401


@pytest.mark.asyncio
async def test_delete_comment(async_client: AsyncClient, admin_headers):
    article_id = await _create_article(async_client, admin_headers)
    comment = (await _comment(async_client, article_id)).json()

    resp = await async_client.delete(f"/api/v1/comments/{comment['id']}", headers=admin_headers)
    assert resp.status_code == 204

    detail = (await async_client.get(f"/api/v1/articles/{article_id}")).json()
    assert detail["comments"] == []

    resp = await async_client.delete(f"/api/v1/comments/{comment['id']}", headers=admin_headers)
    assert resp.status_code == 404
    assert resp.json()["detail"] == "Comment not found"


@pytest.mark.asyncio
async def test_approve_missing_comment(async_client: AsyncClient, admin_headers):
    resp = await async_client.put(
        "/api/v1/comments/99999/approve", json={"approved": True}, headers=admin_headers
    )
    assert resp.status_code == 404
