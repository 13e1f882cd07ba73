"""
Listing cache tests against an in-process fakeredis server: cache-aside
hits, invalidation on writes, and the ordering of invalidation relative
to the transaction commit.
"""
import pytest
from httpx import AsyncClient
from sqlalchemy.ext.asyncio import async_sessionmaker, create_async_engine

from blogcms.cache import STALE_FLAG
from blogcms.database import Base, commit, install_sqlite_pragmas
from blogcms.schemas import ArticleCreate, ArticleUpdate
from blogcms.services import article_service


async def _publish(client: AsyncClient, headers: dict, title: str) -> dict:
    resp = await client.post(
        "/api/v1/articles",
        json={"title": title, "content": "Body", "published": True},
        headers=headers,
    )
    assert resp.status_code == 201
    return resp.json()


async def _listing_keys(fake_cache) -> list[str]:
    return [key async for key in fake_cache._redis.scan_iter(match="articles:list:*")]


# ---------------------------------------------------------------------------
# Cache-aside
# ---------------------------------------------------------------------------

@pytest.mark.asyncio
async def test_second_listing_is_served_from_cache(async_client: AsyncClient, admin_headers, fake_cache):
    await _publish(async_client, admin_headers, "Cached")

    first = (await async_client.get("/api/v1/articles")).json()
    assert fake_cache.stats["misses"] == 1
    assert len(await _listing_keys(fake_cache)) == 1

    resp = await async_client.get("/api/v1/articles")
    assert resp.json() == first
    assert fake_cache.stats["hits"] == 1
    # A cache hit issues no SQL.
    assert resp.headers["x-query-count"] == "0"


@pytest.mark.asyncio
async def test_filters_get_separate_cache_entries(async_client: AsyncClient, admin_headers, fake_cache):
    await _publish(async_client, admin_headers, "Alpha")
    await async_client.get("/api/v1/articles")
    await async_client.get("/api/v1/articles", params={"q": "alpha"})
    await async_client.get("/api/v1/articles", params={"page": 2})
    assert len(await _listing_keys(fake_cache)) == 3


@pytest.mark.asyncio
async def test_draft_listings_are_not_cached(async_client: AsyncClient, admin_headers, fake_cache):
    await async_client.get("/api/v1/articles", params={"include_drafts": True}, headers=admin_headers)
    assert await _listing_keys(fake_cache) == []


@pytest.mark.asyncio
async def test_stats_report_live_cache(async_client: AsyncClient, fake_cache):
    await async_client.get("/api/v1/articles")
    await async_client.get("/api/v1/articles")
    info = (await async_client.get("/api/v1/stats")).json()["cache_info"]
    assert info == {"connected": True, "hits": 1, "misses": 1, "hit_rate": 50.0}


# ---------------------------------------------------------------------------
# Invalidation
# ---------------------------------------------------------------------------

@pytest.mark.asyncio
async def test_article_write_invalidates_listing(async_client: AsyncClient, admin_headers, fake_cache):
    article = await _publish(async_client, admin_headers, "Before")
    await async_client.get("/api/v1/articles")

    await async_client.put(
        f"/api/v1/articles/{article['id']}", json={"title": "After"}, headers=admin_headers
    )
    assert await _listing_keys(fake_cache) == []

    data = (await async_client.get("/api/v1/articles")).json()
    assert data["items"][0]["title"] == "After"


@pytest.mark.asyncio
async def test_comment_invalidates_listing(async_client: AsyncClient, admin_headers, fake_cache):
    article = await _publish(async_client, admin_headers, "Discussed")
    await async_client.get("/api/v1/articles")

    await async_client.post(
        f"/api/v1/articles/{article['id']}/comments",
        json={"author": "Reader", "content": "Nice"},
    )
    data = (await async_client.get("/api/v1/articles")).json()
    assert data["items"][0]["comments_count"] == 1


@pytest.mark.asyncio
async def test_term_rename_invalidates_listing(async_client: AsyncClient, admin_headers, fake_cache):
    tag = (await async_client.post("/api/v1/tags", json={"name": "old"}, headers=admin_headers)).json()
    await async_client.post(
        "/api/v1/articles",
        json={"title": "Tagged", "content": "Body", "published": True, "tag_ids": [tag["id"]]},
        headers=admin_headers,
    )
    await async_client.get("/api/v1/articles")

    await async_client.put(f"/api/v1/tags/{tag['id']}", json={"name": "new"}, headers=admin_headers)
    data = (await async_client.get("/api/v1/articles")).json()
    assert data["items"][0]["tags"][0]["name"] == "new"


@pytest.mark.asyncio
async def test_failed_write_keeps_cache(async_client: AsyncClient, admin_headers, fake_cache):
    """A rejected write rolls back and leaves cached listings alone."""
    await _publish(async_client, admin_headers, "Stable")
    await async_client.get("/api/v1/articles")

    resp = await async_client.post(
        "/api/v1/articles",
        json={"title": "Broken", "content": "Body", "tag_ids": [999]},
        headers=admin_headers,
    )
    assert resp.status_code == 400
    assert len(await _listing_keys(fake_cache)) == 1


@pytest.mark.asyncio
async def test_listing_refreshed_after_update_commits(tmp_path, fake_cache):
    """
    A listing read between an update and its commit must not leave the
    pre-update rows cached once the commit lands.

    Uses a file-backed database so the reader and the writer run on
    separate connections and the reader cannot see uncommitted rows.
    """
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'blog.db'}")
    install_sqlite_pragmas(engine)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    sessions = async_sessionmaker(engine, expire_on_commit=False)

    try:
        async with sessions() as db:
            created = await article_service.create_article(
                db, ArticleCreate(title="Old", content="Body", published=True)
            )
            await commit(db)

        async with sessions() as writer:
            await article_service.update_article(writer, created["id"], ArticleUpdate(title="New"))
            assert writer.info[STALE_FLAG] is True

            async with sessions() as reader:
                page = await article_service.list_articles(reader)
            assert page.items[0]["title"] == "Old"

            await commit(writer)
            assert STALE_FLAG not in writer.info

        async with sessions() as db:
            page = await article_service.list_articles(db)
        assert page.items[0]["title"] == "New"
    finally:
        await engine.dispose()
