"""
Stats service: row counts for the stats endpoint and schema checks for
the ``scripts/check_db.py`` maintenance script.
"""
from sqlalchemy import desc, func, inspect, select
from sqlalchemy.ext.asyncio import AsyncConnection, AsyncSession
from sqlalchemy.orm import selectinload

from blogcms.database import Base
from blogcms.models import Article, Category, Comment, Tag

EXPECTED_TABLES: tuple[str, ...] = tuple(sorted(Base.metadata.tables))


async def _count(db: AsyncSession, model, *conditions) -> int:
    q = select(func.count()).select_from(model).where(*conditions)
    return (await db.execute(q)).scalar_one()


async def get_stats(db: AsyncSession) -> dict:
    return {
        "total_articles": await _count(db, Article),
        "published_articles": await _count(db, Article, Article.published.is_(True)),
        "total_categories": await _count(db, Category),
        "total_tags": await _count(db, Tag),
        "total_comments": await _count(db, Comment),
        "pending_comments": await _count(db, Comment, Comment.approved.is_(False)),
    }


async def missing_tables(conn: AsyncConnection) -> list[str]:
    """Return the names of mapped tables absent from the connected database."""
    present = set(await conn.run_sync(lambda sync_conn: inspect(sync_conn).get_table_names()))
    return [name for name in EXPECTED_TABLES if name not in present]


async def recent_articles_overview(db: AsyncSession, limit: int = 3) -> list[dict]:
    """
    Summarise the most recent articles (any state) with their category and
    tag names, newest first.
    """
    rows = (
        await db.execute(
            select(Article)
            .options(selectinload(Article.categories), selectinload(Article.tags))
            .order_by(desc(Article.created_at), desc(Article.id))
            .limit(limit)
        )
    ).scalars().all()
    return [
        {
            "id": a.id,
            "title": a.title,
            "published": a.published,
            "categories": sorted(c.name for c in a.categories),
            "tags": sorted(t.name for t in a.tags),
        }
        for a in rows
    ]
