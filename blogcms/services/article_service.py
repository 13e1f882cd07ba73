"""
Article service: business logic for the Article aggregate.

Design notes
------------
- Listings are assembled from optional filters: each supplied filter
  appends one condition, and the same condition list drives both the
  COUNT and the page query so ``total`` always describes the filtered set.
- Public listing pages go through the cache-aside pattern (Redis, then
  DB).  Cache keys encode every parameter that shapes the page.  Detail
  reads are never cached because each one bumps the view counter.
- ``selectinload`` is used for categories and tags to avoid N+1 queries;
  the approved-comment count is a correlated scalar subquery selected
  alongside each article.
- Category/tag links are reconciled with plain INSERT/DELETE statements
  on the join tables: only the difference between the stored set and
  the requested set is written.
- Service functions flush but do not commit; the transaction boundary
  is owned by the ``get_db`` dependency in the router layer.
"""
import logging
from datetime import datetime, timezone

from sqlalchemy import Table, and_, asc, delete, desc, func, insert, or_, select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from blogcms.cache import cache
from blogcms.config import settings
from blogcms.errors import InvalidInputError
from blogcms.models import Article, Category, Comment, Tag, article_categories, article_tags
from blogcms.schemas import ArticleCreate, ArticleUpdate, PaginatedResponse
from blogcms.services import taxonomy_service
from blogcms.slugs import slugify

logger = logging.getLogger(__name__)

EXCERPT_LENGTH = 200

SORT_OPTIONS: frozenset[str] = frozenset({"recent", "oldest", "popular", "views", "title"})

# Approved comments per article, selected next to each Article row.
_comments_count = (
    select(func.count(Comment.id))
    .where(Comment.article_id == Article.id, Comment.approved.is_(True))
    .correlate(Article)
    .scalar_subquery()
    .label("comments_count")
)


# ---------------------------------------------------------------------------
# Query construction helpers
# ---------------------------------------------------------------------------

def _article_filters(
    *,
    include_drafts: bool = False,
    category_id: int | None = None,
    category: str | None = None,
    tag: str | None = None,
    q: str | None = None,
) -> list:
    """Translate the optional listing filters into a list of WHERE conditions."""
    conditions = []
    if not include_drafts:
        conditions.append(Article.published.is_(True))
    if category_id is not None:
        conditions.append(Article.categories.any(Category.id == category_id))
    if category:
        conditions.append(Article.categories.any(Category.slug == category))
    if tag:
        conditions.append(Article.tags.any(Tag.slug == tag))
    if q and q.strip():
        needle = q.strip()
        conditions.append(
            or_(
                Article.title.icontains(needle, autoescape=True),
                Article.content.icontains(needle, autoescape=True),
                Article.tags.any(Tag.name.icontains(needle, autoescape=True)),
                Article.categories.any(Category.name.icontains(needle, autoescape=True)),
            )
        )
    return conditions


def _order_by(sort: str) -> list:
    """
    Return ORDER BY expressions for *sort*.

    Unknown values fall back to ``recent``.  Every ordering ends with
    ``id`` so rows sharing a timestamp keep a stable position across pages.
    """
    if sort == "oldest":
        return [asc(Article.created_at), asc(Article.id)]
    if sort == "popular":
        return [desc(_comments_count), desc(Article.created_at), desc(Article.id)]
    if sort == "views":
        return [desc(Article.view_count), desc(Article.created_at), desc(Article.id)]
    if sort == "title":
        return [asc(Article.title), asc(Article.id)]
    return [desc(Article.created_at), desc(Article.id)]


def _article_query():
    return select(Article, _comments_count).options(
        selectinload(Article.categories), selectinload(Article.tags)
    )


async def _load_article(db: AsyncSession, *conditions) -> tuple[Article, int] | None:
    """Fetch one article with its terms and comment count, refreshing any stale identity."""
    q = _article_query().where(*conditions).execution_options(populate_existing=True)
    row = (await db.execute(q)).one_or_none()
    if row is None:
        return None
    return row[0], row[1]


async def _unique_slug(db: AsyncSession, title: str, exclude_id: int | None = None) -> str:
    """
    Slugify *title* and append the first free numeric suffix when another
    article already uses the slug.
    """
    base = slugify(title)
    if not base:
        raise InvalidInputError("Article title must contain at least one letter or digit.")

    q = select(Article.slug).where(or_(Article.slug == base, Article.slug.like(f"{base}-%")))
    if exclude_id is not None:
        q = q.where(Article.id != exclude_id)
    taken = set((await db.execute(q)).scalars())

    slug, n = base, 2
    while slug in taken:
        slug = f"{base}-{n}"
        n += 1
    return slug


async def _sync_links(
    db: AsyncSession, table: Table, column: str, article_id: int, wanted: list[int]
) -> None:
    """
    Make the article's link rows in *table* match *wanted* exactly,
    inserting the missing pairs and deleting the ones no longer requested.
    """
    current = set(
        (
            await db.execute(select(table.c[column]).where(table.c.article_id == article_id))
        ).scalars()
    )
    to_add = [i for i in wanted if i not in current]
    to_remove = current - set(wanted)

    if to_remove:
        await db.execute(
            delete(table).where(
                and_(table.c.article_id == article_id, table.c[column].in_(to_remove))
            )
        )
    if to_add:
        await db.execute(
            insert(table), [{"article_id": article_id, column: i} for i in to_add]
        )


# ---------------------------------------------------------------------------
# Serialisation helpers
# ---------------------------------------------------------------------------

def _excerpt(content: str) -> str:
    if len(content) <= EXCERPT_LENGTH:
        return content
    return content[:EXCERPT_LENGTH].rstrip() + "…"


def _term_list(terms) -> list[dict]:
    return [{"id": t.id, "name": t.name, "slug": t.slug} for t in sorted(terms, key=lambda t: t.name)]


def _iso(value) -> str | None:
    return value.isoformat() if value else None


def _article_to_dict(article: Article, comments_count: int) -> dict:
    """Serialise an Article ORM instance to a plain dict (list view)."""
    return {
        "id": article.id,
        "title": article.title,
        "slug": article.slug,
        "excerpt": _excerpt(article.content),
        "published": article.published,
        "view_count": article.view_count,
        "created_at": _iso(article.created_at),
        "updated_at": _iso(article.updated_at),
        "categories": _term_list(article.categories),
        "tags": _term_list(article.tags),
        "comments_count": comments_count,
    }


def comment_to_dict(comment: Comment) -> dict:
    return {
        "id": comment.id,
        "article_id": comment.article_id,
        "author": comment.author,
        "content": comment.content,
        "approved": comment.approved,
        "created_at": _iso(comment.created_at),
    }


async def _article_detail(db: AsyncSession, article: Article, comments_count: int) -> dict:
    """Serialise an Article to its detail dict, adding content and recent approved comments."""
    data = _article_to_dict(article, comments_count)
    data["content"] = article.content
    comments = (
        await db.execute(
            select(Comment)
            .where(Comment.article_id == article.id, Comment.approved.is_(True))
            .order_by(desc(Comment.created_at), desc(Comment.id))
            .limit(settings.COMMENTS_PREVIEW_LIMIT)
        )
    ).scalars().all()
    data["comments"] = [comment_to_dict(c) for c in comments]
    return data


# ---------------------------------------------------------------------------
# Public service functions
# ---------------------------------------------------------------------------

async def list_articles(
    db: AsyncSession,
    page: int = 1,
    limit: int = 10,
    sort: str = "recent",
    category_id: int | None = None,
    category: str | None = None,
    tag: str | None = None,
    q: str | None = None,
    include_drafts: bool = False,
) -> PaginatedResponse:
    """
    Return one page of articles matching the supplied filters.

    Two SQL statements (plus the selectin loads for terms) are issued on
    a cache miss:
    1. COUNT of the filtered set.
    2. SELECT of the page with LIMIT/OFFSET and the comment count.
    """
    if sort not in SORT_OPTIONS:
        sort = "recent"
    q = q.strip() if q else None

    cache_key = None
    if not include_drafts:
        cache_key = cache.listing_key(
            page=page, limit=limit, sort=sort, category_id=category_id,
            category=category, tag=tag, q=q,
        )
        cached = await cache.get(cache_key)
        if cached:
            return PaginatedResponse(**cached)

    conditions = _article_filters(
        include_drafts=include_drafts, category_id=category_id, category=category, tag=tag, q=q
    )

    # 1. Total count of the filtered set
    total: int = (
        await db.execute(select(func.count()).select_from(Article).where(*conditions))
    ).scalar_one()

    # 2. Requested page
    rows = (
        await db.execute(
            _article_query()
            .where(*conditions)
            .order_by(*_order_by(sort))
            .offset((page - 1) * limit)
            .limit(limit)
        )
    ).all()

    response = PaginatedResponse.build(
        [_article_to_dict(article, count) for article, count in rows], total, page, limit
    )
    if cache_key is not None:
        await cache.set(cache_key, response.model_dump(), ttl=settings.CACHE_TTL_LIST)
    return response


async def _record_view(db: AsyncSession, article_id: int) -> bool:
    """
    Bump the article's view counter.

    Best effort: a failure is logged and swallowed so the read that
    triggered it still succeeds.
    """
    try:
        await db.execute(
            update(Article)
            .where(Article.id == article_id)
            .values(view_count=Article.view_count + 1, updated_at=Article.updated_at)
            .execution_options(synchronize_session=False)
        )
    except SQLAlchemyError as exc:
        logger.warning("View count increment failed for article %s: %s", article_id, exc)
        return False
    return True


async def _get_by(
    db: AsyncSession, condition, include_drafts: bool, count_view: bool
) -> dict | None:
    conditions = [condition]
    if not include_drafts:
        conditions.append(Article.published.is_(True))
    loaded = await _load_article(db, *conditions)
    if loaded is None:
        return None

    article, comments_count = loaded
    data = await _article_detail(db, article, comments_count)
    if count_view and article.published and await _record_view(db, article.id):
        data["view_count"] += 1
    return data


async def get_article(
    db: AsyncSession, article_id: int, include_drafts: bool = False, count_view: bool = True
) -> dict | None:
    """
    Return the full detail dict for *article_id*, counting the view.

    Returns None when the article does not exist, or is a draft and
    *include_drafts* is False.
    """
    return await _get_by(db, Article.id == article_id, include_drafts, count_view)


async def get_article_by_slug(
    db: AsyncSession, slug: str, include_drafts: bool = False, count_view: bool = True
) -> dict | None:
    return await _get_by(db, Article.slug == slug, include_drafts, count_view)


async def create_article(db: AsyncSession, data: ArticleCreate) -> dict:
    """
    Create a new article, link its categories and tags, and return its
    full detail dict.

    Raises ``InvalidInputError`` for an unusable title or unknown term ids.
    """
    category_ids = await taxonomy_service.resolve_ids(db, Category, data.category_ids)
    tag_ids = await taxonomy_service.resolve_ids(db, Tag, data.tag_ids)

    article = Article(
        title=data.title,
        slug=await _unique_slug(db, data.title),
        content=data.content,
        published=data.published,
    )
    db.add(article)
    await db.flush()

    await _sync_links(db, article_categories, "category_id", article.id, category_ids)
    await _sync_links(db, article_tags, "tag_id", article.id, tag_ids)

    cache.mark_listings_stale(db)
    logger.info("Created article id=%s slug=%s", article.id, article.slug)

    article, comments_count = await _load_article(db, Article.id == article.id)
    return await _article_detail(db, article, comments_count)


async def update_article(
    db: AsyncSession, article_id: int, data: ArticleUpdate
) -> dict | None:
    """
    Partially update an existing article and return its updated detail dict.

    Returns None when the article does not exist.
    Only fields explicitly set in the request payload are modified
    (``model_dump(exclude_unset=True)``); a new title regenerates the slug,
    and a supplied ``category_ids``/``tag_ids`` list replaces the link set.
    """
    article = await db.get(Article, article_id)
    if article is None:
        return None

    update_data = data.model_dump(exclude_unset=True)
    category_ids = update_data.pop("category_ids", None)
    tag_ids = update_data.pop("tag_ids", None)
    # Explicit nulls on non-nullable columns mean "leave unchanged".
    update_data = {k: v for k, v in update_data.items() if v is not None}

    if category_ids is not None:
        category_ids = await taxonomy_service.resolve_ids(db, Category, category_ids)
    if tag_ids is not None:
        tag_ids = await taxonomy_service.resolve_ids(db, Tag, tag_ids)

    if "title" in update_data:
        article.slug = await _unique_slug(db, update_data["title"], exclude_id=article_id)
    for field, value in update_data.items():
        setattr(article, field, value)

    if category_ids is not None:
        await _sync_links(db, article_categories, "category_id", article_id, category_ids)
    if tag_ids is not None:
        await _sync_links(db, article_tags, "tag_id", article_id, tag_ids)

    # Link-only edits must still move updated_at.
    if not update_data and (category_ids is not None or tag_ids is not None):
        article.updated_at = datetime.now(timezone.utc)

    await db.flush()
    cache.mark_listings_stale(db)

    article, comments_count = await _load_article(db, Article.id == article_id)
    return await _article_detail(db, article, comments_count)


async def delete_article(db: AsyncSession, article_id: int) -> bool:
    """
    Delete the article identified by *article_id* together with its
    comments and category/tag links.

    Returns True on success, False when the article does not exist.
    """
    exists = (
        await db.execute(select(Article.id).where(Article.id == article_id))
    ).scalar_one_or_none()
    if exists is None:
        return False

    await db.execute(delete(Comment).where(Comment.article_id == article_id))
    await db.execute(delete(article_categories).where(article_categories.c.article_id == article_id))
    await db.execute(delete(article_tags).where(article_tags.c.article_id == article_id))
    await db.execute(delete(Article).where(Article.id == article_id))

    cache.mark_listings_stale(db)
    logger.info("Deleted article id=%s", article_id)
    return True
