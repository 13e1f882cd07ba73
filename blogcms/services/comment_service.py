"""
Comment service: reader comments and their moderation.

Readers may comment on published articles only.  Whether a new comment
is visible straight away is governed by ``COMMENTS_AUTO_APPROVE``;
admins can flip the ``approved`` flag or delete a comment afterwards.
Every write invalidates cached listings because they embed the
approved-comment count (and ``sort=popular`` orders by it).
"""
import logging

from sqlalchemy import delete, desc, func, select
from sqlalchemy.ext.asyncio import AsyncSession

from blogcms.cache import cache
from blogcms.config import settings
from blogcms.errors import InvalidInputError
from blogcms.models import Article, Comment
from blogcms.schemas import CommentCreate, PaginatedResponse
from blogcms.services.article_service import comment_to_dict

logger = logging.getLogger(__name__)


async def _published_article_exists(db: AsyncSession, article_id: int) -> bool:
    q = select(Article.id).where(Article.id == article_id, Article.published.is_(True))
    return (await db.execute(q)).scalar_one_or_none() is not None


async def list_comments(
    db: AsyncSession,
    article_id: int,
    approved: bool = True,
    page: int = 1,
    limit: int = 20,
) -> PaginatedResponse | None:
    """
    Return one page of the article's comments with the given approval
    state, newest first.

    Returns None when the article does not exist or is unpublished.
    """
    if not await _published_article_exists(db, article_id):
        return None

    conditions = [Comment.article_id == article_id, Comment.approved.is_(approved)]
    total: int = (
        await db.execute(select(func.count()).select_from(Comment).where(*conditions))
    ).scalar_one()
    comments = (
        await db.execute(
            select(Comment)
            .where(*conditions)
            .order_by(desc(Comment.created_at), desc(Comment.id))
            .offset((page - 1) * limit)
            .limit(limit)
        )
    ).scalars().all()

    return PaginatedResponse.build([comment_to_dict(c) for c in comments], total, page, limit)


async def add_comment(
    db: AsyncSession,
    article_id: int,
    data: CommentCreate,
) -> dict | None:
    """
    Append a new comment to the published article identified by *article_id*.

    Returns the serialised comment dict on success, or None when the
    target article does not exist or is unpublished.  A filled-in
    honeypot field raises ``InvalidInputError``.
    """
    if not await _published_article_exists(db, article_id):
        return None

    if data.hp and data.hp.strip():
        logger.info("Rejected comment on article %s: honeypot filled", article_id)
        raise InvalidInputError("Invalid request.")

    comment = Comment(
        article_id=article_id,
        author=data.author,
        content=data.content,
        approved=settings.COMMENTS_AUTO_APPROVE,
    )
    db.add(comment)
    await db.flush()

    cache.mark_listings_stale(db)
    return comment_to_dict(comment)


async def set_approval(db: AsyncSession, comment_id: int, approved: bool) -> dict | None:
    """Set the comment's approval flag.  Returns None when it does not exist."""
    comment = await db.get(Comment, comment_id)
    if comment is None:
        return None

    comment.approved = approved
    await db.flush()
    cache.mark_listings_stale(db)
    logger.info("Comment id=%s approved=%s", comment_id, approved)
    return comment_to_dict(comment)


async def delete_comment(db: AsyncSession, comment_id: int) -> bool:
    """Delete the comment.  Returns False when it does not exist."""
    result = await db.execute(delete(Comment).where(Comment.id == comment_id))
    if result.rowcount == 0:
        return False

    cache.mark_listings_stale(db)
    logger.info("Deleted comment id=%s", comment_id)
    return True
