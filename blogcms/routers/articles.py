from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.ext.asyncio import AsyncSession
from starlette.status import HTTP_401_UNAUTHORIZED

from blogcms.database import get_db
from blogcms.dependencies import ArticlePagination, is_admin, require_admin
from blogcms.schemas import ArticleCreate, ArticleDetail, ArticleUpdate, PaginatedResponse
from blogcms.services import article_service

router = APIRouter(prefix="/api/v1/articles", tags=["articles"])

@router.get("", response_model=PaginatedResponse)
async def list_articles(
    pagination: ArticlePagination = Depends(),
    sort: str = Query("recent", description="recent | oldest | popular | views | title"),
    q: str | None = Query(None, description="Search in title, content, tag and category names."),
    category_id: int | None = Query(None, ge=1),
    category: str | None = Query(None, description="Category slug."),
    tag: str | None = Query(None, description="Tag slug."),
    include_drafts: bool = Query(False, description="Admin only."),
    admin: bool = Depends(is_admin),
    db: AsyncSession = Depends(get_db),
):
    if include_drafts and not admin:
        raise HTTPException(
            status_code=HTTP_401_UNAUTHORIZED,
            detail="Unauthorized: invalid or missing X-API-Key",
        )
    return await article_service.list_articles(
        db,
        pagination.page,
        pagination.limit,
        sort=sort,
        category_id=category_id,
        category=category,
        tag=tag,
        q=q,
        include_drafts=include_drafts,
    )

@router.get("/by-slug/{slug}", response_model=ArticleDetail)
async def get_article_by_slug(
    slug: str, admin: bool = Depends(is_admin), db: AsyncSession = Depends(get_db)
):
    article = await article_service.get_article_by_slug(db, slug, include_drafts=admin)
    if not article:
        raise HTTPException(status_code=404, detail="Article not found")
    return article

@router.get("/{article_id}", response_model=ArticleDetail)
async def get_article(
    article_id: int, admin: bool = Depends(is_admin), db: AsyncSession = Depends(get_db)
):
    article = await article_service.get_article(db, article_id, include_drafts=admin)
    if not article:
        raise HTTPException(status_code=404, detail="Article not found")
    return article

@router.post("", status_code=201, response_model=ArticleDetail, dependencies=[Depends(require_admin)])
async def create_article(data: ArticleCreate, db: AsyncSession = Depends(get_db)):
    return await article_service.create_article(db, data)

@router.put("/{article_id}", response_model=ArticleDetail, dependencies=[Depends(require_admin)])
async def update_article(article_id: int, data: ArticleUpdate, db: AsyncSession = Depends(get_db)):
    article = await article_service.update_article(db, article_id, data)
    if not article:
        raise HTTPException(status_code=404, detail="Article not found")
    return article

@router.delete("/{article_id}", status_code=204, dependencies=[Depends(require_admin)])
async def delete_article(article_id: int, db: AsyncSession = Depends(get_db)):
    deleted = await article_service.delete_article(db, article_id)
    if not deleted:
        raise HTTPException(status_code=404, detail="Article not found")
