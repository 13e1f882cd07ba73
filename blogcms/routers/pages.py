"""
Server-rendered pages.

These handlers call the same service functions as the JSON API, so the
HTML views and ``/api/v1/articles`` always agree on filtering, ordering
and visibility rules.
"""
from pathlib import Path

from fastapi import APIRouter, Depends, Query, Request
from fastapi.responses import HTMLResponse
from fastapi.templating import Jinja2Templates
from sqlalchemy.ext.asyncio import AsyncSession

from blogcms.config import settings
from blogcms.database import get_db
from blogcms.dependencies import ArticlePagination
from blogcms.services import article_service

TEMPLATES_DIR = Path(__file__).resolve().parent.parent / "templates"

templates = Jinja2Templates(directory=str(TEMPLATES_DIR))
templates.env.globals["site_name"] = settings.SITE_NAME

router = APIRouter(tags=["pages"], include_in_schema=False)

# Upper bound of the INTEGER primary key column.
_MAX_ID = 2**31 - 1


def _parse_id(raw: str) -> int | None:
    if not (raw.isascii() and raw.isdigit()):
        return None
    value = int(raw)
    return value if 1 <= value <= _MAX_ID else None


@router.get("/", response_class=HTMLResponse)
async def home(request: Request, db: AsyncSession = Depends(get_db)):
    listing = await article_service.list_articles(db, page=1, limit=settings.ARTICLES_PAGE_SIZE)
    return templates.TemplateResponse(
        request,
        "index.html",
        {"page_title": "Home", "listing": listing, "query": "", "filters": {}},
    )


@router.get("/articles", response_class=HTMLResponse)
async def article_list(
    request: Request,
    pagination: ArticlePagination = Depends(),
    q: str | None = Query(None),
    tag: str | None = Query(None),
    category: str | None = Query(None),
    category_id: int | None = Query(None, ge=1),
    sort: str = Query("recent"),
    db: AsyncSession = Depends(get_db),
):
    listing = await article_service.list_articles(
        db,
        pagination.page,
        pagination.limit,
        sort=sort,
        category_id=category_id,
        category=category,
        tag=tag,
        q=q,
    )
    # Carried into pagination links so "next page" keeps the same filters.
    filters = {
        name: value
        for name, value in {
            "q": q, "tag": tag, "category": category, "category_id": category_id, "sort": sort,
        }.items()
        if value
    }
    return templates.TemplateResponse(
        request,
        "index.html",
        {"page_title": "Articles", "listing": listing, "query": q or "", "filters": filters},
    )


@router.get("/articles/{article_id}", response_class=HTMLResponse)
async def article_page(request: Request, article_id: str, db: AsyncSession = Depends(get_db)):
    # Taken as text so a malformed id still gets an HTML page.
    parsed = _parse_id(article_id)
    if parsed is None:
        return templates.TemplateResponse(
            request,
            "article.html",
            {"page_title": "Invalid article id", "article": None, "invalid_id": article_id},
            status_code=400,
        )

    article = await article_service.get_article(db, parsed)
    if article is None:
        return templates.TemplateResponse(
            request,
            "article.html",
            {"page_title": "Not found", "article": None},
            status_code=404,
        )
    return templates.TemplateResponse(
        request,
        "article.html",
        {"page_title": article["title"], "article": article},
    )
