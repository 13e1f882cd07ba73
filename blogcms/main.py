import logging
import time
from contextlib import asynccontextmanager
from pathlib import Path

from fastapi import Depends, FastAPI, Request
from fastapi.exception_handlers import http_exception_handler
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from fastapi.staticfiles import StaticFiles
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession
from starlette.exceptions import HTTPException as StarletteHTTPException

from blogcms import __version__
from blogcms.cache import cache
from blogcms.config import settings
from blogcms.database import get_db
from blogcms.errors import BlogError, blog_error_handler, database_error_handler
from blogcms.middleware import TimingMiddleware
from blogcms.routers import articles, categories, comments, pages, stats, tags

VERSION = __version__

logging.basicConfig(
    level=settings.LOG_LEVEL.upper(),
    format="%(asctime)s %(levelname)-7s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)

_started_at = time.monotonic()


@asynccontextmanager
async def lifespan(app: FastAPI):
    # Startup; the app works without Redis, CacheManager logs and disables itself.
    await cache.connect()
    logger.info("Blog CMS started (env=%s)", settings.APP_ENV)
    yield
    # Shutdown
    await cache.disconnect()

app = FastAPI(
    title="Blog CMS API",
    description="Articles, categories, tags and comments with an admin-gated write path",
    version=VERSION,
    lifespan=lifespan,
)

# Middleware
app.add_middleware(TimingMiddleware)
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=False,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Error handling
app.add_exception_handler(BlogError, blog_error_handler)
app.add_exception_handler(SQLAlchemyError, database_error_handler)


@app.exception_handler(StarletteHTTPException)
async def not_found_page(request: Request, exc: StarletteHTTPException):
    """Render an HTML 404 for unknown page URLs; API paths keep JSON errors."""
    if exc.status_code != 404 or request.url.path.startswith("/api"):
        return await http_exception_handler(request, exc)
    return pages.templates.TemplateResponse(
        request,
        "404.html",
        {"page_title": "Not found", "path": request.url.path},
        status_code=404,
    )

# Routers
app.include_router(articles.router)
app.include_router(categories.router)
app.include_router(tags.router)
app.include_router(comments.router)
app.include_router(stats.router)
app.include_router(pages.router)

app.mount(
    "/static",
    StaticFiles(directory=str(Path(__file__).resolve().parent / "static")),
    name="static",
)

@app.get("/health")
async def health(db: AsyncSession = Depends(get_db)):
    try:
        await db.execute(text("SELECT 1"))
    except SQLAlchemyError as exc:
        logger.error("Health check failed: %s", exc)
        await db.rollback()
        return JSONResponse(status_code=503, content={"status": "unhealthy", "error": str(exc)})
    return {
        "status": "healthy",
        "version": VERSION,
        "uptime_seconds": round(time.monotonic() - _started_at, 1),
    }
