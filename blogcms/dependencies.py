import secrets

from fastapi import Header, HTTPException, Query
from starlette.status import HTTP_401_UNAUTHORIZED

from blogcms.config import settings


class PaginationParams:
    """
    Reusable FastAPI dependency that parses pagination query parameters.

    Usage in a router::

        @router.get("/articles")
        async def list_articles(pagination: ArticlePagination = Depends()):
            ...

    Subclasses set ``default_limit`` and ``max_limit`` per resource.

    Attributes
    ----------
    page:
        1-based page number (minimum 1).
    limit:
        Number of items per page.  Values above ``max_limit`` are clamped
        rather than rejected, so an oversized request still gets a page.
    offset:
        Computed SQL OFFSET derived from *page* and *limit*.
    """

    default_limit: int = settings.TERMS_PAGE_SIZE
    max_limit: int = settings.TERMS_MAX_PAGE_SIZE

    def __init__(
        self,
        page: int = Query(
            1,
            ge=1,
            description="Page number (1-based).",
        ),
        limit: int | None = Query(
            None,
            ge=1,
            description="Number of items returned per page (clamped to the resource maximum).",
        ),
    ) -> None:
        self.page = page
        self.limit = min(limit or self.default_limit, self.max_limit)

    @property
    def offset(self) -> int:
        """SQL OFFSET value computed from the current page and limit."""
        return (self.page - 1) * self.limit


class ArticlePagination(PaginationParams):
    default_limit = settings.ARTICLES_PAGE_SIZE
    max_limit = settings.ARTICLES_MAX_PAGE_SIZE


class TermPagination(PaginationParams):
    default_limit = settings.TERMS_PAGE_SIZE
    max_limit = settings.TERMS_MAX_PAGE_SIZE


class CommentPagination(PaginationParams):
    default_limit = settings.COMMENTS_PAGE_SIZE
    max_limit = settings.COMMENTS_MAX_PAGE_SIZE


# ---------------------------------------------------------------------------
# Admin gate
# ---------------------------------------------------------------------------

def _key_matches(candidate: str | None) -> bool:
    expected = settings.ADMIN_API_KEY
    if not expected or not candidate:
        return False
    return secrets.compare_digest(candidate.encode(), expected.encode())


async def is_admin(x_api_key: str | None = Header(None)) -> bool:
    """True when the request carries the configured admin key."""
    return _key_matches(x_api_key)


async def require_admin(x_api_key: str | None = Header(None)) -> None:
    """Reject the request with 401 unless ``X-API-Key`` matches ``ADMIN_API_KEY``."""
    if not _key_matches(x_api_key):
        raise HTTPException(
            status_code=HTTP_401_UNAUTHORIZED,
            detail="Unauthorized: invalid or missing X-API-Key",
        )
