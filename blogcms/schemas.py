import math
from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field


# --- Category / Tag ---

class TermBase(BaseModel):
    model_config = ConfigDict(str_strip_whitespace=True)

    name: str = Field(min_length=1, max_length=100)


class TermCreate(TermBase):
    pass


class TermUpdate(TermBase):
    pass


class TermResponse(BaseModel):
    id: int
    name: str
    slug: str
    model_config = ConfigDict(from_attributes=True)


# --- Comment ---

class CommentCreate(BaseModel):
    model_config = ConfigDict(str_strip_whitespace=True)

    author: str = Field(min_length=2, max_length=80)
    content: str = Field(min_length=2, max_length=2000)
    # Honeypot: rendered as a hidden field, humans leave it empty.
    hp: str | None = None


class CommentApproval(BaseModel):
    approved: bool


class CommentResponse(BaseModel):
    id: int
    article_id: int
    author: str
    content: str
    approved: bool
    created_at: datetime
    model_config = ConfigDict(from_attributes=True)


# --- Article ---

class ArticleCreate(BaseModel):
    model_config = ConfigDict(str_strip_whitespace=True)

    title: str = Field(min_length=1, max_length=200)
    content: str = Field(min_length=1)
    published: bool = False
    category_ids: list[int] = []
    tag_ids: list[int] = []


class ArticleUpdate(BaseModel):
    model_config = ConfigDict(str_strip_whitespace=True)

    title: str | None = Field(None, min_length=1, max_length=200)
    content: str | None = Field(None, min_length=1)
    published: bool | None = None
    category_ids: list[int] | None = None
    tag_ids: list[int] | None = None


class ArticleResponse(BaseModel):
    id: int
    title: str
    slug: str
    excerpt: str
    published: bool
    view_count: int
    created_at: datetime
    updated_at: datetime
    categories: list[TermResponse] = []
    tags: list[TermResponse] = []
    comments_count: int = 0


class ArticleDetail(ArticleResponse):
    content: str
    comments: list[CommentResponse] = []


# --- Pagination ---

class PaginatedResponse(BaseModel):
    items: list  # Will be typed in router
    total: int
    page: int
    limit: int
    pages: int

    @classmethod
    def build(cls, items: list, total: int, page: int, limit: int) -> "PaginatedResponse":
        return cls(
            items=items,
            total=total,
            page=page,
            limit=limit,
            pages=math.ceil(total / limit) if total > 0 else 0,
        )


# --- Stats ---

class StatsResponse(BaseModel):
    total_articles: int
    published_articles: int
    total_categories: int
    total_tags: int
    total_comments: int
    pending_comments: int
    cache_info: dict = {}
