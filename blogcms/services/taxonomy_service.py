"""
Taxonomy service: CRUD for the two flat term vocabularies, Category and Tag.

Both entities share one contract (unique name, unique slug derived from
the name, deletion refused while any article links to them), so every
function takes the ORM class as its second argument.  Routers pass
``Category`` or ``Tag`` explicitly.

Service functions flush but do not commit; the transaction boundary is
owned by the ``get_db`` dependency in the router layer.
"""
import logging

from sqlalchemy import Table, delete, func, or_, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from blogcms.cache import cache
from blogcms.errors import ConflictError, InvalidInputError
from blogcms.models import Category, Tag, article_categories, article_tags
from blogcms.schemas import PaginatedResponse, TermCreate, TermUpdate
from blogcms.slugs import slugify

logger = logging.getLogger(__name__)

TermModel = type[Category] | type[Tag]

# Link table and its term-side column, per vocabulary.
_LINKS: dict[type, tuple[Table, str]] = {
    Category: (article_categories, "category_id"),
    Tag: (article_tags, "tag_id"),
}


def _term_to_dict(term: Category | Tag) -> dict:
    return {"id": term.id, "name": term.name, "slug": term.slug}


def _slug_for(model: TermModel, name: str) -> str:
    slug = slugify(name)
    if not slug:
        raise InvalidInputError(
            f"{model.__name__} name must contain at least one letter or digit."
        )
    return slug


async def _ensure_unique(
    db: AsyncSession, model: TermModel, name: str, slug: str, exclude_id: int | None = None
) -> None:
    q = select(model.id).where(or_(model.name == name, model.slug == slug))
    if exclude_id is not None:
        q = q.where(model.id != exclude_id)
    if (await db.execute(q.limit(1))).first() is not None:
        raise ConflictError(f"This {model.__name__.lower()} already exists (name/slug).")


async def _flush(db: AsyncSession, model: TermModel) -> None:
    # A concurrent writer can still win the race between the pre-check and
    # the INSERT/UPDATE; the unique constraints catch it here.
    try:
        await db.flush()
    except IntegrityError as exc:
        raise ConflictError(f"This {model.__name__.lower()} already exists (name/slug).") from exc


# ---------------------------------------------------------------------------
# Public service functions
# ---------------------------------------------------------------------------

async def list_terms(
    db: AsyncSession,
    model: TermModel,
    q: str | None = None,
    page: int = 1,
    limit: int = 50,
) -> PaginatedResponse:
    """
    Return terms ordered by name, optionally filtered by a case-insensitive
    substring match on name or slug.
    """
    conditions = []
    if q and q.strip():
        needle = q.strip()
        conditions.append(
            or_(
                model.name.icontains(needle, autoescape=True),
                model.slug.icontains(needle, autoescape=True),
            )
        )

    total: int = (
        await db.execute(select(func.count()).select_from(model).where(*conditions))
    ).scalar_one()

    rows = (
        await db.execute(
            select(model)
            .where(*conditions)
            .order_by(model.name.asc())
            .offset((page - 1) * limit)
            .limit(limit)
        )
    ).scalars().all()

    return PaginatedResponse.build([_term_to_dict(t) for t in rows], total, page, limit)


async def get_term(db: AsyncSession, model: TermModel, term_id: int) -> dict | None:
    term = await db.get(model, term_id)
    return _term_to_dict(term) if term is not None else None


async def create_term(db: AsyncSession, model: TermModel, data: TermCreate) -> dict:
    """
    Create a term and return its dict.

    Raises ``InvalidInputError`` when the name yields an empty slug and
    ``ConflictError`` when the name or slug is already taken.
    """
    slug = _slug_for(model, data.name)
    await _ensure_unique(db, model, data.name, slug)

    term = model(name=data.name, slug=slug)
    db.add(term)
    await _flush(db, model)
    logger.info("Created %s id=%s slug=%s", model.__name__.lower(), term.id, term.slug)
    return _term_to_dict(term)


async def update_term(
    db: AsyncSession, model: TermModel, term_id: int, data: TermUpdate
) -> dict | None:
    """
    Rename a term, regenerating its slug.

    Returns None when the term does not exist.  Cached listings embed
    term names, so they are invalidated.
    """
    term = await db.get(model, term_id)
    if term is None:
        return None

    slug = _slug_for(model, data.name)
    await _ensure_unique(db, model, data.name, slug, exclude_id=term_id)

    term.name = data.name
    term.slug = slug
    await _flush(db, model)
    cache.mark_listings_stale(db)
    return _term_to_dict(term)


async def count_links(db: AsyncSession, model: TermModel, term_id: int) -> int:
    """Number of articles currently linked to the term."""
    table, column = _LINKS[model]
    return (
        await db.execute(
            select(func.count()).select_from(table).where(table.c[column] == term_id)
        )
    ).scalar_one()


async def delete_term(db: AsyncSession, model: TermModel, term_id: int) -> bool:
    """
    Delete the term identified by *term_id*.

    Returns False when the term does not exist.  Raises ``ConflictError``
    (carrying ``article_count``) while any article still links to it.
    """
    term = await db.get(model, term_id)
    if term is None:
        return False

    used = await count_links(db, model, term_id)
    if used > 0:
        raise ConflictError(
            f"{model.__name__} is used by {used} article(s); remove those links first.",
            article_count=used,
        )

    await db.execute(delete(model).where(model.id == term_id))
    cache.mark_listings_stale(db)
    logger.info("Deleted %s id=%s", model.__name__.lower(), term_id)
    return True


async def resolve_ids(db: AsyncSession, model: TermModel, ids: list[int]) -> list[int]:
    """
    De-duplicate *ids* (keeping order) and check that every one exists.

    Raises ``InvalidInputError`` naming the unknown ids.
    """
    wanted = list(dict.fromkeys(ids))
    if not wanted:
        return []
    found = set((await db.execute(select(model.id).where(model.id.in_(wanted)))).scalars())
    missing = [i for i in wanted if i not in found]
    if missing:
        raise InvalidInputError(
            f"Unknown {model.__name__.lower()} id(s): {', '.join(map(str, missing))}",
        )
    return wanted
