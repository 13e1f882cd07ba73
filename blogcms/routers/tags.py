from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.ext.asyncio import AsyncSession

from blogcms.database import get_db
from blogcms.dependencies import TermPagination, require_admin
from blogcms.models import Tag
from blogcms.schemas import PaginatedResponse, TermCreate, TermResponse, TermUpdate
from blogcms.services import taxonomy_service

router = APIRouter(prefix="/api/v1/tags", tags=["tags"])

@router.get("", response_model=PaginatedResponse)
async def list_tags(
    q: str | None = Query(None, description="Substring of the name or slug."),
    pagination: TermPagination = Depends(),
    db: AsyncSession = Depends(get_db),
):
    return await taxonomy_service.list_terms(db, Tag, q, pagination.page, pagination.limit)

@router.get("/{tag_id}", response_model=TermResponse)
async def get_tag(tag_id: int, db: AsyncSession = Depends(get_db)):
    tag = await taxonomy_service.get_term(db, Tag, tag_id)
    if not tag:
        raise HTTPException(status_code=404, detail="Tag not found")
    return tag

@router.post("", status_code=201, response_model=TermResponse, dependencies=[Depends(require_admin)])
async def create_tag(data: TermCreate, db: AsyncSession = Depends(get_db)):
    return await taxonomy_service.create_term(db, Tag, data)

@router.put("/{tag_id}", response_model=TermResponse, dependencies=[Depends(require_admin)])
async def update_tag(tag_id: int, data: TermUpdate, db: AsyncSession = Depends(get_db)):
    tag = await taxonomy_service.update_term(db, Tag, tag_id, data)
    if not tag:
        raise HTTPException(status_code=404, detail="Tag not found")
    return tag

@router.delete("/{tag_id}", status_code=204, dependencies=[Depends(require_admin)])
async def delete_tag(tag_id: int, db: AsyncSession = Depends(get_db)):
    deleted = await taxonomy_service.delete_term(db, Tag, tag_id)
    if not deleted:
        raise HTTPException(status_code=404, detail="Tag not found")
