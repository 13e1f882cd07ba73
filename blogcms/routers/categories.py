from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.ext.asyncio import AsyncSession

from blogcms.database import get_db
from blogcms.dependencies import TermPagination, require_admin
from blogcms.models import Category
from blogcms.schemas import PaginatedResponse, TermCreate, TermResponse, TermUpdate
from blogcms.services import taxonomy_service

router = APIRouter(prefix="/api/v1/categories", tags=["categories"])

@router.get("", response_model=PaginatedResponse)
async def list_categories(
    q: str | None = Query(None, description="Substring of the name or slug."),
    pagination: TermPagination = Depends(),
    db: AsyncSession = Depends(get_db),
):
    return await taxonomy_service.list_terms(db, Category, q, pagination.page, pagination.limit)

@router.get("/{category_id}", response_model=TermResponse)
async def get_category(category_id: int, db: AsyncSession = Depends(get_db)):
    category = await taxonomy_service.get_term(db, Category, category_id)
    if not category:
        raise HTTPException(status_code=404, detail="Category not found")
    return category

@router.post("", status_code=201, response_model=TermResponse, dependencies=[Depends(require_admin)])
async def create_category(data: TermCreate, db: AsyncSession = Depends(get_db)):
    return await taxonomy_service.create_term(db, Category, data)

@router.put("/{category_id}", response_model=TermResponse, dependencies=[Depends(require_admin)])
async def update_category(category_id: int, data: TermUpdate, db: AsyncSession = Depends(get_db)):
    category = await taxonomy_service.update_term(db, Category, category_id, data)
    if not category:
        raise HTTPException(status_code=404, detail="Category not found")
    return category

@router.delete("/{category_id}", status_code=204, dependencies=[Depends(require_admin)])
async def delete_category(category_id: int, db: AsyncSession = Depends(get_db)):
    deleted = await taxonomy_service.delete_term(db, Category, category_id)
    if not deleted:
        raise HTTPException(status_code=404, detail="Category not found")
