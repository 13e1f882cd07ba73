from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.ext.asyncio import AsyncSession
from starlette.status import HTTP_401_UNAUTHORIZED

from blogcms.database import get_db
from blogcms.dependencies import CommentPagination, is_admin, require_admin
from blogcms.schemas import CommentApproval, CommentCreate, CommentResponse, PaginatedResponse
from blogcms.services import comment_service

router = APIRouter(prefix="/api/v1", tags=["comments"])

@router.get("/articles/{article_id}/comments", response_model=PaginatedResponse)
async def list_comments(
    article_id: int,
    approved: bool = Query(True, description="false lists the moderation queue (admin only)."),
    pagination: CommentPagination = Depends(),
    admin: bool = Depends(is_admin),
    db: AsyncSession = Depends(get_db),
):
    if not approved and not admin:
        raise HTTPException(
            status_code=HTTP_401_UNAUTHORIZED,
            detail="Unauthorized: invalid or missing X-API-Key",
        )
    page = await comment_service.list_comments(
        db, article_id, approved, pagination.page, pagination.limit
    )
    if page is None:
        raise HTTPException(status_code=404, detail="Article not found")
    return page

@router.post("/articles/{article_id}/comments", status_code=201, response_model=CommentResponse)
async def add_comment(article_id: int, data: CommentCreate, db: AsyncSession = Depends(get_db)):
    comment = await comment_service.add_comment(db, article_id, data)
    if not comment:
        raise HTTPException(status_code=404, detail="Article not found")
    return comment

@router.put(
    "/comments/{comment_id}/approve",
    response_model=CommentResponse,
    dependencies=[Depends(require_admin)],
)
async def approve_comment(comment_id: int, data: CommentApproval, db: AsyncSession = Depends(get_db)):
    comment = await comment_service.set_approval(db, comment_id, data.approved)
    if not comment:
        raise HTTPException(status_code=404, detail="Comment not found")
    return comment

@router.delete("/comments/{comment_id}", status_code=204, dependencies=[Depends(require_admin)])
async def delete_comment(comment_id: int, db: AsyncSession = Depends(get_db)):
    deleted = await comment_service.delete_comment(db, comment_id)
    if not deleted:
        raise HTTPException(status_code=404, detail="Comment not found")
