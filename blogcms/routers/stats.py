from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from blogcms.cache import cache
from blogcms.database import get_db
from blogcms.schemas import StatsResponse
from blogcms.services import stats_service

router = APIRouter(prefix="/api/v1/stats", tags=["stats"])

@router.get("", response_model=StatsResponse)
async def get_stats(db: AsyncSession = Depends(get_db)):
    counts = await stats_service.get_stats(db)
    return StatsResponse(**counts, cache_info=cache.stats)
