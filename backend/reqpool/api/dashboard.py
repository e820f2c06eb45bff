"""
仪表盘 API
"""
from typing import Dict

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession
from pydantic import BaseModel

from reqpool.core.database import get_db
from reqpool.core.security import get_current_user
from reqpool.services.dashboard import get_dashboard_stats

router = APIRouter(dependencies=[Depends(get_current_user)])


class DashboardStats(BaseModel):
    total_requirements: int
    total_projects: int
    requirements_by_status: Dict[str, int]
    projects_by_status: Dict[str, int]


@router.get("", response_model=DashboardStats)
async def get_dashboard(db: AsyncSession = Depends(get_db)):
    """获取仪表盘统计，每个状态都会出现在结果中"""
    return await get_dashboard_stats(db)
